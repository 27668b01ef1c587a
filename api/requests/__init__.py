"""Negotiation request API endpoints."""

from fastapi import APIRouter, Query, status, Depends
from typing import Optional
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from negotiations import RequestManager, RequestTarget
from ..common import http_error, server_error

router = APIRouter(
    prefix="/requests",
    tags=["Requests"]
)

manager = RequestManager()


class CreateRequestRequest(BaseModel):
    """A buyer's request to a seller about one listing or service."""
    seller_id: UUID
    target: RequestTarget
    message: Optional[str] = None


class UpdateRequestStatus(BaseModel):
    status: str


@router.get("/")
async def list_requests(
    type: Optional[str] = Query(None, description="sent, received, or omitted for both"),
    identity: Identity = Depends(get_current_user)
):
    try:
        return await manager.list(identity, type)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing requests")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_request(request: CreateRequestRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.create(identity, request.seller_id, request.target, request.message)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "creating request")


@router.put("/{request_id}")
async def update_request(
    request_id: UUID,
    request: UpdateRequestStatus,
    identity: Identity = Depends(get_current_user)
):
    """Change a request's status (seller only)."""
    try:
        return await manager.update_status(identity, request_id, request.status)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating request")

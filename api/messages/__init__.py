"""Direct message API endpoints."""

from fastapi import APIRouter, Query, status, Depends
from typing import Optional
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from messages import MessageManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/messages",
    tags=["Messages"]
)

manager = MessageManager()


class SendMessageRequest(BaseModel):
    receiver_id: UUID
    text: str


@router.get("/")
async def list_messages(
    user_id: Optional[UUID] = Query(None, description="Only the conversation with this user"),
    identity: Identity = Depends(get_current_user)
):
    try:
        return await manager.list(identity, with_user=user_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing messages")


@router.get("/conversations")
async def list_conversations(identity: Identity = Depends(get_current_user)):
    try:
        return await manager.conversations(identity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing conversations")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def send_message(request: SendMessageRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.send(identity, request.receiver_id, request.text)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "sending message")


@router.put("/{message_id}/read")
async def mark_read(message_id: UUID, identity: Identity = Depends(get_current_user)):
    try:
        await manager.mark_read(identity, message_id)
        return {"message": "Message marked as read"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "marking message read")

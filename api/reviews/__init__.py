"""Review API endpoints."""

from fastapi import APIRouter, status, Depends
from typing import Optional
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from reviews import ReviewManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/reviews",
    tags=["Reviews"]
)

manager = ReviewManager()


class SubmitReviewRequest(BaseModel):
    reviewee_id: UUID
    rating: int
    comment: Optional[str] = None


class UpdateReviewRequest(BaseModel):
    rating: Optional[int] = None
    comment: Optional[str] = None


@router.get("/{user_id}")
async def list_reviews(user_id: UUID):
    """Reviews a user received, newest first."""
    try:
        return await manager.list_for_user(user_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing reviews")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def submit_review(request: SubmitReviewRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.submit(identity, request.reviewee_id, request.rating, request.comment)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "submitting review")


@router.put("/{review_id}")
async def update_review(
    review_id: UUID,
    request: UpdateReviewRequest,
    identity: Identity = Depends(get_current_user)
):
    try:
        return await manager.update(identity, review_id, request.rating, request.comment)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating review")


@router.delete("/{review_id}")
async def delete_review(review_id: UUID, identity: Identity = Depends(get_current_user)):
    try:
        await manager.delete(identity, review_id)
        return {"message": "Review deleted successfully"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "deleting review")

"""Admin API endpoints; every route requires the admin role."""

from fastapi import APIRouter, Query, Depends
from typing import Optional
from uuid import UUID

from admin import AdminManager, DEFAULT_PAGE_SIZE
from auth import require_admin
from errors import MarketplaceError
from ..common import http_error, server_error

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)]
)

manager = AdminManager()


@router.get("/stats")
async def get_stats():
    """Marketplace counts for the dashboard."""
    try:
        return await manager.stats()
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "loading stats")


@router.get("/listings")
async def list_listings(
    status: Optional[str] = Query(None),
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE)
):
    try:
        return await manager.list_listings(status=status, page=page, limit=limit)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing listings for moderation")


@router.get("/users")
async def list_users(
    page: int = Query(1),
    limit: int = Query(DEFAULT_PAGE_SIZE)
):
    try:
        return await manager.list_users(page=page, limit=limit)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing users")


@router.put("/listings/{listing_id}/approve")
async def approve_listing(listing_id: UUID):
    try:
        listing = await manager.approve_listing(listing_id)
        return {"message": "Listing approved", "listing": listing}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "approving listing")


@router.put("/listings/{listing_id}/reject")
async def reject_listing(listing_id: UUID):
    try:
        listing = await manager.reject_listing(listing_id)
        return {"message": "Listing rejected", "listing": listing}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "rejecting listing")


@router.delete("/listings/{listing_id}")
async def delete_listing(listing_id: UUID):
    try:
        await manager.delete_listing(listing_id)
        return {"message": "Listing deleted successfully"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "deleting listing")

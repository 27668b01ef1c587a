"""Listings API endpoints."""

from fastapi import APIRouter, Query, status, Depends, File, Form, UploadFile
from typing import Optional, List
from decimal import Decimal
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from listings import ListingManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/listings",
    tags=["Listings"]
)

manager = ListingManager()


class UpdateListingRequest(BaseModel):
    """Request model for updating a listing; omitted or empty fields are kept."""
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None
    status: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


async def read_uploads(files: Optional[List[UploadFile]]):
    """Read uploaded files into (content_type, content) pairs."""
    uploads = []
    for upload in files or []:
        uploads.append((upload.content_type, await upload.read()))
    return uploads


""" Public Endpoints - No Authentication Required """
@router.get("/")
async def search_listings(
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: Optional[float] = Query(None, description="Radius in kilometres"),
    category: Optional[str] = Query(None)
):
    """Active listings near a point, newest first."""
    try:
        return await manager.search_listings(
            latitude=lat,
            longitude=lng,
            radius_km=radius,
            category=category
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "searching listings")


@router.get("/{listing_id}")
async def get_listing(listing_id: UUID):
    """Get a listing by ID."""
    try:
        return await manager.get_listing(listing_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "getting listing")


""" Protected Endpoints - Authentication Required """
@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_listing(
    title: str = Form(...),
    description: str = Form(...),
    price: Decimal = Form(...),
    category: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    images: Optional[List[UploadFile]] = File(None),
    identity: Identity = Depends(get_current_user)
):
    """Create a listing, optionally with images."""
    try:
        return await manager.create_listing(
            identity,
            title,
            description,
            price,
            category,
            latitude,
            longitude,
            uploads=await read_uploads(images)
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "creating listing")


@router.put("/{listing_id}")
async def update_listing(
    listing_id: UUID,
    request: UpdateListingRequest,
    identity: Identity = Depends(get_current_user)
):
    """Update a listing (owner or admin)."""
    try:
        return await manager.update_listing(
            identity,
            listing_id,
            request.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating listing")


@router.delete("/{listing_id}")
async def delete_listing(listing_id: UUID, identity: Identity = Depends(get_current_user)):
    """Delete a listing (owner or admin)."""
    try:
        await manager.delete_listing(identity, listing_id)
        return {"message": "Listing deleted successfully"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "deleting listing")


@router.put("/{listing_id}/images")
async def update_images(
    listing_id: UUID,
    images: Optional[List[UploadFile]] = File(None),
    existing_images: Optional[List[str]] = Form(None),
    identity: Identity = Depends(get_current_user)
):
    """Keep the named existing images and append the uploaded ones (owner only)."""
    try:
        return await manager.add_images(
            identity,
            listing_id,
            await read_uploads(images),
            keep=existing_images
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating listing images")

"""Services API endpoints."""

from fastapi import APIRouter, Query, status, Depends
from typing import Optional
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from services import ServiceManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/services",
    tags=["Services"]
)

manager = ServiceManager()


class CreateServiceRequest(BaseModel):
    title: str
    description: str
    category: str
    availability: str
    latitude: float
    longitude: float


class UpdateServiceRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    availability: Optional[str] = None
    status: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None


@router.get("/")
async def search_services(
    lat: Optional[float] = Query(None),
    lng: Optional[float] = Query(None),
    radius: Optional[float] = Query(None),
    category: Optional[str] = Query(None)
):
    try:
        return await manager.search_services(
            latitude=lat,
            longitude=lng,
            radius_km=radius,
            category=category
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "searching services")


@router.get("/{service_id}")
async def get_service(service_id: UUID):
    try:
        return await manager.get_service(service_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "getting service")


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_service(request: CreateServiceRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.create_service(
            identity,
            request.title,
            request.description,
            request.category,
            request.availability,
            request.latitude,
            request.longitude
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "creating service")


@router.put("/{service_id}")
async def update_service(
    service_id: UUID,
    request: UpdateServiceRequest,
    identity: Identity = Depends(get_current_user)
):
    try:
        return await manager.update_service(
            identity,
            service_id,
            request.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating service")


@router.delete("/{service_id}")
async def delete_service(service_id: UUID, identity: Identity = Depends(get_current_user)):
    try:
        await manager.delete_service(identity, service_id)
        return {"message": "Service deleted successfully"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "deleting service")

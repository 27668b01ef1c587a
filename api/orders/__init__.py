"""Order API endpoints."""

from fastapi import APIRouter, status, Depends
from typing import Dict, Any
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from errors import MarketplaceError
from orders import OrderManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/orders",
    tags=["Orders"]
)

manager = OrderManager()


class CheckoutRequest(BaseModel):
    """Request model for checkout.

    The address is validated field by field by the order rules so the first
    missing field can be named in the error.
    """
    shipping_address: Dict[str, Any] = {}


class UpdateStatusRequest(BaseModel):
    status: str


# /seller must be registered before /{order_id}
@router.get("/seller")
async def list_seller_orders(identity: Identity = Depends(get_current_user)):
    """Orders containing the caller's items, reduced to those items."""
    try:
        return await manager.list_for_seller(identity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing seller orders")


@router.get("/")
async def list_orders(identity: Identity = Depends(get_current_user)):
    """Orders placed by the caller."""
    try:
        return await manager.list_for_buyer(identity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "listing orders")


@router.get("/{order_id}")
async def get_order(order_id: UUID, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.get_order(identity, order_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "getting order")


@router.post("/checkout", status_code=status.HTTP_201_CREATED)
async def checkout(request: CheckoutRequest, identity: Identity = Depends(get_current_user)):
    """Turn the caller's cart into an order."""
    try:
        return await manager.checkout(identity, request.shipping_address)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "checking out")


@router.put("/{order_id}/status")
async def update_status(
    order_id: UUID,
    request: UpdateStatusRequest,
    identity: Identity = Depends(get_current_user)
):
    """Move an order along its lifecycle (seller of an item or admin)."""
    try:
        return await manager.update_status(identity, order_id, request.status)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating order status")

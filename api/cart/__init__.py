"""Cart API endpoints. All of them act on the caller's own cart."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from uuid import UUID

from auth import get_current_user, Identity
from cart import CartManager
from errors import MarketplaceError
from ..common import http_error, server_error

router = APIRouter(
    prefix="/cart",
    tags=["Cart"]
)

manager = CartManager()


class AddItemRequest(BaseModel):
    listing_id: UUID
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    listing_id: UUID
    quantity: int


@router.get("/")
async def view_cart(identity: Identity = Depends(get_current_user)):
    """Cart entries with live listing data and the total."""
    try:
        return await manager.view(identity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "loading cart")


@router.post("/add")
async def add_item(request: AddItemRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.add_item(identity, request.listing_id, request.quantity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "adding to cart")


@router.put("/update")
async def update_quantity(request: UpdateQuantityRequest, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.update_quantity(identity, request.listing_id, request.quantity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "updating cart")


@router.delete("/remove/{listing_id}")
async def remove_item(listing_id: UUID, identity: Identity = Depends(get_current_user)):
    try:
        return await manager.remove_item(identity, listing_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "removing from cart")


@router.delete("/clear")
async def clear_cart(identity: Identity = Depends(get_current_user)):
    try:
        await manager.clear(identity)
        return {"message": "Cart cleared"}
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "clearing cart")

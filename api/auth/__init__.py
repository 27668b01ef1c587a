"""Authentication and user profile API endpoints."""

from fastapi import APIRouter, status, Depends
from typing import Optional
from uuid import UUID
from pydantic import BaseModel

from auth import manager, get_current_user, Identity
from errors import MarketplaceError
from users import UserManager
from ..common import http_error, server_error

router = APIRouter(
    prefix="/auth",
    tags=["Authentication"]
)

users = UserManager()


class RegisterRequest(BaseModel):
    """Request model for registration."""
    name: str
    email: str
    password: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LoginRequest(BaseModel):
    """Request model for login."""
    email: str
    password: str


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(request: RegisterRequest):
    """Create an account and return a token."""
    try:
        return await manager.register(
            request.name,
            request.email,
            request.password,
            latitude=request.latitude,
            longitude=request.longitude
        )
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "registering user")


@router.post("/login")
async def login(request: LoginRequest):
    """Exchange credentials for a token."""
    try:
        return await manager.login(request.email, request.password)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "logging in")


@router.get("/profile")
async def get_profile(identity: Identity = Depends(get_current_user)):
    """Get the caller's profile."""
    try:
        return await users.get_profile(identity)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "loading profile")


@router.get("/user/{user_id}")
async def get_user(user_id: UUID, identity: Identity = Depends(get_current_user)):
    """Get another user's public profile."""
    try:
        return await users.get_user(user_id)
    except MarketplaceError as e:
        raise http_error(e)
    except Exception as e:
        raise server_error(e, "loading user")

"""REST API module for the marketplace.

This module provides HTTP endpoints for:
- Registration, login and profiles
- Listings and services with proximity search
- Cart, checkout and order lifecycle
- Reviews and user ratings
- Buyer/seller requests and direct messages
- Administration and moderation
"""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings_conf
from database import init_db, close as db_close
from .common import SERVER_ERROR

logger = logging.getLogger(__name__)

API_NAME = "LocalMart API"
API_VERSION = "1.0.0"


# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Initializing database...")
    await init_db()

    yield

    logger.info("Closing database connections...")
    await db_close()


# Create FastAPI app
app = FastAPI(
    title=API_NAME,
    description="REST API for a local buy/sell and services marketplace",
    version=API_VERSION,
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Every error body is {"message": ..., "error"?: ...}
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.detail},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "error": jsonable_encoder(exc.errors())}
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": SERVER_ERROR}
    )


# Root endpoint - register this BEFORE other routers
@app.get("/")
async def root():
    return {
        "name": API_NAME,
        "version": API_VERSION,
        "status": "running"
    }


# Import and include all routers
from .auth import router as auth_router
from .listings import router as listings_router
from .services import router as services_router
from .cart import router as cart_router
from .orders import router as orders_router
from .reviews import router as reviews_router
from .requests import router as requests_router
from .messages import router as messages_router
from .admin import router as admin_router

for router in (
    auth_router,
    listings_router,
    services_router,
    cart_router,
    orders_router,
    reviews_router,
    requests_router,
    messages_router,
    admin_router
):
    app.include_router(router, prefix="/api")

# Uploaded listing images
os.makedirs(settings_conf['uploads_dir'], exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings_conf['uploads_dir']), name="uploads")

"""Listings module for managing marketplace listings.

This module provides functionality for:
- Creating and managing listings
- Proximity and category search
- Image uploads
- Managing listing lifecycle (active, sold, pending, rejected)
"""

import logging
import mimetypes
import os
import uuid
from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Any, Tuple

import aiofiles

from auth import Identity
from config import settings_conf
from database import get_pool
from database.schema.v1 import LISTING_CATEGORIES, LISTING_STATUSES, MAX_AMOUNT
from errors import ValidationError, Forbidden, NotFound
from .search import search_nearby, with_owner

logger = logging.getLogger(__name__)

LISTING_COLUMNS = [
    'id', 'user_id', 'title', 'description', 'price', 'category',
    'images', 'latitude', 'longitude', 'status', 'created_at', 'updated_at'
]

# User-mutable fields for listings
MUTABLE_FIELDS = {
    'title',
    'description',
    'price',
    'category',
    'status',
    'latitude',
    'longitude'
}

CENT = Decimal('0.01')

IMAGE_EXTENSIONS = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'image/gif': '.gif',
    'image/webp': '.webp'
}


def require_text(value: Optional[str], field: str) -> str:
    """Strip a required text field, failing when it is empty."""
    value = (value or '').strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def validate_location(latitude: Any, longitude: Any) -> Tuple[float, float]:
    """Parse and range-check a geographic point in decimal degrees."""
    try:
        latitude = float(latitude)
        longitude = float(longitude)
    except (TypeError, ValueError):
        raise ValidationError("latitude and longitude are required")
    if not -90 <= latitude <= 90:
        raise ValidationError("latitude must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValidationError("longitude must be between -180 and 180")
    return latitude, longitude


def validate_choice(value: str, choices, field: str) -> str:
    if value not in choices:
        raise ValidationError(f"Invalid {field}: {value}")
    return value


def validate_price(price: Any) -> Decimal:
    try:
        price = Decimal(str(price))
    except (InvalidOperation, TypeError, ValueError):
        raise ValidationError("price must be a number")
    if not price.is_finite() or price < 0:
        raise ValidationError("price must be zero or more")
    if price > MAX_AMOUNT:
        raise ValidationError(f"price must not exceed {MAX_AMOUNT}")
    if price != price.quantize(CENT):
        raise ValidationError("price can have at most 2 decimal places")
    return price


class ListingManager:
    """Manager class for handling listing operations."""

    def __init__(self, pool=None):
        """Initialize the listing manager.

        Args:
            pool: Optional database pool. If not provided, will get from database module.
        """
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_listing(
        self,
        identity: Identity,
        title: str,
        description: str,
        price: Any,
        category: str,
        latitude: float,
        longitude: float,
        uploads: Optional[List[Tuple[str, bytes]]] = None
    ) -> Dict[str, Any]:
        """Create a new listing owned by the caller.

        Args:
            uploads: Optional (content_type, content) pairs of images to store

        Returns:
            Dict containing the created listing with its owner projection

        Raises:
            ValidationError: If any field is missing or out of range
        """
        await self.ensure_pool()

        title = require_text(title, 'title')
        description = require_text(description, 'description')
        price = validate_price(price)
        category = validate_choice(category, LISTING_CATEGORIES, 'category')
        latitude, longitude = validate_location(latitude, longitude)

        uploads = uploads or []
        self._check_uploads(uploads, 0)
        images = [await self._store_image(ct, content) for ct, content in uploads]

        async with self.pool.acquire() as conn:
            listing_id = await conn.fetchval(
                '''
                INSERT INTO listings (
                    user_id, title, description, price, category,
                    images, latitude, longitude
                ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
                RETURNING id
                ''',
                identity.id, title, description, price, category,
                images, latitude, longitude
            )

        logger.info(f"User {identity.id} created listing {listing_id}")
        return await self.get_listing(listing_id)

    async def get_listing(self, listing_id: uuid.UUID) -> Dict[str, Any]:
        """Get a listing by ID with owner {id, name, email, rating}.

        Raises:
            NotFound: If listing doesn't exist
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                SELECT {', '.join('l.' + c for c in LISTING_COLUMNS)},
                       u.name AS owner_name, u.email AS owner_email, u.rating AS owner_rating
                FROM listings l
                JOIN users u ON u.id = l.user_id
                WHERE l.id = $1
                ''',
                listing_id
            )

        if not row:
            raise NotFound("Listing not found")
        return with_owner(row)

    async def search_listings(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Active listings near a point, newest first, capped at max_search_results."""
        await self.ensure_pool()

        max_results = settings_conf['max_search_results']
        limit = min(limit or max_results, max_results)
        if radius_km is None:
            radius_km = settings_conf['default_radius_km']
        if radius_km <= 0:
            raise ValidationError("radius must be positive")

        async with self.pool.acquire() as conn:
            return await search_nearby(
                conn,
                'listings',
                LISTING_COLUMNS,
                latitude=latitude,
                longitude=longitude,
                radius_km=radius_km,
                category=category,
                limit=limit
            )

    async def _get_owned(self, conn, identity: Identity, listing_id: uuid.UUID, allow_admin: bool = True):
        row = await conn.fetchrow(
            'SELECT id, user_id, images FROM listings WHERE id = $1 FOR UPDATE',
            listing_id
        )
        if not row:
            raise NotFound("Listing not found")
        if row['user_id'] != identity.id and not (allow_admin and identity.is_admin):
            raise Forbidden("Not authorized")
        return row

    async def update_listing(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Update a listing (owner or admin).

        Empty values are ignored so a partial form leaves fields untouched.
        The owner is never mutable.

        Raises:
            NotFound: If listing doesn't exist
            Forbidden: If the caller is neither owner nor admin
            ValidationError: If update contains invalid fields or values
        """
        await self.ensure_pool()

        updates = {k: v for k, v in updates.items() if v is not None and v != ''}
        invalid_fields = set(updates) - MUTABLE_FIELDS
        if invalid_fields:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(invalid_fields))}")

        if 'title' in updates:
            updates['title'] = require_text(updates['title'], 'title')
        if 'description' in updates:
            updates['description'] = require_text(updates['description'], 'description')
        if 'price' in updates:
            updates['price'] = validate_price(updates['price'])
        if 'category' in updates:
            validate_choice(updates['category'], LISTING_CATEGORIES, 'category')
        if 'status' in updates:
            validate_choice(updates['status'], LISTING_STATUSES, 'status')
        if 'latitude' in updates or 'longitude' in updates:
            if not ('latitude' in updates and 'longitude' in updates):
                raise ValidationError("latitude and longitude must be updated together")
            updates['latitude'], updates['longitude'] = validate_location(
                updates['latitude'], updates['longitude']
            )

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._get_owned(conn, identity, listing_id)

                if updates:
                    fields = []
                    values = []
                    for i, (field, value) in enumerate(updates.items(), start=1):
                        fields.append(f"{field} = ${i}")
                        values.append(value)
                    values.append(listing_id)

                    await conn.execute(
                        f'''
                        UPDATE listings
                        SET {', '.join(fields)}, updated_at = now()
                        WHERE id = ${len(values)}
                        ''',
                        *values
                    )

        return await self.get_listing(listing_id)

    async def delete_listing(self, identity: Identity, listing_id: uuid.UUID) -> None:
        """Delete a listing (owner or admin).

        Cart entries referencing it are left dangling and drop out of cart views.
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._get_owned(conn, identity, listing_id)
                await conn.execute('DELETE FROM listings WHERE id = $1', listing_id)

        logger.info(f"User {identity.id} deleted listing {listing_id}")

    async def add_images(
        self,
        identity: Identity,
        listing_id: uuid.UUID,
        uploads: List[Tuple[str, bytes]],
        keep: Optional[List[str]] = None
    ) -> Dict[str, Any]:
        """Replace a listing's images with the kept ones plus new uploads (owner only).

        Args:
            identity: Caller
            listing_id: The listing UUID
            uploads: (content_type, content) pairs of new images
            keep: Existing image names to retain; None keeps all of them

        Raises:
            ValidationError: If a file is not an image or the total exceeds max_listing_images
        """
        await self.ensure_pool()

        self._check_uploads(uploads, 0)

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                row = await self._get_owned(conn, identity, listing_id, allow_admin=False)

                current = list(row['images'] or [])
                kept = current if keep is None else [img for img in current if img in keep]
                self._check_uploads(uploads, len(kept))

                saved = []
                for content_type, content in uploads:
                    saved.append(await self._store_image(content_type, content))

                await conn.execute(
                    'UPDATE listings SET images = $1, updated_at = now() WHERE id = $2',
                    kept + saved,
                    listing_id
                )

        return await self.get_listing(listing_id)

    def _check_uploads(self, uploads: List[Tuple[str, bytes]], existing: int) -> None:
        for content_type, _ in uploads:
            if not (content_type or '').startswith('image/'):
                raise ValidationError("Only image files are allowed")
        if existing + len(uploads) > settings_conf['max_listing_images']:
            raise ValidationError(
                f"A listing can have at most {settings_conf['max_listing_images']} images"
            )

    async def _store_image(self, content_type: str, content: bytes) -> str:
        uploads_dir = settings_conf['uploads_dir']
        os.makedirs(uploads_dir, exist_ok=True)

        extension = IMAGE_EXTENSIONS.get(content_type) or mimetypes.guess_extension(content_type) or ''
        filename = f"{uuid.uuid4().hex}{extension}"
        async with aiofiles.open(os.path.join(uploads_dir, filename), 'wb') as f:
            await f.write(content)
        return filename


__all__ = [
    'ListingManager',
    'require_text',
    'validate_location',
    'validate_choice',
    'validate_price',
    'search_nearby',
    'with_owner'
]

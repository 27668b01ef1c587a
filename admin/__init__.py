"""Administration: marketplace counts, paged listings/users and listing moderation.

Callers are expected to have passed the admin check at the API layer.
"""

import logging
import math
from typing import Dict, Any, Optional
from uuid import UUID

from database import get_pool
from database.schema.v1 import LISTING_STATUSES
from errors import ValidationError, NotFound
from listings.search import with_owner

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def _page(page: int, limit: int):
    if page < 1:
        raise ValidationError("page must be at least 1")
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be between 1 and {MAX_PAGE_SIZE}")
    return limit, (page - 1) * limit


def _paged(items, total: int, page: int, limit: int) -> Dict[str, Any]:
    return {
        'items': items,
        'total_pages': math.ceil(total / limit),
        'current_page': page,
        'total': total
    }


class AdminManager:
    """Read-mostly views over the whole marketplace."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def stats(self) -> Dict[str, int]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT
                    (SELECT COUNT(*) FROM users) AS total_users,
                    (SELECT COUNT(*) FROM listings) AS total_listings,
                    (SELECT COUNT(*) FROM services) AS total_services,
                    (SELECT COUNT(*) FROM listings WHERE status = 'active') AS active_listings,
                    (SELECT COUNT(*) FROM orders) AS total_orders
                '''
            )
        return dict(row)

    async def list_listings(
        self,
        status: Optional[str] = None,
        page: int = 1,
        limit: int = DEFAULT_PAGE_SIZE
    ) -> Dict[str, Any]:
        """All listings, newest first, optionally filtered by status."""
        if status and status not in LISTING_STATUSES:
            raise ValidationError(f"Invalid status: {status}")
        limit, offset = _page(page, limit)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            total = await conn.fetchval(
                'SELECT COUNT(*) FROM listings WHERE ($1::text IS NULL OR status = $1)',
                status or None
            )
            rows = await conn.fetch(
                '''
                SELECT l.id, l.user_id, l.title, l.description, l.price, l.category,
                       l.images, l.status, l.created_at, l.updated_at,
                       u.name AS owner_name, u.email AS owner_email
                FROM listings l
                JOIN users u ON u.id = l.user_id
                WHERE ($1::text IS NULL OR l.status = $1)
                ORDER BY l.created_at DESC
                LIMIT $2 OFFSET $3
                ''',
                status or None,
                limit,
                offset
            )

        return _paged([with_owner(row) for row in rows], total, page, limit)

    async def list_users(self, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> Dict[str, Any]:
        """All users, newest first, without password hashes."""
        limit, offset = _page(page, limit)

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            total = await conn.fetchval('SELECT COUNT(*) FROM users')
            rows = await conn.fetch(
                '''
                SELECT id, name, email, role, rating, latitude, longitude, created_at
                FROM users
                ORDER BY created_at DESC
                LIMIT $1 OFFSET $2
                ''',
                limit,
                offset
            )

        return _paged([dict(row) for row in rows], total, page, limit)

    async def _set_listing_status(self, listing_id: UUID, status: str) -> Dict[str, Any]:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            updated = await conn.fetchval(
                '''
                UPDATE listings SET status = $1, updated_at = now()
                WHERE id = $2
                RETURNING id
                ''',
                status,
                listing_id
            )
            if updated is None:
                raise NotFound("Listing not found")
            row = await conn.fetchrow(
                '''
                SELECT l.*, u.name AS owner_name, u.email AS owner_email
                FROM listings l
                JOIN users u ON u.id = l.user_id
                WHERE l.id = $1
                ''',
                listing_id
            )

        logger.info(f"Listing {listing_id} set to {status} by admin")
        return with_owner(row)

    async def approve_listing(self, listing_id: UUID) -> Dict[str, Any]:
        return await self._set_listing_status(listing_id, 'active')

    async def reject_listing(self, listing_id: UUID) -> Dict[str, Any]:
        return await self._set_listing_status(listing_id, 'rejected')

    async def delete_listing(self, listing_id: UUID) -> None:
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            deleted = await conn.fetchval(
                'DELETE FROM listings WHERE id = $1 RETURNING id',
                listing_id
            )
        if deleted is None:
            raise NotFound("Listing not found")
        logger.info(f"Listing {listing_id} deleted by admin")


__all__ = ['AdminManager', 'DEFAULT_PAGE_SIZE', 'MAX_PAGE_SIZE']

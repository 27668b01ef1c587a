"""Users module for profiles and the aggregate rating."""

import logging
from typing import Dict, Any
from uuid import UUID

import asyncpg

from auth import Identity
from database import get_pool
from errors import NotFound

logger = logging.getLogger(__name__)


async def update_rating(conn: asyncpg.Connection, user_id: UUID) -> float:
    """Rewrite a user's rating as the mean of every review they received.

    Re-reads all reviews for the user; 0 when none remain. Run it inside the
    transaction that changed the reviews.
    """
    rating = await conn.fetchval(
        '''
        UPDATE users
        SET rating = COALESCE(
            (SELECT AVG(rating)::float8 FROM reviews WHERE reviewee_id = $1),
            0
        )
        WHERE id = $1
        RETURNING rating
        ''',
        user_id
    )
    logger.debug(f"Recomputed rating for user {user_id}: {rating}")
    return rating


class UserManager:
    """Read access to user profiles."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def get_profile(self, identity: Identity) -> Dict[str, Any]:
        """Full profile of the caller (never the password hash)."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                '''
                SELECT id, name, email, role, rating, latitude, longitude, created_at
                FROM users
                WHERE id = $1
                ''',
                identity.id
            )
        if not row:
            raise NotFound("User not found")
        return dict(row)

    async def get_user(self, user_id: UUID) -> Dict[str, Any]:
        """Public projection of another user: id, name, email, rating."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                'SELECT id, name, email, rating FROM users WHERE id = $1',
                user_id
            )
        if not row:
            raise NotFound("User not found")
        return dict(row)


__all__ = ['UserManager', 'update_rating']

"""Reviews module.

Each review mutation and the recomputation of the reviewee's rating run in
one transaction with the reviewee's user row locked, so concurrent reviews
for the same user serialize and the stored rating always matches the mean
of the reviews that exist.
"""

import logging
from typing import Dict, List, Optional, Any
from uuid import UUID

import asyncpg

from auth import Identity
from database import get_pool
from errors import ValidationError, NotFound, Forbidden, SelfReview, DuplicateReview
from users import update_rating

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating: Any) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise ValidationError("Rating must be a whole number")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(f"Rating must be between {MIN_RATING} and {MAX_RATING}")
    return rating


class ReviewManager:
    """Manages reviews and keeps user ratings in sync."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def _lock_reviewee(self, conn, reviewee_id: UUID) -> None:
        found = await conn.fetchval(
            'SELECT id FROM users WHERE id = $1 FOR NO KEY UPDATE',
            reviewee_id
        )
        if found is None:
            raise NotFound("User not found")

    async def list_for_user(self, user_id: UUID) -> List[Dict[str, Any]]:
        """Reviews received by a user, newest first, with reviewer {id, name}."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT r.id, r.reviewee_id, r.rating, r.comment, r.created_at, r.updated_at,
                       u.id AS reviewer_id, u.name AS reviewer_name
                FROM reviews r
                JOIN users u ON u.id = r.reviewer_id
                WHERE r.reviewee_id = $1
                ORDER BY r.created_at DESC
                ''',
                user_id
            )

        return [
            {
                'id': row['id'],
                'reviewer': {'id': row['reviewer_id'], 'name': row['reviewer_name']},
                'reviewee_id': row['reviewee_id'],
                'rating': row['rating'],
                'comment': row['comment'],
                'created_at': row['created_at'],
                'updated_at': row['updated_at']
            }
            for row in rows
        ]

    async def submit(
        self,
        identity: Identity,
        reviewee_id: UUID,
        rating: int,
        comment: Optional[str] = None
    ) -> Dict[str, Any]:
        """Review another user and recompute their rating.

        Raises:
            SelfReview: If the caller reviews themselves
            NotFound: If the reviewee doesn't exist
            DuplicateReview: If the caller already reviewed this user
        """
        validate_rating(rating)
        if reviewee_id == identity.id:
            raise SelfReview("You cannot review yourself")

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._lock_reviewee(conn, reviewee_id)
                try:
                    row = await conn.fetchrow(
                        '''
                        INSERT INTO reviews (reviewer_id, reviewee_id, rating, comment)
                        VALUES ($1, $2, $3, $4)
                        RETURNING id, reviewer_id, reviewee_id, rating, comment, created_at, updated_at
                        ''',
                        identity.id,
                        reviewee_id,
                        rating,
                        comment
                    )
                except asyncpg.UniqueViolationError:
                    raise DuplicateReview("You have already reviewed this user")
                await update_rating(conn, reviewee_id)

        logger.info(f"User {identity.id} reviewed {reviewee_id} with {rating}")
        return dict(row)

    async def _get_own_review(self, conn, identity: Identity, review_id: UUID):
        row = await conn.fetchrow(
            'SELECT reviewer_id, reviewee_id FROM reviews WHERE id = $1',
            review_id
        )
        if not row:
            raise NotFound("Review not found")
        if row['reviewer_id'] != identity.id:
            raise Forbidden("Not authorized")
        return row

    async def update(
        self,
        identity: Identity,
        review_id: UUID,
        rating: Optional[int] = None,
        comment: Optional[str] = None
    ) -> Dict[str, Any]:
        """Change the caller's own review; omitted fields stay as they are."""
        if rating is not None:
            validate_rating(rating)

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                existing = await self._get_own_review(conn, identity, review_id)
                await self._lock_reviewee(conn, existing['reviewee_id'])
                row = await conn.fetchrow(
                    '''
                    UPDATE reviews
                    SET rating = COALESCE($1, rating),
                        comment = COALESCE($2, comment),
                        updated_at = now()
                    WHERE id = $3
                    RETURNING id, reviewer_id, reviewee_id, rating, comment, created_at, updated_at
                    ''',
                    rating,
                    comment,
                    review_id
                )
                await update_rating(conn, existing['reviewee_id'])

        return dict(row)

    async def delete(self, identity: Identity, review_id: UUID) -> None:
        """Delete the caller's own review; the reviewee's rating drops to 0 when none remain."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                existing = await self._get_own_review(conn, identity, review_id)
                await self._lock_reviewee(conn, existing['reviewee_id'])
                await conn.execute('DELETE FROM reviews WHERE id = $1', review_id)
                await update_rating(conn, existing['reviewee_id'])

        logger.info(f"User {identity.id} deleted review {review_id}")


__all__ = ['ReviewManager', 'validate_rating']

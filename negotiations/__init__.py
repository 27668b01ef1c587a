"""Buyer/seller negotiation requests.

A request targets exactly one listing or one service. The target is a tagged
value stored as target_type plus target_id; at most one open (pending or
accepted) request may exist per buyer, seller and target, enforced by a
partial unique index.
"""

import logging
from typing import Dict, List, Optional, Any, Literal
from uuid import UUID

import asyncpg
from pydantic import BaseModel

from auth import Identity
from database import get_pool
from database.schema.v1 import REQUEST_STATUSES
from errors import ValidationError, NotFound, Forbidden, SelfTransaction, DuplicateRequest

logger = logging.getLogger(__name__)

OPEN_STATUSES = ('pending', 'accepted')

TARGET_TABLES = {
    'listing': 'listings',
    'service': 'services'
}

BOXES = ('sent', 'received', 'all')


class RequestTarget(BaseModel):
    """The listing or service a request is about."""
    kind: Literal['listing', 'service']
    id: UUID


class RequestManager:
    """Manages negotiation requests between buyers and sellers."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create(
        self,
        identity: Identity,
        seller_id: UUID,
        target: RequestTarget,
        message: Optional[str] = None
    ) -> Dict[str, Any]:
        """Open a request from the caller to a seller about one of their offerings.

        Raises:
            SelfTransaction: If the caller is the seller
            NotFound: If the target doesn't exist
            ValidationError: If the target belongs to someone else
            DuplicateRequest: If an open request already exists
        """
        if seller_id == identity.id:
            raise SelfTransaction("Cannot send a request to yourself")

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                owner_id = await conn.fetchval(
                    f'SELECT user_id FROM {TARGET_TABLES[target.kind]} WHERE id = $1',
                    target.id
                )
                if owner_id is None:
                    raise NotFound(f"{target.kind.capitalize()} not found")
                if owner_id != seller_id:
                    raise ValidationError(f"{target.kind.capitalize()} does not belong to this seller")

                try:
                    request_id = await conn.fetchval(
                        '''
                        INSERT INTO requests (buyer_id, seller_id, target_type, target_id, message)
                        VALUES ($1, $2, $3, $4, $5)
                        RETURNING id
                        ''',
                        identity.id,
                        seller_id,
                        target.kind,
                        target.id,
                        message
                    )
                except asyncpg.UniqueViolationError:
                    raise DuplicateRequest("You already have an open request for this item")

                request = (await self._load(conn, 'r.id = $1', request_id))[0]

        logger.info(f"User {identity.id} opened request {request_id} with {seller_id}")
        return request

    async def _load(self, conn, where: str, *params) -> List[Dict[str, Any]]:
        rows = await conn.fetch(
            f'''
            SELECT r.id, r.target_type, r.target_id, r.status, r.message,
                   r.created_at, r.updated_at,
                   b.id AS buyer_id, b.name AS buyer_name, b.email AS buyer_email,
                   s.id AS seller_id, s.name AS seller_name, s.email AS seller_email,
                   COALESCE(l.title, sv.title) AS target_title,
                   l.price AS target_price
            FROM requests r
            JOIN users b ON b.id = r.buyer_id
            JOIN users s ON s.id = r.seller_id
            LEFT JOIN listings l ON r.target_type = 'listing' AND l.id = r.target_id
            LEFT JOIN services sv ON r.target_type = 'service' AND sv.id = r.target_id
            WHERE {where}
            ORDER BY r.created_at DESC
            ''',
            *params
        )

        requests = []
        for row in rows:
            target = {
                'kind': row['target_type'],
                'id': row['target_id'],
                'title': row['target_title']
            }
            if row['target_type'] == 'listing':
                target['price'] = row['target_price']
            requests.append({
                'id': row['id'],
                'buyer': {'id': row['buyer_id'], 'name': row['buyer_name'], 'email': row['buyer_email']},
                'seller': {'id': row['seller_id'], 'name': row['seller_name'], 'email': row['seller_email']},
                'target': target,
                'status': row['status'],
                'message': row['message'],
                'created_at': row['created_at'],
                'updated_at': row['updated_at']
            })
        return requests

    async def list(self, identity: Identity, box: Optional[str] = None) -> List[Dict[str, Any]]:
        """Requests sent by the caller, received by the caller, or both."""
        box = box or 'all'
        if box not in BOXES:
            raise ValidationError(f"Invalid box: {box}")

        where = {
            'sent': 'r.buyer_id = $1',
            'received': 'r.seller_id = $1',
            'all': '(r.buyer_id = $1 OR r.seller_id = $1)'
        }[box]

        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await self._load(conn, where, identity.id)

    async def update_status(self, identity: Identity, request_id: UUID, status: str) -> Dict[str, Any]:
        """Change a request's status; only its seller may.

        Raises:
            ValidationError: If status is unknown
            NotFound: If the request doesn't exist
            Forbidden: If the caller is not the seller
            DuplicateRequest: If reopening would clash with another open request
        """
        if status not in REQUEST_STATUSES:
            raise ValidationError("Invalid status")

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                seller_id = await conn.fetchval(
                    'SELECT seller_id FROM requests WHERE id = $1 FOR UPDATE',
                    request_id
                )
                if seller_id is None:
                    raise NotFound("Request not found")
                if seller_id != identity.id:
                    raise Forbidden("Only the seller can update this request")

                try:
                    await conn.execute(
                        'UPDATE requests SET status = $1, updated_at = now() WHERE id = $2',
                        status,
                        request_id
                    )
                except asyncpg.UniqueViolationError:
                    raise DuplicateRequest("Another open request exists for this item")

                request = (await self._load(conn, 'r.id = $1', request_id))[0]

        logger.info(f"Request {request_id} set to {status} by {identity.id}")
        return request


__all__ = ['RequestManager', 'RequestTarget', 'OPEN_STATUSES']

"""Services module for skill and labor offerings.

Services mirror listings but carry an availability description instead of a
price and have no images.
"""

import logging
from typing import Dict, List, Optional, Any
from uuid import UUID

from auth import Identity
from config import settings_conf
from database import get_pool
from database.schema.v1 import SERVICE_CATEGORIES, SERVICE_STATUSES
from errors import ValidationError, Forbidden, NotFound
from listings import require_text, validate_location, validate_choice, search_nearby, with_owner

logger = logging.getLogger(__name__)

SERVICE_COLUMNS = [
    'id', 'user_id', 'title', 'description', 'category', 'availability',
    'latitude', 'longitude', 'status', 'created_at', 'updated_at'
]

MUTABLE_FIELDS = {
    'title',
    'description',
    'category',
    'availability',
    'status',
    'latitude',
    'longitude'
}


class ServiceManager:
    """Manager class for handling service operations."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def create_service(
        self,
        identity: Identity,
        title: str,
        description: str,
        category: str,
        availability: str,
        latitude: float,
        longitude: float
    ) -> Dict[str, Any]:
        """Create a service owned by the caller."""
        await self.ensure_pool()

        title = require_text(title, 'title')
        description = require_text(description, 'description')
        availability = require_text(availability, 'availability')
        validate_choice(category, SERVICE_CATEGORIES, 'category')
        latitude, longitude = validate_location(latitude, longitude)

        async with self.pool.acquire() as conn:
            service_id = await conn.fetchval(
                '''
                INSERT INTO services (
                    user_id, title, description, category,
                    availability, latitude, longitude
                ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                RETURNING id
                ''',
                identity.id, title, description, category,
                availability, latitude, longitude
            )

        logger.info(f"User {identity.id} created service {service_id}")
        return await self.get_service(service_id)

    async def get_service(self, service_id: UUID) -> Dict[str, Any]:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                f'''
                SELECT {', '.join('s.' + c for c in SERVICE_COLUMNS)},
                       u.name AS owner_name, u.email AS owner_email, u.rating AS owner_rating
                FROM services s
                JOIN users u ON u.id = s.user_id
                WHERE s.id = $1
                ''',
                service_id
            )

        if not row:
            raise NotFound("Service not found")
        return with_owner(row)

    async def search_services(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
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
                'services',
                SERVICE_COLUMNS,
                latitude=latitude,
                longitude=longitude,
                radius_km=radius_km,
                category=category,
                limit=limit
            )

    async def _check_owner(self, conn, identity: Identity, service_id: UUID) -> None:
        owner_id = await conn.fetchval(
            'SELECT user_id FROM services WHERE id = $1 FOR UPDATE',
            service_id
        )
        if owner_id is None:
            raise NotFound("Service not found")
        if owner_id != identity.id and not identity.is_admin:
            raise Forbidden("Not authorized")

    async def update_service(
        self,
        identity: Identity,
        service_id: UUID,
        updates: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Update a service (owner or admin); empty values are ignored."""
        await self.ensure_pool()

        updates = {k: v for k, v in updates.items() if v is not None and v != ''}
        invalid_fields = set(updates) - MUTABLE_FIELDS
        if invalid_fields:
            raise ValidationError(f"Cannot update fields: {', '.join(sorted(invalid_fields))}")

        for field in ('title', 'description', 'availability'):
            if field in updates:
                updates[field] = require_text(updates[field], field)
        if 'category' in updates:
            validate_choice(updates['category'], SERVICE_CATEGORIES, 'category')
        if 'status' in updates:
            validate_choice(updates['status'], SERVICE_STATUSES, 'status')
        if 'latitude' in updates or 'longitude' in updates:
            updates['latitude'], updates['longitude'] = validate_location(
                updates.get('latitude'), updates.get('longitude')
            )

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._check_owner(conn, identity, service_id)

                if updates:
                    fields = [f"{field} = ${i}" for i, field in enumerate(updates, start=1)]
                    await conn.execute(
                        f'''
                        UPDATE services
                        SET {', '.join(fields)}, updated_at = now()
                        WHERE id = ${len(updates) + 1}
                        ''',
                        *updates.values(),
                        service_id
                    )

        return await self.get_service(service_id)

    async def delete_service(self, identity: Identity, service_id: UUID) -> None:
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                await self._check_owner(conn, identity, service_id)
                await conn.execute('DELETE FROM services WHERE id = $1', service_id)

        logger.info(f"User {identity.id} deleted service {service_id}")


__all__ = ['ServiceManager', 'SERVICE_COLUMNS']

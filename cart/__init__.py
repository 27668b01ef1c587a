"""Cart module.

A cart is keyed by its owning user and holds at most one entry per listing.
Entries reference listings without a foreign key, so an entry whose listing
was deleted stays in the table and is dropped from every view and total.

Every mutation locks the cart row before touching its entries, the same
order checkout uses.
"""

import logging
from decimal import Decimal
from typing import Dict, Any
from uuid import UUID

from auth import Identity
from database import get_pool
from errors import NotAvailable, SelfTransaction, InvalidQuantity, NotFound

logger = logging.getLogger(__name__)

MAX_QUANTITY = 999


def validate_quantity(quantity) -> int:
    if quantity is None or quantity < 1:
        raise InvalidQuantity("Quantity must be at least 1")
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"Quantity cannot exceed {MAX_QUANTITY}")
    return quantity


class CartManager:
    """Manages the caller's shopping cart."""

    def __init__(self, pool=None):
        self.pool = pool

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def add_item(self, identity: Identity, listing_id: UUID, quantity: int = 1) -> Dict[str, Any]:
        """Add a listing to the cart, merging quantities for an existing entry.

        Creates the cart on first use.

        Raises:
            InvalidQuantity: If quantity is below 1 or the merged quantity exceeds MAX_QUANTITY
            NotAvailable: If the listing is missing or not active
            SelfTransaction: If the caller owns the listing
        """
        validate_quantity(quantity)

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                listing = await conn.fetchrow(
                    'SELECT user_id, status FROM listings WHERE id = $1',
                    listing_id
                )
                if not listing or listing['status'] != 'active':
                    raise NotAvailable("Listing not available")
                if listing['user_id'] == identity.id:
                    raise SelfTransaction("Cannot add your own listing to cart")

                cart_id = await conn.fetchval(
                    '''
                    INSERT INTO carts (user_id) VALUES ($1)
                    ON CONFLICT (user_id) DO UPDATE SET updated_at = now()
                    RETURNING id
                    ''',
                    identity.id
                )
                merged = await conn.fetchval(
                    '''
                    INSERT INTO cart_items (cart_id, listing_id, quantity)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (cart_id, listing_id)
                    DO UPDATE SET quantity = cart_items.quantity + EXCLUDED.quantity
                    RETURNING quantity
                    ''',
                    cart_id,
                    listing_id,
                    quantity
                )
                if merged > MAX_QUANTITY:
                    raise InvalidQuantity(f"Quantity cannot exceed {MAX_QUANTITY}")

        logger.debug(f"User {identity.id} added {quantity} x {listing_id} to cart")
        return await self.view(identity)

    async def update_quantity(self, identity: Identity, listing_id: UUID, quantity: int) -> Dict[str, Any]:
        """Overwrite the quantity of an existing entry.

        Raises:
            InvalidQuantity: If quantity is below 1 or above MAX_QUANTITY
            NotFound: If there is no cart or no entry for the listing
        """
        validate_quantity(quantity)

        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                cart_id = await conn.fetchval(
                    'SELECT id FROM carts WHERE user_id = $1 FOR UPDATE',
                    identity.id
                )
                if cart_id is None:
                    raise NotFound("Cart not found")

                result = await conn.execute(
                    '''
                    UPDATE cart_items SET quantity = $3
                    WHERE cart_id = $1 AND listing_id = $2
                    ''',
                    cart_id,
                    listing_id,
                    quantity
                )
                if result == 'UPDATE 0':
                    raise NotFound("Item not found in cart")

                await conn.execute('UPDATE carts SET updated_at = now() WHERE id = $1', cart_id)

        return await self.view(identity)

    async def remove_item(self, identity: Identity, listing_id: UUID) -> Dict[str, Any]:
        """Remove an entry; removing a missing entry leaves the cart unchanged."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                cart_id = await conn.fetchval(
                    'SELECT id FROM carts WHERE user_id = $1 FOR UPDATE',
                    identity.id
                )
                if cart_id is not None:
                    await conn.execute(
                        'DELETE FROM cart_items WHERE cart_id = $1 AND listing_id = $2',
                        cart_id,
                        listing_id
                    )

        return await self.view(identity)

    async def clear(self, identity: Identity) -> None:
        """Delete the cart entirely; idempotent."""
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            await conn.execute('DELETE FROM carts WHERE user_id = $1', identity.id)

    async def view(self, identity: Identity) -> Dict[str, Any]:
        """Entries whose listing still exists, oldest first, and their total.

        An absent cart yields no items and a total of 0.
        """
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                '''
                SELECT ci.quantity, ci.added_at,
                       l.id, l.title, l.price, l.images, l.status,
                       u.id AS owner_id, u.name AS owner_name, u.rating AS owner_rating
                FROM carts c
                JOIN cart_items ci ON ci.cart_id = c.id
                JOIN listings l ON l.id = ci.listing_id
                JOIN users u ON u.id = l.user_id
                WHERE c.user_id = $1
                ORDER BY ci.added_at
                ''',
                identity.id
            )

        items = []
        total = Decimal('0')
        for row in rows:
            items.append({
                'listing': {
                    'id': row['id'],
                    'title': row['title'],
                    'price': row['price'],
                    'images': list(row['images'] or []),
                    'status': row['status'],
                    'owner': {
                        'id': row['owner_id'],
                        'name': row['owner_name'],
                        'rating': row['owner_rating']
                    }
                },
                'quantity': row['quantity'],
                'added_at': row['added_at']
            })
            total += row['price'] * row['quantity']

        return {'items': items, 'total_amount': total}


__all__ = ['CartManager', 'MAX_QUANTITY', 'validate_quantity']

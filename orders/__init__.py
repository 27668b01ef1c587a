"""Orders module for managing marketplace orders.

This module handles checkout, order visibility for buyers and sellers, and
status changes along the order state machine.
"""
import logging
from typing import Dict, List, Optional, Any
from uuid import UUID

from asyncpg.pool import Pool

from auth import Identity
from database import get_pool
from errors import EmptyCart, Forbidden, NotFound
from notifications import OrderNotifier, notifier as default_notifier
from .lifecycle import (
    OrderStatus,
    parse_status,
    check_transition,
    validate_shipping_address,
    build_line_items,
    order_total,
    check_total,
    can_view,
    can_update_status,
    seller_view
)

logger = logging.getLogger(__name__)


class OrderManager:
    """Manages order operations and state transitions."""

    def __init__(self, pool: Optional[Pool] = None, notifier: Optional[OrderNotifier] = None) -> None:
        """Initialize order manager.

        Args:
            pool: Optional database connection pool. If not provided, will get from database module.
            notifier: Optional notifier for status changes
        """
        self.pool = pool
        self.notifier = notifier or default_notifier

    async def ensure_pool(self):
        """Ensure we have a database pool."""
        if not self.pool:
            self.pool = await get_pool()

    async def checkout(self, identity: Identity, shipping_address: Dict[str, Any]) -> Dict[str, Any]:
        """Turn the caller's cart into a pending order.

        Everything after address validation runs in one transaction with the
        cart and every referenced listing locked: the order insert, the cart
        deletion and marking the listings sold either all happen or none do.

        Args:
            identity: The buyer
            shipping_address: Mapping with full_name, address, city, state,
                postal_code and phone

        Returns:
            The created order

        Raises:
            ValidationError: If a shipping field is missing or the total is too large
            EmptyCart: If the cart is absent or has no entries
            ItemUnavailable: If a cart listing is gone or no longer active
        """
        address = validate_shipping_address(shipping_address)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                cart_id = await conn.fetchval(
                    'SELECT id FROM carts WHERE user_id = $1 FOR UPDATE',
                    identity.id
                )
                if cart_id is None:
                    raise EmptyCart("Cart is empty")

                listing_ids = [
                    row['listing_id'] for row in await conn.fetch(
                        'SELECT listing_id FROM cart_items WHERE cart_id = $1',
                        cart_id
                    )
                ]
                if not listing_ids:
                    raise EmptyCart("Cart is empty")

                # Lock in id order so concurrent checkouts cannot deadlock
                await conn.execute(
                    '''
                    SELECT id FROM listings
                    WHERE id = ANY($1::uuid[])
                    ORDER BY id
                    FOR UPDATE
                    ''',
                    listing_ids
                )

                entries = await conn.fetch(
                    '''
                    SELECT ci.listing_id, ci.quantity,
                           l.title, l.price, l.status, l.user_id AS seller_id
                    FROM cart_items ci
                    LEFT JOIN listings l ON l.id = ci.listing_id
                    WHERE ci.cart_id = $1
                    ORDER BY ci.added_at
                    ''',
                    cart_id
                )
                items = build_line_items(dict(entry) for entry in entries)
                total = check_total(order_total(items))

                order_id = await conn.fetchval(
                    '''
                    INSERT INTO orders (buyer_id, total_amount, shipping_address, status)
                    VALUES ($1, $2, $3, $4)
                    RETURNING id
                    ''',
                    identity.id,
                    total,
                    address,
                    OrderStatus.PENDING.value
                )
                await conn.executemany(
                    '''
                    INSERT INTO order_items (
                        order_id, position, listing_id, title, price, quantity, seller_id
                    ) VALUES ($1, $2, $3, $4, $5, $6, $7)
                    ''',
                    [
                        (order_id, position, item['listing_id'], item['title'],
                         item['price'], item['quantity'], item['seller_id'])
                        for position, item in enumerate(items)
                    ]
                )

                await conn.execute('DELETE FROM carts WHERE id = $1', cart_id)
                await conn.execute(
                    '''
                    UPDATE listings SET status = 'sold', updated_at = now()
                    WHERE id = ANY($1::uuid[])
                    ''',
                    [item['listing_id'] for item in items]
                )

                order = (await self._load_orders(conn, 'o.id = $1', order_id))[0]

        logger.info(f"User {identity.id} checked out order {order_id} for {total}")
        return order

    async def _load_orders(self, conn, where: str, *params) -> List[Dict[str, Any]]:
        """Fetch orders matching a condition, newest first, with buyer and items."""
        rows = await conn.fetch(
            f'''
            SELECT o.id, o.buyer_id, o.total_amount, o.shipping_address, o.status,
                   o.created_at, o.updated_at,
                   u.name AS buyer_name, u.email AS buyer_email
            FROM orders o
            JOIN users u ON u.id = o.buyer_id
            WHERE {where}
            ORDER BY o.created_at DESC
            ''',
            *params
        )
        if not rows:
            return []

        item_rows = await conn.fetch(
            '''
            SELECT oi.order_id, oi.listing_id, oi.title, oi.price, oi.quantity,
                   oi.seller_id, s.name AS seller_name,
                   COALESCE(l.images, '{}') AS images
            FROM order_items oi
            JOIN users s ON s.id = oi.seller_id
            LEFT JOIN listings l ON l.id = oi.listing_id
            WHERE oi.order_id = ANY($1::uuid[])
            ORDER BY oi.order_id, oi.position
            ''',
            [row['id'] for row in rows]
        )
        items_by_order: Dict[UUID, List[Dict[str, Any]]] = {}
        for item in item_rows:
            items_by_order.setdefault(item['order_id'], []).append({
                'listing_id': item['listing_id'],
                'title': item['title'],
                'images': list(item['images']),
                'price': item['price'],
                'quantity': item['quantity'],
                'seller_id': item['seller_id'],
                'seller': {'id': item['seller_id'], 'name': item['seller_name']}
            })

        orders = []
        for row in rows:
            orders.append({
                'id': row['id'],
                'buyer_id': row['buyer_id'],
                'buyer': {
                    'id': row['buyer_id'],
                    'name': row['buyer_name'],
                    'email': row['buyer_email']
                },
                'items': items_by_order.get(row['id'], []),
                'total_amount': row['total_amount'],
                'shipping_address': row['shipping_address'],
                'status': row['status'],
                'created_at': row['created_at'],
                'updated_at': row['updated_at']
            })
        return orders

    async def list_for_buyer(self, identity: Identity) -> List[Dict[str, Any]]:
        """Orders placed by the caller, newest first."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            return await self._load_orders(conn, 'o.buyer_id = $1', identity.id)

    async def list_for_seller(self, identity: Identity) -> List[Dict[str, Any]]:
        """Orders containing the caller's items, reduced to those items."""
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            orders = await self._load_orders(
                conn,
                'EXISTS (SELECT 1 FROM order_items oi WHERE oi.order_id = o.id AND oi.seller_id = $1)',
                identity.id
            )
        return seller_view(orders, identity.id)

    async def get_order(self, identity: Identity, order_id: UUID) -> Dict[str, Any]:
        """Get an order visible to the caller.

        Raises:
            NotFound: If the order doesn't exist
            Forbidden: If the caller is not the buyer, a seller or an admin
        """
        await self.ensure_pool()
        async with self.pool.acquire() as conn:
            orders = await self._load_orders(conn, 'o.id = $1', order_id)

        if not orders:
            raise NotFound("Order not found")
        if not can_view(orders[0], identity):
            raise Forbidden("Not authorized to view this order")
        return orders[0]

    async def update_status(self, identity: Identity, order_id: UUID, status: str) -> Dict[str, Any]:
        """Move an order along the state machine.

        Only an admin or a seller of one of the order's items may do this. The
        order row is locked while the transition is checked and written. The
        buyer notification runs afterwards and never fails the call.

        Raises:
            ValidationError: If status is unknown
            NotFound: If the order doesn't exist
            Forbidden: If the caller may not change the order
            IllegalTransition: If the move is not allowed from the current status
        """
        parse_status(status)
        await self.ensure_pool()

        async with self.pool.acquire() as conn:
            async with conn.transaction():
                locked = await conn.fetchval(
                    'SELECT id FROM orders WHERE id = $1 FOR UPDATE',
                    order_id
                )
                if locked is None:
                    raise NotFound("Order not found")

                order = (await self._load_orders(conn, 'o.id = $1', order_id))[0]
                if not can_update_status(order, identity):
                    raise Forbidden("Not authorized to update this order")

                new_status = check_transition(order['status'], status)
                await conn.execute(
                    'UPDATE orders SET status = $1, updated_at = now() WHERE id = $2',
                    new_status.value,
                    order_id
                )
                order = (await self._load_orders(conn, 'o.id = $1', order_id))[0]

        logger.info(f"Order {order_id} moved to {new_status.value} by {identity.id}")

        try:
            await self.notifier.order_status_changed(order, order['buyer'], identity)
        except Exception as e:
            logger.error(f"Failed to notify buyer about order {order_id}: {e}")

        return order


__all__ = ['OrderManager']

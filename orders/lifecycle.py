"""Order lifecycle rules.

Pure functions with no database access: the status state machine, shipping
address validation, line item snapshots and the visibility and seller
projection rules applied to loaded orders.
"""
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Any, Iterable, Mapping
from uuid import UUID

from auth import Identity
from database.schema.v1 import MAX_AMOUNT
from errors import ValidationError, IllegalTransition, ItemUnavailable


class OrderStatus(str, Enum):
    """Order status; delivered and cancelled are terminal."""
    PENDING = 'pending'
    CONFIRMED = 'confirmed'
    SHIPPED = 'shipped'
    DELIVERED = 'delivered'
    CANCELLED = 'cancelled'


VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set()
}

# Checked in this order; the first missing one is reported
SHIPPING_FIELDS = ('full_name', 'address', 'city', 'state', 'postal_code', 'phone')


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError("Invalid status")


def check_transition(current: str, new: str) -> OrderStatus:
    """Return the new status if current -> new is allowed.

    Raises:
        ValidationError: If new is not a known status
        IllegalTransition: If the state machine forbids the move
    """
    new_status = parse_status(new)
    current_status = OrderStatus(current)
    if new_status not in VALID_TRANSITIONS[current_status]:
        raise IllegalTransition(
            f"Cannot transition from {current_status.value} to {new_status.value}"
        )
    return new_status


def validate_shipping_address(address: Mapping[str, Any]) -> Dict[str, str]:
    """Check every required field is present and non-blank.

    Returns:
        The address reduced to the required fields, stripped
    """
    if not isinstance(address, Mapping):
        raise ValidationError("Shipping address is required")

    cleaned = {}
    for field in SHIPPING_FIELDS:
        value = address.get(field)
        if value is None or not str(value).strip():
            raise ValidationError(f"Shipping address {field} is required")
        cleaned[field] = str(value).strip()
    return cleaned


def build_line_items(entries: Iterable[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    """Snapshot cart entries into order line items.

    Each entry carries the cart quantity and the listing columns as loaded at
    checkout: listing_id, title, price, seller_id and status. A missing
    listing appears with status None.

    Raises:
        ItemUnavailable: For the first entry whose listing is gone or not active
    """
    items = []
    for entry in entries:
        if entry.get('status') != 'active':
            raise ItemUnavailable(entry.get('title') or str(entry['listing_id']))
        items.append({
            'listing_id': entry['listing_id'],
            'title': entry['title'],
            'price': Decimal(entry['price']),
            'quantity': entry['quantity'],
            'seller_id': entry['seller_id']
        })
    return items


def order_total(items: Iterable[Mapping[str, Any]]) -> Decimal:
    return sum((Decimal(item['price']) * item['quantity'] for item in items), Decimal('0'))


def check_total(total: Decimal) -> Decimal:
    """Reject order totals too large to store."""
    if total > MAX_AMOUNT:
        raise ValidationError(f"Order total cannot exceed {MAX_AMOUNT}")
    return total


def is_seller(order: Mapping[str, Any], user_id: UUID) -> bool:
    """True if the user sold at least one line item of the order."""
    return any(item['seller_id'] == user_id for item in order['items'])


def can_view(order: Mapping[str, Any], identity: Identity) -> bool:
    return (
        identity.is_admin
        or order['buyer_id'] == identity.id
        or is_seller(order, identity.id)
    )


def can_update_status(order: Mapping[str, Any], identity: Identity) -> bool:
    return identity.is_admin or is_seller(order, identity.id)


def seller_view(orders: Iterable[Mapping[str, Any]], seller_id: UUID) -> List[Dict[str, Any]]:
    """Restrict each order to the seller's own line items.

    Totals are recomputed over the kept items; orders left with no items are
    omitted.
    """
    result = []
    for order in orders:
        items = [item for item in order['items'] if item['seller_id'] == seller_id]
        if not items:
            continue
        projected = dict(order)
        projected['items'] = items
        projected['total_amount'] = order_total(items)
        result.append(projected)
    return result


__all__ = [
    'OrderStatus',
    'VALID_TRANSITIONS',
    'SHIPPING_FIELDS',
    'parse_status',
    'check_transition',
    'validate_shipping_address',
    'build_line_items',
    'order_total',
    'check_total',
    'is_seller',
    'can_view',
    'can_update_status',
    'seller_view'
]

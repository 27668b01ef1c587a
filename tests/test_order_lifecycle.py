"""Tests for the order lifecycle rules."""

import uuid
from decimal import Decimal

import pytest

from auth import Identity
from errors import ValidationError, IllegalTransition, ItemUnavailable
from orders.lifecycle import (
    OrderStatus,
    VALID_TRANSITIONS,
    check_transition,
    validate_shipping_address,
    build_line_items,
    order_total,
    check_total,
    is_seller,
    can_view,
    can_update_status,
    seller_view
)

BUYER = uuid.uuid4()
SELLER_S = uuid.uuid4()
SELLER_T = uuid.uuid4()

ADDRESS = {
    "full_name": "Bea Buyer",
    "address": "12 MG Road",
    "city": "Bangalore",
    "state": "KA",
    "postal_code": "560001",
    "phone": "555-0100"
}


def identity(user_id, role='user'):
    return Identity(id=user_id, name="someone", email="someone@example.com", role=role)


def make_order(items, buyer=BUYER):
    return {
        'id': uuid.uuid4(),
        'buyer_id': buyer,
        'items': items,
        'total_amount': order_total(items),
        'status': 'pending'
    }


def item(seller, price, quantity=1, title="thing"):
    return {
        'listing_id': uuid.uuid4(),
        'title': title,
        'price': Decimal(price),
        'quantity': quantity,
        'seller_id': seller
    }


@pytest.mark.parametrize("current,new", [
    ('pending', 'confirmed'),
    ('pending', 'cancelled'),
    ('confirmed', 'shipped'),
    ('confirmed', 'cancelled'),
    ('shipped', 'delivered'),
])
def test_legal_transitions(current, new):
    assert check_transition(current, new) == OrderStatus(new)


@pytest.mark.parametrize("current,new", [
    ('pending', 'shipped'),
    ('pending', 'delivered'),
    ('confirmed', 'delivered'),
    ('shipped', 'cancelled'),
    ('delivered', 'cancelled'),
    ('cancelled', 'pending'),
    ('pending', 'pending'),
])
def test_illegal_transitions(current, new):
    with pytest.raises(IllegalTransition):
        check_transition(current, new)


def test_terminal_states_have_no_exits():
    assert VALID_TRANSITIONS[OrderStatus.DELIVERED] == set()
    assert VALID_TRANSITIONS[OrderStatus.CANCELLED] == set()


def test_unknown_status_is_validation_error():
    with pytest.raises(ValidationError) as exc_info:
        check_transition('pending', 'teleported')
    assert exc_info.value.message == "Invalid status"
    assert not isinstance(exc_info.value, IllegalTransition)


def test_shipping_address_complete():
    cleaned = validate_shipping_address(dict(ADDRESS, extra="ignored"))
    assert cleaned == ADDRESS


def test_shipping_address_names_first_missing_field():
    address = dict(ADDRESS)
    del address['city']
    address['phone'] = '  '
    with pytest.raises(ValidationError) as exc_info:
        validate_shipping_address(address)
    assert 'city' in exc_info.value.message


def test_shipping_address_blank_field_rejected():
    with pytest.raises(ValidationError) as exc_info:
        validate_shipping_address(dict(ADDRESS, full_name=''))
    assert 'full_name' in exc_info.value.message


def test_shipping_address_must_be_mapping():
    with pytest.raises(ValidationError):
        validate_shipping_address(None)


def test_build_line_items_snapshots_entries():
    entries = [
        {'listing_id': uuid.uuid4(), 'quantity': 2, 'title': 'Lamp',
         'price': Decimal('100.00'), 'status': 'active', 'seller_id': SELLER_S},
        {'listing_id': uuid.uuid4(), 'quantity': 1, 'title': 'Chair',
         'price': Decimal('25.50'), 'status': 'active', 'seller_id': SELLER_T},
    ]
    items = build_line_items(entries)
    assert [i['title'] for i in items] == ['Lamp', 'Chair']
    assert 'status' not in items[0]
    assert order_total(items) == Decimal('225.50')


def test_build_line_items_rejects_sold_listing():
    entries = [
        {'listing_id': uuid.uuid4(), 'quantity': 1, 'title': 'Lamp',
         'price': Decimal('10'), 'status': 'active', 'seller_id': SELLER_S},
        {'listing_id': uuid.uuid4(), 'quantity': 1, 'title': 'Sofa',
         'price': Decimal('10'), 'status': 'sold', 'seller_id': SELLER_S},
    ]
    with pytest.raises(ItemUnavailable) as exc_info:
        build_line_items(entries)
    assert exc_info.value.message == 'Item "Sofa" is no longer available'


def test_build_line_items_rejects_deleted_listing():
    listing_id = uuid.uuid4()
    entries = [{'listing_id': listing_id, 'quantity': 1, 'title': None,
                'price': None, 'status': None, 'seller_id': None}]
    with pytest.raises(ItemUnavailable) as exc_info:
        build_line_items(entries)
    assert str(listing_id) in exc_info.value.message


def test_order_total_of_nothing_is_zero():
    assert order_total([]) == Decimal('0')


def test_visibility():
    order = make_order([item(SELLER_S, '10')])
    assert can_view(order, identity(BUYER))
    assert can_view(order, identity(SELLER_S))
    assert can_view(order, identity(uuid.uuid4(), role='admin'))
    assert not can_view(order, identity(SELLER_T))


def test_only_sellers_and_admins_update_status():
    order = make_order([item(SELLER_S, '10')])
    assert is_seller(order, SELLER_S)
    assert can_update_status(order, identity(SELLER_S))
    assert can_update_status(order, identity(uuid.uuid4(), role='admin'))
    assert not can_update_status(order, identity(BUYER))


def test_seller_view_filters_items_and_recomputes_total():
    mixed = make_order([
        item(SELLER_S, '100', quantity=2),
        item(SELLER_T, '40'),
        item(SELLER_S, '5', quantity=3),
    ])
    only_t = make_order([item(SELLER_T, '70')])

    result = seller_view([mixed, only_t], SELLER_S)

    assert len(result) == 1
    assert result[0]['id'] == mixed['id']
    assert all(i['seller_id'] == SELLER_S for i in result[0]['items'])
    assert result[0]['total_amount'] == Decimal('215')
    # The loaded order is left untouched
    assert len(mixed['items']) == 3
    assert mixed['total_amount'] == Decimal('255')


def test_check_total_bounds():
    assert check_total(Decimal('9999999999.99')) == Decimal('9999999999.99')
    with pytest.raises(ValidationError):
        check_total(Decimal('10000000000.00'))

"""Tests for checkout and the order lifecycle against the database."""

from decimal import Decimal
from unittest.mock import AsyncMock

import asyncpg
import pytest
import pytest_asyncio

from cart import CartManager
from errors import EmptyCart, ItemUnavailable, IllegalTransition, Forbidden, ValidationError
from listings import ListingManager
from orders import OrderManager


@pytest_asyncio.fixture
async def order_manager(db_pool):
    return OrderManager(db_pool)


@pytest_asyncio.fixture
async def cart_manager(db_pool):
    return CartManager(db_pool)


@pytest.mark.asyncio
async def test_marketplace_scenario(db_pool, make_user, make_listing, cart_manager, order_manager, shipping_address):
    """Listing -> cart -> checkout -> confirm, then an illegal jump."""
    seller_a = await make_user("Alice")
    buyer_b = await make_user("Bob")
    listing = await make_listing(seller_a, price="100")
    assert listing['status'] == 'active'

    cart = await cart_manager.add_item(buyer_b, listing['id'], 2)
    assert cart['total_amount'] == Decimal('200')

    order = await order_manager.checkout(buyer_b, shipping_address)
    assert order['status'] == 'pending'
    assert order['total_amount'] == Decimal('200')
    assert order['buyer_id'] == buyer_b.id
    assert order['shipping_address'] == shipping_address
    assert order['items'][0]['seller_id'] == seller_a.id

    assert (await ListingManager(db_pool).get_listing(listing['id']))['status'] == 'sold'
    async with db_pool.acquire() as conn:
        assert await conn.fetchval('SELECT COUNT(*) FROM carts WHERE user_id = $1', buyer_b.id) == 0

    confirmed = await order_manager.update_status(seller_a, order['id'], 'confirmed')
    assert confirmed['status'] == 'confirmed'

    with pytest.raises(IllegalTransition):
        await order_manager.update_status(seller_a, order['id'], 'delivered')


@pytest.mark.asyncio
async def test_checkout_without_cart(make_user, order_manager, shipping_address):
    buyer = await make_user()
    with pytest.raises(EmptyCart):
        await order_manager.checkout(buyer, shipping_address)
    assert await order_manager.list_for_buyer(buyer) == []


@pytest.mark.asyncio
async def test_checkout_with_emptied_cart(make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    listing = await make_listing(seller)
    await cart_manager.add_item(buyer, listing['id'])
    await cart_manager.remove_item(buyer, listing['id'])

    with pytest.raises(EmptyCart):
        await order_manager.checkout(buyer, shipping_address)


@pytest.mark.asyncio
async def test_checkout_validates_address_first(make_user, order_manager, shipping_address):
    buyer = await make_user()
    del shipping_address['postal_code']
    with pytest.raises(ValidationError) as exc_info:
        await order_manager.checkout(buyer, shipping_address)
    assert 'postal_code' in exc_info.value.message


@pytest.mark.asyncio
async def test_failed_checkout_changes_nothing(db_pool, make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    other_buyer = await make_user()
    available = await make_listing(seller, title="Lamp")
    contested = await make_listing(seller, title="Sofa")

    await cart_manager.add_item(buyer, available['id'])
    await cart_manager.add_item(buyer, contested['id'])
    await cart_manager.add_item(other_buyer, contested['id'])
    await order_manager.checkout(other_buyer, shipping_address)

    with pytest.raises(ItemUnavailable) as exc_info:
        await order_manager.checkout(buyer, shipping_address)
    assert '"Sofa"' in exc_info.value.message

    assert await order_manager.list_for_buyer(buyer) == []
    assert (await ListingManager(db_pool).get_listing(available['id']))['status'] == 'active'
    cart = await cart_manager.view(buyer)
    assert len(cart['items']) == 2


@pytest.mark.asyncio
async def test_line_items_are_snapshots(db_pool, make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    listing = await make_listing(seller, title="Original title", price="10")
    await cart_manager.add_item(buyer, listing['id'])
    order = await order_manager.checkout(buyer, shipping_address)

    await ListingManager(db_pool).update_listing(
        seller, listing['id'], {'title': 'Renamed', 'price': Decimal('99')}
    )

    reloaded = await order_manager.get_order(buyer, order['id'])
    assert reloaded['items'][0]['title'] == "Original title"
    assert reloaded['items'][0]['price'] == Decimal('10')


@pytest.mark.asyncio
async def test_seller_view_only_shows_own_items(make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller_s = await make_user("S")
    seller_t = await make_user("T")
    buyer = await make_user()
    from_s = await make_listing(seller_s, price="30")
    from_t = await make_listing(seller_t, price="70")
    await cart_manager.add_item(buyer, from_s['id'], 2)
    await cart_manager.add_item(buyer, from_t['id'], 1)
    order = await order_manager.checkout(buyer, shipping_address)
    assert order['total_amount'] == Decimal('130')

    orders = await order_manager.list_for_seller(seller_s)
    assert len(orders) == 1
    assert [i['listing_id'] for i in orders[0]['items']] == [from_s['id']]
    assert orders[0]['total_amount'] == Decimal('60')

    outsider = await make_user()
    assert await order_manager.list_for_seller(outsider) == []


@pytest.mark.asyncio
async def test_order_visibility_and_status_authorization(make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    outsider = await make_user()
    admin = await make_user(role='admin')
    listing = await make_listing(seller)
    await cart_manager.add_item(buyer, listing['id'])
    order = await order_manager.checkout(buyer, shipping_address)

    for viewer in (buyer, seller, admin):
        assert (await order_manager.get_order(viewer, order['id']))['id'] == order['id']
    with pytest.raises(Forbidden):
        await order_manager.get_order(outsider, order['id'])

    with pytest.raises(Forbidden):
        await order_manager.update_status(buyer, order['id'], 'cancelled')

    with pytest.raises(ValidationError):
        await order_manager.update_status(seller, order['id'], 'lost')

    cancelled = await order_manager.update_status(admin, order['id'], 'cancelled')
    assert cancelled['status'] == 'cancelled'
    with pytest.raises(IllegalTransition):
        await order_manager.update_status(admin, order['id'], 'confirmed')


@pytest.mark.asyncio
async def test_notification_failure_does_not_fail_update(db_pool, make_user, make_listing, cart_manager, shipping_address):
    notifier = AsyncMock()
    notifier.order_status_changed.side_effect = RuntimeError("mail server down")
    order_manager = OrderManager(db_pool, notifier=notifier)

    seller = await make_user()
    buyer = await make_user()
    listing = await make_listing(seller)
    await cart_manager.add_item(buyer, listing['id'])
    order = await order_manager.checkout(buyer, shipping_address)

    updated = await order_manager.update_status(seller, order['id'], 'confirmed')

    assert updated['status'] == 'confirmed'
    notifier.order_status_changed.assert_awaited_once()


@pytest.mark.asyncio
async def test_failure_after_order_insert_rolls_back(db_pool, make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    lamp = await make_listing(seller, title="Lamp")
    sofa = await make_listing(seller, title="Sofa")
    await cart_manager.add_item(buyer, lamp['id'], 2)
    await cart_manager.add_item(buyer, sofa['id'])

    # Marking listings sold is the last write of checkout; make it fail
    async with db_pool.acquire() as conn:
        await conn.execute('''
            CREATE OR REPLACE FUNCTION refuse_sale() RETURNS trigger AS $$
            BEGIN
                IF NEW.status = 'sold' THEN
                    RAISE EXCEPTION 'sale refused';
                END IF;
                RETURN NEW;
            END
            $$ LANGUAGE plpgsql
        ''')
        await conn.execute('''
            CREATE TRIGGER refuse_sale BEFORE UPDATE ON listings
            FOR EACH ROW EXECUTE FUNCTION refuse_sale()
        ''')

    with pytest.raises(asyncpg.RaiseError):
        await order_manager.checkout(buyer, shipping_address)

    assert await order_manager.list_for_buyer(buyer) == []
    async with db_pool.acquire() as conn:
        assert await conn.fetchval('SELECT COUNT(*) FROM orders') == 0
        assert await conn.fetchval('SELECT COUNT(*) FROM order_items') == 0

    cart = await cart_manager.view(buyer)
    assert [(e['listing']['title'], e['quantity']) for e in cart['items']] == [("Lamp", 2), ("Sofa", 1)]

    listings = ListingManager(db_pool)
    for listing in (lamp, sofa):
        assert (await listings.get_listing(listing['id']))['status'] == 'active'


@pytest.mark.asyncio
async def test_order_items_show_listing_images(db_pool, make_user, make_listing, cart_manager, order_manager, shipping_address):
    seller = await make_user()
    buyer = await make_user()
    pictured = await make_listing(seller, title="Pictured")
    removed = await make_listing(seller, title="Removed")
    async with db_pool.acquire() as conn:
        await conn.execute(
            'UPDATE listings SET images = $1 WHERE id = $2',
            ['front.jpg', 'back.jpg'],
            pictured['id']
        )
    await cart_manager.add_item(buyer, pictured['id'])
    await cart_manager.add_item(buyer, removed['id'])
    order = await order_manager.checkout(buyer, shipping_address)
    assert order['items'][0]['images'] == ['front.jpg', 'back.jpg']

    await ListingManager(db_pool).delete_listing(seller, removed['id'])

    reloaded = await order_manager.get_order(buyer, order['id'])
    assert [i['title'] for i in reloaded['items']] == ["Pictured", "Removed"]
    assert reloaded['items'][1]['images'] == []

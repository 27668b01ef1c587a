"""Shared fixtures.

Database-backed tests run against the PostgreSQL database named by
LOCALMART_TEST_DB_URL and are skipped when it is not set. Every test gets a
freshly recreated schema.
"""

import os
import uuid
from decimal import Decimal

import pytest
import pytest_asyncio

from auth import AuthManager, Identity
from database import init_db, close as close_db, get_pool
from listings import ListingManager

TEST_DB_URL = os.environ.get('LOCALMART_TEST_DB_URL')

# Central Bangalore and a point roughly 3 km north of it
CITY_CENTRE = (12.9716, 77.5946)
NEARBY = (12.9986, 77.5946)


@pytest_asyncio.fixture
async def db_pool():
    """Create a pool on a clean schema."""
    if not TEST_DB_URL:
        pytest.skip("LOCALMART_TEST_DB_URL not set")
    await init_db(TEST_DB_URL, force_recreate=True)
    pool = await get_pool()
    yield pool
    await close_db()


@pytest_asyncio.fixture
async def make_user(db_pool):
    """Factory registering a user and returning their Identity."""
    auth = AuthManager(db_pool)

    async def _make_user(name: str = "Test User", role: str = "user") -> Identity:
        result = await auth.register(
            name,
            f"{uuid.uuid4().hex[:12]}@example.com",
            "password123",
            latitude=CITY_CENTRE[0],
            longitude=CITY_CENTRE[1]
        )
        if role != 'user':
            async with db_pool.acquire() as conn:
                await conn.execute(
                    'UPDATE users SET role = $1 WHERE id = $2',
                    role,
                    result['user']['id']
                )
        user = dict(result['user'], role=role)
        return Identity(**user)

    return _make_user


@pytest_asyncio.fixture
async def make_listing(db_pool):
    """Factory creating an active listing for an owner."""
    manager = ListingManager(db_pool)

    async def _make_listing(
        owner: Identity,
        title: str = "Desk lamp",
        price: str = "100.00",
        category: str = "electronics",
        location=CITY_CENTRE
    ):
        return await manager.create_listing(
            owner,
            title,
            "Works fine",
            Decimal(price),
            category,
            location[0],
            location[1]
        )

    return _make_listing


@pytest.fixture
def shipping_address():
    return {
        "full_name": "Bea Buyer",
        "address": "12 MG Road",
        "city": "Bangalore",
        "state": "KA",
        "postal_code": "560001",
        "phone": "+91 98450 00000"
    }

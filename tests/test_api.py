"""Tests for the HTTP layer: error mapping and authorization wiring.

Managers are replaced with mocks and the caller's identity is injected
through a dependency override, so no database is needed.
"""

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from api import app
import api.admin as admin_api
import api.cart as cart_api
import api.listings as listings_api
import api.orders as orders_api
import api.reviews as reviews_api
from auth import Identity, get_current_user
from errors import (
    SelfTransaction,
    NotAvailable,
    IllegalTransition,
    Forbidden,
    NotFound,
    DuplicateReview,
    EmptyCart
)

USER = Identity(id=uuid.uuid4(), name="Bea", email="bea@example.com")
ADMIN = Identity(id=uuid.uuid4(), name="Root", email="root@example.com", role="admin")


@pytest.fixture
def client():
    # No context manager: the lifespan (database startup) is not run
    yield TestClient(app)
    app.dependency_overrides.clear()


def login_as(identity):
    app.dependency_overrides[get_current_user] = lambda: identity


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "running"


def test_missing_token(client):
    response = client.get("/api/cart/")
    assert response.status_code == 401
    assert response.json() == {"message": "No token provided"}


def test_invalid_token(client):
    response = client.get("/api/cart/", headers={"Authorization": "Bearer nonsense"})
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid token"}


def test_cart_view(client):
    login_as(USER)
    with patch.object(cart_api.manager, 'view', AsyncMock(return_value={"items": [], "total_amount": 0})) as view:
        response = client.get("/api/cart/")
    assert response.status_code == 200
    assert response.json() == {"items": [], "total_amount": 0}
    view.assert_awaited_once_with(USER)


def test_add_own_listing(client):
    login_as(USER)
    error = SelfTransaction("Cannot add your own listing to cart")
    with patch.object(cart_api.manager, 'add_item', AsyncMock(side_effect=error)):
        response = client.post("/api/cart/add", json={"listing_id": str(uuid.uuid4()), "quantity": 1})
    assert response.status_code == 400
    assert response.json() == {"message": "Cannot add your own listing to cart"}


def test_add_unavailable_listing(client):
    login_as(USER)
    with patch.object(cart_api.manager, 'add_item', AsyncMock(side_effect=NotAvailable("Listing not available"))):
        response = client.post("/api/cart/add", json={"listing_id": str(uuid.uuid4())})
    assert response.status_code == 400
    assert response.json()["message"] == "Listing not available"


def test_malformed_body_is_400_with_details(client):
    login_as(USER)
    response = client.post("/api/cart/add", json={"listing_id": "not-a-uuid"})
    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid request"
    assert body["error"]


def test_checkout_empty_cart(client):
    login_as(USER)
    with patch.object(orders_api.manager, 'checkout', AsyncMock(side_effect=EmptyCart("Cart is empty"))):
        response = client.post("/api/orders/checkout", json={"shipping_address": {}})
    assert response.status_code == 400
    assert response.json() == {"message": "Cart is empty"}


def test_illegal_transition(client):
    login_as(USER)
    error = IllegalTransition("Cannot transition from pending to delivered")
    with patch.object(orders_api.manager, 'update_status', AsyncMock(side_effect=error)):
        response = client.put(f"/api/orders/{uuid.uuid4()}/status", json={"status": "delivered"})
    assert response.status_code == 400
    assert "pending to delivered" in response.json()["message"]


def test_order_forbidden(client):
    login_as(USER)
    with patch.object(orders_api.manager, 'get_order', AsyncMock(side_effect=Forbidden("Not authorized to view this order"))):
        response = client.get(f"/api/orders/{uuid.uuid4()}")
    assert response.status_code == 403


def test_seller_route_is_not_an_order_id(client):
    login_as(USER)
    with patch.object(orders_api.manager, 'list_for_seller', AsyncMock(return_value=[])) as list_for_seller:
        response = client.get("/api/orders/seller")
    assert response.status_code == 200
    list_for_seller.assert_awaited_once_with(USER)


def test_listing_not_found(client):
    with patch.object(listings_api.manager, 'get_listing', AsyncMock(side_effect=NotFound("Listing not found"))):
        response = client.get(f"/api/listings/{uuid.uuid4()}")
    assert response.status_code == 404
    assert response.json() == {"message": "Listing not found"}


def test_search_is_public_and_passes_filters(client):
    with patch.object(listings_api.manager, 'search_listings', AsyncMock(return_value=[])) as search:
        response = client.get("/api/listings/?lat=12.97&lng=77.59&radius=5&category=books")
    assert response.status_code == 200
    search.assert_awaited_once_with(latitude=12.97, longitude=77.59, radius_km=5.0, category="books")


def test_duplicate_review(client):
    login_as(USER)
    error = DuplicateReview("You have already reviewed this user")
    with patch.object(reviews_api.manager, 'submit', AsyncMock(side_effect=error)):
        response = client.post("/api/reviews/", json={"reviewee_id": str(uuid.uuid4()), "rating": 4})
    assert response.status_code == 400
    assert response.json() == {"message": "You have already reviewed this user"}


def test_unexpected_error_is_hidden(client):
    login_as(USER)
    with patch.object(cart_api.manager, 'view', AsyncMock(side_effect=RuntimeError("connection refused on 10.0.0.5"))):
        response = client.get("/api/cart/")
    assert response.status_code == 500
    assert response.json() == {"message": "Server error"}


def test_admin_routes_reject_users(client):
    login_as(USER)
    with patch.object(admin_api.manager, 'stats', AsyncMock()) as stats:
        response = client.get("/api/admin/stats")
    assert response.status_code == 403
    assert response.json() == {"message": "Admin access required"}
    stats.assert_not_awaited()


def test_admin_stats(client):
    login_as(ADMIN)
    counts = {
        "total_users": 3,
        "total_listings": 5,
        "total_services": 3,
        "active_listings": 4,
        "total_orders": 1
    }
    with patch.object(admin_api.manager, 'stats', AsyncMock(return_value=counts)):
        response = client.get("/api/admin/stats")
    assert response.status_code == 200
    assert response.json() == counts

"""
HTTP tests for the orders endpoints

Services run for real against the in-memory repositories; the caller is
injected by overriding get_current_actor.
"""
from unittest.mock import MagicMock, patch
from decimal import Decimal

import pytest
import stripe
from fastapi.testclient import TestClient

from bazaar.api.dependencies import (
    get_order_repository,
    get_product_repository,
    get_stripe_connector,
)
from bazaar.core.auth import get_current_actor
from bazaar.domain.account import Role
from bazaar.domain.order import Order, OrderItem, OrderStatus
from bazaar.main import app
from fakes import make_address, make_product, make_user


@pytest.fixture
def client(store, order_repo, product_repo, stripe_connector):
    app.dependency_overrides[get_order_repository] = lambda: order_repo
    app.dependency_overrides[get_product_repository] = lambda: product_repo
    app.dependency_overrides[get_stripe_connector] = lambda: stripe_connector
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def act_as():
    """Switch the authenticated account for subsequent requests"""
    def _act_as(user):
        app.dependency_overrides[get_current_actor] = lambda: user
        return user
    return _act_as


def checkout_body(items=None, **overrides):
    body = {
        'items': items if items is not None else [{'product_id': 1, 'quantity': 2}],
        'shipping_address': make_address().model_dump(),
    }
    body.update(overrides)
    return body


def add_order(order_repo, vendor_id=10, customer_id=1, status=OrderStatus.PAID):
    item = OrderItem(product_id=1, vendor_id=vendor_id, name="Jhumkas", unit_price=Decimal("1000"), quantity=2)
    order = Order.place(customer_id=customer_id, items=[item], shipping_address=make_address())
    order.status = status
    return order_repo.create(order)


class TestAuthentication:

    def test_missing_token_is_rejected(self, client):
        response = client.get("/api/v1/orders/mine")

        assert response.status_code == 401
        assert response.json()['error'] == 'unauthorized'


class TestCheckoutEndpoint:

    @patch('stripe.checkout.Session.create')
    def test_creates_order(self, mock_create, client, store, act_as):
        # Arrange
        mock_create.return_value = MagicMock(id='cs_api_1', url='https://checkout.stripe.com/c/pay/cs_api_1')
        store.add_product(make_product(1, vendor_id=10, price="1000", stock=5))
        act_as(make_user(1))

        # Act
        response = client.post("/api/v1/orders", json=checkout_body())

        # Assert
        assert response.status_code == 201
        body = response.json()
        assert body == {
            'status': 'success',
            'order_id': 1,
            'session_url': 'https://checkout.stripe.com/c/pay/cs_api_1',
        }
        assert store.orders[1].total == Decimal("2000.00")

    def test_client_prices_are_ignored(self, client, store, act_as):
        store.add_product(make_product(1, vendor_id=10, price="1000", stock=5))
        act_as(make_user(1))
        items = [{'product_id': 1, 'quantity': 1, 'unit_price': 1}]

        with patch('stripe.checkout.Session.create') as mock_create:
            mock_create.return_value = MagicMock(id='cs_api_2', url='https://checkout.stripe.com/x')
            client.post("/api/v1/orders", json=checkout_body(items))

        assert store.orders[1].items[0].unit_price == Decimal("1000")

    def test_insufficient_stock(self, client, store, act_as):
        store.add_product(make_product(1, vendor_id=10, stock=1, name="Earbuds"))
        act_as(make_user(1))

        response = client.post("/api/v1/orders", json=checkout_body())

        assert response.status_code == 400
        body = response.json()
        assert body['status'] == 'error'
        assert body['error'] == 'insufficient_stock'
        assert body['product_id'] == 1
        assert body['available'] == 1
        assert store.orders == {}

    def test_empty_cart_fails_validation(self, client, act_as):
        act_as(make_user(1))

        response = client.post("/api/v1/orders", json=checkout_body(items=[]))

        assert response.status_code == 400
        assert response.json()['error'] == 'validation_error'

    def test_bad_phone_fails_validation(self, client, act_as):
        act_as(make_user(1))
        body = checkout_body()
        body['shipping_address']['phone'] = '12345'

        response = client.post("/api/v1/orders", json=body)

        assert response.status_code == 400

    @patch('stripe.checkout.Session.create')
    def test_provider_outage_is_retryable(self, mock_create, client, store, act_as):
        mock_create.side_effect = stripe.APIConnectionError("timeout")
        store.add_product(make_product(1, vendor_id=10, stock=5))
        act_as(make_user(1))

        response = client.post("/api/v1/orders", json=checkout_body())

        assert response.status_code == 502
        assert response.json()['retryable'] is True
        assert store.orders[1].status == OrderStatus.PENDING


class TestOrderReads:

    def test_my_orders(self, client, order_repo, act_as):
        add_order(order_repo, customer_id=1)
        add_order(order_repo, customer_id=2)
        act_as(make_user(1))

        response = client.get("/api/v1/orders/mine")

        assert response.status_code == 200
        assert response.json()['count'] == 1

    def test_get_order_forbidden_for_strangers(self, client, order_repo, act_as):
        order = add_order(order_repo, customer_id=1)
        act_as(make_user(2))

        response = client.get(f"/api/v1/orders/{order.id}")

        assert response.status_code == 403

    def test_get_missing_order(self, client, act_as):
        act_as(make_user(99, Role.ADMIN))

        assert client.get("/api/v1/orders/404").status_code == 404

    def test_vendor_sales(self, client, order_repo, act_as):
        add_order(order_repo, vendor_id=10, status=OrderStatus.PAID)
        add_order(order_repo, vendor_id=10, status=OrderStatus.PENDING)
        act_as(make_user(10, Role.VENDOR))

        response = client.get("/api/v1/orders/vendor/sales")

        assert response.status_code == 200
        summary = response.json()['data']['summary']
        assert summary == {
            'total_revenue': 2000.0,
            'total_fees': 200.0,
            'net_earnings': 1800.0,
            'total_orders': 1,
        }

    def test_vendor_sales_requires_vendor_role(self, client, act_as):
        act_as(make_user(1, Role.CUSTOMER))

        assert client.get("/api/v1/orders/vendor/sales").status_code == 403


class TestStatusUpdate:

    def test_vendor_updates_status(self, client, order_repo, store, act_as):
        order = add_order(order_repo, vendor_id=10, status=OrderStatus.PAID)
        act_as(make_user(10, Role.VENDOR))

        response = client.put(f"/api/v1/orders/{order.id}/status", json={'status': 'Processing'})

        assert response.status_code == 200
        assert response.json()['data']['status'] == 'Processing'
        assert store.orders[order.id].status == OrderStatus.PROCESSING

    def test_uninvolved_vendor_is_forbidden(self, client, order_repo, act_as):
        order = add_order(order_repo, vendor_id=10)
        act_as(make_user(11, Role.VENDOR))

        response = client.put(f"/api/v1/orders/{order.id}/status", json={'status': 'Processing'})

        assert response.status_code == 403

    def test_invalid_transition_conflicts(self, client, order_repo, act_as):
        order = add_order(order_repo, status=OrderStatus.PENDING)
        act_as(make_user(99, Role.ADMIN))

        response = client.put(f"/api/v1/orders/{order.id}/status", json={'status': 'Paid'})

        assert response.status_code == 409
        assert response.json()['error'] == 'invalid_status_transition'

    def test_unknown_status_fails_validation(self, client, order_repo, act_as):
        order = add_order(order_repo)
        act_as(make_user(99, Role.ADMIN))

        response = client.put(f"/api/v1/orders/{order.id}/status", json={'status': 'Lost'})

        assert response.status_code == 400


class TestReconciliationEndpoints:

    def test_admin_resolves_flagged_order(self, client, order_repo, act_as):
        order = add_order(order_repo)
        order_repo.flag_backorders(order.id, [0])
        act_as(make_user(99, Role.ADMIN))

        queue = client.get("/api/v1/orders/reconciliation")
        resolved = client.post(f"/api/v1/orders/{order.id}/reconciliation", json={'note': 'Refunded 1 unit'})

        assert [o['id'] for o in queue.json()['data']] == [order.id]
        assert resolved.status_code == 200
        assert resolved.json()['data']['needs_reconciliation'] is False

    def test_vendor_cannot_see_queue(self, client, act_as):
        act_as(make_user(10, Role.VENDOR))

        assert client.get("/api/v1/orders/reconciliation").status_code == 403

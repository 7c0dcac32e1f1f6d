"""
Tests for the error body produced by register_exception_handlers
"""
import psycopg2
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from bazaar.core.exceptions import (
    ConcurrentUpdateError,
    ExternalServiceError,
    InsufficientStockError,
    NotFoundError,
    register_exception_handlers,
)


def build_app(exc, expose_internal_errors=False):
    app = FastAPI()
    register_exception_handlers(app, expose_internal_errors=expose_internal_errors)

    @app.get("/boom")
    def boom():
        raise exc

    return TestClient(app, raise_server_exceptions=False)


class TestErrorBody:

    @pytest.mark.parametrize("exc, status_code, error", [
        (NotFoundError("Order not found: 5", order_id=5), 404, "not_found"),
        (InsufficientStockError(1, "Earbuds", 0), 400, "insufficient_stock"),
        (ConcurrentUpdateError("Order 5 was updated"), 409, "concurrent_update"),
        (ExternalServiceError("Payment provider unavailable"), 502, "external_service_error"),
    ])
    def test_domain_errors_map_to_status_and_code(self, exc, status_code, error):
        response = build_app(exc).get("/boom")

        assert response.status_code == status_code
        body = response.json()
        assert body['status'] == 'error'
        assert body['error'] == error
        assert body['detail'] == exc.detail

    def test_extra_fields_are_included(self):
        body = build_app(InsufficientStockError(3, "Earbuds", 1)).get("/boom").json()

        assert body['product_id'] == 3
        assert body['available'] == 1

    def test_store_unavailable_is_503(self):
        response = build_app(psycopg2.OperationalError("could not connect")).get("/boom")

        assert response.status_code == 503
        assert response.json()['error'] == 'store_unavailable'

    def test_unexpected_errors_hide_details(self):
        response = build_app(RuntimeError("secret internals")).get("/boom")

        assert response.status_code == 500
        assert response.json()['detail'] == 'Internal server error'

    def test_unexpected_errors_exposed_outside_production(self):
        response = build_app(RuntimeError("secret internals"), expose_internal_errors=True).get("/boom")

        assert response.json()['detail'] == 'secret internals'

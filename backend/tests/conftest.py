"""
Pytest fixtures and configuration for Bazaar backend tests

This file provides shared fixtures that can be used across all test modules.
Settings are read at import time, so the test environment is set up before
anything from bazaar is imported.
"""
import os

os.environ["AUTH_SECRET"] = "test-auth-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["FRONTEND_URL"] = "http://localhost:3000"
os.environ["ENVIRONMENT"] = "test"

import pytest
from dotenv import load_dotenv

# Load remaining variables (DATABASE_URL for integration runs)
load_dotenv()

from bazaar.connectors.stripe_connector import StripeConnector  # noqa: E402
from bazaar.domain.account import Role  # noqa: E402
from fakes import (  # noqa: E402
    WEBHOOK_SECRET,
    FakeOrderRepository,
    FakeProductRepository,
    FakeStore,
    make_user,
)


@pytest.fixture
def store():
    """
    Fresh in-memory store per test

    Scope: function
    """
    return FakeStore()


@pytest.fixture
def product_repo(store):
    return FakeProductRepository(store)


@pytest.fixture
def order_repo(store):
    return FakeOrderRepository(store)


@pytest.fixture
def stripe_connector():
    """
    Real connector configured with test credentials

    Webhook verification runs through the stripe library; session creation
    must be patched by tests that need it.
    """
    return StripeConnector(
        api_key="sk_test_dummy",
        webhook_secret=WEBHOOK_SECRET,
        frontend_url="http://localhost:3000",
        currency="PKR",
    )


@pytest.fixture
def customer():
    return make_user(1, Role.CUSTOMER)


@pytest.fixture
def vendor():
    return make_user(10, Role.VENDOR)


@pytest.fixture
def other_vendor():
    return make_user(11, Role.VENDOR)


@pytest.fixture
def admin():
    return make_user(99, Role.ADMIN)

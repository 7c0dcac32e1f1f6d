"""
FastAPI dependency providers

Routes ask for services through these, and tests swap them with
app.dependency_overrides.
"""
from fastapi import Depends

from bazaar.connectors.stripe_connector import StripeConnector
from bazaar.core.config import Settings, get_settings
from bazaar.repositories.order_repository import OrderRepository
from bazaar.repositories.product_repository import ProductRepository
from bazaar.services.checkout_service import CheckoutService
from bazaar.services.order_service import OrderService
from bazaar.services.payment_reconciliation_service import PaymentReconciliationService


def get_order_repository() -> OrderRepository:
    return OrderRepository()


def get_product_repository() -> ProductRepository:
    return ProductRepository()


def get_stripe_connector(settings: Settings = Depends(get_settings)) -> StripeConnector:
    return StripeConnector(
        api_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        frontend_url=settings.FRONTEND_URL,
        currency=settings.CURRENCY,
        webhook_tolerance=settings.STRIPE_WEBHOOK_TOLERANCE,
    )


def get_checkout_service(
    settings: Settings = Depends(get_settings),
    products: ProductRepository = Depends(get_product_repository),
    orders: OrderRepository = Depends(get_order_repository),
    stripe_connector: StripeConnector = Depends(get_stripe_connector),
) -> CheckoutService:
    return CheckoutService(
        product_repo=products,
        order_repo=orders,
        payment_connector=stripe_connector,
        commission_rate=settings.PLATFORM_COMMISSION_RATE,
        currency=settings.CURRENCY,
        default_country=settings.DEFAULT_COUNTRY,
    )


def get_payment_reconciliation_service(
    settings: Settings = Depends(get_settings),
    products: ProductRepository = Depends(get_product_repository),
    orders: OrderRepository = Depends(get_order_repository),
    stripe_connector: StripeConnector = Depends(get_stripe_connector),
) -> PaymentReconciliationService:
    return PaymentReconciliationService(
        order_repo=orders,
        product_repo=products,
        payment_connector=stripe_connector,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
    )


def get_order_service(orders: OrderRepository = Depends(get_order_repository)) -> OrderService:
    return OrderService(order_repo=orders)

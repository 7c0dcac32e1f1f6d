"""
Checkout Service
Turns a cart into a Pending order and opens a Stripe Checkout Session for it

Steps:
1. Validate every cart line against the catalog (all-or-nothing)
2. Snapshot name/image/price from the catalog (client prices are never read)
3. Persist the Pending order with totals derived from the snapshots
4. Open the payment session for the order total
5. Record the session id on the order (metadata-only update)

Stock is checked here but not reserved; it is decremented when the payment
webhook confirms the order.
"""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Tuple

from bazaar.core.exceptions import EmptyCartError, InsufficientStockError, NotFoundError
from bazaar.domain.account import User
from bazaar.domain.order import Order, OrderItem, ShippingAddress

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    session_url: str

    @property
    def order_id(self) -> int:
        return self.order.id


class CheckoutService:
    """Checkout orchestration: catalog read, order write, payment session"""

    def __init__(self, product_repo, order_repo, payment_connector,
                 commission_rate: Decimal, currency: str = "PKR",
                 default_country: str = "Pakistan"):
        self.products = product_repo
        self.orders = order_repo
        self.payments = payment_connector
        self.commission_rate = commission_rate
        self.currency = currency
        self.default_country = default_country

    @staticmethod
    def merge_lines(lines: Iterable[Tuple[int, int]]) -> Dict[int, int]:
        """Sum quantities of repeated products, keeping first-seen order"""
        merged: Dict[int, int] = {}
        for product_id, quantity in lines:
            merged[product_id] = merged.get(product_id, 0) + quantity
        return merged

    def build_items(self, lines: Iterable[Tuple[int, int]]) -> list:
        """
        Validate the cart and snapshot each product

        Raises:
            EmptyCartError: No lines
            NotFoundError: Product missing or inactive
            InsufficientStockError: Requested more than current stock
        """
        merged = self.merge_lines(lines)
        if not merged:
            raise EmptyCartError("No order items provided")

        items = []
        for product_id, quantity in merged.items():
            product = self.products.find_by_id(product_id)

            if product is None or not product.is_active:
                raise NotFoundError(f"Product not found: {product_id}", product_id=product_id)
            if product.stock < quantity:
                raise InsufficientStockError(product.id, product.name, product.stock)

            items.append(OrderItem(
                product_id=product.id,
                vendor_id=product.vendor_id,
                name=product.name,
                image=product.image,
                unit_price=product.price,
                quantity=quantity,
            ))
        return items

    def place_order(
        self,
        customer: User,
        lines: Iterable[Tuple[int, int]],
        shipping_address: ShippingAddress,
        shipping_cost: Decimal = Decimal("0"),
    ) -> CheckoutResult:
        """
        Create a Pending order and its payment session

        Args:
            customer: Authenticated account placing the order
            lines: (product_id, quantity) pairs
            shipping_address: Delivery address; a missing country is filled
                with the configured default
            shipping_cost: Flat, non-negative shipping charge

        Returns:
            CheckoutResult with the persisted order and the redirect URL

        Raises:
            ExternalServiceError: The session could not be opened; the order
                stays Pending without a session id and is never paid
        """
        items = self.build_items(lines)

        if not shipping_address.country:
            shipping_address = shipping_address.model_copy(update={'country': self.default_country})

        order = Order.place(
            customer_id=customer.id,
            items=items,
            shipping_address=shipping_address,
            shipping_cost=shipping_cost,
            commission_rate=self.commission_rate,
            currency=self.currency,
        )
        order = self.orders.create(order)
        logger.info(f"Order {order.id} created for customer {customer.id}: total {order.total} {order.currency}")

        session = self.payments.create_checkout_session(order, customer_email=customer.email)

        self.orders.attach_session(order.id, session.id)
        logger.info(f"Order {order.id} attached to checkout session {session.id}")

        return CheckoutResult(
            order=order.model_copy(update={'stripe_session_id': session.id}),
            session_url=session.url,
        )

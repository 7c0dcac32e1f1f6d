"""
Payment Reconciliation Service
Applies Stripe webhook events to orders and stock

This is the only writer of Pending -> Paid and the only place stock is
decremented. Stripe delivers at least once, so:

- the signature is verified on the raw bytes before anything is read
- Pending -> Paid is a compare-and-swap; only the delivery that wins it
  decrements stock
- each decrement is conditional (stock >= quantity); a line that cannot
  be covered is flagged as backordered instead of driving stock negative
- products are decremented in id order so concurrent confirmations lock
  rows in the same order
- a payment for an order that was already cancelled is recorded and
  queued for manual reconciliation, never dropped
- the paid transition, decrements and flags commit together, so a failure
  rolls back everything and Stripe's retry starts clean
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from bazaar.connectors.stripe_connector import CHECKOUT_COMPLETED, CHECKOUT_EXPIRED
from bazaar.core.database import transaction
from bazaar.core.exceptions import SignatureInvalidError
from bazaar.domain.order import CLOSED_STATUSES
from bazaar.domain.product import DEFAULT_LOW_STOCK_THRESHOLD

logger = logging.getLogger(__name__)

CHECKOUT_ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"


class WebhookOutcome(str, Enum):
    PAID = "paid"
    DUPLICATE = "duplicate"
    NEEDS_RECONCILIATION = "needs_reconciliation"
    UNMATCHED = "unmatched"
    CANCELLED = "cancelled"
    IGNORED = "ignored"


@dataclass(frozen=True)
class WebhookResult:
    event_type: str
    outcome: WebhookOutcome
    order_id: Optional[int] = None
    backordered_product_ids: Tuple[int, ...] = field(default_factory=tuple)
    low_stock_product_ids: Tuple[int, ...] = field(default_factory=tuple)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentReconciliationService:
    """Verifies webhook deliveries and reconciles them into orders and stock"""

    def __init__(
        self,
        order_repo,
        product_repo,
        payment_connector,
        unit_of_work: Callable = transaction,
        clock: Callable[[], datetime] = utcnow,
        low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD,
    ):
        self.orders = order_repo
        self.products = product_repo
        self.payments = payment_connector
        self.unit_of_work = unit_of_work
        self.clock = clock
        self.low_stock_threshold = low_stock_threshold

    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> WebhookResult:
        """
        Verify and apply one webhook delivery

        Raises:
            SignatureInvalidError: Nothing was read or written
        """
        try:
            event = self.payments.verify_webhook(payload, signature)
        except SignatureInvalidError as e:
            logger.warning(f"Rejected webhook: {e.detail}")
            raise

        event_type = event.get('type', 'unknown')
        session = (event.get('data') or {}).get('object') or {}
        logger.info(f"Webhook received: {event_type} ({event.get('id', 'no id')})")

        if event_type in (CHECKOUT_COMPLETED, CHECKOUT_ASYNC_PAYMENT_SUCCEEDED):
            if session.get('payment_status') == 'unpaid':
                # Delayed payment methods confirm later via async_payment_succeeded
                return WebhookResult(event_type, WebhookOutcome.IGNORED)
            return self.confirm_payment(event_type, session)

        if event_type == CHECKOUT_EXPIRED:
            return self.expire_checkout(event_type, session)

        return WebhookResult(event_type, WebhookOutcome.IGNORED)

    def confirm_payment(self, event_type: str, session: Dict[str, Any]) -> WebhookResult:
        """Pending -> Paid plus stock decrements, at most once per order"""
        session_id = session.get('id')
        if not session_id:
            logger.warning(f"{event_type} without a session id, ignoring")
            return WebhookResult(event_type, WebhookOutcome.IGNORED)

        payment_intent_id = session.get('payment_intent')

        with self.unit_of_work() as conn:
            order = self.orders.mark_paid_if_pending(
                session_id,
                payment_intent_id,
                self.clock(),
                conn=conn,
            )

            if order is None:
                existing = self.orders.find_by_session_id(session_id, conn=conn)
                if existing is None:
                    logger.warning(f"No order for checkout session {session_id}, acknowledging anyway")
                    return WebhookResult(event_type, WebhookOutcome.UNMATCHED)

                if existing.status in CLOSED_STATUSES and self.orders.flag_late_payment(
                    existing.id, payment_intent_id, self.clock(), conn=conn
                ):
                    logger.warning(
                        f"Order {existing.id} is {existing.status.value} but checkout session "
                        f"{session_id} was paid ({payment_intent_id}), flagged for reconciliation"
                    )
                    return WebhookResult(event_type, WebhookOutcome.NEEDS_RECONCILIATION, order_id=existing.id)

                logger.info(f"Order {existing.id} already {existing.status.value}, duplicate delivery ignored")
                return WebhookResult(event_type, WebhookOutcome.DUPLICATE, order_id=existing.id)

            backordered_positions = []
            backordered_products = []
            low_stock_products = []
            # Fixed product order keeps row locks consistent across concurrent payments
            by_product = sorted(enumerate(order.items), key=lambda pair: pair[1].product_id)
            for position, item in by_product:
                remaining = self.products.decrement_stock_if_available(
                    item.product_id, item.quantity, conn=conn
                )
                if remaining is None:
                    logger.warning(
                        f"Order {order.id}: product {item.product_id} oversold "
                        f"({item.quantity} requested), flagged for reconciliation"
                    )
                    backordered_positions.append(position)
                    backordered_products.append(item.product_id)
                elif remaining <= self.low_stock_threshold:
                    logger.info(f"Product {item.product_id} low on stock: {remaining} left")
                    low_stock_products.append(item.product_id)

            if backordered_positions:
                self.orders.flag_backorders(order.id, backordered_positions, conn=conn)

        logger.info(f"Order {order.id} marked as Paid")
        return WebhookResult(
            event_type,
            WebhookOutcome.PAID,
            order_id=order.id,
            backordered_product_ids=tuple(backordered_products),
            low_stock_product_ids=tuple(low_stock_products),
        )

    def expire_checkout(self, event_type: str, session: Dict[str, Any]) -> WebhookResult:
        """Cancel a Pending order whose checkout session expired unpaid"""
        session_id = session.get('id')
        if not session_id:
            return WebhookResult(event_type, WebhookOutcome.IGNORED)

        with self.unit_of_work() as conn:
            order_id = self.orders.cancel_if_pending(session_id, conn=conn)

        if order_id is None:
            return WebhookResult(event_type, WebhookOutcome.IGNORED)

        logger.info(f"Order {order_id} cancelled, checkout session {session_id} expired")
        return WebhookResult(event_type, WebhookOutcome.CANCELLED, order_id=order_id)

"""
Stripe Connector
Handles all interactions with the Stripe API

- Checkout Session creation (amounts in minor units, order id as metadata)
- Webhook signature verification against the raw request body
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import stripe

from bazaar.core.exceptions import ExternalServiceError, SignatureInvalidError
from bazaar.domain.commission import to_minor_units
from bazaar.domain.order import Order

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
CHECKOUT_EXPIRED = "checkout.session.expired"


@dataclass(frozen=True)
class CheckoutSession:
    """What we keep from a created Checkout Session"""

    id: str
    url: str


class StripeConnector:
    """
    Connector for Stripe Checkout

    Handles:
    - Checkout session creation for an order
    - Webhook verification (signature + timestamp tolerance)
    """

    def __init__(
        self,
        api_key: str,
        webhook_secret: str,
        frontend_url: str,
        currency: str = "PKR",
        webhook_tolerance: int = 300,
    ):
        """
        Args:
            api_key: Stripe secret key
            webhook_secret: Endpoint signing secret (whsec_...)
            frontend_url: Base URL for success/cancel redirects
            currency: ISO currency code for every charge
            webhook_tolerance: Maximum signature age in seconds
        """
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.frontend_url = frontend_url.rstrip("/")
        self.currency = currency.lower()
        self.webhook_tolerance = webhook_tolerance

    def build_line_items(self, order: Order) -> List[Dict[str, Any]]:
        """One Stripe line per order item, plus shipping when charged"""
        line_items = []
        for item in order.items:
            product_data = {'name': item.name}
            if item.image:
                product_data['images'] = [item.image]
            line_items.append({
                'price_data': {
                    'currency': self.currency,
                    'product_data': product_data,
                    'unit_amount': to_minor_units(item.unit_price),
                },
                'quantity': item.quantity,
            })

        if order.shipping_cost > 0:
            line_items.append({
                'price_data': {
                    'currency': self.currency,
                    'product_data': {'name': 'Shipping'},
                    'unit_amount': to_minor_units(order.shipping_cost),
                },
                'quantity': 1,
            })

        return line_items

    def create_checkout_session(self, order: Order, customer_email: Optional[str] = None) -> CheckoutSession:
        """
        Open a hosted Checkout Session for a persisted order

        The order id travels as metadata and client_reference_id; the
        webhook correlates on the returned session id.

        Raises:
            ExternalServiceError: Stripe rejected or could not be reached
        """
        params: Dict[str, Any] = {
            'mode': 'payment',
            'payment_method_types': ['card'],
            'line_items': self.build_line_items(order),
            'success_url': f"{self.frontend_url}/order-success?session_id={{CHECKOUT_SESSION_ID}}",
            'cancel_url': f"{self.frontend_url}/cart",
            'client_reference_id': str(order.id),
            'metadata': {'order_id': str(order.id)},
        }
        if customer_email:
            params['customer_email'] = customer_email

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                idempotency_key=f"order-{order.id}-checkout",
                **params,
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe checkout session failed for order {order.id}: {type(e).__name__}: {e}")
            raise ExternalServiceError(
                "Payment provider unavailable, please retry checkout",
                order_id=order.id,
            ) from e

        return CheckoutSession(id=session.id, url=session.url)

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify a webhook against the exact bytes Stripe sent, then parse it

        Raises:
            SignatureInvalidError: Missing/invalid signature, stale timestamp
                or unparseable payload
        """
        if not signature:
            raise SignatureInvalidError("Missing Stripe-Signature header")
        if not self.webhook_secret:
            raise SignatureInvalidError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.webhook_secret,
                self.webhook_tolerance,
            )
            event = json.loads(body)
        except stripe.SignatureVerificationError as e:
            raise SignatureInvalidError(f"Webhook signature verification failed: {e}") from e
        except (UnicodeDecodeError, ValueError) as e:
            raise SignatureInvalidError(f"Webhook payload could not be parsed: {e}") from e

        if not isinstance(event, dict):
            raise SignatureInvalidError("Webhook payload is not an event object")
        return event

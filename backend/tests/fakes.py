"""
In-memory stand-ins for the repositories, shared by service and API tests

FakeStore keeps products and orders behind one lock. Every repository method
that the real SQL implements as a single conditional UPDATE is atomic here
too, so concurrent tests exercise the same compare-and-swap guarantees.
transaction() restores a snapshot when the block raises, like a rollback.
"""
import copy
import hashlib
import hmac
import json
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

import psycopg2

from bazaar.domain.account import Role, User
from bazaar.domain.order import Order, OrderStatus, ShippingAddress
from bazaar.domain.product import Product

WEBHOOK_SECRET = "whsec_test_secret"


def make_user(user_id: int, role: Role = Role.CUSTOMER, is_active: bool = True) -> User:
    return User(
        id=user_id,
        name=f"User {user_id}",
        email=f"user{user_id}@bazaar.pk",
        role=role,
        is_active=is_active,
    )


def make_product(product_id: int, vendor_id: int, price="1000", stock: int = 5, **kwargs) -> Product:
    data = {
        'id': product_id,
        'vendor_id': vendor_id,
        'name': f"Product {product_id}",
        'price': Decimal(str(price)),
        'stock': stock,
        'images': [f"https://img.bazaar.pk/{product_id}.jpg"],
    }
    data.update(kwargs)
    return Product(**data)


def make_address(**kwargs) -> ShippingAddress:
    data = {
        'full_name': "Sana Mirza",
        'phone': "03001234567",
        'street': "12 Mall Road",
        'city': "Lahore",
        'province': "Punjab",
    }
    data.update(kwargs)
    return ShippingAddress(**data)


def sign_payload(payload: bytes, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value: t=<ts>,v1=<hmac-sha256 of '<ts>.<payload>'>"""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode('utf-8')}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def checkout_event(
    event_type: str,
    session_id: str,
    payment_intent: str = "pi_test_1",
    payment_status: str = "paid",
    event_id: str = "evt_test_1",
) -> bytes:
    return json.dumps({
        'id': event_id,
        'type': event_type,
        'data': {
            'object': {
                'id': session_id,
                'object': 'checkout.session',
                'payment_intent': payment_intent,
                'payment_status': payment_status,
            },
        },
    }).encode("utf-8")


class FakeStore:
    """Products and orders plus a snapshot-based unit of work"""

    def __init__(self):
        self.lock = threading.RLock()
        self.products: Dict[int, Product] = {}
        self.orders: Dict[int, Order] = {}
        self.next_order_id = 1
        self.commits = 0
        self.rollbacks = 0

    def add_product(self, product: Product) -> Product:
        with self.lock:
            self.products[product.id] = product
        return product

    def stock_of(self, product_id: int) -> int:
        with self.lock:
            return self.products[product_id].stock

    @contextmanager
    def transaction(self):
        with self.lock:
            snapshot = (copy.deepcopy(self.products), copy.deepcopy(self.orders))
        try:
            yield self
        except Exception:
            with self.lock:
                self.products, self.orders = snapshot
                self.rollbacks += 1
            raise
        with self.lock:
            self.commits += 1


class FakeProductRepository:

    def __init__(self, store: FakeStore):
        self.store = store
        # Product ids whose decrement fails as if the database went away
        self.fail_for = set()

    def find_by_id(self, product_id: int, conn=None) -> Optional[Product]:
        with self.store.lock:
            product = self.store.products.get(product_id)
            return product.model_copy(deep=True) if product else None

    def decrement_stock_if_available(self, product_id: int, quantity: int, conn=None) -> Optional[int]:
        if product_id in self.fail_for:
            raise psycopg2.OperationalError("server closed the connection unexpectedly")
        with self.store.lock:
            product = self.store.products.get(product_id)
            if product is None or product.stock < quantity:
                return None
            remaining = product.stock - quantity
            self.store.products[product_id] = product.model_copy(update={'stock': remaining})
            return remaining


class FakeOrderRepository:

    def __init__(self, store: FakeStore):
        self.store = store

    # Reads

    def _copy(self, order: Optional[Order]) -> Optional[Order]:
        return order.model_copy(deep=True) if order else None

    def _newest_first(self, orders) -> List[Order]:
        return [self._copy(o) for o in sorted(orders, key=lambda o: o.id, reverse=True)]

    def find_by_id(self, order_id: int, conn=None) -> Optional[Order]:
        with self.store.lock:
            return self._copy(self.store.orders.get(order_id))

    def find_by_session_id(self, session_id: str, conn=None) -> Optional[Order]:
        with self.store.lock:
            for order in self.store.orders.values():
                if order.stripe_session_id == session_id:
                    return self._copy(order)
        return None

    def find_by_customer(self, customer_id: int, conn=None) -> List[Order]:
        with self.store.lock:
            return self._newest_first(o for o in self.store.orders.values() if o.customer_id == customer_id)

    def find_for_vendor(self, vendor_id: int, statuses, conn=None) -> List[Order]:
        statuses = set(statuses)
        with self.store.lock:
            return self._newest_first(
                o for o in self.store.orders.values()
                if o.status in statuses and o.has_vendor(vendor_id)
            )

    def find_needing_reconciliation(self, conn=None) -> List[Order]:
        with self.store.lock:
            return self._newest_first(o for o in self.store.orders.values() if o.needs_reconciliation)

    # Writes

    def create(self, order: Order, conn=None) -> Order:
        with self.store.lock:
            now = datetime.now(timezone.utc)
            created = order.model_copy(deep=True, update={
                'id': self.store.next_order_id,
                'created_at': now,
                'updated_at': now,
            })
            self.store.orders[created.id] = created
            self.store.next_order_id += 1
            return self._copy(created)

    def attach_session(self, order_id: int, session_id: str, conn=None) -> None:
        with self.store.lock:
            order = self.store.orders[order_id]
            self.store.orders[order_id] = order.model_copy(update={'stripe_session_id': session_id})

    def mark_paid_if_pending(self, session_id, payment_intent_id, paid_at, conn=None) -> Optional[Order]:
        with self.store.lock:
            for order_id, order in self.store.orders.items():
                if order.stripe_session_id == session_id and order.status == OrderStatus.PENDING:
                    paid = order.model_copy(update={
                        'status': OrderStatus.PAID,
                        'is_paid': True,
                        'paid_at': order.paid_at or paid_at,
                        'stripe_payment_intent_id': payment_intent_id,
                    })
                    self.store.orders[order_id] = paid
                    return self._copy(paid)
        return None

    def cancel_if_pending(self, session_id: str, conn=None) -> Optional[int]:
        with self.store.lock:
            for order_id, order in self.store.orders.items():
                if order.stripe_session_id == session_id and order.status == OrderStatus.PENDING:
                    self.store.orders[order_id] = order.model_copy(update={'status': OrderStatus.CANCELLED})
                    return order_id
        return None

    def save_status(self, order: Order, expected_status: OrderStatus, conn=None) -> bool:
        with self.store.lock:
            stored = self.store.orders.get(order.id)
            if stored is None or stored.status != expected_status:
                return False
            self.store.orders[order.id] = stored.model_copy(update={
                'status': order.status,
                'is_paid': order.is_paid,
                'paid_at': order.paid_at,
                'is_delivered': order.is_delivered,
                'delivered_at': order.delivered_at,
            })
            return True

    def flag_backorders(self, order_id: int, positions, conn=None) -> None:
        positions = set(positions)
        with self.store.lock:
            order = self.store.orders[order_id]
            items = [
                item.model_copy(update={'backordered': True}) if position in positions else item
                for position, item in enumerate(order.items)
            ]
            self.store.orders[order_id] = order.model_copy(update={
                'items': items,
                'needs_reconciliation': True,
            })

    def flag_late_payment(self, order_id: int, payment_intent_id, received_at, conn=None) -> bool:
        with self.store.lock:
            order = self.store.orders.get(order_id)
            if order is None or order.stripe_payment_intent_id is not None:
                return False
            note = f"Payment {payment_intent_id} received after close at {received_at.isoformat()}"
            self.store.orders[order_id] = order.model_copy(update={
                'stripe_payment_intent_id': payment_intent_id or order.stripe_session_id,
                'needs_reconciliation': True,
                'notes': "\n".join(n for n in (order.notes, note) if n)[:500],
            })
            return True

    def resolve_reconciliation(self, order_id: int, resolved_at, note=None, conn=None) -> bool:
        with self.store.lock:
            order = self.store.orders.get(order_id)
            if order is None or not order.needs_reconciliation:
                return False
            notes = "\n".join(n for n in (order.notes, note) if n)[:500] or None
            self.store.orders[order_id] = order.model_copy(update={
                'needs_reconciliation': False,
                'reconciled_at': resolved_at,
                'notes': notes,
            })
            return True

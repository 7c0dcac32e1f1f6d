"""
Order Repository - Data Access Layer for Orders

Handles all database queries for orders and returns Order domain models.

Writes are split by concern:
- create() is the only statement that writes financial columns
- attach_session(), mark_paid_if_pending(), save_status() and the
  reconciliation methods touch payment/lifecycle columns only

Lifecycle writes are compare-and-swap on the current status, so two
concurrent writers can never both win the same transition.
"""
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from psycopg2.extras import Json

from bazaar.core.database import use_connection
from bazaar.domain.order import Order, OrderItem, OrderStatus

ORDER_COLUMNS = """
    id, customer_id, shipping_address,
    subtotal, platform_fee_total, shipping_cost, total, commission_rate, currency,
    payment_method, stripe_session_id, stripe_payment_intent_id,
    status, is_paid, paid_at, is_delivered, delivered_at,
    needs_reconciliation, reconciled_at, notes,
    created_at, updated_at
"""

ITEM_COLUMNS = """
    order_id, position, product_id, vendor_id, name, image, unit_price, quantity,
    item_revenue, platform_fee, vendor_payout, backordered
"""


class OrderRepository:
    """
    Repository for Order data access

    All SQL queries for orders are centralized here. Every method takes an
    optional ``conn`` so it can join a caller's transaction.
    """

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_id(self, order_id: int, conn=None) -> Optional[Order]:
        """Find order by ID with its line items"""
        return self._find_one("id = %s", (order_id,), conn)

    def find_by_session_id(self, session_id: str, conn=None) -> Optional[Order]:
        """Find the order correlated with a checkout session"""
        return self._find_one("stripe_session_id = %s", (session_id,), conn)

    def find_by_customer(self, customer_id: int, conn=None) -> List[Order]:
        """Customer's orders, newest first"""
        return self._find_many("customer_id = %s", (customer_id,), conn)

    def find_for_vendor(
        self,
        vendor_id: int,
        statuses: Iterable[OrderStatus],
        conn=None
    ) -> List[Order]:
        """Orders in one of ``statuses`` that contain at least one of the vendor's items"""
        return self._find_many(
            """status = ANY(%s) AND EXISTS (
                SELECT 1 FROM order_items oi
                WHERE oi.order_id = orders.id AND oi.vendor_id = %s
            )""",
            ([s.value for s in statuses], vendor_id),
            conn,
        )

    def find_needing_reconciliation(self, conn=None) -> List[Order]:
        """Orders awaiting manual handling: oversold lines or payments after close"""
        return self._find_many("needs_reconciliation = TRUE", (), conn)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, order: Order, conn=None) -> Order:
        """
        Insert an order and its line items

        Totals must already be derived (Order.place / recompute_totals);
        they are stored as given.

        Returns:
            The order with id and timestamps assigned
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    INSERT INTO orders (
                        customer_id, shipping_address,
                        subtotal, platform_fee_total, shipping_cost, total,
                        commission_rate, currency, payment_method, status, notes
                    ) VALUES (
                        %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s
                    )
                    RETURNING id, created_at, updated_at
                """, (
                    order.customer_id,
                    Json(order.shipping_address.model_dump()),
                    order.subtotal,
                    order.platform_fee_total,
                    order.shipping_cost,
                    order.total,
                    order.commission_rate,
                    order.currency,
                    order.payment_method,
                    order.status.value,
                    order.notes,
                ))
                created = cursor.fetchone()

                for position, item in enumerate(order.items):
                    cursor.execute(f"""
                        INSERT INTO order_items ({ITEM_COLUMNS})
                        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    """, (
                        created['id'], position, item.product_id, item.vendor_id,
                        item.name, item.image, item.unit_price, item.quantity,
                        item.item_revenue, item.platform_fee, item.vendor_payout,
                        item.backordered,
                    ))

                return order.model_copy(update={
                    'id': created['id'],
                    'created_at': created['created_at'],
                    'updated_at': created['updated_at'],
                })
            finally:
                cursor.close()

    def attach_session(self, order_id: int, session_id: str, conn=None) -> None:
        """Record the checkout session id (metadata only, totals untouched)"""
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET stripe_session_id = %s, updated_at = NOW()
                    WHERE id = %s
                """, (session_id, order_id))
            finally:
                cursor.close()

    def mark_paid_if_pending(
        self,
        session_id: str,
        payment_intent_id: Optional[str],
        paid_at: datetime,
        conn=None
    ) -> Optional[Order]:
        """
        Pending -> Paid for the order correlated with ``session_id``

        Only succeeds while the order is still Pending, so a redelivered
        webhook (or two concurrent deliveries) can win at most once.

        Returns:
            The paid order, or None if no Pending order matched
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET status = %s,
                        is_paid = TRUE,
                        paid_at = COALESCE(paid_at, %s),
                        stripe_payment_intent_id = %s,
                        updated_at = NOW()
                    WHERE stripe_session_id = %s AND status = %s
                    RETURNING id
                """, (
                    OrderStatus.PAID.value, paid_at, payment_intent_id,
                    session_id, OrderStatus.PENDING.value,
                ))
                row = cursor.fetchone()
            finally:
                cursor.close()

            if not row:
                return None
            return self.find_by_id(row['id'], conn=db)

    def cancel_if_pending(self, session_id: str, conn=None) -> Optional[int]:
        """
        Pending -> Cancelled for an expired checkout session

        Returns:
            The cancelled order id, or None if no Pending order matched
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET status = %s, updated_at = NOW()
                    WHERE stripe_session_id = %s AND status = %s
                    RETURNING id
                """, (OrderStatus.CANCELLED.value, session_id, OrderStatus.PENDING.value))
                row = cursor.fetchone()
                return row['id'] if row else None
            finally:
                cursor.close()

    def save_status(self, order: Order, expected_status: OrderStatus, conn=None) -> bool:
        """
        Persist a status change made with Order.transition_to()

        Writes status and its companion flags only if the stored status is
        still ``expected_status``.

        Returns:
            True if the row was updated, False if another writer got there first
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET status = %s,
                        is_paid = %s,
                        paid_at = %s,
                        is_delivered = %s,
                        delivered_at = %s,
                        updated_at = NOW()
                    WHERE id = %s AND status = %s
                    RETURNING id
                """, (
                    order.status.value,
                    order.is_paid,
                    order.paid_at,
                    order.is_delivered,
                    order.delivered_at,
                    order.id,
                    expected_status.value,
                ))
                return cursor.fetchone() is not None
            finally:
                cursor.close()

    def flag_backorders(self, order_id: int, positions: List[int], conn=None) -> None:
        """Mark oversold line items and queue the order for manual reconciliation"""
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE order_items
                    SET backordered = TRUE
                    WHERE order_id = %s AND position = ANY(%s)
                """, (order_id, list(positions)))

                cursor.execute("""
                    UPDATE orders
                    SET needs_reconciliation = TRUE, updated_at = NOW()
                    WHERE id = %s
                """, (order_id,))
            finally:
                cursor.close()

    def flag_late_payment(
        self,
        order_id: int,
        payment_intent_id: Optional[str],
        received_at: datetime,
        conn=None
    ) -> bool:
        """
        Record a payment that arrived after the order was closed

        The order keeps its status; the payment reference is stored and the
        order is queued for manual reconciliation (refund or reinstate).
        Only the first delivery records anything, so redeliveries are no-ops.

        Returns:
            True if the payment was recorded by this call
        """
        note = f"Payment {payment_intent_id} received after close at {received_at.isoformat()}"
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET stripe_payment_intent_id = COALESCE(%s, stripe_session_id),
                        needs_reconciliation = TRUE,
                        notes = LEFT(CONCAT_WS(E'\\n', notes, %s), 500),
                        updated_at = NOW()
                    WHERE id = %s AND stripe_payment_intent_id IS NULL
                    RETURNING id
                """, (payment_intent_id, note, order_id))
                return cursor.fetchone() is not None
            finally:
                cursor.close()

    def resolve_reconciliation(
        self,
        order_id: int,
        resolved_at: datetime,
        note: Optional[str] = None,
        conn=None
    ) -> bool:
        """
        Clear the reconciliation flag and append the resolution note

        Returns:
            True if the order was flagged and is now resolved
        """
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute("""
                    UPDATE orders
                    SET needs_reconciliation = FALSE,
                        reconciled_at = %s,
                        notes = LEFT(CONCAT_WS(E'\\n', notes, %s), 500),
                        updated_at = NOW()
                    WHERE id = %s AND needs_reconciliation = TRUE
                    RETURNING id
                """, (resolved_at, note, order_id))
                return cursor.fetchone() is not None
            finally:
                cursor.close()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _find_one(self, where: str, params: tuple, conn=None) -> Optional[Order]:
        orders = self._find_many(where, params, conn)
        return orders[0] if orders else None

    def _find_many(self, where: str, params: tuple, conn=None) -> List[Order]:
        with use_connection(conn) as db:
            cursor = db.cursor()
            try:
                cursor.execute(f"""
                    SELECT {ORDER_COLUMNS}
                    FROM orders
                    WHERE {where}
                    ORDER BY created_at DESC, id DESC
                """, params)
                order_rows = cursor.fetchall()

                if not order_rows:
                    return []

                # All items for these orders in ONE query
                order_ids = [row['id'] for row in order_rows]
                cursor.execute(f"""
                    SELECT {ITEM_COLUMNS}
                    FROM order_items
                    WHERE order_id = ANY(%s)
                    ORDER BY order_id, position
                """, (order_ids,))

                items_by_order: Dict[int, List[OrderItem]] = {}
                for item in cursor.fetchall():
                    data = dict(item)
                    order_id = data.pop('order_id')
                    data.pop('position')
                    items_by_order.setdefault(order_id, []).append(OrderItem(**data))

                return [
                    Order(**{**dict(row), 'items': items_by_order.get(row['id'], [])})
                    for row in order_rows
                ]
            finally:
                cursor.close()

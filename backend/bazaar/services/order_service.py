"""
Order Service
Reads and lifecycle updates performed by customers, vendors and admins
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from bazaar.core.exceptions import (
    BazaarError,
    ConcurrentUpdateError,
    ConflictError,
    ForbiddenError,
    InvalidStatusTransitionError,
    NotFoundError,
)
from bazaar.domain.account import Role, User
from bazaar.domain.commission import round2
from bazaar.domain.order import REVENUE_STATUSES, Order, OrderStatus
from bazaar.domain.permissions import can_manage_order, can_view_order

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class VendorSales:
    vendor_id: int
    orders: List[Order]
    summary: Dict[str, Decimal]

    def to_dict(self) -> dict:
        return {
            'vendor_id': self.vendor_id,
            'summary': {
                key: (float(value) if isinstance(value, Decimal) else value)
                for key, value in self.summary.items()
            },
            'orders': [order.to_dict() for order in self.orders],
        }


class OrderService:
    """Order queries and status transitions, with capability checks"""

    def __init__(self, order_repo, clock: Callable[[], datetime] = utcnow):
        self.orders = order_repo
        self.clock = clock

    def _load(self, order_id: int) -> Order:
        order = self.orders.find_by_id(order_id)
        if order is None:
            raise NotFoundError(f"Order not found: {order_id}", order_id=order_id)
        return order

    @staticmethod
    def _require_admin(actor: User) -> None:
        if actor.role != Role.ADMIN:
            raise ForbiddenError("Admin access required")

    def get_order(self, actor: User, order_id: int) -> Order:
        order = self._load(order_id)
        if not can_view_order(actor, order):
            raise ForbiddenError("Not authorised to view this order")
        return order

    def list_my_orders(self, actor: User) -> List[Order]:
        return self.orders.find_by_customer(actor.id)

    def vendor_sales(self, actor: User, vendor_id: Optional[int] = None) -> VendorSales:
        """
        Paid-and-later orders containing the vendor's items

        Each order is trimmed to that vendor's line items and the summary is
        summed from the stored per-item commission fields.
        """
        if actor.role == Role.VENDOR:
            vendor_id = actor.id
        elif actor.role == Role.ADMIN:
            if vendor_id is None:
                raise BazaarError("vendor_id is required for admin sales queries")
        else:
            raise ForbiddenError("Vendor access required")

        orders = self.orders.find_for_vendor(vendor_id, REVENUE_STATUSES)

        trimmed = []
        total_revenue = total_fees = net_earnings = Decimal("0")
        for order in orders:
            items = order.items_for_vendor(vendor_id)
            if not items:
                continue
            for item in items:
                total_revenue += item.item_revenue
                total_fees += item.platform_fee
                net_earnings += item.vendor_payout
            trimmed.append(order.model_copy(update={'items': items}))

        return VendorSales(
            vendor_id=vendor_id,
            orders=trimmed,
            summary={
                'total_revenue': round2(total_revenue),
                'total_fees': round2(total_fees),
                'net_earnings': round2(net_earnings),
                'total_orders': len(trimmed),
            },
        )

    def update_status(self, actor: User, order_id: int, new_status: OrderStatus) -> Order:
        """
        Move an order along the lifecycle

        Paid is reserved for the payment webhook and is always rejected here.

        Raises:
            NotFoundError, ForbiddenError, InvalidStatusTransitionError,
            ConcurrentUpdateError
        """
        order = self._load(order_id)
        if not can_manage_order(actor, order):
            raise ForbiddenError("Not authorised - this order contains none of your products")

        if new_status == OrderStatus.PAID:
            raise InvalidStatusTransitionError(order.status.value, new_status.value)

        previous = order.status
        order.transition_to(new_status, self.clock())

        if not self.orders.save_status(order, previous):
            raise ConcurrentUpdateError(
                f"Order {order_id} was updated by someone else, reload and retry",
                order_id=order_id,
            )

        logger.info(f"Order {order_id} status {previous.value} -> {new_status.value} by user {actor.id}")
        return order

    def reconciliation_queue(self, actor: User) -> List[Order]:
        """Orders flagged for manual handling: oversold lines or payment after close"""
        self._require_admin(actor)
        return self.orders.find_needing_reconciliation()

    def resolve_reconciliation(self, actor: User, order_id: int, note: Optional[str] = None) -> Order:
        self._require_admin(actor)
        order = self._load(order_id)

        if not self.orders.resolve_reconciliation(order_id, self.clock(), note):
            raise ConflictError(f"Order {order_id} is not awaiting reconciliation", order_id=order_id)

        logger.info(f"Order {order_id} reconciliation resolved by user {actor.id}")
        return self._load(order.id)

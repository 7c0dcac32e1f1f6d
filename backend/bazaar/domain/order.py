"""
Order Domain Models

An order embeds point-in-time snapshots of the products it was placed for,
so later catalog edits never alter historic orders. Financial fields are
derived from the line items by recompute_totals(), which is called only
when line items change; payment and status updates never touch them.
"""
from enum import Enum
from typing import Dict, FrozenSet, List, Optional
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict

from bazaar.core.exceptions import InvalidStatusTransitionError
from bazaar.domain.commission import compute_commission, round2

PHONE_PATTERN = r"^(\+92|0)[0-9]{9,10}$"
DEFAULT_COMMISSION_RATE = Decimal("0.10")


class OrderStatus(str, Enum):
    PENDING = "Pending"
    PAID = "Paid"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    REFUNDED = "Refunded"


ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

# Statuses in which an order counts towards vendor revenue
REVENUE_STATUSES = frozenset({
    OrderStatus.PAID,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
})

# Statuses that end an order without fulfilment
CLOSED_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REFUNDED})


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: OrderStatus, requested: OrderStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidStatusTransitionError(current.value, requested.value)


class ShippingAddress(BaseModel):
    """Delivery address captured with the order"""

    full_name: str = Field(..., min_length=1)
    phone: str = Field(..., pattern=PHONE_PATTERN, description="Pakistani phone number")
    street: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    province: str = Field(..., min_length=1)
    zip: Optional[str] = None
    # Filled from DEFAULT_COUNTRY at checkout when omitted
    country: Optional[str] = None

    model_config = ConfigDict(str_strip_whitespace=True)


class OrderItem(BaseModel):
    """
    Order line item - immutable snapshot of a product at order time

    Fields:
        product_id: Catalog reference (may later be deactivated)
        vendor_id: Vendor who receives the payout
        name / image / unit_price: Copied from the product at order time
        quantity: Units ordered
        item_revenue: unit_price x quantity
        platform_fee: round2(item_revenue x commission_rate)
        vendor_payout: item_revenue - platform_fee
        backordered: Stock could not cover this line when payment landed
    """

    product_id: int = Field(..., description="Product ID")
    vendor_id: int = Field(..., description="Vendor ID")
    name: str = Field(..., description="Product name at order time")
    image: str = Field("", description="Product image at order time")
    unit_price: Decimal = Field(..., description="Unit price at order time", ge=0)
    quantity: int = Field(..., description="Quantity ordered", ge=1)

    item_revenue: Decimal = Field(Decimal("0"), description="Line revenue")
    platform_fee: Decimal = Field(Decimal("0"), description="Platform commission")
    vendor_payout: Decimal = Field(Decimal("0"), description="Vendor share")
    backordered: bool = Field(False, description="Oversold at payment time")

    model_config = ConfigDict(from_attributes=True, frozen=True)

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()
        for field in ['unit_price', 'item_revenue', 'platform_fee', 'vendor_payout']:
            data[field] = float(data[field])
        return data


class Order(BaseModel):
    """
    Order domain model

    Fields:
        id: Internal order ID (None until persisted)
        customer_id: Customer who placed the order
        items: Line item snapshots (at least one)
        shipping_address: Delivery address

        # Financial information (derived, see recompute_totals)
        subtotal: Sum of item_revenue
        platform_fee_total: Sum of platform_fee
        shipping_cost: Flat shipping charge
        total: subtotal + shipping_cost
        commission_rate: Rate captured at creation

        # Payment correlation
        stripe_session_id: Checkout session opened for this order
        stripe_payment_intent_id: Provider payment reference once paid

        # Lifecycle
        status: Current OrderStatus
        is_paid / paid_at: Set once, when Paid is first reached
        is_delivered / delivered_at: Set once, when Delivered is first reached
        needs_reconciliation: Some line was oversold and needs manual handling
    """

    id: Optional[int] = Field(None, description="Order ID")
    customer_id: int = Field(..., description="Customer ID")
    items: List[OrderItem] = Field(..., min_length=1, description="Line items")
    shipping_address: ShippingAddress

    subtotal: Decimal = Field(Decimal("0"), ge=0)
    platform_fee_total: Decimal = Field(Decimal("0"), ge=0)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)
    total: Decimal = Field(Decimal("0"), ge=0)
    commission_rate: Decimal = Field(DEFAULT_COMMISSION_RATE, ge=0, le=1)
    currency: str = "PKR"

    payment_method: str = "stripe"
    stripe_session_id: Optional[str] = None
    stripe_payment_intent_id: Optional[str] = None

    status: OrderStatus = OrderStatus.PENDING
    is_paid: bool = False
    paid_at: Optional[datetime] = None
    is_delivered: bool = False
    delivered_at: Optional[datetime] = None

    needs_reconciliation: bool = False
    reconciled_at: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def place(
        cls,
        customer_id: int,
        items: List[OrderItem],
        shipping_address: ShippingAddress,
        shipping_cost: Decimal = Decimal("0"),
        commission_rate: Decimal = DEFAULT_COMMISSION_RATE,
        currency: str = "PKR",
    ) -> "Order":
        """New Pending order with totals derived from its items"""
        order = cls(
            customer_id=customer_id,
            items=items,
            shipping_address=shipping_address,
            shipping_cost=round2(shipping_cost),
            commission_rate=commission_rate,
            currency=currency,
        )
        order.recompute_totals()
        return order

    def recompute_totals(self) -> None:
        """Derive per-item money fields and order totals from the line items"""
        breakdown = compute_commission(
            ((item.unit_price, item.quantity) for item in self.items),
            self.commission_rate,
            self.shipping_cost,
        )
        self.items = [
            item.model_copy(update={
                'item_revenue': line.item_revenue,
                'platform_fee': line.platform_fee,
                'vendor_payout': line.vendor_payout,
            })
            for item, line in zip(self.items, breakdown.lines)
        ]
        self.subtotal = breakdown.subtotal
        self.platform_fee_total = breakdown.platform_fee_total
        self.total = breakdown.total

    def transition_to(self, status: OrderStatus, at: datetime) -> None:
        """Apply a status change, enforcing the transition table"""
        ensure_transition(self.status, status)
        self.status = status
        if status == OrderStatus.PAID and not self.is_paid:
            self.is_paid = True
            self.paid_at = at
        if status == OrderStatus.DELIVERED and not self.is_delivered:
            self.is_delivered = True
            self.delivered_at = at

    # Computed properties
    @property
    def involved_vendors(self) -> List[int]:
        """Distinct vendor IDs in line item order"""
        return list(dict.fromkeys(item.vendor_id for item in self.items))

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)

    def has_vendor(self, vendor_id: int) -> bool:
        return any(item.vendor_id == vendor_id for item in self.items)

    def items_for_vendor(self, vendor_id: int) -> List[OrderItem]:
        return [item for item in self.items if item.vendor_id == vendor_id]

    def to_dict(self) -> dict:
        """
        Convert to dictionary with computed fields

        Decimals become floats and datetimes ISO strings for JSON responses.
        """
        data = self.model_dump(exclude={'items'})
        data['items'] = [item.to_dict() for item in self.items]
        data['status'] = self.status.value
        data['involved_vendors'] = self.involved_vendors
        data['item_count'] = self.item_count
        data['total_quantity'] = self.total_quantity

        for field in ['subtotal', 'platform_fee_total', 'shipping_cost', 'total', 'commission_rate']:
            data[field] = float(data[field])

        for field in ['paid_at', 'delivered_at', 'reconciled_at', 'created_at', 'updated_at']:
            if data.get(field):
                data[field] = data[field].isoformat()

        return data

"""
Commission math shared by the order ledger and the checkout flow

Every line item is split into the platform's fee and the vendor's payout.
Fees are rounded to 2 decimals per line BEFORE they are summed; summing
unrounded fees and rounding once can drift by one minor unit on orders
with several lines.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple, Union

Number = Union[Decimal, int, float, str]

TWO_PLACES = Decimal("0.01")
MINOR_UNITS_PER_MAJOR = 100


def as_decimal(value: Number) -> Decimal:
    """Decimal from any numeric input (floats go through str to avoid binary noise)"""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round2(value: Number) -> Decimal:
    """Round half-up to 2 decimal places"""
    return as_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Major currency units to the provider's integer minor units (PKR -> paisa)"""
    minor = as_decimal(amount) * MINOR_UNITS_PER_MAJOR
    return int(minor.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class LineCommission:
    item_revenue: Decimal
    platform_fee: Decimal
    vendor_payout: Decimal


@dataclass(frozen=True)
class CommissionBreakdown:
    lines: Tuple[LineCommission, ...]
    subtotal: Decimal
    platform_fee_total: Decimal
    shipping_cost: Decimal
    total: Decimal


def line_commission(unit_price: Number, quantity: int, rate: Number) -> LineCommission:
    item_revenue = round2(as_decimal(unit_price) * quantity)
    platform_fee = round2(item_revenue * as_decimal(rate))
    return LineCommission(
        item_revenue=item_revenue,
        platform_fee=platform_fee,
        vendor_payout=item_revenue - platform_fee,
    )


def compute_commission(
    lines: Iterable[Tuple[Number, int]],
    rate: Number,
    shipping_cost: Number = 0,
) -> CommissionBreakdown:
    """
    Split an order's revenue between platform and vendors

    Args:
        lines: (unit_price, quantity) per line item
        rate: Commission rate captured on the order (e.g. 0.10)
        shipping_cost: Added to the total, never commissioned

    Returns:
        Per-line (item_revenue, platform_fee, vendor_payout) and the order
        aggregates subtotal, platform_fee_total and total
    """
    computed = tuple(line_commission(price, qty, rate) for price, qty in lines)
    shipping = round2(shipping_cost)

    subtotal = sum((line.item_revenue for line in computed), Decimal("0.00"))
    platform_fee_total = sum((line.platform_fee for line in computed), Decimal("0.00"))

    return CommissionBreakdown(
        lines=computed,
        subtotal=subtotal,
        platform_fee_total=platform_fee_total,
        shipping_cost=shipping,
        total=subtotal + shipping,
    )

"""
Orders API Endpoints
Checkout, order reads and lifecycle updates

Every route requires a bearer token; what the caller may see or change is
decided by the services from the resolved account.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from bazaar.api.dependencies import get_checkout_service, get_order_service
from bazaar.core.auth import get_current_actor, require_admin, require_vendor
from bazaar.domain.account import User
from bazaar.domain.order import OrderStatus, ShippingAddress
from bazaar.services.checkout_service import CheckoutService
from bazaar.services.order_service import OrderService

logger = logging.getLogger(__name__)

router = APIRouter()


# Request models
class CartLine(BaseModel):
    product_id: int = Field(..., description="Product ID")
    quantity: int = Field(..., ge=1, description="Units to buy")


class CheckoutRequest(BaseModel):
    items: List[CartLine] = Field(..., min_length=1)
    shipping_address: ShippingAddress
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus


class ReconciliationRequest(BaseModel):
    note: Optional[str] = Field(None, max_length=500)


@router.post("", status_code=status.HTTP_201_CREATED)
def create_order(
    request: CheckoutRequest,
    actor: User = Depends(get_current_actor),
    checkout: CheckoutService = Depends(get_checkout_service),
):
    """
    Place an order and open its payment session

    Prices, names and images are read from the catalog, never from the
    request. The client redirects to session_url to pay.
    """
    result = checkout.place_order(
        customer=actor,
        lines=[(line.product_id, line.quantity) for line in request.items],
        shipping_address=request.shipping_address,
        shipping_cost=request.shipping_cost,
    )
    return {
        "status": "success",
        "order_id": result.order_id,
        "session_url": result.session_url,
    }


@router.get("/mine")
def get_my_orders(
    actor: User = Depends(get_current_actor),
    orders: OrderService = Depends(get_order_service),
):
    """Orders placed by the caller, newest first"""
    data = [order.to_dict() for order in orders.list_my_orders(actor)]
    return {"status": "success", "count": len(data), "data": data}


@router.get("/vendor/sales")
def get_vendor_sales(
    vendor_id: Optional[int] = Query(None, description="Vendor to report on (admins only)"),
    actor: User = Depends(require_vendor),
    orders: OrderService = Depends(get_order_service),
):
    """
    Paid-and-later orders containing the vendor's products

    Each order lists only that vendor's line items. Summary:
    - total_revenue
    - total_fees
    - net_earnings
    - total_orders
    """
    sales = orders.vendor_sales(actor, vendor_id)
    return {"status": "success", "data": sales.to_dict()}


@router.get("/reconciliation")
def get_reconciliation_queue(
    actor: User = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    """Orders with oversold lines awaiting manual handling"""
    data = [order.to_dict() for order in orders.reconciliation_queue(actor)]
    return {"status": "success", "count": len(data), "data": data}


@router.post("/{order_id}/reconciliation")
def resolve_reconciliation(
    order_id: int,
    request: ReconciliationRequest,
    actor: User = Depends(require_admin),
    orders: OrderService = Depends(get_order_service),
):
    order = orders.resolve_reconciliation(actor, order_id, request.note)
    return {"status": "success", "data": order.to_dict()}


@router.get("/{order_id}")
def get_order(
    order_id: int,
    actor: User = Depends(get_current_actor),
    orders: OrderService = Depends(get_order_service),
):
    """Single order, visible to its customer, involved vendors and admins"""
    order = orders.get_order(actor, order_id)
    return {"status": "success", "data": order.to_dict()}


@router.put("/{order_id}/status")
def update_order_status(
    order_id: int,
    request: StatusUpdateRequest,
    actor: User = Depends(get_current_actor),
    orders: OrderService = Depends(get_order_service),
):
    """
    Move an order along its lifecycle

    Allowed for admins and vendors with an item in the order. Paid can only
    be reached through the payment webhook.
    """
    order = orders.update_status(actor, order_id, request.status)
    return {"status": "success", "data": order.to_dict()}

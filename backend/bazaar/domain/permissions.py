"""
Capability checks

One place for "may this actor touch this thing". Routes and services call
these instead of comparing role strings inline.
"""
from bazaar.domain.account import Role, User
from bazaar.domain.order import Order
from bazaar.domain.product import Product


def can_manage_order(actor: User, order: Order) -> bool:
    """Admins, or vendors with at least one line item in the order"""
    if not actor.is_active:
        return False
    if actor.role == Role.ADMIN:
        return True
    if actor.role == Role.VENDOR:
        return order.has_vendor(actor.id)
    return False


def can_view_order(actor: User, order: Order) -> bool:
    """The ordering customer, plus everyone who can manage it"""
    if not actor.is_active:
        return False
    return order.customer_id == actor.id or can_manage_order(actor, order)


def can_manage_product(actor: User, product: Product) -> bool:
    """Admins, or the vendor who owns the product"""
    if not actor.is_active:
        return False
    if actor.role == Role.ADMIN:
        return True
    return actor.role == Role.VENDOR and product.vendor_id == actor.id


def can_manage(actor: User, target) -> bool:
    """Dispatch to the capability check for an order or a product"""
    if isinstance(target, Order):
        return can_manage_order(actor, target)
    if isinstance(target, Product):
        return can_manage_product(actor, target)
    raise TypeError(f"No capability check for {type(target).__name__}")

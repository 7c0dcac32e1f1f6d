"""
Domain Layer - Business Entities

Pydantic models for accounts, products and orders, plus the pure
commission and permission logic that operates on them.
"""
from bazaar.domain.account import Role, StoreInfo, User
from bazaar.domain.product import Product, StockStatus
from bazaar.domain.order import Order, OrderItem, OrderStatus, ShippingAddress

__all__ = [
    'Role', 'StoreInfo', 'User',
    'Product', 'StockStatus',
    'Order', 'OrderItem', 'OrderStatus', 'ShippingAddress',
]

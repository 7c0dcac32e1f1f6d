"""
Database table definitions
"""
from .schema import User, Product, Order, OrderItem

__all__ = [
    "User",
    "Product",
    "Order",
    "OrderItem",
]

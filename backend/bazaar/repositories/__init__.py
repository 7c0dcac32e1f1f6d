"""
Repository Layer - Data Access

This layer handles all database queries and returns domain models.
Repositories abstract away SQL details from business logic.
"""
from bazaar.repositories.product_repository import ProductRepository
from bazaar.repositories.user_repository import UserRepository
from bazaar.repositories.order_repository import OrderRepository

__all__ = [
    'ProductRepository',
    'UserRepository',
    'OrderRepository',
]

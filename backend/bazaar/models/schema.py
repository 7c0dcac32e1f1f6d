"""
Table definitions - source of truth for the PostgreSQL schema

Repositories query these tables with raw SQL; SQLAlchemy is only used to
create them (scripts/migrations/init_schema.py).
"""
from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, DECIMAL, ForeignKey, Index,
    Integer, String, Text,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from bazaar.core.database import Base


class User(Base):
    """
    Accounts (customers, vendors, admins). Owned by the auth service.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(20), nullable=False, default="Customer", index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    store_info = Column(JSONB)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    products = relationship("Product", back_populates="vendor")


class Product(Base):
    """
    Vendor catalog entries. Inactive rows stay for order history.
    """
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_products_price_non_negative"),
        Index("ix_products_vendor_active", "vendor_id", "is_active"),
    )

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    name = Column(String(120), nullable=False)
    description = Column(Text)
    category = Column(String(50), index=True)
    price = Column(DECIMAL(12, 2), nullable=False)
    images = Column(ARRAY(Text), nullable=False, default=list)
    stock = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    rating = Column(DECIMAL(3, 2), nullable=False, default=0)
    num_reviews = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    vendor = relationship("User", back_populates="products")
    order_items = relationship("OrderItem", back_populates="product")


class Order(Base):
    """
    Orders. Financial columns are written only on insert.
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    shipping_address = Column(JSONB, nullable=False)

    # Amounts (major currency units)
    subtotal = Column(DECIMAL(12, 2), nullable=False)
    platform_fee_total = Column(DECIMAL(12, 2), nullable=False, default=0)
    shipping_cost = Column(DECIMAL(12, 2), nullable=False, default=0)
    total = Column(DECIMAL(12, 2), nullable=False)
    commission_rate = Column(DECIMAL(5, 4), nullable=False)
    currency = Column(String(3), nullable=False, default="PKR")

    # Payment
    payment_method = Column(String(20), nullable=False, default="stripe")
    stripe_session_id = Column(String(255), unique=True)
    stripe_payment_intent_id = Column(String(255))

    # Lifecycle
    status = Column(String(20), nullable=False, default="Pending", index=True)
    is_paid = Column(Boolean, nullable=False, default=False)
    paid_at = Column(DateTime(timezone=True))
    is_delivered = Column(Boolean, nullable=False, default=False)
    delivered_at = Column(DateTime(timezone=True))

    # Oversold orders awaiting manual handling
    needs_reconciliation = Column(Boolean, nullable=False, default=False, index=True)
    reconciled_at = Column(DateTime(timezone=True))
    notes = Column(String(500))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")


class OrderItem(Base):
    """
    Line item snapshots
    """
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Product data at time of sale
    name = Column(String(120), nullable=False)
    image = Column(Text, nullable=False, default="")
    unit_price = Column(DECIMAL(12, 2), nullable=False)
    quantity = Column(Integer, nullable=False)

    # Commission split
    item_revenue = Column(DECIMAL(12, 2), nullable=False)
    platform_fee = Column(DECIMAL(12, 2), nullable=False)
    vendor_payout = Column(DECIMAL(12, 2), nullable=False)

    backordered = Column(Boolean, nullable=False, default=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product", back_populates="order_items")

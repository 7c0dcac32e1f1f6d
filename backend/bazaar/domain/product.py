"""
Product Domain Model

Represents a vendor-owned catalog entry. Catalog CRUD lives elsewhere; the
order lifecycle only reads products and decrements their stock.
"""
from enum import Enum
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict

DEFAULT_LOW_STOCK_THRESHOLD = 5


class StockStatus(str, Enum):
    OUT_OF_STOCK = "out_of_stock"
    LOW_STOCK = "low_stock"
    IN_STOCK = "in_stock"


class Product(BaseModel):
    """
    Product domain model

    Fields:
        id: Internal product ID
        vendor_id: Owning vendor account
        name: Product name
        price: Unit price in major currency units (PKR)
        images: Image URLs, the first one is used in order snapshots
        stock: Units available (never negative)
        is_active: Soft-delete flag; inactive products cannot be ordered
    """

    id: int = Field(..., description="Product ID")
    vendor_id: int = Field(..., description="Owning vendor ID")
    name: str = Field(..., description="Product name", max_length=120)
    description: Optional[str] = Field(None, description="Product description")
    category: Optional[str] = Field(None, description="Catalog category")
    price: Decimal = Field(..., description="Unit price", ge=0)
    images: List[str] = Field(default_factory=list, description="Image URLs")
    stock: int = Field(0, description="Units in stock", ge=0)
    is_active: bool = Field(True, description="Whether the product is orderable")
    rating: Decimal = Field(Decimal("0"), description="Average review rating")
    num_reviews: int = Field(0, description="Number of reviews", ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def image(self) -> str:
        """Primary image used when snapshotting into an order"""
        return self.images[0] if self.images else ""

    def stock_status(self, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> StockStatus:
        if self.stock <= 0:
            return StockStatus.OUT_OF_STOCK
        if self.stock <= low_stock_threshold:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    def to_dict(self, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()
        data['image'] = self.image
        data['stock_status'] = self.stock_status(low_stock_threshold).value
        for field in ['price', 'rating']:
            data[field] = float(data[field])
        return data

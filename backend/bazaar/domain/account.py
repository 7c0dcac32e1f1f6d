"""
Account Domain Models

Accounts are owned by the auth service; this system only reads them to
attribute orders and to decide who may act on what.
"""
from enum import Enum
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


class Role(str, Enum):
    CUSTOMER = "Customer"
    VENDOR = "Vendor"
    ADMIN = "Admin"


class StoreInfo(BaseModel):
    """Public storefront details of a vendor account"""

    name: Optional[str] = Field(None, max_length=80)
    description: Optional[str] = Field(None, max_length=500)
    logo: Optional[str] = None
    banner: Optional[str] = None
    address: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=20)


class User(BaseModel):
    """
    User domain model

    Fields:
        id: Internal user ID
        name: Display name
        email: Login email
        role: Customer, Vendor or Admin
        is_active: Deactivated accounts cannot act
        store_info: Vendor storefront metadata (vendors only)
    """

    id: int = Field(..., description="User ID")
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Email address")
    role: Role = Field(Role.CUSTOMER, description="Account role")
    is_active: bool = Field(True, description="Whether the account may act")
    store_info: Optional[StoreInfo] = Field(None, description="Vendor store metadata")
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    @property
    def is_vendor(self) -> bool:
        return self.role == Role.VENDOR

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, Field, ConfigDict


class PartnerCode(str, Enum):
    NTUC = "NTUC"
    STARBUCKS = "STARBUCKS"
    GRAB = "GRAB"
    DEFAULT = "DEFAULT"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "PartnerCode":
        """Resolve a partner display name; anything unrecognised is DEFAULT."""
        if not name:
            return cls.DEFAULT
        key = "".join(ch for ch in name.upper() if ch.isalnum())
        return cls.__members__.get(key, cls.DEFAULT)


class RewardCategory(str, Enum):
    VOUCHER = "VOUCHER"
    DISCOUNT = "DISCOUNT"
    PHYSICAL_GOOD = "PHYSICAL_GOOD"
    SERVICE = "SERVICE"


class CreateRewardRequest(BaseModel):
    partner: PartnerCode = PartnerCode.DEFAULT
    name: str
    description: str = ""
    credit_cost: int = Field(..., gt=0)
    monetary_value: Decimal = Decimal("0.00")
    category: RewardCategory = RewardCategory.VOUCHER
    stock_quantity: int = Field(default=0, ge=0)
    unlimited_stock: bool = False
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_available: bool = True
    is_featured: bool = False
    min_credit_balance: Optional[int] = Field(default=None, ge=0)
    daily_limit: Optional[int] = Field(default=None, gt=0)
    total_limit: Optional[int] = Field(default=None, gt=0)
    terms_conditions: Optional[str] = None
    image_url: Optional[str] = None

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "partner": "NTUC",
            "name": "$5 FairPrice Voucher",
            "credit_cost": 100,
            "monetary_value": 5.00,
            "stock_quantity": 50,
            "daily_limit": 1
        }
    })


class RewardCatalogEntry(BaseModel):
    id: UUID
    partner: PartnerCode
    name: str
    description: str = ""
    credit_cost: int
    monetary_value: Decimal = Decimal("0.00")
    category: RewardCategory = RewardCategory.VOUCHER
    stock_quantity: int = 0
    unlimited_stock: bool = False
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_available: bool = True
    is_featured: bool = False
    min_credit_balance: Optional[int] = None
    daily_limit: Optional[int] = None
    total_limit: Optional[int] = None
    terms_conditions: Optional[str] = None
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    def in_stock(self) -> bool:
        return self.unlimited_stock or self.stock_quantity > 0

    def within_window(self, now: datetime) -> bool:
        if self.valid_from is not None and now < self.valid_from:
            return False
        if self.valid_until is not None and now > self.valid_until:
            return False
        return True

    def is_currently_available(self, now: datetime) -> bool:
        return self.is_available and self.within_window(now) and self.in_stock()

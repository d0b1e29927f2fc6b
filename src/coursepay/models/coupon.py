"""
Coupon models — terms returned by the Coupon Service.
"""

from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponApplication(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    max_discount: Optional[Decimal] = Field(default=None, ge=0)
    min_order_amount: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, v: str) -> str:
        # codes are stored upper-case server side
        return v.strip().upper()

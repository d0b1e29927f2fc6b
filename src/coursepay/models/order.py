"""
Order, wallet and provider-side models exchanged with collaborators.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Order(BaseModel):
    """Order Source output."""
    order_id: str
    base_amount_usd: Decimal = Field(ge=0)
    currency: str = "USD"
    title: Optional[str] = None


class WalletBalance(BaseModel):
    balance_usd: Decimal = Decimal("0")


class WalletDebit(BaseModel):
    """Wallet Service acknowledgement of a debit."""
    transaction_id: str
    amount_usd: Decimal
    balance_usd: Optional[Decimal] = None


class ProviderIntent(BaseModel):
    """A provider-side handle for an in-progress charge attempt."""
    gateway_id: str
    reference: Optional[str] = None
    client_secret: Optional[str] = None
    approval_url: Optional[str] = None
    amount: Decimal = Decimal("0")
    currency: str = "USD"
    metadata: dict[str, Any] = {}


class ChargeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"


class ChargeResult(BaseModel):
    reference: str
    status: ChargeStatus
    amount: Decimal
    currency: str = "USD"
    message: Optional[str] = None

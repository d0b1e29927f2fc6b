"""
Receipt — the only piece of session state kept after termination.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

NO_TRANSACTION = "N/A"


class ReceiptOutcome(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Receipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    receipt_number: str
    order_id: str
    transaction_id: str = NO_TRANSACTION
    timestamp_local: datetime
    method_label: str
    amount_usd: Decimal
    currency_display: str
    outcome: ReceiptOutcome
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.outcome == ReceiptOutcome.SUCCESS

    def short_transaction_id(self) -> str:
        """Last 12 characters of the transaction id, as shown to buyers."""
        if self.transaction_id == NO_TRANSACTION:
            return self.transaction_id
        return self.transaction_id[-12:]

    def date_display(self) -> str:
        return self.timestamp_local.strftime("%B %d, %Y")

"""
PaymentSession — one per checkout attempt.
"""

import uuid
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, PrivateAttr

from coursepay.errors import CheckoutError
from coursepay.models.coupon import CouponApplication
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.models.receipt import Receipt


class SessionStatus(str, Enum):
    IDLE = "idle"
    SELECTING = "selecting"
    INITIALIZING = "initializing"
    AWAITING_REDIRECT = "awaiting-redirect"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


# submit() is rejected while the session is in one of these
IN_FLIGHT_STATES = {SessionStatus.INITIALIZING, SessionStatus.PROCESSING, SessionStatus.AWAITING_REDIRECT}
TERMINAL_STATES = {SessionStatus.SUCCEEDED, SessionStatus.FAILED}


def _new_session_id() -> str:
    return uuid.uuid4().hex


class PaymentSession(BaseModel):
    session_id: str = Field(default_factory=_new_session_id)
    order_id: str
    base_amount_usd: Decimal = Field(ge=0)
    currency: str = "USD"
    exchange_rate: Decimal = Field(default=Decimal("1"), gt=0)

    coupon: Optional[CouponApplication] = None
    discount_amount_usd: Decimal = Decimal("0")
    final_amount_usd: Decimal = Decimal("0")

    gateways: list[GatewayDescriptor] = []
    selected_gateway_id: Optional[str] = None
    selected_method: Optional[PaymentMethodKind] = None
    saved_method_id: Optional[str] = None

    status: SessionStatus = SessionStatus.IDLE
    provider_reference: Optional[str] = None
    provider_metadata: dict[str, Any] = {}
    approval_url: Optional[str] = None

    # advisory; None when it could not be read at session start
    wallet_balance_usd: Optional[Decimal] = None
    saved_methods: list[SavedPaymentMethod] = []

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    receipt: Optional[Receipt] = None

    _error: Optional[CheckoutError] = PrivateAttr(default=None)

    @property
    def error(self) -> Optional[CheckoutError]:
        """The exception that failed this session, while it is still in memory."""
        return self._error

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    @property
    def is_in_flight(self) -> bool:
        return self.status in IN_FLIGHT_STATES

    def gateway(self, gateway_id: Optional[str] = None) -> Optional[GatewayDescriptor]:
        gid = gateway_id or self.selected_gateway_id
        for g in self.gateways:
            if g.gateway_id == gid:
                return g
        return None

    def saved_method(self, method_id: Optional[str] = None) -> Optional[SavedPaymentMethod]:
        mid = method_id or self.saved_method_id
        for m in self.saved_methods:
            if m.id == mid:
                return m
        return None

    def clear_provider_state(self) -> None:
        """Forget any prepared intent; it belongs to a previous selection or amount."""
        self.provider_reference = None
        self.provider_metadata = {}
        self.approval_url = None

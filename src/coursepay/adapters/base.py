"""
Gateway adapter contract.

Every variant runs the same lifecycle; a stage a variant has no use for is
a no-op:

    prepare(session, settlement) -> ProviderIntent   # IntentCreationError
    collect_input(intent)        -> instrument | None
    confirm(intent, instrument)  -> ChargeResult     # ChargeError
    describe()                   -> method label for the receipt
"""

import abc
import logging
from decimal import Decimal
from typing import Any, Awaitable, Optional, TypeVar

from coursepay.errors import ChargeError, CheckoutError, IntentCreationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind
from coursepay.models.order import ChargeResult, ChargeStatus, ProviderIntent
from coursepay.models.session import PaymentSession

logger = logging.getLogger("coursepay.adapters")

T = TypeVar("T")


class Settlement:
    """What the provider is asked to charge. USD unless the gateway settles locally."""
    __slots__ = ("amount", "currency", "exchange_rate")

    def __init__(self, amount: Decimal, currency: str = "USD", exchange_rate: Optional[Decimal] = None):
        self.amount = amount
        self.currency = currency
        self.exchange_rate = exchange_rate

    @property
    def is_converted(self) -> bool:
        return self.exchange_rate is not None

    def __repr__(self) -> str:
        return f"Settlement(amount={self.amount}, currency={self.currency!r})"


def intent_metadata(session: PaymentSession, gateway_id: str) -> dict[str, Any]:
    return {
        "order_id": session.order_id,
        "session_id": session.session_id,
        "gateway_id": gateway_id,
        "coupon_code": session.coupon.code if session.coupon else "",
        "amount_usd": str(session.final_amount_usd),
    }


class GatewayAdapter(abc.ABC):
    kind: PaymentMethodKind
    requires_redirect = False

    def __init__(self, descriptor: GatewayDescriptor):
        self.descriptor = descriptor

    @property
    def gateway_id(self) -> str:
        return self.descriptor.gateway_id

    @abc.abstractmethod
    async def prepare(self, session: PaymentSession, settlement: Settlement) -> ProviderIntent:
        ...

    async def collect_input(self, intent: ProviderIntent) -> Optional[str]:
        return None

    @abc.abstractmethod
    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        ...

    def describe(self) -> str:
        return self.descriptor.display_name or self.gateway_id

    async def _creating(self, call: Awaitable[T]) -> T:
        """Await a provider call made while creating an intent."""
        try:
            return await call
        except CheckoutError:
            raise
        except Exception as e:
            logger.warning(f"{self.gateway_id}: intent creation failed: {e}")
            raise IntentCreationError(f"Could not start {self.describe()} payment: {e}",
                                      details={"gateway_id": self.gateway_id}) from e

    async def _charging(self, call: Awaitable[T]) -> T:
        """Await a provider call made while confirming a charge."""
        try:
            return await call
        except CheckoutError:
            raise
        except Exception as e:
            logger.warning(f"{self.gateway_id}: confirmation failed: {e}")
            raise ChargeError(f"{self.describe()} payment failed: {e}",
                              details={"gateway_id": self.gateway_id}) from e

    def _require_succeeded(self, result: ChargeResult) -> ChargeResult:
        if result.status != ChargeStatus.SUCCEEDED:
            raise ChargeError(
                result.message or f"{self.describe()} payment was not completed ({result.status.value})",
                details={"gateway_id": self.gateway_id, "reference": result.reference, "status": result.status.value},
            )
        return result

    def __repr__(self) -> str:
        return f"{type(self).__name__}(gateway_id={self.gateway_id!r})"

"""
Card entry against a provider intent (client secret + on-page card form).
"""

from typing import Awaitable, Callable, Optional

from coursepay.adapters.base import GatewayAdapter, Settlement, intent_metadata
from coursepay.errors import IntentCreationError, ValidationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind
from coursepay.models.order import ChargeResult, ProviderIntent
from coursepay.models.session import PaymentSession
from coursepay.services import ChargeService

# Called with the prepared intent; resolves once the buyer has entered a card,
# with the provider's token for it.
InstrumentSource = Callable[[ProviderIntent], Awaitable[str]]


class DirectChargeAdapter(GatewayAdapter):
    kind = PaymentMethodKind.DIRECT_CHARGE

    def __init__(
        self,
        descriptor: GatewayDescriptor,
        charges: ChargeService,
        instrument_source: Optional[InstrumentSource] = None,
    ):
        super().__init__(descriptor)
        self._charges = charges
        self._instrument_source = instrument_source

    async def prepare(self, session: PaymentSession, settlement: Settlement) -> ProviderIntent:
        intent = await self._creating(
            self._charges.create_intent(settlement.amount, intent_metadata(session, self.gateway_id))
        )
        if not intent.reference or not intent.client_secret:
            raise IntentCreationError(f"{self.describe()} did not return a usable payment intent",
                                      details={"gateway_id": self.gateway_id})
        return intent

    async def collect_input(self, intent: ProviderIntent) -> Optional[str]:
        if self._instrument_source is None:
            raise ValidationError("Card details are required", details={"gateway_id": self.gateway_id})
        instrument = await self._instrument_source(intent)
        if not instrument:
            raise ValidationError("Card details are required", details={"gateway_id": self.gateway_id})
        return instrument

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        result = await self._charging(self._charges.confirm(intent, instrument))
        return self._require_succeeded(result)

    def describe(self) -> str:
        return "Card Payment"

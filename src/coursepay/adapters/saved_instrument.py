"""
Charge a card the buyer saved earlier with the same provider.
"""

from typing import Optional

from coursepay.adapters.base import GatewayAdapter, Settlement, intent_metadata
from coursepay.errors import IntentCreationError, ValidationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.models.order import ChargeResult, ProviderIntent
from coursepay.models.session import PaymentSession
from coursepay.services import ChargeService


class SavedInstrumentAdapter(GatewayAdapter):
    kind = PaymentMethodKind.SAVED_INSTRUMENT

    def __init__(self, descriptor: GatewayDescriptor, charges: ChargeService, saved_method: SavedPaymentMethod):
        super().__init__(descriptor)
        # provider tokens are only meaningful to the provider that issued them
        if saved_method.gateway_id != descriptor.gateway_id:
            raise ValidationError(
                f"Saved method {saved_method.id} belongs to {saved_method.gateway_id}, not {descriptor.gateway_id}",
                details={"saved_method_id": saved_method.id, "gateway_id": descriptor.gateway_id},
            )
        self._charges = charges
        self.saved_method = saved_method

    async def prepare(self, session: PaymentSession, settlement: Settlement) -> ProviderIntent:
        metadata = intent_metadata(session, self.gateway_id)
        metadata["saved_method_id"] = self.saved_method.id
        intent = await self._creating(self._charges.create_intent(settlement.amount, metadata))
        if not intent.reference:
            raise IntentCreationError(f"{self.describe()} did not return a usable payment intent",
                                      details={"gateway_id": self.gateway_id})
        return intent

    async def collect_input(self, intent: ProviderIntent) -> Optional[str]:
        return self.saved_method.provider_instrument_id

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        result = await self._charging(self._charges.confirm(intent, instrument))
        return self._require_succeeded(result)

    def describe(self) -> str:
        m = self.saved_method
        if m.last_four:
            return f"{m.display_name} ending in {m.last_four}"
        return m.display_name

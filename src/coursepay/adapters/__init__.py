"""
Gateway adapters and the factory that picks one for a selection.
"""

from typing import Mapping, Optional

from coursepay.adapters.base import GatewayAdapter, Settlement
from coursepay.adapters.direct_charge import DirectChargeAdapter, InstrumentSource
from coursepay.adapters.redirect import RedirectAdapter, parse_return_url
from coursepay.adapters.saved_instrument import SavedInstrumentAdapter
from coursepay.adapters.wallet import WalletAdapter
from coursepay.errors import ConfigurationError, ValidationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.services import ChargeService, WalletService

__all__ = [
    "AdapterFactory",
    "GatewayAdapter",
    "Settlement",
    "DirectChargeAdapter",
    "RedirectAdapter",
    "SavedInstrumentAdapter",
    "WalletAdapter",
    "InstrumentSource",
    "parse_return_url",
]


class AdapterFactory:
    """Builds the adapter for a (gateway, variant) selection."""

    def __init__(
        self,
        charge_services: Optional[Mapping[str, ChargeService]] = None,
        wallet_service: Optional[WalletService] = None,
        user_id: Optional[str] = None,
        instrument_source: Optional[InstrumentSource] = None,
        return_url: str = "",
        cancel_url: str = "",
    ):
        self._charge_services = dict(charge_services or {})
        self._wallet_service = wallet_service
        self._user_id = user_id
        self._instrument_source = instrument_source
        self._return_url = return_url
        self._cancel_url = cancel_url

    def set_instrument_source(self, source: Optional[InstrumentSource]) -> None:
        self._instrument_source = source

    def _charges_for(self, gateway_id: str) -> ChargeService:
        charges = self._charge_services.get(gateway_id)
        if charges is None:
            raise ConfigurationError(f"No charge service configured for gateway '{gateway_id}'",
                                     details={"gateway_id": gateway_id})
        return charges

    def build(
        self,
        descriptor: GatewayDescriptor,
        method: PaymentMethodKind,
        saved_method: Optional[SavedPaymentMethod] = None,
    ) -> GatewayAdapter:
        if method == PaymentMethodKind.WALLET:
            if self._wallet_service is None:
                raise ConfigurationError("No wallet service configured")
            return WalletAdapter(descriptor, self._wallet_service, self._user_id)

        if method == PaymentMethodKind.REDIRECT:
            if not self._return_url or not self._cancel_url:
                raise ConfigurationError("Redirect gateways need return_url and cancel_url",
                                         details={"gateway_id": descriptor.gateway_id})
            return RedirectAdapter(descriptor, self._charges_for(descriptor.gateway_id),
                                   self._return_url, self._cancel_url)

        if method == PaymentMethodKind.SAVED_INSTRUMENT:
            if saved_method is None:
                raise ValidationError("Choose a saved payment method")
            return SavedInstrumentAdapter(descriptor, self._charges_for(descriptor.gateway_id), saved_method)

        return DirectChargeAdapter(descriptor, self._charges_for(descriptor.gateway_id), self._instrument_source)

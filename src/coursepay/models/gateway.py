"""
Gateway models — descriptors from the Gateway Configuration Service and
the buyer's saved instruments.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class PaymentMethodKind(str, Enum):
    """Adapter variant used to drive a gateway."""
    DIRECT_CHARGE = "direct_charge"
    REDIRECT = "redirect"
    WALLET = "wallet"
    SAVED_INSTRUMENT = "saved_instrument"


class GatewayCapabilities(BaseModel):
    direct_charge: bool = False
    redirect: bool = False
    wallet: bool = False
    saved_instrument: bool = False


class GatewayDescriptor(BaseModel):
    gateway_id: str
    display_name: str = ""
    is_primary: bool = False
    capabilities: GatewayCapabilities = GatewayCapabilities()
    settlement_currency: str = "USD"  # local-currency redirect providers override this

    def native_method(self) -> PaymentMethodKind:
        """The variant used when nothing more specific was chosen."""
        caps = self.capabilities
        if caps.wallet:
            return PaymentMethodKind.WALLET
        if caps.redirect:
            return PaymentMethodKind.REDIRECT
        if caps.direct_charge:
            return PaymentMethodKind.DIRECT_CHARGE
        return PaymentMethodKind.SAVED_INSTRUMENT

    def supports(self, method: PaymentMethodKind) -> bool:
        return bool(getattr(self.capabilities, method.value))


class SavedPaymentMethod(BaseModel):
    id: str
    gateway_id: str
    display_name: str = "Saved Card"
    provider_instrument_id: str
    last_four: Optional[str] = None
    expiry_date: Optional[str] = None
    cardholder_name: Optional[str] = None
    is_default: bool = False

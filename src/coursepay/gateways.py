"""
Gateway configuration and saved payment methods from the backend.
"""

import logging
from typing import Any

from coursepay.models.gateway import GatewayCapabilities, GatewayDescriptor, SavedPaymentMethod
from coursepay.transport.http import HttpClient

logger = logging.getLogger("coursepay.gateways")

# What each known gateway can do when the backend does not say
KNOWN_GATEWAYS: dict[str, dict[str, Any]] = {
    "stripe": {"capabilities": {"direct_charge": True, "saved_instrument": True}},
    "paypal": {"capabilities": {"redirect": True}},
    "dodopay": {"capabilities": {"redirect": True}},
    "dodo": {"capabilities": {"redirect": True}},
    "vodapay": {"capabilities": {"redirect": True}, "settlement_currency": "ZAR"},
    "wallet": {"capabilities": {"wallet": True}},
    "system_wallet": {"capabilities": {"wallet": True}},
}


def parse_gateway(raw: dict[str, Any]) -> GatewayDescriptor:
    gateway_id = str(raw.get("gatewayId") or raw.get("gateway_id") or "").lower()
    known = KNOWN_GATEWAYS.get(gateway_id, {})
    caps = raw.get("capabilities") or known.get("capabilities") or {"direct_charge": True}
    return GatewayDescriptor(
        gateway_id=gateway_id,
        display_name=raw.get("gatewayName") or raw.get("display_name") or gateway_id.title(),
        is_primary=bool(raw.get("isPrimary") or raw.get("is_primary")),
        capabilities=GatewayCapabilities.model_validate(caps),
        settlement_currency=(raw.get("settlementCurrency") or known.get("settlement_currency") or "USD").upper(),
    )


class GatewaysAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list_enabled_gateways(self) -> list[GatewayDescriptor]:
        """GET /payment-gateways/enabled"""
        data = await self._http.get("/payment-gateways/enabled")
        gateways = []
        for raw in data or []:
            if not raw.get("gatewayId") and not raw.get("gateway_id"):
                logger.warning(f"Skipping gateway entry without an id: {raw}")
                continue
            gateways.append(parse_gateway(raw))
        return gateways

    async def list_saved_methods(self) -> list[SavedPaymentMethod]:
        """GET /payment-methods — cards the buyer saved with a provider."""
        data = await self._http.get("/payment-methods")
        methods = []
        for raw in data or []:
            instrument = raw.get("stripePaymentMethodId") or raw.get("providerInstrumentId")
            if not instrument:
                continue
            methods.append(SavedPaymentMethod(
                id=str(raw["id"]),
                gateway_id=raw.get("gatewayId") or ("stripe" if raw.get("stripePaymentMethodId") else ""),
                display_name=raw.get("displayName") or "Saved Card",
                provider_instrument_id=instrument,
                last_four=raw.get("lastFour"),
                expiry_date=raw.get("expiryDate"),
                cardholder_name=raw.get("cardholderName"),
                is_default=bool(raw.get("isDefault")),
            ))
        return methods

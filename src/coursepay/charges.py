"""
Charge service for one provider, proxied through the backend's payment API.
"""

from decimal import Decimal
from typing import Any, Optional

from coursepay.errors import ChargeError, IntentCreationError
from coursepay.models.order import ChargeResult, ChargeStatus, ProviderIntent
from coursepay.pricing import to_minor_units
from coursepay.transport.http import HttpClient

# provider status strings -> ChargeStatus
_STATUSES = {
    "succeeded": ChargeStatus.SUCCEEDED,
    "success": ChargeStatus.SUCCEEDED,
    "completed": ChargeStatus.SUCCEEDED,
    "captured": ChargeStatus.SUCCEEDED,
    "paid": ChargeStatus.SUCCEEDED,
    "pending": ChargeStatus.PENDING,
    "processing": ChargeStatus.PENDING,
    "requires_action": ChargeStatus.PENDING,
}


def parse_charge(data: Any, fallback_reference: str = "") -> ChargeResult:
    if not isinstance(data, dict):
        raise ChargeError("Malformed response from payment provider")
    status = _STATUSES.get(str(data.get("status", "")).lower(), ChargeStatus.FAILED)
    amount = data.get("amountUsd") if data.get("amountUsd") is not None else data.get("amount")
    return ChargeResult(
        reference=str(data.get("reference") or data.get("id") or fallback_reference),
        status=status,
        amount=Decimal(str(amount if amount is not None else "0")),
        currency=(data.get("currency") or "USD").upper(),
        message=data.get("message") or data.get("error"),
    )


class ChargesAPI:
    def __init__(self, http: HttpClient, gateway_id: str):
        self._http = http
        self.gateway_id = gateway_id

    def _path(self, *parts: str) -> str:
        return "/".join(("/payments", self.gateway_id) + parts)

    async def create_intent(self, amount_usd: Decimal, metadata: dict[str, Any]) -> ProviderIntent:
        data = await self._http.post(self._path("intents"), {
            "amount": to_minor_units(amount_usd),
            "currency": "usd",
            "metadata": metadata,
        })
        if not isinstance(data, dict):
            raise IntentCreationError(f"Malformed intent response from {self.gateway_id}")
        return ProviderIntent(
            gateway_id=self.gateway_id,
            reference=data.get("id") or data.get("paymentIntentId"),
            client_secret=data.get("clientSecret"),
            amount=amount_usd,
            currency="USD",
            metadata=metadata,
        )

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        data = await self._http.post(self._path("intents", intent.reference or "", "confirm"), {
            "paymentMethod": instrument,
        })
        return parse_charge(data, intent.reference or "")

    async def create_redirect_order(
        self,
        amount: Decimal,
        currency: str,
        return_url: str,
        cancel_url: str,
        metadata: dict[str, Any],
    ) -> ProviderIntent:
        data = await self._http.post(self._path("redirect-orders"), {
            "amount": str(amount),
            "currency": currency,
            "returnUrl": return_url,
            "cancelUrl": cancel_url,
            "metadata": metadata,
        })
        if not isinstance(data, dict):
            raise IntentCreationError(f"Malformed order response from {self.gateway_id}")
        return ProviderIntent(
            gateway_id=self.gateway_id,
            reference=data.get("reference") or data.get("id"),
            approval_url=data.get("approvalUrl") or data.get("checkoutUrl"),
            amount=amount,
            currency=currency,
            metadata=metadata,
        )

    async def finalize_redirect(self, provider_reference: str) -> ChargeResult:
        data = await self._http.post(self._path("redirect-orders", provider_reference, "finalize"))
        return parse_charge(data, provider_reference)

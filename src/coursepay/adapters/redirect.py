"""
Redirect handoff gateways (PayPal, DodoPay, VodaPay, ...).

The buyer's browser leaves for the provider's approval page and comes back
on ``return_url`` with the provider reference in the query string. Nothing
is confirmed locally: completion goes through :meth:`RedirectAdapter.finalize`
on a separate request.
"""

from typing import Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from coursepay.adapters.base import GatewayAdapter, Settlement, intent_metadata
from coursepay.errors import IntentCreationError, RedirectValidationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind
from coursepay.models.order import ChargeResult, ProviderIntent
from coursepay.models.session import PaymentSession
from coursepay.services import ChargeService

# Query keys providers use for their order reference on the way back
REFERENCE_PARAMS = ("reference", "token", "order_id", "session_id", "checkout_id", "payment_id")
GATEWAY_PARAM = "gateway"


def with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = parse_qs(parts.query, keep_blank_values=True)
    for k, v in params.items():
        query[k] = [v]
    return urlunsplit(parts._replace(query=urlencode(query, doseq=True)))


def parse_return_url(url: str) -> tuple[Optional[str], str]:
    """Extract ``(gateway_id, provider_reference)`` from a return URL.

    Status flags such as ``payment=success`` are ignored on purpose; the
    URL is visible to (and editable by) the buyer.
    """
    query = parse_qs(urlsplit(url).query)
    gateway_id = (query.get(GATEWAY_PARAM) or [None])[0]
    for key in REFERENCE_PARAMS:
        values = query.get(key)
        if values and values[0]:
            return gateway_id, values[0]
    raise RedirectValidationError("Return URL does not carry a payment reference", details={"url": url})


class RedirectAdapter(GatewayAdapter):
    kind = PaymentMethodKind.REDIRECT
    requires_redirect = True

    def __init__(self, descriptor: GatewayDescriptor, charges: ChargeService, return_url: str, cancel_url: str):
        super().__init__(descriptor)
        self._charges = charges
        self._return_url = with_query(return_url, **{GATEWAY_PARAM: descriptor.gateway_id})
        self._cancel_url = with_query(cancel_url, **{GATEWAY_PARAM: descriptor.gateway_id})

    async def prepare(self, session: PaymentSession, settlement: Settlement) -> ProviderIntent:
        metadata = intent_metadata(session, self.gateway_id)
        if settlement.is_converted:
            metadata["exchange_rate"] = str(settlement.exchange_rate)
        intent = await self._creating(self._charges.create_redirect_order(
            settlement.amount, settlement.currency, self._return_url, self._cancel_url, metadata,
        ))
        if not intent.reference or not intent.approval_url:
            raise IntentCreationError(f"{self.describe()} did not return an approval link",
                                      details={"gateway_id": self.gateway_id})
        return intent

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        raise NotImplementedError("redirect gateways complete through finalize()")

    async def finalize(self, provider_reference: str) -> ChargeResult:
        result = await self._charging(self._charges.finalize_redirect(provider_reference))
        return self._require_succeeded(result)

"""
Collaborator contracts the checkout core depends on.

The package ships HTTP implementations of each (``orders``, ``gateways``,
``coupons``, ``wallet``, ``charges``); anything with the same async methods
can be passed in instead.
"""

from decimal import Decimal
from typing import Any, Optional, Protocol

from coursepay.models.coupon import CouponApplication
from coursepay.models.gateway import GatewayDescriptor, SavedPaymentMethod
from coursepay.models.order import ChargeResult, Order, ProviderIntent, WalletBalance, WalletDebit


class OrderSource(Protocol):
    async def get_order(self, order_id: str) -> Order:
        """Raises OrderNotFoundError."""
        ...


class GatewayConfigService(Protocol):
    async def list_enabled_gateways(self) -> list[GatewayDescriptor]:
        ...


class SavedMethodSource(Protocol):
    async def list_saved_methods(self) -> list[SavedPaymentMethod]:
        ...


class CouponService(Protocol):
    async def validate(self, code: str, order_id: str) -> CouponApplication:
        """Raises InvalidCouponError."""
        ...


class WalletService(Protocol):
    async def get_balance(self, user_id: str) -> WalletBalance:
        ...

    async def debit(self, user_id: str, amount_usd: Decimal, order_id: str) -> WalletDebit:
        """Atomically re-check the balance and debit it. Raises InsufficientBalanceError."""
        ...


class ChargeService(Protocol):
    """One per external payment provider."""

    async def create_intent(self, amount_usd: Decimal, metadata: dict[str, Any]) -> ProviderIntent:
        ...

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        ...

    async def create_redirect_order(
        self,
        amount: Decimal,
        currency: str,
        return_url: str,
        cancel_url: str,
        metadata: dict[str, Any],
    ) -> ProviderIntent:
        ...

    async def finalize_redirect(self, provider_reference: str) -> ChargeResult:
        ...

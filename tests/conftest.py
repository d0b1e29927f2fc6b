"""Fakes for the checkout collaborators."""

import asyncio
from decimal import Decimal
from typing import Any, Optional

import pytest

from coursepay.adapters import AdapterFactory
from coursepay.errors import InsufficientBalanceError, InvalidCouponError, OrderNotFoundError
from coursepay.models import (
    ChargeResult,
    ChargeStatus,
    CouponApplication,
    GatewayCapabilities,
    GatewayDescriptor,
    Order,
    ProviderIntent,
    SavedPaymentMethod,
    WalletBalance,
    WalletDebit,
)
from coursepay.orchestrator import CheckoutOrchestrator
from coursepay.registry import GatewayRegistry
from coursepay.store import InMemoryRedirectStore

STRIPE = GatewayDescriptor(
    gateway_id="stripe", display_name="Stripe", is_primary=True,
    capabilities=GatewayCapabilities(direct_charge=True, saved_instrument=True),
)
PAYPAL = GatewayDescriptor(
    gateway_id="paypal", display_name="PayPal",
    capabilities=GatewayCapabilities(redirect=True),
)
VODAPAY = GatewayDescriptor(
    gateway_id="vodapay", display_name="VodaPay",
    capabilities=GatewayCapabilities(redirect=True), settlement_currency="ZAR",
)
WALLET = GatewayDescriptor(
    gateway_id="wallet", display_name="System Wallet",
    capabilities=GatewayCapabilities(wallet=True),
)

RETURN_URL = "https://edu.example/payment-success"
CANCEL_URL = "https://edu.example/payment-cancelled"


class FakeOrderSource:
    def __init__(self, *orders: Order):
        self.orders = {o.order_id: o for o in orders}
        self.calls = 0

    async def get_order(self, order_id: str) -> Order:
        self.calls += 1
        try:
            return self.orders[order_id]
        except KeyError:
            raise OrderNotFoundError(order_id)


class FakeGatewayConfig:
    def __init__(self, *gateways: GatewayDescriptor):
        self.gateways = list(gateways)

    async def list_enabled_gateways(self) -> list[GatewayDescriptor]:
        return list(self.gateways)


class FakeSavedMethods:
    def __init__(self, *methods: SavedPaymentMethod):
        self.methods = list(methods)

    async def list_saved_methods(self) -> list[SavedPaymentMethod]:
        return list(self.methods)


class FakeCouponService:
    def __init__(self, *coupons: CouponApplication):
        self.coupons = {c.code: c for c in coupons}

    async def validate(self, code: str, order_id: str) -> CouponApplication:
        coupon = self.coupons.get(code.upper())
        if coupon is None:
            raise InvalidCouponError("Invalid coupon code")
        return coupon


class FakeWalletService:
    def __init__(self, balance: str = "0"):
        self.balance = Decimal(balance)
        self.debits: list[tuple[str, Decimal, str]] = []
        # raised once by the next balance read
        self.balance_error: Optional[Exception] = None

    async def get_balance(self, user_id: str) -> WalletBalance:
        if self.balance_error is not None:
            error, self.balance_error = self.balance_error, None
            raise error
        return WalletBalance(balance_usd=self.balance)

    async def debit(self, user_id: str, amount_usd: Decimal, order_id: str) -> WalletDebit:
        if self.balance < amount_usd:
            raise InsufficientBalanceError("Insufficient wallet balance")
        self.balance -= amount_usd
        self.debits.append((user_id, amount_usd, order_id))
        return WalletDebit(transaction_id=f"wallet-{len(self.debits)}", amount_usd=amount_usd, balance_usd=self.balance)


class FakeChargeService:
    """Records every call; behaviour is switched with attributes."""

    def __init__(self, gateway_id: str):
        self.gateway_id = gateway_id
        self.created = 0
        self.confirmed: list[tuple[ProviderIntent, Optional[str]]] = []
        self.redirect_orders: dict[str, dict[str, Any]] = {}
        self.finalized: list[str] = []
        self.create_error: Optional[Exception] = None
        self.confirm_status = ChargeStatus.SUCCEEDED
        self.finalize_amount: Optional[Decimal] = None
        self.finalize_currency: Optional[str] = None
        self.finalize_status = ChargeStatus.SUCCEEDED

    @property
    def calls(self) -> int:
        return self.created + len(self.confirmed) + len(self.redirect_orders) + len(self.finalized)

    async def create_intent(self, amount_usd: Decimal, metadata: dict[str, Any]) -> ProviderIntent:
        await asyncio.sleep(0)
        self.created += 1
        if self.create_error:
            raise self.create_error
        return ProviderIntent(
            gateway_id=self.gateway_id,
            reference=f"pi_{self.gateway_id}_{self.created}",
            client_secret=f"secret_{self.created}",
            amount=amount_usd,
            metadata=metadata,
        )

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        await asyncio.sleep(0)
        self.confirmed.append((intent, instrument))
        return ChargeResult(
            reference=intent.reference or "",
            status=self.confirm_status,
            amount=intent.amount,
            message=None if self.confirm_status == ChargeStatus.SUCCEEDED else "Your card was declined.",
        )

    async def create_redirect_order(self, amount, currency, return_url, cancel_url, metadata) -> ProviderIntent:
        await asyncio.sleep(0)
        if self.create_error:
            raise self.create_error
        ref = f"{self.gateway_id.upper()}-{len(self.redirect_orders) + 1}"
        self.redirect_orders[ref] = {
            "amount": amount, "currency": currency, "return_url": return_url,
            "cancel_url": cancel_url, "metadata": metadata,
        }
        return ProviderIntent(
            gateway_id=self.gateway_id,
            reference=ref,
            approval_url=f"https://{self.gateway_id}.example/approve/{ref}",
            amount=amount,
            currency=currency,
            metadata=metadata,
        )

    async def finalize_redirect(self, provider_reference: str) -> ChargeResult:
        await asyncio.sleep(0)
        self.finalized.append(provider_reference)
        order = self.redirect_orders.get(provider_reference)
        amount = self.finalize_amount
        currency = self.finalize_currency
        if order is not None:
            amount = amount if amount is not None else order["amount"]
            currency = currency or order["currency"]
        return ChargeResult(
            reference=provider_reference,
            status=self.finalize_status,
            amount=amount if amount is not None else Decimal("0"),
            currency=currency or "USD",
        )


async def card_entry(intent: ProviderIntent) -> str:
    await asyncio.sleep(0)
    return "pm_card_visa"


@pytest.fixture
def order() -> Order:
    return Order(order_id="course-42", base_amount_usd=Decimal("100.00"), currency="USD", title="Intro to Python")


@pytest.fixture
def charges() -> dict[str, FakeChargeService]:
    return {gid: FakeChargeService(gid) for gid in ("stripe", "paypal", "vodapay")}


@pytest.fixture
def wallet() -> FakeWalletService:
    return FakeWalletService("50.00")


@pytest.fixture
def store() -> InMemoryRedirectStore:
    return InMemoryRedirectStore()


@pytest.fixture
def coupons() -> FakeCouponService:
    return FakeCouponService(
        CouponApplication(code="SAVE20", discount_type="percentage", discount_value=Decimal("20"),
                          max_discount=Decimal("15")),
        CouponApplication(code="TENOFF", discount_type="fixed", discount_value=Decimal("10")),
        CouponApplication(code="BIGFIXED", discount_type="fixed", discount_value=Decimal("500")),
        CouponApplication(code="FREE", discount_type="percentage", discount_value=Decimal("100")),
        CouponApplication(code="MIN200", discount_type="fixed", discount_value=Decimal("5"),
                          min_order_amount=Decimal("200")),
    )


@pytest.fixture
def registry() -> GatewayRegistry:
    return GatewayRegistry([STRIPE, PAYPAL, VODAPAY, WALLET])


@pytest.fixture
def make_orchestrator(order, charges, wallet, store, coupons):
    def _make(orders=None, gateways=(STRIPE, PAYPAL, VODAPAY, WALLET), exchange_rates=None,
              instrument_source=card_entry, saved_methods=(), redirect_store=None):
        factory = AdapterFactory(
            charge_services=charges,
            wallet_service=wallet,
            user_id="user-1",
            instrument_source=instrument_source,
            return_url=RETURN_URL,
            cancel_url=CANCEL_URL,
        )
        return CheckoutOrchestrator(
            factory,
            order_source=orders or FakeOrderSource(order),
            gateway_config=FakeGatewayConfig(*gateways),
            coupon_service=coupons,
            wallet_service=wallet,
            saved_methods=FakeSavedMethods(*saved_methods),
            redirect_store=redirect_store or store,
            exchange_rates=exchange_rates,
            user_id="user-1",
        )
    return _make


@pytest.fixture
def orchestrator(make_orchestrator) -> CheckoutOrchestrator:
    return make_orchestrator()

"""
AsyncCoursePay / CoursePay — wire the HTTP collaborators, adapters and
orchestrator together for one buyer.
"""

import asyncio
from typing import Any, Iterable, Optional

from coursepay.adapters import AdapterFactory, InstrumentSource
from coursepay.charges import ChargesAPI
from coursepay.config import CheckoutConfig
from coursepay.coupons import CouponsAPI
from coursepay.gateways import GatewaysAPI
from coursepay.models.gateway import PaymentMethodKind
from coursepay.models.session import PaymentSession
from coursepay.orchestrator import CheckoutOrchestrator
from coursepay.orders import OrdersAPI
from coursepay.registry import GatewayRegistry
from coursepay.store import JsonFileRedirectStore, RedirectStore
from coursepay.transport.http import HttpClient
from coursepay.wallet import WalletAPI

DEFAULT_CHARGE_GATEWAYS = ("stripe", "paypal", "dodopay", "vodapay")


class AsyncCoursePay:
    """Async checkout client (primary)."""

    def __init__(
        self,
        config: Optional[CheckoutConfig] = None,
        *,
        instrument_source: Optional[InstrumentSource] = None,
        redirect_store: Optional[RedirectStore] = None,
        charge_gateways: Iterable[str] = DEFAULT_CHARGE_GATEWAYS,
        http: Optional[HttpClient] = None,
    ):
        self.config = config or CheckoutConfig.load()
        self.http = http or HttpClient(base_url=self.config.base_url, token=self.config.access_token)
        self.orders = OrdersAPI(self.http)
        self.gateways = GatewaysAPI(self.http)
        self.coupons = CouponsAPI(self.http)
        self.wallet = WalletAPI(self.http)

        self.adapters = AdapterFactory(
            charge_services={gid: ChargesAPI(self.http, gid) for gid in charge_gateways},
            wallet_service=self.wallet,
            user_id=self.config.user_id,
            instrument_source=instrument_source,
            return_url=self.config.return_url,
            cancel_url=self.config.cancel_url,
        )
        self.checkout = CheckoutOrchestrator(
            self.adapters,
            order_source=self.orders,
            gateway_config=self.gateways,
            coupon_service=self.coupons,
            wallet_service=self.wallet,
            saved_methods=self.gateways,
            redirect_store=redirect_store or JsonFileRedirectStore(self.config.redirect_store_dir),
            exchange_rates=self.config.exchange_rates,
            user_id=self.config.user_id,
        )

    async def registry(self) -> GatewayRegistry:
        return await GatewayRegistry.load(self.gateways)

    async def open_checkout(self, order_id: str) -> PaymentSession:
        return await self.checkout.open_checkout(order_id)

    async def pay(
        self,
        order_id: str,
        *,
        gateway_id: Optional[str] = None,
        coupon: Optional[str] = None,
        saved_method_id: Optional[str] = None,
        method: Optional[PaymentMethodKind] = None,
    ) -> PaymentSession:
        """Open a checkout, apply the coupon and selection, submit once."""
        session = await self.checkout.open_checkout(order_id)
        if coupon:
            session = await self.checkout.apply_coupon(session, coupon)
        if gateway_id or saved_method_id or method is not None:
            session = self.checkout.select_gateway(
                session, gateway_id or session.selected_gateway_id or "", saved_method_id, method,
            )
        return await self.checkout.submit(session)

    async def resume(self, return_url: str) -> PaymentSession:
        return await self.checkout.resume_from_return_url(return_url)

    async def close(self) -> None:
        self.checkout.abandon()
        await self.http.close()

    async def __aenter__(self) -> "AsyncCoursePay":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()


class CoursePay:
    """Sync wrapper around AsyncCoursePay. Runs the event loop internally."""

    def __init__(self, config: Optional[CheckoutConfig] = None, **kwargs: Any):
        self._loop = asyncio.new_event_loop()
        self._async = AsyncCoursePay(config, **kwargs)

    def _run(self, coro: Any) -> Any:
        return self._loop.run_until_complete(coro)

    @property
    def checkout(self) -> CheckoutOrchestrator:
        return self._async.checkout

    def registry(self) -> GatewayRegistry:
        return self._run(self._async.registry())

    def open_checkout(self, order_id: str) -> PaymentSession:
        return self._run(self._async.open_checkout(order_id))

    def apply_coupon(self, session: PaymentSession, code: str) -> PaymentSession:
        return self._run(self._async.checkout.apply_coupon(session, code))

    def submit(self, session: PaymentSession) -> PaymentSession:
        return self._run(self._async.checkout.submit(session))

    def pay(self, order_id: str, **kwargs: Any) -> PaymentSession:
        return self._run(self._async.pay(order_id, **kwargs))

    def resume(self, return_url: str) -> PaymentSession:
        return self._run(self._async.resume(return_url))

    def close(self) -> None:
        self._run(self._async.close())
        self._loop.close()

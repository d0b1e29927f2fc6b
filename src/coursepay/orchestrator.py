"""
Checkout orchestrator — owns one PaymentSession at a time and drives the
selected gateway adapter through it.

States:

    idle -> selecting -> initializing -> processing        -> succeeded | failed
                                      -> awaiting-redirect -> (finalize_redirect) succeeded | failed

Collaborator failures never escape ``submit``/``finalize_redirect``: they end
in a ``failed`` session whose receipt carries the message. ``submit`` only
raises AlreadyProcessingError, before anything else happens.
"""

import asyncio
import logging
from decimal import Decimal
from typing import Iterable, Mapping, Optional, Union

from coursepay.adapters import AdapterFactory, GatewayAdapter, RedirectAdapter, Settlement, parse_return_url
from coursepay.errors import (
    AlreadyProcessingError,
    ChargeError,
    CheckoutError,
    ConfigurationError,
    CouponError,
    CouponExceedsAmountError,
    InvalidCouponError,
    RedirectValidationError,
    UnsupportedGatewayError,
    ValidationError,
)
from coursepay.models.coupon import CouponApplication, DiscountType
from coursepay.models.gateway import GatewayCapabilities, GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.models.order import Order, ProviderIntent, WalletBalance
from coursepay.models.session import PaymentSession, SessionStatus
from coursepay.pricing import SETTLEMENT_CURRENCY, compute_discount, compute_final, format_amount, to_settlement
from coursepay.receipts import build_receipt
from coursepay.registry import GatewayRegistry
from coursepay.services import CouponService, GatewayConfigService, OrderSource, SavedMethodSource, WalletService
from coursepay.store import PendingRedirect, RedirectStore

logger = logging.getLogger("coursepay.orchestrator")

FREE_LABEL = "Free Enrollment"
EDITABLE_STATES = {SessionStatus.IDLE, SessionStatus.SELECTING}

Rate = Union[Decimal, int, str]


class CheckoutOrchestrator:
    def __init__(
        self,
        adapters: AdapterFactory,
        *,
        order_source: Optional[OrderSource] = None,
        gateway_config: Optional[GatewayConfigService] = None,
        coupon_service: Optional[CouponService] = None,
        wallet_service: Optional[WalletService] = None,
        saved_methods: Optional[SavedMethodSource] = None,
        redirect_store: Optional[RedirectStore] = None,
        exchange_rates: Optional[Mapping[str, Rate]] = None,
        user_id: Optional[str] = None,
    ):
        self._adapters = adapters
        self._order_source = order_source
        self._gateway_config = gateway_config
        self._coupons = coupon_service
        self._wallet = wallet_service
        self._saved_methods = saved_methods
        self._store = redirect_store
        self._rates = {k.upper(): Decimal(v) for k, v in (exchange_rates or {}).items()}
        self._user_id = user_id
        self._active: Optional[PaymentSession] = None
        # provider reference -> finalization in progress
        self._finalizing: dict[str, "asyncio.Task[PaymentSession]"] = {}

    @property
    def active_session(self) -> Optional[PaymentSession]:
        return self._active

    # ------------------------------------------------------------------
    # Session start
    # ------------------------------------------------------------------

    def start_session(
        self,
        order: Order,
        registry: GatewayRegistry,
        wallet_balance: Optional[WalletBalance] = None,
        saved_methods: Iterable[SavedPaymentMethod] = (),
        exchange_rate: Optional[Rate] = None,
    ) -> PaymentSession:
        registry.require_any()
        saved = list(saved_methods)
        session = PaymentSession(
            order_id=order.order_id,
            base_amount_usd=order.base_amount_usd,
            currency=order.currency.upper(),
            exchange_rate=self._rate_for(order.currency, exchange_rate),
            gateways=registry.enabled,
            wallet_balance_usd=wallet_balance.balance_usd if wallet_balance is not None else None,
            saved_methods=saved,
        )
        self._reprice(session)

        selection = registry.default_selection(saved)
        if selection is not None:
            session.selected_gateway_id = selection.gateway_id
            session.selected_method = selection.method
            session.saved_method_id = selection.saved_method_id
            session.status = SessionStatus.SELECTING

        self._make_active(session)
        logger.info(f"Session {session.session_id} started for order {order.order_id} "
                    f"({format_amount(session.final_amount_usd)}, default {selection!r})")
        return session

    async def open_checkout(self, order_id: str, exchange_rate: Optional[Rate] = None) -> PaymentSession:
        """Fetch everything a checkout needs from the collaborators, then start a session."""
        if self._order_source is None or self._gateway_config is None:
            raise ConfigurationError("open_checkout needs an order source and a gateway configuration service")

        order = await self._order_source.get_order(order_id)
        registry = await GatewayRegistry.load(self._gateway_config)

        balance: Optional[WalletBalance] = None
        if self._wallet is not None and self._user_id:
            try:
                balance = await self._wallet.get_balance(self._user_id)
            except Exception as e:
                # left unknown; the debit is the real check
                logger.warning(f"Could not read wallet balance for {self._user_id}: {e}")

        saved: list[SavedPaymentMethod] = []
        if self._saved_methods is not None:
            try:
                saved = await self._saved_methods.list_saved_methods()
            except Exception as e:
                logger.warning(f"Could not load saved payment methods: {e}")

        return self.start_session(order, registry, balance, saved, exchange_rate)

    # ------------------------------------------------------------------
    # Edits before submit
    # ------------------------------------------------------------------

    async def apply_coupon(self, session: PaymentSession, code: str) -> PaymentSession:
        self._require_editable(session)
        code = (code or "").strip()
        if not code:
            raise InvalidCouponError("Please enter a promo code")
        if self._coupons is None:
            raise ConfigurationError("No coupon service configured")

        try:
            coupon = await self._coupons.validate(code, session.order_id)
        except CouponError:
            raise
        except Exception as e:
            logger.warning(f"Coupon validation for {code} failed: {e}")
            raise CouponError(f"Could not validate coupon: {e}") from e

        self._check_coupon(session, coupon)

        session.coupon = coupon
        self._reprice(session)
        logger.info(f"Session {session.session_id}: coupon {coupon.code} applied, "
                    f"discount {format_amount(session.discount_amount_usd)}")
        return session

    def remove_coupon(self, session: PaymentSession) -> PaymentSession:
        self._require_editable(session)
        session.coupon = None
        self._reprice(session)
        return session

    def select_gateway(
        self,
        session: PaymentSession,
        gateway_id: str,
        saved_method_id: Optional[str] = None,
        method: Optional[PaymentMethodKind] = None,
    ) -> PaymentSession:
        self._require_editable(session)
        descriptor = session.gateway(gateway_id)
        if descriptor is None:
            raise UnsupportedGatewayError(gateway_id)

        if saved_method_id is not None:
            saved = session.saved_method(saved_method_id)
            if saved is None:
                raise ValidationError(f"Unknown saved payment method {saved_method_id}")
            if saved.gateway_id != gateway_id:
                raise ValidationError(
                    f"Saved method {saved_method_id} cannot be used with {gateway_id}",
                    details={"saved_method_id": saved_method_id, "gateway_id": gateway_id},
                )
            if not (descriptor.capabilities.saved_instrument or descriptor.capabilities.direct_charge):
                raise UnsupportedGatewayError(gateway_id)
            method = PaymentMethodKind.SAVED_INSTRUMENT
        elif method is not None:
            if not descriptor.supports(method):
                raise ValidationError(f"{gateway_id} does not support {method.value} payments")
        else:
            method = descriptor.native_method()

        # any intent prepared so far belongs to the previous gateway
        session.clear_provider_state()
        session.selected_gateway_id = gateway_id
        session.selected_method = method
        session.saved_method_id = saved_method_id
        session.status = SessionStatus.SELECTING
        logger.info(f"Session {session.session_id}: selected {gateway_id} ({method.value})")
        return session

    # ------------------------------------------------------------------
    # Submit
    # ------------------------------------------------------------------

    async def submit(self, session: PaymentSession) -> PaymentSession:
        # checked and flipped before the first await: a second submit in the
        # same tick sees INITIALIZING and never reaches prepare()
        if session.is_in_flight:
            raise AlreadyProcessingError(session.session_id, session.status.value)
        if session.is_terminal:
            logger.warning(f"Session {session.session_id} already {session.status.value}; ignoring submit")
            return session
        session.status = SessionStatus.INITIALIZING
        session.error_code = None
        session.error_message = None

        if session.final_amount_usd == 0:
            logger.info(f"Session {session.session_id}: nothing to charge, completing without a gateway")
            return self._succeed(session, FREE_LABEL)

        label = "Payment"
        try:
            descriptor, adapter = self._adapter_for(session)
            label = adapter.describe()
            settlement = self._settlement_for(session, descriptor, adapter)

            intent = await adapter.prepare(session, settlement)
            if intent.reference:
                session.provider_reference = intent.reference

            if isinstance(adapter, RedirectAdapter):
                return self._hand_off(session, adapter, intent, settlement)

            session.status = SessionStatus.PROCESSING
            instrument = await adapter.collect_input(intent)
            result = await adapter.confirm(intent, instrument)
            session.provider_reference = result.reference or session.provider_reference
            return self._succeed(session, label)
        except CheckoutError as e:
            return self._fail(session, e, label)
        except Exception as e:
            logger.exception(f"Session {session.session_id}: unexpected error during payment")
            return self._fail(session, ChargeError(f"Payment failed: {e}"), label)

    def _adapter_for(self, session: PaymentSession) -> tuple[GatewayDescriptor, GatewayAdapter]:
        if not session.selected_gateway_id or session.selected_method is None:
            raise ValidationError("Please choose a payment method")
        descriptor = session.gateway()
        if descriptor is None:
            raise UnsupportedGatewayError(session.selected_gateway_id)

        saved = None
        if session.selected_method == PaymentMethodKind.SAVED_INSTRUMENT:
            saved = session.saved_method()
        if session.selected_method == PaymentMethodKind.REDIRECT and self._store is None:
            raise ConfigurationError("Redirect gateways need a redirect store to resume payments")
        return descriptor, self._adapters.build(descriptor, session.selected_method, saved)

    def _settlement_for(self, session: PaymentSession, descriptor: GatewayDescriptor,
                        adapter: GatewayAdapter) -> Settlement:
        currency = descriptor.settlement_currency.upper()
        if not adapter.requires_redirect or currency == SETTLEMENT_CURRENCY:
            return Settlement(session.final_amount_usd)

        if session.currency == currency:
            rate = session.exchange_rate
        elif currency in self._rates:
            rate = self._rates[currency]
        else:
            raise ConfigurationError(
                f"No exchange rate configured for {currency}; cannot price {descriptor.display_name or descriptor.gateway_id}",
                details={"currency": currency, "gateway_id": descriptor.gateway_id},
            )
        # the one conversion for this charge; final_amount_usd stays in USD
        amount = to_settlement(session.final_amount_usd, rate)
        session.provider_metadata = {
            "settlement_amount": str(amount),
            "settlement_currency": currency,
            "exchange_rate": str(rate),
        }
        return Settlement(amount, currency, rate)

    def _hand_off(self, session: PaymentSession, adapter: RedirectAdapter,
                  intent: ProviderIntent, settlement: Settlement) -> PaymentSession:
        record = PendingRedirect(
            provider_reference=intent.reference or "",
            order_id=session.order_id,
            gateway_id=adapter.gateway_id,
            method_label=adapter.describe(),
            base_amount_usd=session.base_amount_usd,
            amount_usd=session.final_amount_usd,
            coupon=session.coupon,
            currency=session.currency,
            exchange_rate=session.exchange_rate,
            settlement_amount=settlement.amount,
            settlement_currency=settlement.currency,
        )
        self._store.save(record)  # type: ignore[union-attr]
        session.approval_url = intent.approval_url
        session.status = SessionStatus.AWAITING_REDIRECT
        logger.info(f"Session {session.session_id}: handing off to {adapter.gateway_id} "
                    f"(reference {record.provider_reference})")
        return session

    # ------------------------------------------------------------------
    # Redirect return
    # ------------------------------------------------------------------

    async def resume_from_return_url(self, url: str) -> PaymentSession:
        try:
            gateway_id, reference = parse_return_url(url)
        except RedirectValidationError as e:
            return self._fail(PaymentSession(order_id="", base_amount_usd=Decimal("0")), e, "Payment")
        return await self.finalize_redirect(reference, gateway_id)

    async def finalize_redirect(self, provider_reference: str, gateway_id: Optional[str] = None) -> PaymentSession:
        """Settle a redirect payment from its persisted reference alone.

        The order amount is re-read from the order source and the provider's
        settled amount must match what was recorded before the handoff.
        Concurrent calls for one reference share a single provider call.
        """
        pending = self._finalizing.get(provider_reference)
        if pending is not None:
            logger.info(f"Reference {provider_reference} is already being finalized; waiting")
            return await asyncio.shield(pending)

        task = asyncio.ensure_future(self._finalize(provider_reference, gateway_id))
        self._finalizing[provider_reference] = task
        try:
            return await task
        finally:
            self._finalizing.pop(provider_reference, None)

    async def _finalize(self, provider_reference: str, gateway_id: Optional[str]) -> PaymentSession:
        session = PaymentSession(order_id="", base_amount_usd=Decimal("0"), provider_reference=provider_reference)
        label = "Payment"
        try:
            record = self._store.get(provider_reference) if self._store is not None else None
            if record is None:
                raise RedirectValidationError(
                    "Unknown payment reference", details={"provider_reference": provider_reference})

            session = self._rehydrate(record)
            label = record.method_label or record.gateway_id
            if gateway_id and gateway_id != record.gateway_id:
                raise RedirectValidationError(
                    f"Reference belongs to {record.gateway_id}, not {gateway_id}",
                    details={"provider_reference": provider_reference},
                )
            if record.settled:
                logger.info(f"Reference {provider_reference} already settled")
                return self._succeed(session, label)

            await self._revalidate_order(session, record)

            session.status = SessionStatus.PROCESSING
            descriptor = session.gateway(record.gateway_id)
            adapter = self._adapters.build(descriptor, PaymentMethodKind.REDIRECT)  # type: ignore[arg-type]
            if not isinstance(adapter, RedirectAdapter):
                raise ConfigurationError(f"{record.gateway_id} is not a redirect gateway")
            result = await adapter.finalize(provider_reference)

            if result.reference != provider_reference:
                raise RedirectValidationError(
                    "Provider confirmed a different payment",
                    details={"expected": provider_reference, "received": result.reference},
                )
            if result.currency.upper() == record.settlement_currency.upper():
                expected = record.settlement_amount
            elif result.currency.upper() == SETTLEMENT_CURRENCY:
                expected = record.amount_usd
            else:
                raise RedirectValidationError(f"Payment settled in unexpected currency {result.currency}")
            if result.amount != expected:
                raise RedirectValidationError(
                    f"Paid amount {format_amount(result.amount, result.currency)} does not match "
                    f"the order total {format_amount(expected, result.currency)}",
                    details={"expected": str(expected), "received": str(result.amount)},
                )

            self._store.mark_settled(provider_reference)  # type: ignore[union-attr]
            return self._succeed(session, label)
        except CheckoutError as e:
            return self._fail(session, e, label)
        except Exception as e:
            logger.exception(f"Unexpected error finalizing {provider_reference}")
            return self._fail(session, ChargeError(f"Payment failed: {e}"), label)

    def _rehydrate(self, record: PendingRedirect) -> PaymentSession:
        descriptor = GatewayDescriptor(
            gateway_id=record.gateway_id,
            display_name=record.method_label,
            capabilities=GatewayCapabilities(redirect=True),
            settlement_currency=record.settlement_currency,
        )
        session = PaymentSession(
            order_id=record.order_id,
            base_amount_usd=record.base_amount_usd,
            currency=record.currency,
            exchange_rate=record.exchange_rate,
            coupon=record.coupon,
            gateways=[descriptor],
            selected_gateway_id=record.gateway_id,
            selected_method=PaymentMethodKind.REDIRECT,
            status=SessionStatus.AWAITING_REDIRECT,
            provider_reference=record.provider_reference,
            provider_metadata={
                "settlement_amount": str(record.settlement_amount),
                "settlement_currency": record.settlement_currency,
            },
        )
        self._reprice(session)
        # the recorded total is what the buyer approved
        session.final_amount_usd = record.amount_usd
        return session

    async def _revalidate_order(self, session: PaymentSession, record: PendingRedirect) -> None:
        if self._order_source is None:
            raise ConfigurationError("Redirect payments need an order source to re-validate the amount")
        order = await self._order_source.get_order(record.order_id)
        expected = compute_final(order.base_amount_usd, compute_discount(order.base_amount_usd, record.coupon))
        if expected != record.amount_usd:
            raise RedirectValidationError(
                f"Order total changed from {format_amount(record.amount_usd)} to {format_amount(expected)}",
                details={"expected": str(expected), "recorded": str(record.amount_usd)},
            )

    # ------------------------------------------------------------------
    # After failure
    # ------------------------------------------------------------------

    def retry(self, session: PaymentSession) -> PaymentSession:
        """Fresh session for another attempt; the failed reference is not carried over."""
        if session.status != SessionStatus.FAILED:
            raise ValidationError(f"Only a failed payment can be retried (session is {session.status.value})")
        fresh = PaymentSession(
            order_id=session.order_id,
            base_amount_usd=session.base_amount_usd,
            currency=session.currency,
            exchange_rate=session.exchange_rate,
            coupon=session.coupon,
            gateways=session.gateways,
            selected_gateway_id=session.selected_gateway_id,
            selected_method=session.selected_method,
            saved_method_id=session.saved_method_id,
            wallet_balance_usd=session.wallet_balance_usd,
            saved_methods=session.saved_methods,
            status=SessionStatus.SELECTING if session.selected_gateway_id else SessionStatus.IDLE,
        )
        self._reprice(fresh)
        self._make_active(fresh)
        logger.info(f"Session {fresh.session_id} replaces failed session {session.session_id}")
        return fresh

    def abandon(self) -> None:
        """The checkout was closed. Provider intents already created expire on their own."""
        if self._active is not None:
            logger.info(f"Session {self._active.session_id} abandoned in state {self._active.status.value}")
        self._active = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _rate_for(self, currency: str, explicit: Optional[Rate]) -> Decimal:
        if explicit is not None:
            rate = Decimal(explicit)
        elif currency.upper() == SETTLEMENT_CURRENCY:
            rate = Decimal("1")
        elif currency.upper() in self._rates:
            rate = self._rates[currency.upper()]
        else:
            raise ConfigurationError(f"No exchange rate configured for {currency}",
                                     details={"currency": currency})
        if rate <= 0:
            raise ConfigurationError(f"Exchange rate for {currency} must be positive, got {rate}")
        return rate

    @staticmethod
    def _reprice(session: PaymentSession) -> None:
        session.discount_amount_usd = compute_discount(session.base_amount_usd, session.coupon)
        session.final_amount_usd = compute_final(session.base_amount_usd, session.discount_amount_usd)

    @staticmethod
    def _check_coupon(session: PaymentSession, coupon: CouponApplication) -> None:
        base = session.base_amount_usd
        if coupon.discount_type == DiscountType.PERCENTAGE and coupon.discount_value > 100:
            raise InvalidCouponError(f"Coupon {coupon.code} has an invalid percentage")
        if coupon.min_order_amount is not None and base < coupon.min_order_amount:
            raise CouponError(
                f"Minimum order amount of {format_amount(coupon.min_order_amount)} required",
                code="coupon_min_order",
                details={"code": coupon.code},
            )
        if coupon.discount_type == DiscountType.FIXED and coupon.discount_value > base:
            raise CouponExceedsAmountError(
                f"Coupon {coupon.code} ({format_amount(coupon.discount_value)}) exceeds the order total "
                f"{format_amount(base)}",
                details={"code": coupon.code},
            )

    @staticmethod
    def _require_editable(session: PaymentSession) -> None:
        if session.status in EDITABLE_STATES:
            return
        if session.is_in_flight:
            raise AlreadyProcessingError(session.session_id, session.status.value)
        raise ValidationError(
            f"Session {session.session_id} is {session.status.value}; start a new attempt",
            details={"session_id": session.session_id},
        )

    def _make_active(self, session: PaymentSession) -> None:
        if self._active is not None and self._active is not session and not self._active.is_terminal:
            logger.info(f"Discarding session {self._active.session_id} ({self._active.status.value})")
        self._active = session

    def _succeed(self, session: PaymentSession, label: str) -> PaymentSession:
        session.status = SessionStatus.SUCCEEDED
        session.receipt = build_receipt(session, label)
        logger.info(f"Session {session.session_id} succeeded ({session.provider_reference or 'no reference'})")
        return session

    def _fail(self, session: PaymentSession, error: CheckoutError, label: str) -> PaymentSession:
        session.status = SessionStatus.FAILED
        session.error_code = error.code
        session.error_message = error.message
        session._error = error
        session.receipt = build_receipt(session, label)
        logger.warning(f"Session {session.session_id} failed [{error.code}]: {error.message}")
        return session

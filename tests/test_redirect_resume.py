"""Redirect handoff, durable records and completion after the buyer returns."""

import asyncio
from decimal import Decimal

import pytest

from conftest import RETURN_URL, FakeOrderSource
from coursepay.adapters import parse_return_url
from coursepay.errors import AlreadyProcessingError, RedirectValidationError
from coursepay.models import Order, SessionStatus
from coursepay.store import InMemoryRedirectStore, JsonFileRedirectStore, PendingRedirect


async def hand_off(orch, gateway_id="paypal", coupon=None):
    session = await orch.open_checkout("course-42")
    if coupon:
        await orch.apply_coupon(session, coupon)
    orch.select_gateway(session, gateway_id)
    return await orch.submit(session)


class TestHandOff:
    @pytest.mark.asyncio
    async def test_records_reference_before_leaving(self, orchestrator, store, charges):
        session = await hand_off(orchestrator)
        assert session.status == SessionStatus.AWAITING_REDIRECT
        assert session.provider_reference == "PAYPAL-1"
        assert session.approval_url == "https://paypal.example/approve/PAYPAL-1"
        assert session.receipt is None

        record = store.get("PAYPAL-1")
        assert record.order_id == "course-42"
        assert record.amount_usd == Decimal("100.00")
        assert record.settled is False

        placed = charges["paypal"].redirect_orders["PAYPAL-1"]
        assert "gateway=paypal" in placed["return_url"]
        assert "gateway=paypal" in placed["cancel_url"]

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, orchestrator, store, charges):
        charges["paypal"].create_error = ConnectionError("timed out")
        session = await hand_off(orchestrator)
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "intent_creation_failed"
        assert session.approval_url is None

    @pytest.mark.asyncio
    async def test_coupon_after_handoff_keeps_payment_settleable(self, orchestrator, store):
        session = await hand_off(orchestrator)
        with pytest.raises(AlreadyProcessingError):
            await orchestrator.apply_coupon(session, "TENOFF")
        assert session.final_amount_usd == Decimal("100.00")
        assert store.get("PAYPAL-1") is not None

        # approved at the provider in another tab
        resumed = await orchestrator.resume_from_return_url(f"{RETURN_URL}?gateway=paypal&token=PAYPAL-1")
        assert resumed.status == SessionStatus.SUCCEEDED

    @pytest.mark.asyncio
    async def test_new_attempt_after_handoff(self, orchestrator, store):
        await hand_off(orchestrator)
        fresh = await orchestrator.open_checkout("course-42")
        await orchestrator.apply_coupon(fresh, "TENOFF")
        assert fresh.final_amount_usd == Decimal("90.00")
        assert store.get("PAYPAL-1") is not None


class TestResume:
    @pytest.mark.asyncio
    async def test_resume_in_a_new_process(self, orchestrator, make_orchestrator, store, charges):
        await hand_off(orchestrator, coupon="SAVE20")

        # nothing in memory survives; only the store and the return URL
        restarted = make_orchestrator()
        session = await restarted.resume_from_return_url(f"{RETURN_URL}?gateway=paypal&token=PAYPAL-1")

        assert session.status == SessionStatus.SUCCEEDED
        assert session.order_id == "course-42"
        assert session.final_amount_usd == Decimal("85.00")
        assert session.receipt.transaction_id == "PAYPAL-1"
        assert session.receipt.method_label == "PayPal"
        assert charges["paypal"].finalized == ["PAYPAL-1"]
        assert store.get("PAYPAL-1").settled is True

    @pytest.mark.asyncio
    async def test_second_return_does_not_finalize_again(self, orchestrator, charges):
        await hand_off(orchestrator)
        first = await orchestrator.finalize_redirect("PAYPAL-1")
        second = await orchestrator.finalize_redirect("PAYPAL-1")
        assert first.status == second.status == SessionStatus.SUCCEEDED
        assert charges["paypal"].finalized == ["PAYPAL-1"]

    @pytest.mark.asyncio
    async def test_simultaneous_returns_finalize_once(self, orchestrator, charges):
        await hand_off(orchestrator)
        first, second = await asyncio.gather(
            orchestrator.finalize_redirect("PAYPAL-1"),
            orchestrator.finalize_redirect("PAYPAL-1"),
        )
        assert first.status == second.status == SessionStatus.SUCCEEDED
        assert charges["paypal"].finalized == ["PAYPAL-1"]

    @pytest.mark.asyncio
    async def test_store_unreadable(self, make_orchestrator, charges):
        class BrokenStore(InMemoryRedirectStore):
            def get(self, provider_reference):
                raise OSError("disk unavailable")

        session = await make_orchestrator(redirect_store=BrokenStore()).finalize_redirect("PAYPAL-1")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "charge_failed"
        assert charges["paypal"].finalized == []

    @pytest.mark.asyncio
    async def test_paid_amount_mismatch(self, orchestrator, store, charges):
        await hand_off(orchestrator)
        charges["paypal"].finalize_amount = Decimal("1.00")
        session = await orchestrator.finalize_redirect("PAYPAL-1")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "redirect_validation_failed"
        assert session.receipt.transaction_id == "PAYPAL-1"
        assert store.get("PAYPAL-1").settled is False

    @pytest.mark.asyncio
    async def test_order_price_changed(self, orchestrator, make_orchestrator, charges):
        await hand_off(orchestrator)
        repriced = FakeOrderSource(Order(order_id="course-42", base_amount_usd=Decimal("120")))
        session = await make_orchestrator(orders=repriced).finalize_redirect("PAYPAL-1")
        assert session.status == SessionStatus.FAILED
        assert "changed" in session.error_message
        assert charges["paypal"].finalized == []

    @pytest.mark.asyncio
    async def test_provider_reports_failure(self, orchestrator, charges):
        await hand_off(orchestrator)
        charges["paypal"].finalize_status = "failed"
        session = await orchestrator.finalize_redirect("PAYPAL-1")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "charge_failed"

    @pytest.mark.asyncio
    async def test_unknown_reference(self, orchestrator):
        session = await orchestrator.resume_from_return_url(f"{RETURN_URL}?gateway=paypal&token=FORGED")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "redirect_validation_failed"
        assert session.receipt.transaction_id == "FORGED"

    @pytest.mark.asyncio
    async def test_return_url_without_reference(self, orchestrator):
        session = await orchestrator.resume_from_return_url(f"{RETURN_URL}?payment=success")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "redirect_validation_failed"

    @pytest.mark.asyncio
    async def test_reference_from_another_gateway(self, orchestrator, charges):
        await hand_off(orchestrator)
        session = await orchestrator.resume_from_return_url(f"{RETURN_URL}?gateway=vodapay&token=PAYPAL-1")
        assert session.status == SessionStatus.FAILED
        assert charges["paypal"].finalized == []

    @pytest.mark.asyncio
    async def test_local_currency_settlement(self, make_orchestrator, charges):
        orch = make_orchestrator(exchange_rates={"ZAR": "18.5"})
        await hand_off(orch, gateway_id="vodapay")
        session = await orch.resume_from_return_url(f"{RETURN_URL}?gateway=vodapay&reference=VODAPAY-1")
        assert session.status == SessionStatus.SUCCEEDED
        assert session.receipt.amount_usd == Decimal("100.00")


def test_parse_return_url():
    assert parse_return_url("https://x.example/ok?gateway=dodopay&payment_id=pay_1") == ("dodopay", "pay_1")
    assert parse_return_url("https://x.example/ok?token=EC-9") == (None, "EC-9")
    with pytest.raises(RedirectValidationError):
        parse_return_url("https://x.example/ok?payment=success&token=")


class TestJsonFileStore:
    def record(self, reference="PAYPAL-1") -> PendingRedirect:
        return PendingRedirect(
            provider_reference=reference, order_id="course-42", gateway_id="paypal", method_label="PayPal",
            base_amount_usd=Decimal("100"), amount_usd=Decimal("85.00"), settlement_amount=Decimal("85.00"),
        )

    def test_round_trip_and_settle(self, tmp_path):
        store = JsonFileRedirectStore(tmp_path)
        store.save(self.record())
        loaded = store.get("PAYPAL-1")
        assert loaded.amount_usd == Decimal("85.00")
        assert loaded.settled is False

        store.mark_settled("PAYPAL-1")
        assert store.get("PAYPAL-1").settled is True
        assert store.get("PAYPAL-2") is None

    def test_reference_is_not_a_path(self, tmp_path):
        store = JsonFileRedirectStore(tmp_path / "records")
        store.save(self.record("../../etc/passwd"))
        assert store.get("../../etc/passwd").provider_reference == "../../etc/passwd"
        assert all(p.parent == tmp_path / "records" for p in (tmp_path / "records").iterdir())

    def test_corrupt_record(self, tmp_path):
        store = JsonFileRedirectStore(tmp_path)
        store.save(self.record())
        next(tmp_path.glob("*.json")).write_text("{not json")
        assert store.get("PAYPAL-1") is None

    def test_record_missing_fields(self, tmp_path):
        store = JsonFileRedirectStore(tmp_path)
        store.save(self.record())
        next(tmp_path.glob("*.json")).write_text('{"provider_reference": "PAYPAL-1"}')
        assert store.get("PAYPAL-1") is None

    @pytest.mark.asyncio
    async def test_finalize_with_malformed_record(self, tmp_path, make_orchestrator, charges):
        orch = make_orchestrator(redirect_store=JsonFileRedirectStore(tmp_path))
        await hand_off(orch)
        next(tmp_path.glob("*.json")).write_text('{"provider_reference": "PAYPAL-1", "settled": "maybe"}')

        session = await orch.finalize_redirect("PAYPAL-1", "paypal")
        assert session.status == SessionStatus.FAILED
        assert session.error_code == "redirect_validation_failed"
        assert charges["paypal"].finalized == []

    @pytest.mark.asyncio
    async def test_survives_restart(self, tmp_path, make_orchestrator, charges):
        await hand_off(make_orchestrator(redirect_store=JsonFileRedirectStore(tmp_path)))
        restarted = make_orchestrator(redirect_store=JsonFileRedirectStore(tmp_path))
        session = await restarted.finalize_redirect("PAYPAL-1", "paypal")
        assert session.status == SessionStatus.SUCCEEDED
        assert JsonFileRedirectStore(tmp_path).get("PAYPAL-1").settled is True

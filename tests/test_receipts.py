"""Receipt presenter."""

import re
from datetime import datetime, timezone
from decimal import Decimal

import pydantic
import pytest

from coursepay.errors import ValidationError
from coursepay.models import NO_TRANSACTION, PaymentSession, ReceiptOutcome, SessionStatus
from coursepay.receipts import build_receipt, generate_receipt_number

NOW = datetime(2024, 3, 5, 14, 30, tzinfo=timezone.utc)


def terminal(status, **kwargs) -> PaymentSession:
    fields = dict(order_id="course-42", base_amount_usd=Decimal("100"), final_amount_usd=Decimal("85.00"))
    fields.update(kwargs)
    return PaymentSession(status=status, **fields)


def test_receipt_number_format():
    number = generate_receipt_number(now_ms=1_700_000_000_000)
    assert re.fullmatch(r"EF-[0-9A-Z]+-[0-9A-Z]{4}", number)
    assert int(number.split("-")[1], 36) == 1_700_000_000_000


def test_receipt_numbers_differ():
    assert len({generate_receipt_number() for _ in range(50)}) > 1


def test_success():
    receipt = build_receipt(terminal(SessionStatus.SUCCEEDED, provider_reference="pi_3OaBcDeFgHiJkLmN"),
                            "Card Payment", now=NOW)
    assert receipt.outcome == ReceiptOutcome.SUCCESS
    assert receipt.succeeded
    assert receipt.transaction_id == "pi_3OaBcDeFgHiJkLmN"
    assert receipt.short_transaction_id() == "cDeFgHiJkLmN"
    assert receipt.amount_usd == Decimal("85.00")
    assert receipt.currency_display == "$85.00"
    assert receipt.date_display() == "March 05, 2024"
    assert receipt.error_message is None


def test_local_currency_display():
    receipt = build_receipt(terminal(SessionStatus.SUCCEEDED, currency="ZAR", exchange_rate=Decimal("18.5")),
                            "VodaPay", now=NOW)
    assert receipt.currency_display == "R1572.50"
    assert receipt.amount_usd == Decimal("85.00")
    assert receipt.transaction_id == NO_TRANSACTION
    assert receipt.short_transaction_id() == NO_TRANSACTION


def test_failure_messages():
    receipt = build_receipt(terminal(SessionStatus.FAILED, error_message="Your card was declined."), "Card Payment")
    assert receipt.outcome == ReceiptOutcome.FAILURE
    assert receipt.error_message == "Your card was declined."

    receipt = build_receipt(terminal(SessionStatus.FAILED), "Card Payment")
    assert receipt.error_message == "Payment failed. Please try again."


def test_receipt_is_immutable():
    receipt = build_receipt(terminal(SessionStatus.SUCCEEDED), "Card Payment")
    with pytest.raises(pydantic.ValidationError):
        receipt.amount_usd = Decimal("0")


@pytest.mark.parametrize("status", [SessionStatus.IDLE, SessionStatus.PROCESSING, SessionStatus.AWAITING_REDIRECT])
def test_only_terminal_sessions(status):
    with pytest.raises(ValidationError):
        build_receipt(terminal(status), "Card Payment")

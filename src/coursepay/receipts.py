"""
Receipt presenter — terminal session in, receipt out. No side effects.
"""

import secrets
import string
import time
from datetime import datetime
from typing import Optional

from coursepay.errors import ValidationError
from coursepay.models.receipt import NO_TRANSACTION, Receipt, ReceiptOutcome
from coursepay.models.session import PaymentSession, SessionStatus
from coursepay.pricing import format_display

_BASE36 = string.digits + string.ascii_uppercase


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
        if n == 0:
            return out


def generate_receipt_number(now_ms: Optional[int] = None) -> str:
    """``EF-<base36 millis>-<4 random>``"""
    stamp = _base36(now_ms if now_ms is not None else int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"EF-{stamp}-{suffix}"


def build_receipt(session: PaymentSession, method_label: str, now: Optional[datetime] = None) -> Receipt:
    if session.status not in (SessionStatus.SUCCEEDED, SessionStatus.FAILED):
        raise ValidationError(
            f"Cannot build a receipt for a session in state {session.status.value}",
            details={"session_id": session.session_id},
        )
    succeeded = session.status == SessionStatus.SUCCEEDED
    return Receipt(
        receipt_number=generate_receipt_number(),
        order_id=session.order_id,
        # a partial reference on failure is kept for support
        transaction_id=session.provider_reference or NO_TRANSACTION,
        timestamp_local=now or datetime.now().astimezone(),
        method_label=method_label,
        amount_usd=session.final_amount_usd,
        currency_display=format_display(session.final_amount_usd, session.currency, session.exchange_rate),
        outcome=ReceiptOutcome.SUCCESS if succeeded else ReceiptOutcome.FAILURE,
        error_message=None if succeeded else (session.error_message or "Payment failed. Please try again."),
    )

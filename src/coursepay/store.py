"""
Durable records for redirect handoffs.

When a checkout hands the browser to a redirect provider the in-memory
session may be gone by the time the buyer returns (page reload, process
restart). The provider reference in the return URL is the only thing that
survives, so everything needed to re-validate the payment is written here
under that reference.
"""

import hashlib
import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional, Protocol

from pydantic import BaseModel, Field, ValidationError

from coursepay.models.coupon import CouponApplication

logger = logging.getLogger("coursepay.store")

DEFAULT_STORE_DIR = Path.home() / ".coursepay" / "redirects"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PendingRedirect(BaseModel):
    provider_reference: str
    order_id: str
    gateway_id: str
    method_label: str = ""
    base_amount_usd: Decimal
    amount_usd: Decimal
    coupon: Optional[CouponApplication] = None
    currency: str = "USD"
    exchange_rate: Decimal = Decimal("1")
    settlement_amount: Decimal
    settlement_currency: str = "USD"
    created_at: datetime = Field(default_factory=_utcnow)
    settled: bool = False
    settled_at: Optional[datetime] = None


class RedirectStore(Protocol):
    def save(self, record: PendingRedirect) -> None:
        ...

    def get(self, provider_reference: str) -> Optional[PendingRedirect]:
        ...

    def mark_settled(self, provider_reference: str) -> None:
        ...


class InMemoryRedirectStore:
    """Process-local store. Only suitable for tests and single-process demos."""

    def __init__(self) -> None:
        self._records: dict[str, PendingRedirect] = {}

    def save(self, record: PendingRedirect) -> None:
        self._records[record.provider_reference] = record.model_copy(deep=True)

    def get(self, provider_reference: str) -> Optional[PendingRedirect]:
        record = self._records.get(provider_reference)
        return record.model_copy(deep=True) if record else None

    def mark_settled(self, provider_reference: str) -> None:
        record = self._records.get(provider_reference)
        if record:
            record.settled = True
            record.settled_at = _utcnow()


class JsonFileRedirectStore:
    """One JSON document per provider reference under ``directory``."""

    def __init__(self, directory: Optional[Path] = None):
        self._dir = Path(directory) if directory else DEFAULT_STORE_DIR

    def _path(self, provider_reference: str) -> Path:
        # references come from a URL; never use them as a path directly
        digest = hashlib.sha256(provider_reference.encode("utf-8")).hexdigest()
        return self._dir / f"{digest}.json"

    def save(self, record: PendingRedirect) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        path = self._path(record.provider_reference)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(record.model_dump(mode="json"), indent=2))
        tmp.replace(path)

    def get(self, provider_reference: str) -> Optional[PendingRedirect]:
        path = self._path(provider_reference)
        try:
            raw = json.loads(path.read_text())
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt redirect record {path}: {e}")
            return None
        try:
            record = PendingRedirect.model_validate(raw)
        except ValidationError as e:
            logger.error(f"Invalid redirect record {path}: {e}")
            return None
        if record.provider_reference != provider_reference:
            return None
        return record

    def mark_settled(self, provider_reference: str) -> None:
        record = self.get(provider_reference)
        if record is None:
            return
        record.settled = True
        record.settled_at = _utcnow()
        self.save(record)

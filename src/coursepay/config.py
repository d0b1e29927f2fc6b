"""
Client configuration, persisted as JSON in ~/.coursepay/config.json.
"""

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel

from coursepay.transport.http import DEFAULT_BASE_URL

CONFIG_FILE = Path.home() / ".coursepay" / "config.json"


class CheckoutConfig(BaseModel):
    base_url: str = DEFAULT_BASE_URL
    access_token: Optional[str] = None
    user_id: Optional[str] = None
    return_url: str = f"{DEFAULT_BASE_URL}/payment-success"
    cancel_url: str = f"{DEFAULT_BASE_URL}/payment-cancelled"
    # currency code -> units per USD; no entry means the currency cannot be used
    exchange_rates: dict[str, Decimal] = {}
    redirect_store_dir: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path] = None, **overrides: Any) -> "CheckoutConfig":
        path = path or CONFIG_FILE
        try:
            raw = json.loads(path.read_text())
        except (FileNotFoundError, json.JSONDecodeError):
            raw = {}
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(raw)

    def save(self, path: Optional[Path] = None) -> None:
        path = path or CONFIG_FILE
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(self.model_dump(mode="json", exclude_none=True), indent=2))

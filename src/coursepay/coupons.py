"""
Coupon validation against the backend.
"""

from decimal import Decimal
from typing import Any, Optional

from coursepay.errors import InvalidCouponError, TransportError
from coursepay.models.coupon import CouponApplication
from coursepay.transport.http import HttpClient


def _decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return Decimal(str(value))


class CouponsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def validate(self, code: str, order_id: str) -> CouponApplication:
        """POST /cart/apply-coupon"""
        try:
            data = await self._http.post("/cart/apply-coupon", {"code": code.upper(), "courseId": order_id})
        except TransportError as e:
            if e.status_code is not None and 400 <= e.status_code < 500:
                raise InvalidCouponError(str(e.body or "Invalid promo code"), details={"code": code}) from e
            raise
        raw = (data or {}).get("coupon") if isinstance(data, dict) else None
        if not raw:
            raise InvalidCouponError(details={"code": code})
        return CouponApplication(
            code=raw.get("code") or code,
            discount_type=raw.get("discountType", "percentage"),
            discount_value=_decimal(raw.get("discountValue")) or Decimal("0"),
            max_discount=_decimal(raw.get("maxDiscount")),
            min_order_amount=_decimal(raw.get("minOrderAmount")),
            description=raw.get("description"),
        )

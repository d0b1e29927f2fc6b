"""
Order source backed by the course catalogue API.
"""

from decimal import Decimal
from typing import Any

from coursepay.errors import OrderNotFoundError, TransportError
from coursepay.models.order import Order
from coursepay.transport.http import HttpClient


class OrdersAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def get_order(self, order_id: str) -> Order:
        """GET /courses/{id}/checkout — price and currency of a course."""
        try:
            data: dict[str, Any] = await self._http.get(f"/courses/{order_id}/checkout")
        except TransportError as e:
            if e.status_code == 404:
                raise OrderNotFoundError(order_id) from e
            raise
        if not data:
            raise OrderNotFoundError(order_id)
        return Order(
            order_id=str(data.get("id", order_id)),
            base_amount_usd=Decimal(str(data.get("price") or "0")),
            currency=data.get("currency") or "USD",
            title=data.get("title"),
        )

"""
Wallet service backed by the shop wallet API.
"""

from decimal import Decimal

from coursepay.errors import InsufficientBalanceError, TransportError
from coursepay.models.order import WalletBalance, WalletDebit
from coursepay.transport.http import HttpClient


class WalletAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def get_balance(self, user_id: str) -> WalletBalance:
        """GET /shop/wallet — the token identifies the user."""
        data = await self._http.get("/shop/wallet")
        return WalletBalance(balance_usd=Decimal(str((data or {}).get("balance") or "0")))

    async def debit(self, user_id: str, amount_usd: Decimal, order_id: str) -> WalletDebit:
        """POST /courses/purchase-with-wallet. Balance check and debit run in one server transaction."""
        try:
            data = await self._http.post("/courses/purchase-with-wallet", {
                "courseId": order_id,
                "amount": str(amount_usd),
            })
        except TransportError as e:
            if e.status_code == 402 or "insufficient" in str(e.body or "").lower():
                raise InsufficientBalanceError(str(e.body or "Insufficient wallet balance"),
                                               details={"amount_usd": str(amount_usd)}) from e
            raise
        data = data or {}
        balance = data.get("balance")
        return WalletDebit(
            transaction_id=str(data.get("transactionId") or data.get("paymentId") or ""),
            amount_usd=Decimal(str(data.get("amount") or amount_usd)),
            balance_usd=Decimal(str(balance)) if balance is not None else None,
        )

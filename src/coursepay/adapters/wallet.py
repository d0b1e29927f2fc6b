"""
Internal ledger balance ("System Wallet").
"""

from typing import Optional

from coursepay.adapters.base import GatewayAdapter, Settlement
from coursepay.errors import InsufficientBalanceError, ValidationError
from coursepay.models.gateway import GatewayDescriptor, PaymentMethodKind
from coursepay.models.order import ChargeResult, ChargeStatus, ProviderIntent
from coursepay.models.session import PaymentSession
from coursepay.pricing import format_amount
from coursepay.services import WalletService


def _shortfall(balance, amount) -> InsufficientBalanceError:
    return InsufficientBalanceError(
        f"Insufficient wallet balance. You have {format_amount(balance)}, but need {format_amount(amount)}.",
        details={"balance_usd": str(balance), "amount_usd": str(amount)},
    )


class WalletAdapter(GatewayAdapter):
    kind = PaymentMethodKind.WALLET

    def __init__(self, descriptor: GatewayDescriptor, wallet: WalletService, user_id: Optional[str]):
        super().__init__(descriptor)
        if not user_id:
            raise ValidationError("Wallet payments need a signed-in user")
        self._wallet = wallet
        self._user_id = user_id
        self._order_id = ""

    async def prepare(self, session: PaymentSession, settlement: Settlement) -> ProviderIntent:
        # advisory check against the balance read at session start; no call out
        if session.wallet_balance_usd is not None and session.wallet_balance_usd < settlement.amount:
            raise _shortfall(session.wallet_balance_usd, settlement.amount)
        self._order_id = session.order_id
        return ProviderIntent(gateway_id=self.gateway_id, amount=settlement.amount, currency=settlement.currency)

    async def confirm(self, intent: ProviderIntent, instrument: Optional[str]) -> ChargeResult:
        balance = await self._charging(self._wallet.get_balance(self._user_id))
        if balance.balance_usd < intent.amount:
            raise _shortfall(balance.balance_usd, intent.amount)
        # the debit re-checks server side; a concurrent spend still fails here
        ack = await self._charging(self._wallet.debit(self._user_id, intent.amount, self._order_id))
        return ChargeResult(
            reference=ack.transaction_id,
            status=ChargeStatus.SUCCEEDED,
            amount=ack.amount_usd,
            currency="USD",
        )

    def describe(self) -> str:
        return "System Wallet"

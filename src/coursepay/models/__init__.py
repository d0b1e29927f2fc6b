from coursepay.models.coupon import CouponApplication, DiscountType
from coursepay.models.gateway import GatewayCapabilities, GatewayDescriptor, PaymentMethodKind, SavedPaymentMethod
from coursepay.models.order import (
    ChargeResult,
    ChargeStatus,
    Order,
    ProviderIntent,
    WalletBalance,
    WalletDebit,
)
from coursepay.models.receipt import NO_TRANSACTION, Receipt, ReceiptOutcome
from coursepay.models.session import PaymentSession, SessionStatus

__all__ = [
    "CouponApplication",
    "DiscountType",
    "GatewayCapabilities",
    "GatewayDescriptor",
    "PaymentMethodKind",
    "SavedPaymentMethod",
    "ChargeResult",
    "ChargeStatus",
    "Order",
    "ProviderIntent",
    "WalletBalance",
    "WalletDebit",
    "NO_TRANSACTION",
    "Receipt",
    "ReceiptOutcome",
    "PaymentSession",
    "SessionStatus",
]

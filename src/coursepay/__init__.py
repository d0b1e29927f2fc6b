"""
coursepay — checkout orchestration for the course marketplace.

Pluggable gateway adapters (card, redirect, wallet, saved card), coupon
pricing, and a PaymentSession state machine that ends in a receipt.
"""

from coursepay.adapters import AdapterFactory, GatewayAdapter
from coursepay.client import AsyncCoursePay, CoursePay
from coursepay.config import CheckoutConfig
from coursepay.errors import (
    AlreadyProcessingError,
    ChargeError,
    CheckoutError,
    ConfigurationError,
    CouponError,
    CouponExceedsAmountError,
    InsufficientBalanceError,
    IntentCreationError,
    InvalidCouponError,
    NoGatewaysAvailableError,
    OrderNotFoundError,
    RedirectValidationError,
    TransportError,
    UnsupportedGatewayError,
    ValidationError,
)
from coursepay.models import PaymentSession, Receipt, SessionStatus
from coursepay.orchestrator import CheckoutOrchestrator
from coursepay.registry import GatewayRegistry

__version__ = "0.1.0"
__all__ = [
    "AsyncCoursePay",
    "CoursePay",
    "CheckoutConfig",
    "CheckoutOrchestrator",
    "GatewayRegistry",
    "AdapterFactory",
    "GatewayAdapter",
    "PaymentSession",
    "Receipt",
    "SessionStatus",
    "CheckoutError",
    "ValidationError",
    "ConfigurationError",
    "NoGatewaysAvailableError",
    "UnsupportedGatewayError",
    "OrderNotFoundError",
    "CouponError",
    "InvalidCouponError",
    "CouponExceedsAmountError",
    "InsufficientBalanceError",
    "IntentCreationError",
    "ChargeError",
    "AlreadyProcessingError",
    "RedirectValidationError",
    "TransportError",
]

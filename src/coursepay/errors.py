"""
Checkout error types.

Every error carries a stable ``code`` so sessions and receipts can record
what went wrong without holding on to the exception object.
"""

from typing import Any, Optional


class CheckoutError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class ValidationError(CheckoutError):
    """Missing or invalid input, detected before any external call."""

    def __init__(self, message: str, code: str = "validation_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class ConfigurationError(CheckoutError):
    def __init__(self, message: str, code: str = "configuration_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class NoGatewaysAvailableError(ConfigurationError):
    def __init__(self, message: str = "No payment gateways are enabled"):
        super().__init__(message, code="no_gateways_available")


class UnsupportedGatewayError(ConfigurationError):
    def __init__(self, gateway_id: str):
        super().__init__(
            f"Payment gateway '{gateway_id}' is not enabled",
            code="unsupported_gateway",
            details={"gateway_id": gateway_id},
        )


class OrderNotFoundError(CheckoutError):
    def __init__(self, order_id: str):
        super().__init__("order_not_found", f"Order {order_id} not found", {"order_id": order_id})


class CouponError(CheckoutError):
    def __init__(self, message: str, code: str = "coupon_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class InvalidCouponError(CouponError):
    def __init__(self, message: str = "Invalid coupon code", details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="invalid_coupon", details=details)


class CouponExceedsAmountError(CouponError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message, code="coupon_exceeds_amount", details=details)


class InsufficientBalanceError(CheckoutError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("insufficient_balance", message, details)


class IntentCreationError(CheckoutError):
    """Provider unreachable, or it rejected creating the intent/order."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("intent_creation_failed", message, details)


class ChargeError(CheckoutError):
    """Provider declined the confirmation."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("charge_failed", message, details)


class AlreadyProcessingError(CheckoutError):
    def __init__(self, session_id: str, status: str):
        super().__init__(
            "already_processing",
            f"Session {session_id} is already {status}",
            {"session_id": session_id, "status": status},
        )


class RedirectValidationError(CheckoutError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("redirect_validation_failed", message, details)


class TransportError(CheckoutError):
    def __init__(self, message: str, status_code: Optional[int] = None, body: Any = None):
        super().__init__("http_error", message, {"status_code": status_code, "body": body})
        self.status_code = status_code
        self.body = body

"""
Discount engine and currency presenter.

Everything here is pure. Amounts are USD ``Decimal``s; display conversion
never feeds back into what is charged.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from coursepay.errors import ConfigurationError, ValidationError
from coursepay.models.coupon import CouponApplication, DiscountType

CENT = Decimal("0.01")
ZERO = Decimal("0")
SETTLEMENT_CURRENCY = "USD"

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$", "CAD": "C$", "GBP": "£", "EUR": "€", "AUD": "A$", "NZD": "NZ$",
    "JPY": "¥", "CNY": "¥", "INR": "₹", "BRL": "R$", "MXN": "$", "ZAR": "R",
    "NGN": "₦", "KES": "KSh", "GHS": "GH₵", "EGP": "E£", "MAD": "MAD",
    "KRW": "₩", "THB": "฿", "IDR": "Rp", "MYR": "RM", "PHP": "₱", "SGD": "S$",
    "TRY": "₺", "ILS": "₪", "PLN": "zł", "CHF": "CHF", "SEK": "kr", "NOK": "kr",
}

Number = Union[Decimal, int, str]


def _money(value: Number) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_discount(base_amount_usd: Number, coupon: Optional[CouponApplication]) -> Decimal:
    """Discount for ``coupon`` on ``base_amount_usd``, clamped to [0, base]."""
    base = Decimal(base_amount_usd)
    if base < 0:
        raise ValidationError("Base amount cannot be negative", details={"base_amount_usd": str(base)})
    if coupon is None or base == 0:
        return ZERO

    if coupon.discount_type == DiscountType.PERCENTAGE:
        discount = base * coupon.discount_value / Decimal(100)
        if coupon.max_discount is not None:
            discount = min(discount, coupon.max_discount)
    else:
        discount = min(coupon.discount_value, base)

    return _money(max(min(discount, base), ZERO))


def compute_final(base_amount_usd: Number, discount_amount_usd: Number) -> Decimal:
    return _money(max(Decimal(base_amount_usd) - Decimal(discount_amount_usd), ZERO))


def to_display(amount_usd: Number, rate: Number) -> Decimal:
    """USD amount shown in the buyer's currency, rounded for presentation."""
    rate = Decimal(rate)
    if rate <= 0:
        raise ConfigurationError(f"Exchange rate must be positive, got {rate}")
    return _money(Decimal(amount_usd) * rate)


def to_settlement(amount_usd: Number, rate: Number) -> Decimal:
    """Converted amount for a provider that settles in a local currency.

    Same arithmetic as :func:`to_display`; kept separate so the single
    settlement conversion per charge is easy to find.
    """
    return to_display(amount_usd, rate)


def to_minor_units(amount: Number) -> int:
    return int((_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def currency_symbol(currency: str) -> str:
    code = currency.upper()
    return CURRENCY_SYMBOLS.get(code, code + " ")


def format_amount(amount: Number, currency: str = SETTLEMENT_CURRENCY) -> str:
    return f"{currency_symbol(currency)}{_money(amount):.2f}"


def format_display(amount_usd: Number, currency: str, rate: Number) -> str:
    """e.g. ``format_display(85, "ZAR", "18.5") == "R1572.50"``"""
    return format_amount(to_display(amount_usd, rate), currency)

# payments/services/amounts.py
"""
Gateway amount normalization.

Hard rules:
- EVERY amount sent to the gateway goes through to_gateway_amount()
  (line items, tax, shipping, fee, discount, credit top-ups)
- Zero-decimal currencies are sent in whole units, everything else in cents
- ROUND_HALF_UP, never banker's rounding
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")

# Currencies whose smallest unit is one full unit (Stripe's list)
ZERO_DECIMAL_CURRENCIES = frozenset(
    {
        "BIF",
        "CLP",
        "DJF",
        "GNF",
        "JPY",
        "KMF",
        "KRW",
        "MGA",
        "PYG",
        "RWF",
        "UGX",
        "VND",
        "VUV",
        "XAF",
        "XOF",
        "XPF",
    }
)


def is_zero_decimal(currency: str) -> bool:
    return str(currency or "").strip().upper() in ZERO_DECIMAL_CURRENCIES


def _to_decimal(amount) -> Decimal:
    if isinstance(amount, float):
        amount = str(amount)
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError, TypeError) as exc:
        raise ValueError(f"amount must be a valid Decimal, got {amount!r}") from exc
    if not value.is_finite():
        raise ValueError(f"amount must be finite, got {amount!r}")
    return value


def to_gateway_amount(amount, currency: str) -> int:
    """
    Decimal major units -> integer gateway units.

    19.99 USD -> 1999, 19.99 JPY -> 20.
    """
    value = _to_decimal(amount)
    if not is_zero_decimal(currency):
        value = value * Decimal("100")
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_gateway_amount(units, currency: str) -> Decimal:
    """Integer gateway units -> Decimal major units (2dp)."""
    try:
        value = Decimal(int(units))
    except (ValueError, TypeError) as exc:
        raise ValueError(f"gateway amount must be an integer, got {units!r}") from exc
    if not is_zero_decimal(currency):
        value = value / Decimal("100")
    return value.quantize(TWOPLACES, rounding=ROUND_HALF_UP)

"""
Monetary precision helpers.

Key Principles:
1. NEVER use float for money
2. Quantize once, at the point a value is stored or shown
3. Use ROUND_HALF_UP, which is what receipts and tills expect
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

ZERO = Decimal("0.00")

# Currency minor unit exponents (how many decimal places)
CURRENCY_EXPONENT = {
    "PHP": 2,  # Philippine Peso (centavos)
    "USD": 2,  # United States Dollar (cents)
    "EUR": 2,  # Euro (cents)
    "JPY": 0,  # Japanese Yen (no subunit)
    "KRW": 0,  # South Korean Won (no subunit)
    "KWD": 3,  # Kuwaiti Dinar (fils)
}


def currency_exponent(currency: str) -> int:
    """
    Get the number of decimal places for a currency.

    Examples:
        >>> currency_exponent("PHP")
        2
        >>> currency_exponent("JPY")
        0
    """
    return CURRENCY_EXPONENT.get((currency or "").upper(), 2)


def to_decimal(value: Union[Decimal, int, str, None]) -> Decimal:
    """Coerce ints, strings and None into Decimal. Floats are rejected."""
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Use Decimal or str for money, never float")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def quantize(amount: Union[Decimal, int, str, None], currency: str = "PHP") -> Decimal:
    """
    Quantize an amount to the currency's minor unit.

    Examples:
        >>> quantize(Decimal("10.005"))
        Decimal('10.01')
        >>> quantize("100", "JPY")
        Decimal('100')
    """
    exponent = currency_exponent(currency)
    return to_decimal(amount).quantize(Decimal(1).scaleb(-exponent), rounding=ROUND_HALF_UP)


def sum_money(amounts: Iterable[Decimal], currency: str = "PHP") -> Decimal:
    """Sum already-quantized amounts and quantize the result."""
    total = sum((to_decimal(a) for a in amounts), ZERO)
    return quantize(total, currency)


def inclusive_tax_portion(gross: Decimal, rate: Decimal, currency: str = "PHP") -> Decimal:
    """
    Tax embedded in a tax-inclusive amount: gross * rate / (1 + rate).

    Examples:
        >>> inclusive_tax_portion(Decimal("112.00"), Decimal("0.12"))
        Decimal('12.00')
        >>> inclusive_tax_portion(Decimal("50.00"), Decimal("0"))
        Decimal('0.00')
    """
    rate = to_decimal(rate)
    if rate <= 0:
        return quantize(ZERO, currency)
    return quantize(to_decimal(gross) * rate / (Decimal("1") + rate), currency)

"""
Module: settlement_kernel.db.types
Responsibility: Money arithmetic helpers shared by every calculator, so
    precision and rounding are identical across fee calculation,
    partial-cancel reversal and batch aggregation.
Architecture position: Kernel > DB.  May be imported by models/, domain/,
    services/ and selectors/.

Invariants enforced:
    - Amounts are signed integers in minor currency units.  No floats.
    - floor_minor_units() is the ONLY sanctioned rounding for settlement
      legs; every leg is floored and the distributor residual absorbs the
      remainder.
    - validate_currency() is the canonical ISO 4217 check.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

from settlement_kernel.exceptions import InvalidCurrencyError

RATIO_DECIMAL_PLACES = 10


def floor_minor_units(value: Decimal) -> int:
    """
    Floor a decimal amount to whole minor units.

    Used for every fee, margin and proportional reversal so that rounding
    loss is always non-negative and lands on the residual leg.
    """
    return int(value.to_integral_value(rounding=ROUND_FLOOR))


def portion_of(amount: int, rate: Decimal) -> int:
    """floor(amount * rate) for a non-negative amount."""
    return floor_minor_units(Decimal(amount) * rate)


def ratio_of(part: int, whole: int) -> Decimal:
    """
    |part| / |whole| quantized to RATIO_DECIMAL_PLACES, ROUND_HALF_UP.

    Raises:
        ZeroDivisionError: whole is zero.
    """
    if whole == 0:
        raise ZeroDivisionError("ratio denominator is zero")
    quantum = Decimal(1).scaleb(-RATIO_DECIMAL_PLACES)
    return (Decimal(abs(part)) / Decimal(abs(whole))).quantize(
        quantum, rounding=ROUND_HALF_UP
    )


ISO_4217_CURRENCIES: frozenset[str] = frozenset({
    "USD", "EUR", "GBP", "JPY", "CHF", "CAD", "AUD", "NZD",
    "AED", "ARS", "BDT", "BGN", "BHD", "BRL", "CLP", "CNY", "COP", "CZK",
    "DKK", "EGP", "HKD", "HUF", "IDR", "ILS", "INR", "ISK", "KES", "KRW",
    "KWD", "KZT", "LKR", "MAD", "MNT", "MXN", "MYR", "NGN", "NOK", "PEN",
    "PHP", "PKR", "PLN", "QAR", "RON", "RSD", "RUB", "SAR", "SEK", "SGD",
    "THB", "TRY", "TWD", "UAH", "UZS", "VND", "ZAR",
})


def validate_currency(currency: str) -> str:
    """
    Return the upper-cased ISO 4217 code.

    Raises:
        InvalidCurrencyError: not a known 3-letter code.
    """
    if not currency or not isinstance(currency, str):
        raise InvalidCurrencyError(str(currency))

    normalized = currency.upper().strip()
    if len(normalized) != 3 or normalized not in ISO_4217_CURRENCIES:
        raise InvalidCurrencyError(currency)
    return normalized

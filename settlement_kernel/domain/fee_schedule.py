"""
FeeSchedule -- typed fee-rate table of one organization or merchant.

Maps a payment-method code (``CARD``, ``TRANSFER`` ...) to a fractional
rate, with the reserved ``"default"`` key used when a code has no entry.
Rates are parsed once, at configuration time, so the calculators only ever
see ``Decimal`` values.

Accepted encodings per value: ``int``, ``Decimal``, ``float`` (converted
through its repr, so ``0.03`` becomes ``Decimal("0.03")``) and decimal text
(``"0.025"``).  Anything else, including ``bool``, is rejected.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any

from settlement_kernel.exceptions import InvalidFeeRateError

DEFAULT_KEY = "default"

_MIN_RATE = Decimal("0")
_MAX_RATE = Decimal("1")


def parse_rate(key: str, value: Any) -> Decimal:
    """
    Normalize one configured rate to Decimal.

    Raises:
        InvalidFeeRateError: unsupported encoding, unparsable text, or
            non-finite value.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidFeeRateError(key, value, "unsupported encoding")
    if isinstance(value, Decimal):
        rate = value
    elif isinstance(value, int):
        rate = Decimal(value)
    elif isinstance(value, float):
        rate = Decimal(repr(value))
    elif isinstance(value, str):
        try:
            rate = Decimal(value.strip())
        except InvalidOperation as exc:
            raise InvalidFeeRateError(key, value, "not a decimal number") from exc
    else:
        raise InvalidFeeRateError(key, value, "unsupported encoding")

    if not rate.is_finite():
        raise InvalidFeeRateError(key, value, "not a finite number")
    return rate


@dataclass(frozen=True)
class FeeSchedule:
    """Immutable map of payment-method code to rate.

    Build through ``from_mapping`` to get range validation; the constructor
    trusts its input.
    """

    rates: Mapping[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", MappingProxyType(dict(self.rates)))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any] | None, validate_range: bool = True) -> "FeeSchedule":
        """
        Parse a raw configuration map.

        Raises:
            InvalidFeeRateError: a value has an unsupported encoding, or
                ``validate_range`` is set and a rate is outside [0, 1].
        """
        if raw is None:
            return cls()
        if not isinstance(raw, Mapping):
            raise InvalidFeeRateError("<schedule>", raw, "fee configuration must be a mapping")

        rates: dict[str, Decimal] = {}
        for key, value in raw.items():
            rate = parse_rate(str(key), value)
            if validate_range and not (_MIN_RATE <= rate <= _MAX_RATE):
                raise InvalidFeeRateError(str(key), value, "rate must be between 0 and 1")
            rates[str(key)] = rate
        return cls(rates)

    def rate_for(self, payment_method_code: str) -> Decimal | None:
        """Rate for the code, else the default rate, else None."""
        rate = self.rates.get(payment_method_code)
        if rate is not None:
            return rate
        return self.rates.get(DEFAULT_KEY)

    @property
    def default_rate(self) -> Decimal | None:
        return self.rates.get(DEFAULT_KEY)

    def to_json(self) -> dict[str, str]:
        """JSON-safe form; decimals kept as strings to avoid float drift."""
        return {key: str(rate) for key, rate in self.rates.items()}

    def __iter__(self) -> Iterator[str]:
        return iter(self.rates)

    def __len__(self) -> int:
        return len(self.rates)

    def __bool__(self) -> bool:
        return bool(self.rates)

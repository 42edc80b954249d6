"""
Values -- immutable monetary value objects.

Responsibility:
    ``Currency`` and ``Money`` replace the untyped strings and floats that
    amounts and rates otherwise travel as.  All currency arithmetic is
    ``Decimal``; rounding to the minor unit is always explicit.

Failure modes:
    - ValueError on unknown currency codes or unparseable amounts.
    - TypeError when a float is passed as an amount.
    - ValueError when arithmetic mixes currencies.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

# ISO 4217 minor units for the currencies the practice invoices in.
_MINOR_UNITS: dict[str, int] = {
    "USD": 2,
    "CAD": 2,
    "EUR": 2,
    "GBP": 2,
    "AUD": 2,
    "NZD": 2,
    "CHF": 2,
    "SEK": 2,
    "NOK": 2,
    "DKK": 2,
    "MXN": 2,
    "INR": 2,
    "SGD": 2,
    "JPY": 0,
    "KRW": 0,
    "KWD": 3,
    "BHD": 3,
}


def to_decimal(value: Decimal | str | int) -> Decimal:
    """Convert to Decimal, refusing floats."""
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to build a Decimal from {type(value).__name__}: {value!r}")
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ValueError(f"Invalid decimal value: {value!r}") from e


@dataclass(frozen=True, slots=True)
class Currency:
    """ISO 4217 currency code, normalised to upper case."""

    code: str

    def __post_init__(self) -> None:
        normalized = self.code.upper().strip() if self.code else ""
        if normalized not in _MINOR_UNITS:
            raise ValueError(f"Unsupported currency code: {self.code!r}")
        object.__setattr__(self, "code", normalized)

    @property
    def decimal_places(self) -> int:
        return _MINOR_UNITS[self.code]

    @property
    def quantum(self) -> Decimal:
        """Smallest representable amount, e.g. ``0.01`` for USD."""
        return Decimal(1).scaleb(-self.decimal_places)

    def __str__(self) -> str:
        return self.code


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount value object.

    Guarantees:
        - ``amount`` is always a Decimal (never float).
        - Arithmetic never mixes currencies.
        - No implicit rounding; call ``round()``.
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        """Zero in the currency's minor unit, e.g. ``0.00 USD``."""
        if isinstance(currency, str):
            currency = Currency(currency)
        return cls(amount=Decimal(0).quantize(currency.quantum), currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's minor unit (half-up by default)."""
        return Money(
            amount=self.amount.quantize(self.currency.quantum, rounding=rounding),
            currency=self.currency,
        )

    def _check_currency(self, other: Money, op: str) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot {op} Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "add")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "subtract")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __neg__(self) -> Money:
        return Money(amount=-self.amount, currency=self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, float):
            return NotImplemented
        return Money(amount=self.amount * to_decimal(factor), currency=self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency.code!r})"


def sum_money(values: list[Money] | tuple[Money, ...], currency: str | Currency) -> Money:
    """Exact sum of a sequence of Money; zero in ``currency`` when empty."""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total

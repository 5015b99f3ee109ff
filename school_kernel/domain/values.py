"""
Values -- Currency and Money for fees, payments, payouts and expenses.

Architecture position:
    Kernel > Domain.  Pure, no I/O; depends only on the currency table and
    the kernel exceptions.

Invariants:
    - Money.amount is a finite Decimal.  Floats are converted through
      ``str`` so ``12.5`` becomes ``Decimal("12.5")``.
    - A Currency code is upper-case and present in CurrencyRegistry.
    - Adding, subtracting or comparing two amounts in different currencies
      raises CurrencyMismatchError.
    - Nothing rounds implicitly.  Accrual splits (a quarterly fee over
      three months) stay exact until ``round()`` is called for display.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering
from typing import Iterable

from school_kernel.domain.currency import CurrencyRegistry
from school_kernel.exceptions import CurrencyMismatchError, InvalidCurrencyError

Scalar = Decimal | int | str


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid amount: {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def _as_currency(value: Currency | str) -> Currency:
    return value if isinstance(value, Currency) else Currency(value)


@dataclass(frozen=True, slots=True)
class Currency:
    """An ISO 4217 code accepted by the ledger."""

    code: str

    def __post_init__(self) -> None:
        info = CurrencyRegistry.get_info(self.code)
        if info is None:
            raise InvalidCurrencyError(str(self.code))
        object.__setattr__(self, "code", info.code)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def symbol(self) -> str:
        return CurrencyRegistry.get_symbol(self.code)

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """A Decimal amount tied to its Currency."""

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", _to_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Scalar, currency: Currency | str) -> Money:
        """
        Build Money from a raw amount.

        Raises:
            ValueError: the amount is not a finite number.
            InvalidCurrencyError: the currency code is not supported.
        """
        return cls(amount=_to_decimal(amount), currency=_as_currency(currency))

    @classmethod
    def zero(cls, currency: Currency | str) -> Money:
        return cls(amount=Decimal("0"), currency=_as_currency(currency))

    @property
    def is_zero(self) -> bool:
        return self.amount.is_zero()

    @property
    def is_positive(self) -> bool:
        return self.amount > 0

    @property
    def is_negative(self) -> bool:
        return self.amount < 0

    def clamped(self) -> Money:
        """Negative amounts count as zero in aggregates."""
        return Money.zero(self.currency) if self.is_negative else self

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        quantum = CurrencyRegistry.get_info(self.currency.code).quantum
        return self._with(self.amount.quantize(quantum, rounding=rounding))

    def _with(self, amount: Decimal) -> Money:
        return Money(amount=amount, currency=self.currency)

    def _other_amount(self, other: Money) -> Decimal:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency.code, other.currency.code)
        return other.amount

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount + self._other_amount(other))

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return self._with(self.amount - self._other_amount(other))

    def __neg__(self) -> Money:
        return self._with(-self.amount)

    def __abs__(self) -> Money:
        return self._with(abs(self.amount))

    def __mul__(self, factor: Scalar) -> Money:
        if not isinstance(factor, (Decimal, int, str)) or isinstance(factor, bool):
            return NotImplemented
        return self._with(self.amount * _to_decimal(factor))

    __rmul__ = __mul__

    def __truediv__(self, divisor: Scalar) -> Money:
        if not isinstance(divisor, (Decimal, int, str)) or isinstance(divisor, bool):
            return NotImplemented
        return self._with(self.amount / _to_decimal(divisor))

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        return self.amount < self._other_amount(other)

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


def sum_money(amounts: Iterable[Money], currency: Currency | str) -> Money:
    """Total of ``amounts``; zero in ``currency`` when empty."""
    total = Money.zero(currency)
    for amount in amounts:
        total = total + amount
    return total

"""Currency table for the school ledger: precision and display symbols."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Precision and display data for one ISO 4217 code."""

    code: str
    decimal_places: int
    name: str
    symbol: str

    @property
    def quantize_string(self) -> str:
        if not self.decimal_places:
            return "1"
        return "0." + "0" * (self.decimal_places - 1) + "1"

    @property
    def quantum(self) -> Decimal:
        return Decimal(self.quantize_string)


def _table(*rows: tuple[str, int, str, str]) -> dict[str, CurrencyInfo]:
    return {row[0]: CurrencyInfo(*row) for row in rows}


def _normalize(code: object) -> str | None:
    if not isinstance(code, str):
        return None
    return code.strip().upper() or None


class CurrencyRegistry:
    """Currencies a school may bill in.  Fees and payouts are INR by default."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = _table(
        ("INR", 2, "Indian Rupee", "₹"),
        ("LKR", 2, "Sri Lankan Rupee", "Rs "),
        ("NPR", 2, "Nepalese Rupee", "Rs "),
        ("AED", 2, "UAE Dirham", "AED "),
        ("SGD", 2, "Singapore Dollar", "S$"),
        ("USD", 2, "US Dollar", "$"),
        ("GBP", 2, "Pound Sterling", "£"),
        ("EUR", 2, "Euro", "€"),
        ("AUD", 2, "Australian Dollar", "A$"),
        ("CAD", 2, "Canadian Dollar", "C$"),
        ("JPY", 0, "Japanese Yen", "¥"),
    )

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        key = _normalize(code)
        return cls._CURRENCIES.get(key) if key else None

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return cls.get_info(code) is not None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return cls.DEFAULT_DECIMAL_PLACES if info is None else info.decimal_places

    @classmethod
    def get_symbol(cls, code: str) -> str:
        """Display prefix for amounts; unknown codes render as ``"<code> "``."""
        info = cls.get_info(code)
        return f"{code} " if info is None else info.symbol

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)

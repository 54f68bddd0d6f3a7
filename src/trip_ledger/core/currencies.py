from __future__ import annotations

import enum
from decimal import ROUND_HALF_UP, Decimal


class CurrencyCode(str, enum.Enum):
    HUF = "HUF"
    EUR = "EUR"
    USD = "USD"
    HRK = "HRK"


HOME_CURRENCY = CurrencyCode.HUF

_SYMBOLS: dict[CurrencyCode, str] = {
    CurrencyCode.HUF: "Ft",
    CurrencyCode.EUR: "€",
    CurrencyCode.USD: "$",
    CurrencyCode.HRK: "kn",
}

_ALIASES: dict[str, CurrencyCode] = {
    "FT": CurrencyCode.HUF,
    "FORINT": CurrencyCode.HUF,
    "€": CurrencyCode.EUR,
    "EURO": CurrencyCode.EUR,
    "$": CurrencyCode.USD,
    "US$": CurrencyCode.USD,
    "KN": CurrencyCode.HRK,
    "KUNA": CurrencyCode.HRK,
}

# Symbols rendered after the number.
_SUFFIX_CURRENCIES = {CurrencyCode.HUF, CurrencyCode.HRK}


def normalize_currency(value: object) -> CurrencyCode | None:
    if isinstance(value, CurrencyCode):
        return value
    if not isinstance(value, str):
        return None
    raw = value.strip().upper()
    if not raw:
        return None
    try:
        return CurrencyCode(raw)
    except ValueError:
        return _ALIASES.get(raw)


def format_amount(
    amount: Decimal | int | str, currency: CurrencyCode, *, decimals: bool = False
) -> str:
    """
    Render an amount for display.

    HUF and HRK put the symbol after the number ("123,456 Ft"), EUR and USD before it ("€123").
    """
    value = Decimal(str(amount))
    exp = Decimal("0.01") if decimals else Decimal("1")
    formatted = f"{value.quantize(exp, rounding=ROUND_HALF_UP):,}"
    symbol = _SYMBOLS[currency]
    if currency in _SUFFIX_CURRENCIES:
        return f"{formatted} {symbol}"
    return f"{symbol}{formatted}"

"""
Fixed-rate conversion between the supported currencies and the trip's home currency.

Pure functions: no database access and no rounding. A rate means
"1 unit of foreign currency = N units of home currency".
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from trip_ledger.core.currencies import HOME_CURRENCY, CurrencyCode
from trip_ledger.core.errors import UnknownCurrency

_ONE = Decimal("1")


@dataclass(frozen=True)
class RateSet:
    rates: Mapping[CurrencyCode, Decimal] = field(default_factory=dict)
    home: CurrencyCode = HOME_CURRENCY

    def __post_init__(self) -> None:
        for currency, rate in self.rates.items():
            if not isinstance(rate, Decimal) or not rate.is_finite() or rate <= 0:
                raise ValueError(f"Rate for {currency.value} must be a positive decimal")
        # Freeze the mapping so a RateSet cannot drift after construction.
        object.__setattr__(self, "rates", dict(self.rates))

    def rate_for(self, currency: CurrencyCode | str) -> Decimal:
        code = _require_currency(currency)
        if code == self.home:
            return _ONE
        rate = self.rates.get(code)
        if rate is None:
            raise UnknownCurrency(code.value)
        return rate

    def supports(self, currency: CurrencyCode | str) -> bool:
        try:
            code = _require_currency(currency)
        except UnknownCurrency:
            return False
        return code == self.home or code in self.rates


def to_home(amount: Decimal | int | str, currency: CurrencyCode | str, rates: RateSet) -> Decimal:
    value = _as_decimal(amount)
    code = _require_currency(currency)
    if code == rates.home:
        return value
    return value * rates.rate_for(code)


def from_home(
    home_amount: Decimal | int | str, currency: CurrencyCode | str, rates: RateSet
) -> Decimal:
    value = _as_decimal(home_amount)
    code = _require_currency(currency)
    if code == rates.home:
        return value
    return value / rates.rate_for(code)


def _require_currency(currency: CurrencyCode | str) -> CurrencyCode:
    if isinstance(currency, CurrencyCode):
        return currency
    try:
        return CurrencyCode(str(currency).strip().upper())
    except ValueError as e:
        raise UnknownCurrency(currency) from e


def _as_decimal(amount: Decimal | int | str) -> Decimal:
    if isinstance(amount, Decimal):
        return amount
    if isinstance(amount, float):
        raise TypeError("Use Decimal or str amounts, not float")
    try:
        return Decimal(str(amount).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e

from __future__ import annotations

import uuid
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import exists, select
from sqlalchemy.orm import Session

from trip_ledger.core.currencies import CurrencyCode, normalize_currency
from trip_ledger.core.errors import InvalidValue, RatesLocked, TripNotFound, UnknownCurrency
from trip_ledger.core.logging import get_logger, log_event
from trip_ledger.modules.expenses.models import Expense
from trip_ledger.modules.fx.converter import RateSet
from trip_ledger.modules.fx.models import FxRate
from trip_ledger.modules.trips.models import Trip

logger = get_logger(__name__)


def list_fx_rates(session: Session, *, trip_id: uuid.UUID) -> list[FxRate]:
    return list(
        session.scalars(
            select(FxRate).where(FxRate.trip_id == trip_id).order_by(FxRate.from_currency)
        )
    )


def rates_locked(session: Session, *, trip_id: uuid.UUID) -> bool:
    return bool(session.scalar(select(exists().where(Expense.trip_id == trip_id))))


def set_trip_rates(
    session: Session,
    *,
    trip_id: uuid.UUID,
    rates: Iterable[tuple[CurrencyCode | str, Decimal]],
    as_of_date: date | None = None,
    source: str | None = None,
) -> list[FxRate]:
    trip = session.get(Trip, trip_id)
    if not trip:
        raise TripNotFound(trip_id)
    if rates_locked(session, trip_id=trip.id):
        raise RatesLocked("Exchange rates are fixed once a trip has expenses")

    home = trip.home_currency.upper()
    checked: list[tuple[CurrencyCode, Decimal]] = []
    for raw_currency, rate in rates:
        currency = normalize_currency(raw_currency)
        if currency is None:
            raise UnknownCurrency(raw_currency)
        if currency.value == home:
            continue
        if rate <= 0:
            raise InvalidValue(f"Rate for {currency.value} must be positive")
        checked.append((currency, rate))

    out: list[FxRate] = []
    for currency, rate in checked:
        out.append(
            _upsert_fx_rate(
                session,
                trip_id=trip.id,
                from_currency=currency.value,
                to_currency=home,
                rate=rate,
                as_of_date=as_of_date,
                source=source,
            )
        )

    session.commit()
    for fx in out:
        session.refresh(fx)
    log_event(
        logger,
        "fx.rates.updated",
        trip_id=str(trip.id),
        currencies=[fx.from_currency for fx in out],
    )
    return out


def load_rate_set(session: Session, *, trip: Trip) -> RateSet:
    home = CurrencyCode(trip.home_currency.upper())
    rates: dict[CurrencyCode, Decimal] = {}
    for fx in list_fx_rates(session, trip_id=trip.id):
        currency = normalize_currency(fx.from_currency)
        if currency is None or fx.to_currency.upper() != home.value:
            continue
        rates[currency] = Decimal(str(fx.rate))
    return RateSet(rates=rates, home=home)


def _upsert_fx_rate(
    session: Session,
    *,
    trip_id: uuid.UUID,
    from_currency: str,
    to_currency: str,
    rate: Decimal,
    as_of_date: date | None,
    source: str | None,
) -> FxRate:
    fx = session.scalar(
        select(FxRate).where(
            FxRate.trip_id == trip_id,
            FxRate.from_currency == from_currency,
            FxRate.to_currency == to_currency,
        )
    )
    if not fx:
        fx = FxRate(
            trip_id=trip_id,
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            as_of_date=as_of_date,
            source=source,
        )
    else:
        fx.rate = rate
        fx.as_of_date = as_of_date
        fx.source = source
    session.add(fx)
    session.flush()
    return fx

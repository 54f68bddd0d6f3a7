from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from trip_ledger.core.currencies import HOME_CURRENCY, CurrencyCode, normalize_currency
from trip_ledger.core.errors import InvalidValue, TripNotFound, UnknownCurrency
from trip_ledger.modules.categories.service import list_categories
from trip_ledger.modules.expenses.models import Expense
from trip_ledger.modules.trips.models import Trip, TripBudget


@dataclass(frozen=True)
class CategorySpend:
    category_id: uuid.UUID
    category_name: str
    budget_home: Decimal | None
    spent_home: Decimal


@dataclass(frozen=True)
class TripSummary:
    trip_id: uuid.UUID
    home_currency: str
    budget_home: Decimal
    spent_home: Decimal
    remaining_home: Decimal
    expense_count: int
    categories: list[CategorySpend] = field(default_factory=list)


def create_trip(
    session: Session,
    *,
    name: str,
    start_date: date | None = None,
    end_date: date | None = None,
    budget_home_amount: Decimal = Decimal("0"),
    home_currency: CurrencyCode | str = HOME_CURRENCY,
) -> Trip:
    home = normalize_currency(home_currency)
    if home is None:
        raise UnknownCurrency(home_currency)
    name = name.strip()
    if not name:
        raise InvalidValue("Trip name is required")
    trip = Trip(
        name=name,
        start_date=start_date,
        end_date=end_date,
        home_currency=home.value,
        budget_home_amount=budget_home_amount,
        spent_home_amount=Decimal("0"),
    )
    session.add(trip)
    session.commit()
    session.refresh(trip)
    return trip


def list_trips(session: Session) -> list[Trip]:
    return list(session.scalars(select(Trip).order_by(Trip.start_date.desc(), Trip.name)))


def get_trip(session: Session, *, trip_id: uuid.UUID) -> Trip:
    trip = session.get(Trip, trip_id)
    if not trip:
        raise TripNotFound(trip_id)
    return trip


def set_category_budget(
    session: Session, *, trip_id: uuid.UUID, category_id: uuid.UUID, amount_home: Decimal
) -> TripBudget:
    trip = get_trip(session, trip_id=trip_id)
    budget = session.scalar(
        select(TripBudget).where(
            TripBudget.trip_id == trip.id, TripBudget.category_id == category_id
        )
    )
    if not budget:
        budget = TripBudget(trip_id=trip.id, category_id=category_id, amount_home=amount_home)
    else:
        budget.amount_home = amount_home
    session.add(budget)
    session.commit()
    session.refresh(budget)
    return budget


def trip_summary(session: Session, *, trip_id: uuid.UUID) -> TripSummary:
    trip = get_trip(session, trip_id=trip_id)

    spent_by_category = {
        category_id: Decimal(str(total or 0))
        for category_id, total in session.execute(
            select(Expense.category_id, func.sum(Expense.amount_home))
            .where(Expense.trip_id == trip.id)
            .group_by(Expense.category_id)
        )
    }
    budgets = {
        b.category_id: Decimal(str(b.amount_home))
        for b in session.scalars(select(TripBudget).where(TripBudget.trip_id == trip.id))
    }
    expense_count = session.scalar(
        select(func.count()).select_from(Expense).where(Expense.trip_id == trip.id)
    )

    categories = [
        CategorySpend(
            category_id=c.id,
            category_name=c.name,
            budget_home=budgets.get(c.id),
            spent_home=spent_by_category.get(c.id, Decimal("0")),
        )
        for c in list_categories(session)
        if c.id in spent_by_category or c.id in budgets
    ]

    budget_home = Decimal(str(trip.budget_home_amount or 0))
    spent_home = Decimal(str(trip.spent_home_amount or 0))
    return TripSummary(
        trip_id=trip.id,
        home_currency=trip.home_currency,
        budget_home=budget_home,
        spent_home=spent_home,
        remaining_home=budget_home - spent_home,
        expense_count=int(expense_count or 0),
        categories=categories,
    )

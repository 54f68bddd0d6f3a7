from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trip_ledger.core.currencies import CurrencyCode, format_amount
from trip_ledger.core.db import db_session
from trip_ledger.modules.trips.schemas import (
    CategoryBudgetIn,
    CategorySpendOut,
    TripCreateIn,
    TripOut,
    TripSummaryOut,
)
from trip_ledger.modules.trips.service import (
    create_trip,
    get_trip,
    list_trips,
    set_category_budget,
    trip_summary,
)

router = APIRouter(tags=["trips"])


@router.post("/trips", response_model=TripOut, status_code=201)
def create_trip_endpoint(
    payload: TripCreateIn,
    session: Session = Depends(db_session),
) -> TripOut:
    trip = create_trip(session, **payload.model_dump())
    return TripOut.model_validate(trip, from_attributes=True)


@router.get("/trips", response_model=list[TripOut])
def list_trips_endpoint(session: Session = Depends(db_session)) -> list[TripOut]:
    return [TripOut.model_validate(t, from_attributes=True) for t in list_trips(session)]


@router.get("/trips/{trip_id}", response_model=TripOut)
def get_trip_endpoint(
    trip_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> TripOut:
    return TripOut.model_validate(get_trip(session, trip_id=trip_id), from_attributes=True)


@router.put("/trips/{trip_id}/budgets/{category_id}", status_code=204)
def set_category_budget_endpoint(
    trip_id: uuid.UUID,
    category_id: uuid.UUID,
    payload: CategoryBudgetIn,
    session: Session = Depends(db_session),
) -> None:
    set_category_budget(
        session, trip_id=trip_id, category_id=category_id, amount_home=payload.amount_home
    )


@router.get("/trips/{trip_id}/summary", response_model=TripSummaryOut)
def trip_summary_endpoint(
    trip_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> TripSummaryOut:
    summary = trip_summary(session, trip_id=trip_id)
    home = CurrencyCode(summary.home_currency)
    return TripSummaryOut(
        trip_id=summary.trip_id,
        home_currency=summary.home_currency,
        budget_home=summary.budget_home,
        spent_home=summary.spent_home,
        remaining_home=summary.remaining_home,
        expense_count=summary.expense_count,
        spent_display=format_amount(summary.spent_home, home),
        remaining_display=format_amount(summary.remaining_home, home),
        categories=[
            CategorySpendOut(
                category_id=c.category_id,
                category_name=c.category_name,
                budget_home=c.budget_home,
                spent_home=c.spent_home,
                spent_display=format_amount(c.spent_home, home),
            )
            for c in summary.categories
        ],
    )

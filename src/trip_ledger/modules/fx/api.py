from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trip_ledger.core.db import db_session
from trip_ledger.modules.fx.schemas import FxRateOut, FxRateUpsert
from trip_ledger.modules.fx.service import list_fx_rates, set_trip_rates
from trip_ledger.modules.trips.service import get_trip

router = APIRouter(tags=["fx"])


@router.put("/trips/{trip_id}/fx-rates", response_model=list[FxRateOut])
def set_fx_rates(
    trip_id: uuid.UUID,
    payload: list[FxRateUpsert],
    session: Session = Depends(db_session),
) -> list[FxRateOut]:
    rates = set_trip_rates(
        session,
        trip_id=trip_id,
        rates=[(r.from_currency, r.rate) for r in payload],
        as_of_date=next((r.as_of_date for r in payload if r.as_of_date), None),
        source=next((r.source for r in payload if r.source), None),
    )
    return [FxRateOut.model_validate(fx, from_attributes=True) for fx in rates]


@router.get("/trips/{trip_id}/fx-rates", response_model=list[FxRateOut])
def get_fx_rates(
    trip_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> list[FxRateOut]:
    trip = get_trip(session, trip_id=trip_id)
    return [
        FxRateOut.model_validate(fx, from_attributes=True)
        for fx in list_fx_rates(session, trip_id=trip.id)
    ]

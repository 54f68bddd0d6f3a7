from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trip_ledger.core.db import db_session
from trip_ledger.modules.expenses.schemas import BatchCommitIn, BatchCommitOut, ExpenseOut
from trip_ledger.modules.expenses.service import ExpenseDraft, commit_batch, list_expenses
from trip_ledger.modules.trips.service import get_trip

router = APIRouter(tags=["expenses"])


@router.post("/trips/{trip_id}/expenses/batch", response_model=BatchCommitOut)
def commit_batch_endpoint(
    trip_id: uuid.UUID,
    payload: BatchCommitIn,
    session: Session = Depends(db_session),
) -> BatchCommitOut:
    drafts = [ExpenseDraft(**item.model_dump()) for item in payload.expenses]
    result = commit_batch(session, trip_id=trip_id, drafts=drafts)
    return BatchCommitOut(count=result.created_count)


@router.get("/trips/{trip_id}/expenses", response_model=list[ExpenseOut])
def list_expenses_endpoint(
    trip_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> list[ExpenseOut]:
    trip = get_trip(session, trip_id=trip_id)
    return [
        ExpenseOut.model_validate(e, from_attributes=True)
        for e in list_expenses(session, trip_id=trip.id)
    ]

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from trip_ledger.modules.expenses.models import Provenance
from trip_ledger.modules.reconciliation.matcher import MergedItem
from trip_ledger.modules.reconciliation.session import ReconciliationSession, SessionState


class SelectTripIn(BaseModel):
    trip_id: uuid.UUID


class ProcessingReportOut(BaseModel):
    receipt_count: int
    failed_receipts: int
    statement_rows: int
    statement_failed: bool
    merged_count: int
    receipt_only_count: int
    statement_only_count: int
    duration_ms: int


class ImportItemOut(BaseModel):
    id: uuid.UUID
    provenance: Provenance
    transaction_date: date | None
    amount: Decimal | None
    currency: str | None
    merchant: str | None
    description: str | None
    payment_method: str | None
    category_id: uuid.UUID | None
    category_name: str | None
    subcategory_id: uuid.UUID | None
    subcategory_name: str | None
    original_category: str | None
    raw_items_text: str | None
    original_items_text: str | None


class ImportItemPatch(BaseModel):
    transaction_date: date | None = None
    amount: Decimal | None = None
    currency: str | None = None
    merchant: str | None = Field(default=None, max_length=200)
    description: str | None = Field(default=None, max_length=500)
    payment_method: str | None = None
    category_id: uuid.UUID | None = None
    category_name: str | None = None
    subcategory_id: uuid.UUID | None = None
    subcategory_name: str | None = None


class ImportSessionOut(BaseModel):
    id: str
    state: SessionState
    trip_id: uuid.UUID | None
    receipts: list[str]
    statement: str | None
    report: ProcessingReportOut | None
    items: list[ImportItemOut]


def item_out(item: MergedItem) -> ImportItemOut:
    return ImportItemOut(
        id=item.id,
        provenance=item.provenance,
        transaction_date=item.transaction_date,
        amount=item.amount,
        currency=_code(item.currency),
        merchant=item.merchant,
        description=item.description,
        payment_method=_code(item.payment_method),
        category_id=item.category_id,
        category_name=item.category_name,
        subcategory_id=item.subcategory_id,
        subcategory_name=item.subcategory_name,
        original_category=item.original_category,
        raw_items_text=item.raw_items_text,
        original_items_text=item.original_items_text,
    )


def session_out(session: ReconciliationSession) -> ImportSessionOut:
    return ImportSessionOut(
        id=session.id,
        state=session.state,
        trip_id=session.trip_id,
        receipts=[r.filename for r in session.receipts],
        statement=session.statement.filename if session.statement else None,
        report=(
            ProcessingReportOut.model_validate(session.report, from_attributes=True)
            if session.report
            else None
        ),
        items=[item_out(i) for i in session.items],
    )


def _code(value: object) -> str | None:
    # Review edits are unchecked, so enum fields may hold raw strings.
    if value is None:
        return None
    return str(getattr(value, "value", value))

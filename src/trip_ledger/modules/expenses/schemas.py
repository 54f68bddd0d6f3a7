from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import AliasChoices, BaseModel, Field

from trip_ledger.modules.expenses.models import PaymentType, Provenance


class BatchExpenseIn(BaseModel):
    # Deliberately loose: per-item checks happen in commit_batch so errors carry the item index.
    transaction_date: date | None = Field(
        default=None, validation_alias=AliasChoices("transaction_date", "date")
    )
    merchant: str | None = None
    amount: Decimal | None = Field(
        default=None, validation_alias=AliasChoices("amount", "amount_original")
    )
    currency: str | None = None
    category_id: uuid.UUID | None = None
    category_name: str | None = None
    subcategory_id: uuid.UUID | None = None
    subcategory_name: str | None = None
    payment_type: str | None = PaymentType.CASH.value
    description: str | None = None
    provenance: Provenance = Provenance.MANUAL
    is_ai_parsed: bool = True
    raw_items_text: str | None = None
    original_items_text: str | None = None
    payer: str | None = None


class BatchCommitIn(BaseModel):
    expenses: list[BatchExpenseIn]


class BatchCommitOut(BaseModel):
    count: int
    message: str = "Batch processing successful"


class ExpenseOut(BaseModel):
    id: uuid.UUID
    trip_id: uuid.UUID
    category_id: uuid.UUID
    subcategory_id: uuid.UUID | None
    transaction_date: date
    merchant: str
    payer: str | None
    payment_type: PaymentType
    amount_original: Decimal
    currency: str
    amount_home: Decimal
    description: str | None
    provenance: Provenance
    is_ai_parsed: bool
    needs_review: bool
    raw_items_text: str | None
    original_items_text: str | None
    created_at: datetime
    updated_at: datetime

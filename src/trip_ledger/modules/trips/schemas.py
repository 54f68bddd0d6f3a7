from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from trip_ledger.core.currencies import HOME_CURRENCY, CurrencyCode


class TripCreateIn(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None
    budget_home_amount: Decimal = Field(default=Decimal("0"), ge=0)
    home_currency: CurrencyCode = HOME_CURRENCY


class TripOut(BaseModel):
    id: uuid.UUID
    name: str
    start_date: date | None
    end_date: date | None
    home_currency: str
    budget_home_amount: Decimal
    spent_home_amount: Decimal
    created_at: datetime
    updated_at: datetime


class CategoryBudgetIn(BaseModel):
    amount_home: Decimal = Field(ge=0)


class CategorySpendOut(BaseModel):
    category_id: uuid.UUID
    category_name: str
    budget_home: Decimal | None
    spent_home: Decimal
    spent_display: str


class TripSummaryOut(BaseModel):
    trip_id: uuid.UUID
    home_currency: str
    budget_home: Decimal
    spent_home: Decimal
    remaining_home: Decimal
    expense_count: int
    spent_display: str
    remaining_display: str
    categories: list[CategorySpendOut]

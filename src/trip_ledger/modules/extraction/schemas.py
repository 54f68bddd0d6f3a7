from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.modules.expenses.models import PaymentType


class CandidateOrigin(str, enum.Enum):
    RECEIPT = "receipt"
    STATEMENT = "statement"


@dataclass(frozen=True)
class RawCandidate:
    """One transaction as reported by an extractor. Never mutated after creation."""

    origin: CandidateOrigin
    transaction_date: date
    amount: Decimal
    currency: CurrencyCode
    merchant: str | None = None
    category_name: str | None = None
    subcategory_name: str | None = None
    description: str | None = None
    payment_method: PaymentType | None = None
    # Statement only: the category text exactly as it appears in the document.
    original_category: str | None = None
    # Receipt only: line items translated to English, and as printed.
    line_items: tuple[str, ...] = ()
    original_line_items: tuple[str, ...] = ()

    @property
    def raw_items_text(self) -> str | None:
        return "\n".join(self.line_items) if self.line_items else None

    @property
    def original_items_text(self) -> str | None:
        return "\n".join(self.original_line_items) if self.original_line_items else None


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    content_type: str | None
    body: bytes

    @property
    def byte_size(self) -> int:
        return len(self.body)

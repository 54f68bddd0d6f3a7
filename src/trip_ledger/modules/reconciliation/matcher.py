"""
Receipt / statement reconciliation.

Both sources describe the same real-world spending but are produced
independently. A statement row and a receipt are the same transaction when
they share a date and currency and their amounts differ by less than the
tolerance. Matching is first-found in input order, not best-found.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.modules.categories.resolver import (
    UNRESOLVED,
    ByName,
    Catalog,
    CategoryRef,
    resolve,
)
from trip_ledger.modules.expenses.models import PaymentType, Provenance
from trip_ledger.modules.extraction.schemas import RawCandidate

AMOUNT_TOLERANCE = Decimal("0.10")
UNKNOWN_MERCHANT = "Unknown"


@dataclass
class MergedItem:
    provenance: Provenance
    transaction_date: date
    amount: Decimal
    currency: CurrencyCode
    category_ref: CategoryRef = UNRESOLVED
    subcategory_ref: CategoryRef = UNRESOLVED
    category_id: uuid.UUID | None = None
    category_name: str | None = None
    subcategory_id: uuid.UUID | None = None
    subcategory_name: str | None = None
    merchant: str | None = None
    description: str | None = None
    payment_method: PaymentType = PaymentType.CASH
    receipt: RawCandidate | None = None
    statement: RawCandidate | None = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    @property
    def raw_items_text(self) -> str | None:
        return self.receipt.raw_items_text if self.receipt else None

    @property
    def original_items_text(self) -> str | None:
        return self.receipt.original_items_text if self.receipt else None

    @property
    def original_category(self) -> str | None:
        return self.statement.original_category if self.statement else None


def match(
    receipts: Sequence[RawCandidate],
    statements: Sequence[RawCandidate],
    tolerance: Decimal = AMOUNT_TOLERANCE,
) -> list[MergedItem]:
    consumed = [False] * len(receipts)
    out: list[MergedItem] = []

    for stmt in statements:
        hit: int | None = None
        for i, receipt in enumerate(receipts):
            if consumed[i]:
                continue
            if _same_transaction(receipt, stmt, tolerance):
                hit = i
                break
        if hit is None:
            out.append(_statement_item(stmt))
        else:
            consumed[hit] = True
            out.append(_merged_item(receipts[hit], stmt))

    for i, receipt in enumerate(receipts):
        if not consumed[i]:
            out.append(_receipt_item(receipt))

    # sorted() is stable, so equal dates keep emission order.
    return sorted(out, key=lambda item: item.transaction_date, reverse=True)


def resolve_items(items: Iterable[MergedItem], catalog: Catalog) -> None:
    """Fill in category ids for every item from its references."""
    for item in items:
        resolution = resolve(item.category_ref, item.subcategory_ref, catalog)
        item.category_id = resolution.category_id
        item.category_name = resolution.category_name
        item.subcategory_id = resolution.subcategory_id
        item.subcategory_name = resolution.subcategory_name


def _same_transaction(receipt: RawCandidate, stmt: RawCandidate, tolerance: Decimal) -> bool:
    return (
        receipt.transaction_date == stmt.transaction_date
        and receipt.currency == stmt.currency
        and abs(receipt.amount - stmt.amount) < tolerance
    )


def _name_ref(name: str | None) -> CategoryRef:
    return ByName(name) if name else UNRESOLVED


def _merged_item(receipt: RawCandidate, stmt: RawCandidate) -> MergedItem:
    return MergedItem(
        provenance=Provenance.MERGED,
        transaction_date=receipt.transaction_date,
        amount=receipt.amount,
        currency=receipt.currency,
        category_ref=_name_ref(receipt.category_name or stmt.category_name),
        subcategory_ref=_name_ref(receipt.subcategory_name or stmt.subcategory_name),
        merchant=receipt.merchant or stmt.merchant or UNKNOWN_MERCHANT,
        description=receipt.description or stmt.description,
        payment_method=receipt.payment_method or stmt.payment_method or PaymentType.CARD,
        receipt=receipt,
        statement=stmt,
    )


def _statement_item(stmt: RawCandidate) -> MergedItem:
    return MergedItem(
        provenance=Provenance.STATEMENT,
        transaction_date=stmt.transaction_date,
        amount=stmt.amount,
        currency=stmt.currency,
        category_ref=_name_ref(stmt.category_name),
        subcategory_ref=_name_ref(stmt.subcategory_name),
        merchant=stmt.merchant or UNKNOWN_MERCHANT,
        description=stmt.description,
        payment_method=PaymentType.CARD,
        statement=stmt,
    )


def _receipt_item(receipt: RawCandidate) -> MergedItem:
    return MergedItem(
        provenance=Provenance.RECEIPT,
        transaction_date=receipt.transaction_date,
        amount=receipt.amount,
        currency=receipt.currency,
        category_ref=_name_ref(receipt.category_name),
        subcategory_ref=_name_ref(receipt.subcategory_name),
        merchant=receipt.merchant or UNKNOWN_MERCHANT,
        description=receipt.description,
        payment_method=receipt.payment_method or PaymentType.CASH,
        receipt=receipt,
    )

from __future__ import annotations

import time
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from trip_ledger.core.config import settings
from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.core.errors import (
    BatchValidationError,
    EmptyCatalog,
    ItemError,
    PersistenceFailed,
    TripNotFound,
    UnknownCurrency,
)
from trip_ledger.core.logging import get_logger, log_event, log_exception, monotonic_ms
from trip_ledger.core.models import MONEY_SCALE
from trip_ledger.modules.audit.service import record_event
from trip_ledger.modules.categories.resolver import Catalog, make_ref, resolve
from trip_ledger.modules.categories.service import load_catalog
from trip_ledger.modules.expenses.models import (
    MERCHANT_MAX_LENGTH,
    Expense,
    PaymentType,
    Provenance,
)
from trip_ledger.modules.fx.converter import RateSet, to_home
from trip_ledger.modules.fx.service import load_rate_set
from trip_ledger.modules.trips.models import Trip

logger = get_logger(__name__)

_STORAGE_QUANTUM = Decimal(1).scaleb(-MONEY_SCALE)


@dataclass
class ExpenseDraft:
    """One human-approved expense awaiting commit. Nothing here is validated yet."""

    transaction_date: date | None
    merchant: str | None
    amount: Decimal | str | None
    currency: CurrencyCode | str | None
    category_id: uuid.UUID | str | None = None
    category_name: str | None = None
    subcategory_id: uuid.UUID | str | None = None
    subcategory_name: str | None = None
    payment_type: PaymentType | str | None = PaymentType.CASH
    description: str | None = None
    provenance: Provenance = Provenance.MANUAL
    is_ai_parsed: bool = True
    raw_items_text: str | None = None
    original_items_text: str | None = None
    payer: str | None = None


@dataclass(frozen=True)
class BatchResult:
    created_count: int


def list_expenses(session: Session, *, trip_id: uuid.UUID) -> list[Expense]:
    return list(
        session.scalars(
            select(Expense)
            .where(Expense.trip_id == trip_id)
            .order_by(Expense.transaction_date.desc(), Expense.created_at)
        )
    )


def commit_batch(
    session: Session,
    *,
    trip_id: uuid.UUID,
    drafts: Sequence[ExpenseDraft],
    import_session_id: str | None = None,
) -> BatchResult:
    """
    Validate and persist a batch of expenses, all or nothing.

    The trip row is locked for the whole transaction so concurrent commits against
    the same trip serialise on its running total. Categories are resolved against a
    fresh catalog read, not whatever the caller saw during review.
    """
    if not drafts:
        return BatchResult(created_count=0)

    start = time.monotonic()
    log_event(
        logger,
        "import.commit.start",
        trip_id=str(trip_id),
        item_count=len(drafts),
    )

    try:
        created = _validate_and_write(
            session, trip_id=trip_id, drafts=drafts, import_session_id=import_session_id
        )
    except SQLAlchemyError as e:
        session.rollback()
        log_exception(logger, "import.commit.failed", trip_id=str(trip_id))
        raise PersistenceFailed(str(e)) from e

    log_event(
        logger,
        "import.commit.finish",
        trip_id=str(trip_id),
        created_count=created,
        duration_ms=monotonic_ms(start),
    )
    return BatchResult(created_count=created)


def _validate_and_write(
    session: Session,
    *,
    trip_id: uuid.UUID,
    drafts: Sequence[ExpenseDraft],
    import_session_id: str | None,
) -> int:
    trip = session.scalar(select(Trip).where(Trip.id == trip_id).with_for_update())
    if not trip:
        session.rollback()
        raise TripNotFound(trip_id)

    catalog = load_catalog(session)
    if not catalog.categories:
        session.rollback()
        raise EmptyCatalog()
    rate_set = load_rate_set(session, trip=trip)

    records: list[Expense] = []
    errors: list[ItemError] = []
    for index, draft in enumerate(drafts):
        record = _build_expense(
            index=index,
            draft=draft,
            trip=trip,
            catalog=catalog,
            rate_set=rate_set,
            errors=errors,
        )
        if record is not None:
            records.append(record)

    if errors:
        session.rollback()
        log_event(
            logger,
            "import.commit.rejected",
            trip_id=str(trip_id),
            item_count=len(drafts),
            error_count=len(errors),
            first_error_index=errors[0].index,
            first_error_field=errors[0].field,
        )
        raise BatchValidationError(errors)

    record_event(
        session,
        event_type="import.committed",
        trip_id=trip.id,
        import_session_id=import_session_id,
        payload={
            "created_count": len(records),
            "home_total": str(sum((r.amount_home for r in records), Decimal("0"))),
        },
    )
    create_expenses_in_transaction(session, trip=trip, records=records)
    return len(records)


def create_expenses_in_transaction(
    session: Session, *, trip: Trip, records: Sequence[Expense]
) -> None:
    try:
        session.add_all(records)
        total = sum((r.amount_home for r in records), Decimal("0"))
        trip.spent_home_amount = Decimal(str(trip.spent_home_amount or 0)) + total
        session.add(trip)
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise PersistenceFailed(str(e)) from e


def _build_expense(
    *,
    index: int,
    draft: ExpenseDraft,
    trip: Trip,
    catalog: Catalog,
    rate_set: RateSet,
    errors: list[ItemError],
) -> Expense | None:
    failed = len(errors)

    amount: Decimal | None = None
    try:
        amount = Decimal(str(draft.amount).strip()) if draft.amount is not None else None
    except InvalidOperation:
        amount = None
    if amount is None or not amount.is_finite():
        errors.append(ItemError(index, "amount", "Amount is required"))
        amount = None
    elif amount <= 0:
        errors.append(ItemError(index, "amount", "Amount must be positive"))

    currency: CurrencyCode | None = None
    raw_currency = getattr(draft.currency, "value", draft.currency)
    try:
        currency = CurrencyCode(str(raw_currency or "").strip().upper())
    except ValueError:
        errors.append(ItemError(index, "currency", f"Unknown currency: {raw_currency!r}"))
    if currency is not None and not rate_set.supports(currency):
        errors.append(
            ItemError(index, "currency", f"Trip has no exchange rate for {currency.value}")
        )
        currency = None

    if draft.transaction_date is None:
        errors.append(ItemError(index, "transaction_date", "Date is required"))

    merchant = (draft.merchant or "").strip()
    if not merchant:
        errors.append(ItemError(index, "merchant", "Merchant is required"))
    elif len(merchant) > MERCHANT_MAX_LENGTH:
        errors.append(
            ItemError(
                index, "merchant", f"Merchant must be at most {MERCHANT_MAX_LENGTH} characters"
            )
        )

    payment_type: PaymentType | None = None
    raw_payment = draft.payment_type or PaymentType.CASH
    try:
        if isinstance(raw_payment, PaymentType):
            payment_type = raw_payment
        else:
            payment_type = PaymentType(str(raw_payment).strip().upper())
    except ValueError:
        errors.append(
            ItemError(index, "payment_type", f"Unknown payment type: {draft.payment_type!r}")
        )

    resolution = resolve(
        make_ref(ref_id=draft.category_id, name=draft.category_name),
        make_ref(ref_id=draft.subcategory_id, name=draft.subcategory_name),
        catalog,
    )

    if len(errors) > failed or amount is None or currency is None or payment_type is None:
        return None

    try:
        amount_home = to_home(amount, currency, rate_set)
    except UnknownCurrency as e:
        errors.append(ItemError(index, "currency", e.detail))
        return None

    description = (draft.description or "").strip() or None
    return Expense(
        trip_id=trip.id,
        category_id=resolution.category_id,
        subcategory_id=resolution.subcategory_id,
        transaction_date=draft.transaction_date,
        merchant=merchant,
        payer=(draft.payer or "").strip() or settings.default_payer,
        payment_type=payment_type,
        amount_original=amount,
        currency=currency.value,
        amount_home=amount_home.quantize(_STORAGE_QUANTUM, rounding=ROUND_HALF_UP),
        description=description,
        provenance=draft.provenance,
        is_ai_parsed=draft.is_ai_parsed,
        needs_review=False,
        raw_items_text=draft.raw_items_text,
        original_items_text=draft.original_items_text,
    )

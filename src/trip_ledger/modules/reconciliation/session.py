"""
One bulk import, from upload to commit.

    IDLE -> UPLOADING -> PROCESSING -> REVIEW -> COMMITTING -> COMMITTED
                             |            ^            |
                             |            +------------+  (commit failed)
                             +-> IDLE   (unrecoverable processing failure)

Extraction fans out one task per receipt plus one statement task. A task that
fails only loses its own candidates; anything else that goes wrong while
processing drops the uploads and returns the session to IDLE.
"""

from __future__ import annotations

import asyncio
import enum
import logging
import threading
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy.orm import Session

from trip_ledger.core.config import settings
from trip_ledger.core.currencies import normalize_currency
from trip_ledger.core.errors import (
    EmptyCatalog,
    InvalidSessionState,
    ItemNotFound,
    UnsupportedUpload,
)
from trip_ledger.core.logging import (
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
    reset_import_session_context,
    set_import_session_context,
)
from trip_ledger.modules.categories.resolver import (
    ById,
    ByName,
    Catalog,
    CategoryRef,
    make_ref,
)
from trip_ledger.modules.expenses.models import PaymentType
from trip_ledger.modules.expenses.service import BatchResult, ExpenseDraft, commit_batch
from trip_ledger.modules.extraction.files import FileKind, detect_file_kind, statement_text
from trip_ledger.modules.extraction.schemas import RawCandidate, UploadedFile
from trip_ledger.modules.extraction.service import ReceiptExtractor, StatementExtractor
from trip_ledger.modules.reconciliation.matcher import MergedItem, match, resolve_items

logger = get_logger(__name__)

CatalogProvider = Callable[[], Catalog]

_STATEMENT_EXTENSIONS = (".csv", ".txt", ".tsv", ".pdf")


class SessionState(str, enum.Enum):
    IDLE = "idle"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    REVIEW = "review"
    COMMITTING = "committing"
    COMMITTED = "committed"


@dataclass(frozen=True)
class ProcessingReport:
    receipt_count: int
    failed_receipts: int
    statement_rows: int
    statement_failed: bool
    merged_count: int
    receipt_only_count: int
    statement_only_count: int
    duration_ms: int


class ReconciliationSession:
    def __init__(
        self,
        *,
        receipt_extractor: ReceiptExtractor,
        statement_extractor: StatementExtractor,
        tolerance: Decimal | None = None,
        max_receipts: int | None = None,
    ) -> None:
        self.id = str(uuid.uuid4())
        self.state = SessionState.IDLE
        self.trip_id: uuid.UUID | None = None
        self.receipts: list[UploadedFile] = []
        self.statement: UploadedFile | None = None
        self.items: list[MergedItem] = []
        self.catalog: Catalog | None = None
        self.report: ProcessingReport | None = None
        self._receipt_extractor = receipt_extractor
        self._statement_extractor = statement_extractor
        self._tolerance = tolerance if tolerance is not None else settings.import_amount_tolerance
        self._max_receipts = max_receipts or settings.import_max_receipts
        self._tasks: list[asyncio.Task] = []
        # Commit runs on worker threads; guards the REVIEW -> COMMITTING step.
        self._state_lock = threading.Lock()

    # Upload

    def select_trip(self, trip_id: uuid.UUID) -> None:
        self._require(SessionState.IDLE, SessionState.UPLOADING)
        self.trip_id = trip_id

    def add_receipt(self, upload: UploadedFile) -> int:
        """Queue a receipt image; returns its position in the queue."""
        self._require(SessionState.IDLE, SessionState.UPLOADING)
        if detect_file_kind(upload) != FileKind.IMAGE:
            raise UnsupportedUpload(f"Receipts must be images: {upload.filename}")
        if len(self.receipts) >= self._max_receipts:
            raise InvalidSessionState(f"At most {self._max_receipts} receipts per import")
        self.receipts.append(upload)
        self.state = SessionState.UPLOADING
        self._log_upload(upload, kind="receipt")
        return len(self.receipts) - 1

    def set_statement(self, upload: UploadedFile) -> None:
        self._require(SessionState.IDLE, SessionState.UPLOADING)
        kind = detect_file_kind(upload)
        if kind not in (FileKind.PDF, FileKind.TEXT) and not upload.filename.lower().endswith(
            _STATEMENT_EXTENSIONS
        ):
            raise UnsupportedUpload(f"Statements must be CSV, text or PDF: {upload.filename}")
        self.statement = upload
        self.state = SessionState.UPLOADING
        self._log_upload(upload, kind="statement")

    def remove_receipt(self, index: int) -> None:
        self._require(SessionState.UPLOADING)
        if index < 0 or index >= len(self.receipts):
            raise ItemNotFound(f"No receipt at position {index}")
        del self.receipts[index]
        if not self.receipts and self.statement is None:
            self.state = SessionState.IDLE

    # Processing

    async def process(self, catalog_provider: CatalogProvider) -> ProcessingReport:
        self._require(SessionState.UPLOADING)
        if self.trip_id is None:
            raise InvalidSessionState("Select a trip before processing")
        if not self.receipts and self.statement is None:
            raise InvalidSessionState("Nothing to process")

        self.state = SessionState.PROCESSING
        token = set_import_session_context(self.id)
        start = time.monotonic()
        log_event(
            logger,
            "import.processing.start",
            trip_id=str(self.trip_id),
            receipt_count=len(self.receipts),
            has_statement=self.statement is not None,
        )
        try:
            catalog = catalog_provider()
            if not catalog.categories:
                raise EmptyCatalog()

            receipt_tasks = [
                asyncio.create_task(self._extract_receipt(i, upload, catalog))
                for i, upload in enumerate(self.receipts)
            ]
            self._tasks = list(receipt_tasks)
            statement_task: asyncio.Task | None = None
            if self.statement is not None:
                statement_task = asyncio.create_task(
                    self._extract_statement(self.statement, catalog)
                )
                self._tasks.append(statement_task)

            await asyncio.gather(*self._tasks)

            receipts = [c for c in (t.result() for t in receipt_tasks) if c is not None]
            statement_rows = statement_task.result() if statement_task else []
            statement_failed = statement_rows is None
            rows = statement_rows or []

            items = match(receipts, rows, self._tolerance)
            resolve_items(items, catalog)
        except asyncio.CancelledError:
            self._reset_to_idle()
            raise
        except Exception:
            log_exception(logger, "import.processing.aborted", trip_id=str(self.trip_id))
            self._reset_to_idle()
            raise
        finally:
            self._tasks = []
            reset_import_session_context(token)

        self.catalog = catalog
        self.items = items
        self.report = ProcessingReport(
            receipt_count=len(self.receipts),
            failed_receipts=len(self.receipts) - len(receipts),
            statement_rows=len(rows),
            statement_failed=statement_failed,
            merged_count=sum(1 for i in items if i.receipt and i.statement),
            receipt_only_count=sum(1 for i in items if i.receipt and not i.statement),
            statement_only_count=sum(1 for i in items if i.statement and not i.receipt),
            duration_ms=monotonic_ms(start),
        )
        self.state = SessionState.REVIEW
        log_event(
            logger,
            "import.processing.finish",
            session_id=self.id,
            trip_id=str(self.trip_id),
            item_count=len(items),
            failed_receipts=self.report.failed_receipts,
            statement_failed=statement_failed,
            merged_count=self.report.merged_count,
            duration_ms=self.report.duration_ms,
        )
        return self.report

    async def _extract_receipt(
        self, index: int, upload: UploadedFile, catalog: Catalog
    ) -> RawCandidate | None:
        try:
            candidate = await self._receipt_extractor.extract(upload, catalog)
        except Exception:
            log_exception(
                logger, "extraction.receipt.failed", index=index, filename=upload.filename
            )
            return None
        if candidate is None:
            log_event(
                logger,
                "extraction.receipt.failed",
                level=logging.WARNING,
                index=index,
                filename=upload.filename,
                reason="no_candidate",
            )
        return candidate

    async def _extract_statement(
        self, upload: UploadedFile, catalog: Catalog
    ) -> list[RawCandidate] | None:
        try:
            text = statement_text(upload)
            if not text.strip():
                log_event(
                    logger,
                    "extraction.statement.failed",
                    level=logging.WARNING,
                    filename=upload.filename,
                    reason="no_text",
                )
                return None
            return list(await self._statement_extractor.extract(text, catalog))
        except Exception:
            log_exception(logger, "extraction.statement.failed", filename=upload.filename)
            return None

    # Review

    def get_item(self, item_id: uuid.UUID) -> MergedItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise ItemNotFound(f"Import item not found: {item_id}")

    def update_item(self, item_id: uuid.UUID, changes: dict) -> MergedItem:
        """Apply human edits. Values are checked at commit, not here."""
        self._require(SessionState.REVIEW)
        item = self.get_item(item_id)

        if "transaction_date" in changes:
            item.transaction_date = changes["transaction_date"]
        if "amount" in changes:
            item.amount = changes["amount"]
        if "currency" in changes:
            raw = changes["currency"]
            item.currency = normalize_currency(raw) or raw
        if "merchant" in changes:
            item.merchant = (changes["merchant"] or "").strip() or None
        if "description" in changes:
            item.description = (changes["description"] or "").strip() or None
        if "payment_method" in changes:
            raw = changes["payment_method"]
            try:
                item.payment_method = PaymentType(str(raw).strip().upper())
            except ValueError:
                item.payment_method = raw

        if "category_id" in changes or "category_name" in changes:
            item.category_ref = make_ref(
                ref_id=changes.get("category_id"), name=changes.get("category_name")
            )
        if "subcategory_id" in changes or "subcategory_name" in changes:
            item.subcategory_ref = make_ref(
                ref_id=changes.get("subcategory_id"), name=changes.get("subcategory_name")
            )
        if self.catalog is not None:
            resolve_items([item], self.catalog)
        return item

    def remove_item(self, item_id: uuid.UUID) -> None:
        self._require(SessionState.REVIEW)
        item = self.get_item(item_id)
        self.items.remove(item)

    # Commit

    def commit(self, db: Session) -> BatchResult:
        """
        Persist the reviewed items. Only one commit can be in flight; a failed one
        leaves the session in review so the items can be fixed and committed again.
        """
        with self._state_lock:
            self._require(SessionState.REVIEW)
            self.state = SessionState.COMMITTING
        assert self.trip_id is not None
        token = set_import_session_context(self.id)
        try:
            result = commit_batch(
                db,
                trip_id=self.trip_id,
                drafts=[_to_draft(item) for item in self.items],
                import_session_id=self.id,
            )
        except Exception:
            self.state = SessionState.REVIEW
            raise
        finally:
            reset_import_session_context(token)
        self.state = SessionState.COMMITTED
        return result

    def abandon(self) -> None:
        """Stop any in-flight extraction. Nothing has been persisted yet."""
        with self._state_lock:
            if self.state == SessionState.COMMITTING:
                raise InvalidSessionState("Import is being committed")
        cancelled = 0
        for task in self._tasks:
            if not task.done():
                task.cancel()
                cancelled += 1
        log_event(
            logger,
            "import.session.abandoned",
            session_id=self.id,
            state=self.state.value,
            cancelled_tasks=cancelled,
        )
        if self.state != SessionState.COMMITTED:
            self._reset_to_idle()
            self.items = []

    def _reset_to_idle(self) -> None:
        self.receipts = []
        self.statement = None
        self.state = SessionState.IDLE

    def _require(self, *states: SessionState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidSessionState(
                f"Import is {self.state.value}; this needs one of: {allowed}"
            )

    def _log_upload(self, upload: UploadedFile, *, kind: str) -> None:
        log_event(
            logger,
            "import.upload.received",
            session_id=self.id,
            kind=kind,
            filename=upload.filename,
            content_type=upload.content_type,
            byte_size=upload.byte_size,
        )


def _to_draft(item: MergedItem) -> ExpenseDraft:
    category_id, category_name = _ref_fields(
        item.category_ref, item.category_id, item.category_name
    )
    subcategory_id, subcategory_name = _ref_fields(
        item.subcategory_ref, item.subcategory_id, item.subcategory_name
    )
    return ExpenseDraft(
        transaction_date=item.transaction_date,
        merchant=item.merchant,
        amount=item.amount,
        currency=item.currency,
        category_id=category_id,
        category_name=category_name,
        subcategory_id=subcategory_id,
        subcategory_name=subcategory_name,
        payment_type=item.payment_method,
        description=item.description,
        provenance=item.provenance,
        is_ai_parsed=True,
        raw_items_text=item.raw_items_text,
        original_items_text=item.original_items_text,
    )


def _ref_fields(
    ref: CategoryRef, resolved_id: uuid.UUID | None, resolved_name: str | None
) -> tuple[uuid.UUID | None, str | None]:
    # Commit resolves again against the current catalog, so pass the reference
    # itself. A known name rides along with an id in case the id has gone stale.
    if isinstance(ref, ById):
        name = ref.name or (resolved_name if resolved_id == ref.id else None)
        return ref.id, name
    if isinstance(ref, ByName):
        return None, ref.name
    return None, None

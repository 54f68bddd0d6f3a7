from __future__ import annotations

import asyncio
import threading
import time
import uuid
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.core.db import SessionLocal
from trip_ledger.core.errors import (
    BatchValidationError,
    EmptyCatalog,
    InvalidSessionState,
    ItemNotFound,
    UnsupportedUpload,
)
from trip_ledger.modules.categories.resolver import Catalog
from trip_ledger.modules.categories.service import load_catalog
from trip_ledger.modules.expenses.models import Expense, PaymentType, Provenance
from trip_ledger.modules.extraction.schemas import CandidateOrigin, RawCandidate, UploadedFile
from trip_ledger.modules.reconciliation.session import ReconciliationSession, SessionState

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
CSV = "Dátum,Partner,Összeg,Pénznem,Kategória\n2024-08-16,KONOBA,-45.45,EUR,Étterem\n".encode()


def _image(name: str) -> UploadedFile:
    return UploadedFile(filename=name, content_type="image/png", body=PNG)


def _statement_file() -> UploadedFile:
    return UploadedFile(filename="statement.csv", content_type="text/csv", body=CSV)


class FakeReceiptExtractor:
    def __init__(self, by_filename: dict[str, RawCandidate | Exception | None]) -> None:
        self.by_filename = by_filename
        self.seen: list[str] = []

    async def extract(self, upload: UploadedFile, catalog: Catalog) -> RawCandidate | None:
        self.seen.append(upload.filename)
        result = self.by_filename.get(upload.filename)
        if isinstance(result, Exception):
            raise result
        return result


class FakeStatementExtractor:
    def __init__(self, rows: list[RawCandidate] | Exception) -> None:
        self.rows = rows
        self.texts: list[str] = []

    async def extract(self, text: str, catalog: Catalog) -> list[RawCandidate]:
        self.texts.append(text)
        if isinstance(self.rows, Exception):
            raise self.rows
        return self.rows


class BlockingReceiptExtractor:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False

    async def extract(self, upload: UploadedFile, catalog: Catalog) -> RawCandidate | None:
        self.started.set()
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return None


KONOBA_RECEIPT = RawCandidate(
    origin=CandidateOrigin.RECEIPT,
    transaction_date=date(2024, 8, 16),
    amount=Decimal("45.50"),
    currency=CurrencyCode.EUR,
    merchant="Konoba Dalmatino",
    category_name="Food",
    payment_method=PaymentType.CARD,
    line_items=("Grilled squid: 22.00", "House wine: 23.50"),
    original_line_items=("Lignje na žaru: 22.00", "Domaće vino: 23.50"),
)
FERRY_RECEIPT = RawCandidate(
    origin=CandidateOrigin.RECEIPT,
    transaction_date=date(2024, 8, 14),
    amount=Decimal("1200"),
    currency=CurrencyCode.HUF,
    merchant="Jadrolinija",
    category_name="Travel",
)
KONOBA_ROW = RawCandidate(
    origin=CandidateOrigin.STATEMENT,
    transaction_date=date(2024, 8, 16),
    amount=Decimal("45.45"),
    currency=CurrencyCode.EUR,
    merchant="KONOBA",
    category_name="Food",
    original_category="Étterem",
)
FUEL_ROW = RawCandidate(
    origin=CandidateOrigin.STATEMENT,
    transaction_date=date(2024, 8, 17),
    amount=Decimal("60.00"),
    currency=CurrencyCode.EUR,
    merchant="INA",
    category_name="Útiköltség",
)


def _catalog_provider():
    def provide() -> Catalog:
        with SessionLocal() as session:
            return load_catalog(session)

    return provide


def _session(receipts=None, rows=None) -> ReconciliationSession:
    return ReconciliationSession(
        receipt_extractor=FakeReceiptExtractor(receipts or {}),
        statement_extractor=FakeStatementExtractor(rows if rows is not None else []),
    )


def test_full_import_merges_resolves_and_commits(trip_id):
    session = _session(
        receipts={"konoba.png": KONOBA_RECEIPT, "ferry.png": FERRY_RECEIPT},
        rows=[KONOBA_ROW, FUEL_ROW],
    )
    assert session.state == SessionState.IDLE

    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    session.add_receipt(_image("ferry.png"))
    session.set_statement(_statement_file())
    assert session.state == SessionState.UPLOADING

    report = asyncio.run(session.process(_catalog_provider()))

    assert session.state == SessionState.REVIEW
    assert report.receipt_count == 2
    assert report.failed_receipts == 0
    assert report.statement_rows == 2
    assert report.merged_count == 1
    assert report.receipt_only_count == 1
    assert report.statement_only_count == 1
    assert "KONOBA" in session._statement_extractor.texts[0]

    assert [i.transaction_date for i in session.items] == [
        date(2024, 8, 17),
        date(2024, 8, 16),
        date(2024, 8, 14),
    ]
    fuel, konoba, ferry = session.items
    assert konoba.provenance == Provenance.MERGED
    assert konoba.merchant == "Konoba Dalmatino"
    assert konoba.category_name == "Food"
    assert fuel.category_name == "Other"
    assert ferry.category_name == "Travel"

    with SessionLocal() as db:
        result = session.commit(db)
        assert result.created_count == 3
        assert session.state == SessionState.COMMITTED

        expenses = list(db.scalars(select(Expense).order_by(Expense.transaction_date)))
        assert [e.amount_home for e in expenses] == [
            Decimal("1200.0000"),
            Decimal("17972.5000"),
            Decimal("23700.0000"),
        ]
        assert expenses[1].provenance == Provenance.MERGED
        assert expenses[1].raw_items_text == "Grilled squid: 22.00\nHouse wine: 23.50"
        assert expenses[1].original_items_text == "Lignje na žaru: 22.00\nDomaće vino: 23.50"


def test_failed_receipt_is_dropped_with_report(trip_id):
    session = _session(
        receipts={
            "konoba.png": KONOBA_RECEIPT,
            "blurry.png": None,
            "broken.png": RuntimeError("model timeout"),
        }
    )
    session.select_trip(trip_id)
    for name in ("konoba.png", "blurry.png", "broken.png"):
        session.add_receipt(_image(name))

    report = asyncio.run(session.process(_catalog_provider()))

    assert session.state == SessionState.REVIEW
    assert report.failed_receipts == 2
    assert [i.merchant for i in session.items] == ["Konoba Dalmatino"]


def test_statement_failure_counts_as_no_rows(trip_id):
    session = _session(receipts={"konoba.png": KONOBA_RECEIPT}, rows=RuntimeError("bad gateway"))
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    session.set_statement(_statement_file())

    report = asyncio.run(session.process(_catalog_provider()))

    assert report.statement_failed is True
    assert report.statement_rows == 0
    assert [i.provenance for i in session.items] == [Provenance.RECEIPT]


def test_empty_catalog_aborts_to_idle_and_keeps_trip(trip_id):
    session = _session(receipts={"konoba.png": KONOBA_RECEIPT})
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))

    with pytest.raises(EmptyCatalog):
        asyncio.run(session.process(lambda: Catalog(categories=())))

    assert session.state == SessionState.IDLE
    assert session.receipts == []
    assert session.trip_id == trip_id
    assert session.items == []


def test_process_requires_trip_and_files(trip_id):
    session = _session()
    with pytest.raises(InvalidSessionState):
        asyncio.run(session.process(_catalog_provider()))

    session.add_receipt(_image("konoba.png"))
    with pytest.raises(InvalidSessionState):
        asyncio.run(session.process(_catalog_provider()))
    assert session.state == SessionState.UPLOADING


def test_uploads_are_checked_by_kind():
    session = _session()
    with pytest.raises(UnsupportedUpload):
        session.add_receipt(UploadedFile(filename="receipt.csv", content_type="text/csv", body=CSV))
    with pytest.raises(UnsupportedUpload):
        session.set_statement(_image("statement.png"))
    assert session.state == SessionState.IDLE


def test_receipt_queue_is_capped_and_removable():
    session = ReconciliationSession(
        receipt_extractor=FakeReceiptExtractor({}),
        statement_extractor=FakeStatementExtractor([]),
        max_receipts=2,
    )
    session.add_receipt(_image("a.png"))
    session.add_receipt(_image("b.png"))
    with pytest.raises(InvalidSessionState):
        session.add_receipt(_image("c.png"))

    session.remove_receipt(0)
    assert [r.filename for r in session.receipts] == ["b.png"]
    session.remove_receipt(0)
    assert session.state == SessionState.IDLE


def test_review_edits_replace_references(trip_id):
    session = _session(receipts={"konoba.png": KONOBA_RECEIPT})
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    asyncio.run(session.process(_catalog_provider()))

    [item] = session.items
    travel = next(c for c in session.catalog.categories if c.name == "Travel")

    session.update_item(item.id, {"category_id": travel.id, "merchant": "  Konoba  "})
    assert item.category_id == travel.id
    assert item.category_name == "Travel"
    assert item.merchant == "Konoba"

    session.update_item(item.id, {"category_name": "groceries"})
    assert item.category_name == "Groceries"

    with pytest.raises(ItemNotFound):
        session.update_item(uuid.UUID(int=0), {"merchant": "x"})

    session.remove_item(item.id)
    assert session.items == []


def test_edits_outside_review_are_rejected():
    session = _session()
    with pytest.raises(InvalidSessionState):
        session.remove_item(uuid.uuid4())


def test_commit_failure_stays_in_review(trip_id):
    session = _session(receipts={"konoba.png": KONOBA_RECEIPT, "ferry.png": FERRY_RECEIPT})
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    session.add_receipt(_image("ferry.png"))
    asyncio.run(session.process(_catalog_provider()))

    ferry = next(i for i in session.items if i.merchant == "Jadrolinija")
    session.update_item(ferry.id, {"amount": Decimal("-3")})

    with SessionLocal() as db:
        with pytest.raises(BatchValidationError) as excinfo:
            session.commit(db)
        assert db.scalar(select(Expense.id)) is None

    assert session.state == SessionState.REVIEW
    assert excinfo.value.errors[0].field == "amount"
    assert excinfo.value.index == session.items.index(ferry)

    session.update_item(ferry.id, {"amount": Decimal("1300")})
    with SessionLocal() as db:
        assert session.commit(db).created_count == 2
    assert session.state == SessionState.COMMITTED


def test_abandon_cancels_in_flight_extraction(trip_id):
    extractor = BlockingReceiptExtractor()
    session = ReconciliationSession(
        receipt_extractor=extractor,
        statement_extractor=FakeStatementExtractor([]),
    )
    session.select_trip(trip_id)
    session.add_receipt(_image("slow.png"))

    async def scenario() -> None:
        task = asyncio.create_task(session.process(_catalog_provider()))
        await extractor.started.wait()
        assert session.state == SessionState.PROCESSING
        session.abandon()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(scenario())

    assert extractor.cancelled is True
    assert session.state == SessionState.IDLE
    assert session.receipts == []


def test_concurrent_commits_persist_the_batch_once(trip_id, monkeypatch):
    from trip_ledger.modules.expenses import service as expenses_service

    session = _session(receipts={"konoba.png": KONOBA_RECEIPT})
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    asyncio.run(session.process(_catalog_provider()))

    real_load_catalog = expenses_service.load_catalog

    def slow_load_catalog(db):
        time.sleep(0.3)
        return real_load_catalog(db)

    monkeypatch.setattr(expenses_service, "load_catalog", slow_load_catalog)

    barrier = threading.Barrier(2)
    outcomes: list[object] = []

    def commit() -> None:
        barrier.wait()
        with SessionLocal() as db:
            try:
                outcomes.append(session.commit(db).created_count)
            except InvalidSessionState as e:
                outcomes.append(e)

    threads = [threading.Thread(target=commit) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    assert len(outcomes) == 2
    assert outcomes.count(1) == 1
    assert sum(1 for o in outcomes if isinstance(o, InvalidSessionState)) == 1
    assert session.state == SessionState.COMMITTED
    with SessionLocal() as db:
        assert len(list(db.scalars(select(Expense.id)))) == 1


def test_abandon_is_refused_while_committing(trip_id):
    session = _session(receipts={"konoba.png": KONOBA_RECEIPT})
    session.select_trip(trip_id)
    session.add_receipt(_image("konoba.png"))
    asyncio.run(session.process(_catalog_provider()))

    session.state = SessionState.COMMITTING
    with pytest.raises(InvalidSessionState):
        session.abandon()
    assert len(session.items) == 1

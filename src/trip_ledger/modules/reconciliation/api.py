from __future__ import annotations

import uuid
from functools import partial

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from trip_ledger.core.db import db_session
from trip_ledger.modules.categories.service import load_catalog
from trip_ledger.modules.expenses.schemas import BatchCommitOut
from trip_ledger.modules.extraction.schemas import UploadedFile
from trip_ledger.modules.reconciliation.schemas import (
    ImportItemOut,
    ImportItemPatch,
    ImportSessionOut,
    SelectTripIn,
    item_out,
    session_out,
)
from trip_ledger.modules.reconciliation.service import (
    abandon_session,
    commit_session,
    create_session,
    get_session,
)
from trip_ledger.modules.trips.service import get_trip

router = APIRouter(tags=["imports"])


@router.post("/imports", response_model=ImportSessionOut, status_code=201)
def create_import() -> ImportSessionOut:
    return session_out(create_session())


@router.get("/imports/{session_id}", response_model=ImportSessionOut)
def get_import(session_id: str) -> ImportSessionOut:
    return session_out(get_session(session_id))


@router.put("/imports/{session_id}/trip", response_model=ImportSessionOut)
def select_import_trip(
    session_id: str,
    payload: SelectTripIn,
    session: Session = Depends(db_session),
) -> ImportSessionOut:
    import_session = get_session(session_id)
    trip = get_trip(session, trip_id=payload.trip_id)
    import_session.select_trip(trip.id)
    return session_out(import_session)


@router.post("/imports/{session_id}/receipts", response_model=ImportSessionOut)
async def upload_receipts(
    session_id: str,
    uploads: list[UploadFile] = File(...),
) -> ImportSessionOut:
    import_session = get_session(session_id)
    for upload in uploads:
        import_session.add_receipt(await _read_upload(upload))
    return session_out(import_session)


@router.delete("/imports/{session_id}/receipts/{index}", response_model=ImportSessionOut)
def remove_receipt(session_id: str, index: int) -> ImportSessionOut:
    import_session = get_session(session_id)
    import_session.remove_receipt(index)
    return session_out(import_session)


@router.post("/imports/{session_id}/statement", response_model=ImportSessionOut)
async def upload_statement(
    session_id: str,
    upload: UploadFile = File(...),
) -> ImportSessionOut:
    import_session = get_session(session_id)
    import_session.set_statement(await _read_upload(upload))
    return session_out(import_session)


@router.post("/imports/{session_id}/process", response_model=ImportSessionOut)
async def process_import(
    session_id: str,
    session: Session = Depends(db_session),
) -> ImportSessionOut:
    import_session = get_session(session_id)
    await import_session.process(partial(load_catalog, session))
    return session_out(import_session)


@router.patch("/imports/{session_id}/items/{item_id}", response_model=ImportItemOut)
def update_import_item(
    session_id: str,
    item_id: uuid.UUID,
    payload: ImportItemPatch,
) -> ImportItemOut:
    import_session = get_session(session_id)
    item = import_session.update_item(item_id, payload.model_dump(exclude_unset=True))
    return item_out(item)


@router.delete("/imports/{session_id}/items/{item_id}", status_code=204)
def remove_import_item(session_id: str, item_id: uuid.UUID) -> None:
    get_session(session_id).remove_item(item_id)


@router.post("/imports/{session_id}/commit", response_model=BatchCommitOut)
def commit_import(
    session_id: str,
    session: Session = Depends(db_session),
) -> BatchCommitOut:
    result = commit_session(session, session_id=session_id)
    return BatchCommitOut(count=result.created_count)


@router.delete("/imports/{session_id}", status_code=204)
async def abandon_import(session_id: str) -> None:
    # Runs on the event loop: cancelling extraction tasks is not thread-safe.
    abandon_session(session_id)


async def _read_upload(upload: UploadFile) -> UploadedFile:
    body = await upload.read()
    return UploadedFile(
        filename=upload.filename or "upload.bin",
        content_type=upload.content_type,
        body=body,
    )

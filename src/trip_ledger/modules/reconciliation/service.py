from __future__ import annotations

import threading

from sqlalchemy.orm import Session

from trip_ledger.core.errors import SessionNotFound
from trip_ledger.core.logging import get_logger, log_event
from trip_ledger.modules.expenses.service import BatchResult
from trip_ledger.modules.extraction.service import (
    OpenAIReceiptExtractor,
    OpenAIStatementExtractor,
    ReceiptExtractor,
    StatementExtractor,
)
from trip_ledger.modules.reconciliation.session import ReconciliationSession

logger = get_logger(__name__)

_sessions: dict[str, ReconciliationSession] = {}
_lock = threading.Lock()


def create_session(
    *,
    receipt_extractor: ReceiptExtractor | None = None,
    statement_extractor: StatementExtractor | None = None,
) -> ReconciliationSession:
    session = ReconciliationSession(
        receipt_extractor=receipt_extractor or OpenAIReceiptExtractor(),
        statement_extractor=statement_extractor or OpenAIStatementExtractor(),
    )
    with _lock:
        _sessions[session.id] = session
    log_event(logger, "import.session.created", session_id=session.id)
    return session


def get_session(session_id: str) -> ReconciliationSession:
    with _lock:
        session = _sessions.get(session_id)
    if session is None:
        raise SessionNotFound(f"Import session not found: {session_id}")
    return session


def discard_session(session_id: str) -> None:
    with _lock:
        _sessions.pop(session_id, None)


def commit_session(db: Session, *, session_id: str) -> BatchResult:
    """Commit the reviewed items; the session is forgotten only on success."""
    session = get_session(session_id)
    result = session.commit(db)
    discard_session(session_id)
    return result


def abandon_session(session_id: str) -> None:
    session = get_session(session_id)
    session.abandon()
    discard_session(session_id)

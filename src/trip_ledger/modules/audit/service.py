from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from trip_ledger.modules.audit.models import AuditEvent


def record_event(
    session: Session,
    *,
    event_type: str,
    trip_id: uuid.UUID | None = None,
    import_session_id: str | None = None,
    payload: dict | None = None,
) -> AuditEvent:
    """Stage an audit event on the caller's transaction; the caller commits."""
    event = AuditEvent(
        trip_id=trip_id,
        import_session_id=import_session_id,
        event_type=event_type,
        payload_json=payload or {},
    )
    session.add(event)
    return event


def list_events(session: Session, *, trip_id: uuid.UUID) -> list[AuditEvent]:
    return list(
        session.scalars(
            select(AuditEvent)
            .where(AuditEvent.trip_id == trip_id)
            .order_by(AuditEvent.occurred_at)
        )
    )

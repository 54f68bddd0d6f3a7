from __future__ import annotations

from trip_ledger.core.config import settings
from trip_ledger.core.db import engine, session_scope
from trip_ledger.core.logging import get_logger, log_event
from trip_ledger.core.models import Base
from trip_ledger.modules.categories.service import seed_default_categories

logger = get_logger(__name__)


def bootstrap() -> None:
    if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
        import trip_ledger.models  # noqa: F401

        Base.metadata.create_all(engine)

    with session_scope() as session:
        created = seed_default_categories(session)
    if created:
        log_event(logger, "categories.seeded", count=created)

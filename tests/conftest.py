from __future__ import annotations

import os
import uuid
from datetime import date

import pytest

# Set env before any trip_ledger imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.trip_ledger_test.db")
os.environ.setdefault("OPENAI_API_KEY", "")


@pytest.fixture(autouse=True)
def _reset_db() -> None:
    import trip_ledger.models  # noqa: F401
    from trip_ledger.core.db import engine
    from trip_ledger.core.models import Base
    from trip_ledger.modules.reconciliation import service as reconciliation_service

    reconciliation_service._sessions.clear()

    # Reset DB schema
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield


@pytest.fixture()
def seeded_categories() -> None:
    from trip_ledger.core.db import SessionLocal
    from trip_ledger.modules.categories.service import seed_default_categories

    with SessionLocal() as session:
        seed_default_categories(session)


@pytest.fixture()
def trip_id(seeded_categories) -> uuid.UUID:
    """A Croatia trip with EUR 395, USD 360 and HRK 52 to HUF."""
    from decimal import Decimal

    from trip_ledger.core.db import SessionLocal
    from trip_ledger.modules.fx.service import set_trip_rates
    from trip_ledger.modules.trips.service import create_trip

    with SessionLocal() as session:
        trip = create_trip(
            session,
            name="Croatia 2024",
            start_date=date(2024, 8, 10),
            end_date=date(2024, 8, 20),
            budget_home_amount=Decimal("500000"),
        )
        set_trip_rates(
            session,
            trip_id=trip.id,
            rates=[("EUR", Decimal("395")), ("USD", Decimal("360")), ("HRK", Decimal("52"))],
        )
        return trip.id

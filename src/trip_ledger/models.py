"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Trips first: the other tables reference trips_trip.
from trip_ledger.modules.trips.models import Trip, TripBudget  # noqa: F401

from trip_ledger.modules.audit.models import AuditEvent  # noqa: F401
from trip_ledger.modules.categories.models import Category, Subcategory  # noqa: F401
from trip_ledger.modules.expenses.models import Expense  # noqa: F401
from trip_ledger.modules.fx.models import FxRate  # noqa: F401

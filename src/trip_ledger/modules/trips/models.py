from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trip_ledger.core.currencies import HOME_CURRENCY
from trip_ledger.core.models import Base, Money, Timestamped, UUIDPrimaryKey


class Trip(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "trips_trip"

    name: Mapped[str] = mapped_column(String(200))
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    home_currency: Mapped[str] = mapped_column(String(3), default=HOME_CURRENCY.value)
    budget_home_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))
    # Running total of committed expenses; only written under a row lock.
    spent_home_amount: Mapped[Decimal] = mapped_column(Money, default=Decimal("0"))

    budgets = relationship("TripBudget", back_populates="trip", cascade="all, delete-orphan")


class TripBudget(UUIDPrimaryKey, Base):
    __tablename__ = "trips_trip_budget"
    __table_args__ = (UniqueConstraint("trip_id", "category_id", name="uq_trip_budget_category"),)

    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trips_trip.id"), index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id")
    )
    amount_home: Mapped[Decimal] = mapped_column(Money)

    trip = relationship("Trip", back_populates="budgets")
    category = relationship("Category")

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trip_ledger.core.models import Base, Rate, Timestamped, UUIDPrimaryKey


class FxRate(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "fx_rate"
    __table_args__ = (
        UniqueConstraint("trip_id", "from_currency", "to_currency", name="uq_fx_trip_pair"),
    )

    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trips_trip.id"), index=True
    )
    from_currency: Mapped[str] = mapped_column(String(3))
    to_currency: Mapped[str] = mapped_column(String(3))
    rate: Mapped[Decimal] = mapped_column(Rate)
    as_of_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    source: Mapped[str | None] = mapped_column(String(100), nullable=True)

    trip = relationship("Trip")

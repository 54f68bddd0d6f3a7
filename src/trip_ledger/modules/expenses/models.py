from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, Enum, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trip_ledger.core.models import Base, Money, Timestamped, UUIDPrimaryKey

MERCHANT_MAX_LENGTH = 200


class PaymentType(str, enum.Enum):
    CASH = "CASH"
    CARD = "CARD"
    WIRE_TRANSFER = "WIRE_TRANSFER"


class Provenance(str, enum.Enum):
    RECEIPT = "receipt"
    STATEMENT = "statement"
    MERGED = "merged"
    MANUAL = "manual"


class Expense(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "expenses_expense"

    trip_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("trips_trip.id"), index=True
    )
    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id"), index=True
    )
    subcategory_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_subcategory.id"), nullable=True
    )

    transaction_date: Mapped[date] = mapped_column(Date, index=True)
    merchant: Mapped[str] = mapped_column(String(MERCHANT_MAX_LENGTH))
    payer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_type: Mapped[PaymentType] = mapped_column(Enum(PaymentType, native_enum=False))

    amount_original: Mapped[Decimal] = mapped_column(Money)
    currency: Mapped[str] = mapped_column(String(3))
    amount_home: Mapped[Decimal] = mapped_column(Money)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    provenance: Mapped[Provenance] = mapped_column(
        Enum(Provenance, native_enum=False), default=Provenance.MANUAL
    )
    is_ai_parsed: Mapped[bool] = mapped_column(Boolean, default=False)
    needs_review: Mapped[bool] = mapped_column(Boolean, default=False)
    raw_items_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Receipt line items as printed, before translation.
    original_items_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    trip = relationship("Trip")
    category = relationship("Category")
    subcategory = relationship("Subcategory")

from __future__ import annotations

import uuid

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from trip_ledger.core.models import Base, Timestamped, UUIDPrimaryKey


class Category(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "categories_category"

    name: Mapped[str] = mapped_column(String(100), unique=True)
    color: Mapped[str | None] = mapped_column(String(20), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)

    subcategories = relationship(
        "Subcategory",
        back_populates="category",
        cascade="all, delete-orphan",
        order_by="Subcategory.name",
    )


class Subcategory(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "categories_subcategory"
    __table_args__ = (
        UniqueConstraint("category_id", "name", name="uq_subcategory_category_name"),
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("categories_category.id"), index=True
    )
    name: Mapped[str] = mapped_column(String(100))

    category = relationship("Category", back_populates="subcategories")

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from trip_ledger.modules.categories.models import Category
from trip_ledger.modules.categories.resolver import Catalog, CatalogCategory, CatalogSubcategory

DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Food", "#FFD9B3"),
    ("Travel", "#B3D9FF"),
    ("Accommodation", "#C1F0C1"),
    ("Entertainment", "#E6C3FF"),
    ("Groceries", "#FFF4B3"),
    ("Shopping", "#FFB3D9"),
    ("Other", "#E5E7EB"),
)


def list_categories(session: Session) -> list[Category]:
    return list(
        session.scalars(
            select(Category)
            .options(selectinload(Category.subcategories))
            .order_by(Category.sort_order, Category.name)
        )
    )


def load_catalog(session: Session) -> Catalog:
    """Fresh read of the category tree in canonical order."""
    return Catalog(
        categories=tuple(
            CatalogCategory(
                id=c.id,
                name=c.name,
                subcategories=tuple(
                    CatalogSubcategory(id=s.id, name=s.name) for s in c.subcategories
                ),
            )
            for c in list_categories(session)
        )
    )


def seed_default_categories(session: Session) -> int:
    if session.scalar(select(func.count()).select_from(Category)):
        return 0
    for idx, (name, color) in enumerate(DEFAULT_CATEGORIES):
        session.add(Category(name=name, color=color, sort_order=idx))
    session.commit()
    return len(DEFAULT_CATEGORIES)

"""
Category resolution against the category catalog.

A free-text or id reference coming from an extractor (or from a human edit) is
resolved with a fixed fallback chain:

    category:     id in catalog -> exact name (trim + casefold) -> "Other" -> first entry
    subcategory:  id within the chosen category -> exact name within it -> unset

Resolution only fails when the catalog is empty.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from trip_ledger.core.errors import EmptyCatalog

DEFAULT_CATEGORY_NAME = "Other"


@dataclass(frozen=True)
class CatalogSubcategory:
    id: uuid.UUID
    name: str


@dataclass(frozen=True)
class CatalogCategory:
    id: uuid.UUID
    name: str
    subcategories: tuple[CatalogSubcategory, ...] = ()

    def subcategory_by_id(self, subcategory_id: uuid.UUID) -> CatalogSubcategory | None:
        for sub in self.subcategories:
            if sub.id == subcategory_id:
                return sub
        return None

    def subcategory_by_name(self, name: str) -> CatalogSubcategory | None:
        key = normalize_name(name)
        if not key:
            return None
        for sub in self.subcategories:
            if normalize_name(sub.name) == key:
                return sub
        return None


@dataclass(frozen=True)
class Catalog:
    """Immutable, canonically ordered snapshot of the category tree."""

    categories: tuple[CatalogCategory, ...]

    def __len__(self) -> int:
        return len(self.categories)

    def by_id(self, category_id: uuid.UUID) -> CatalogCategory | None:
        for cat in self.categories:
            if cat.id == category_id:
                return cat
        return None

    def by_name(self, name: str) -> CatalogCategory | None:
        key = normalize_name(name)
        if not key:
            return None
        for cat in self.categories:
            if normalize_name(cat.name) == key:
                return cat
        return None

    def prompt_listing(self) -> str:
        return "\n".join(
            f"- {c.name}: [{', '.join(s.name for s in c.subcategories)}]" for c in self.categories
        )


@dataclass(frozen=True)
class ById:
    id: uuid.UUID
    # Name known alongside the id; used when the id is stale.
    name: str | None = None


@dataclass(frozen=True)
class ByName:
    name: str


@dataclass(frozen=True)
class Unresolved:
    pass


UNRESOLVED = Unresolved()

CategoryRef = ById | ByName | Unresolved


@dataclass(frozen=True)
class Resolution:
    category_id: uuid.UUID
    category_name: str
    subcategory_id: uuid.UUID | None = None
    subcategory_name: str | None = None


def normalize_name(name: str | None) -> str:
    return (name or "").strip().casefold()


def make_ref(*, ref_id: uuid.UUID | str | None = None, name: str | None = None) -> CategoryRef:
    clean_name = name.strip() if isinstance(name, str) and name.strip() else None
    if ref_id:
        try:
            parsed = ref_id if isinstance(ref_id, uuid.UUID) else uuid.UUID(str(ref_id))
        except ValueError:
            parsed = None
        if parsed is not None:
            return ById(parsed, name=clean_name)
    if clean_name:
        return ByName(clean_name)
    return UNRESOLVED


def resolve(
    category_ref: CategoryRef,
    subcategory_ref: CategoryRef,
    catalog: Catalog,
) -> Resolution:
    category = resolve_category(category_ref, catalog)
    subcategory = resolve_subcategory(subcategory_ref, category)
    return Resolution(
        category_id=category.id,
        category_name=category.name,
        subcategory_id=subcategory.id if subcategory else None,
        subcategory_name=subcategory.name if subcategory else None,
    )


def resolve_category(ref: CategoryRef, catalog: Catalog) -> CatalogCategory:
    if not catalog.categories:
        raise EmptyCatalog()

    name: str | None = None
    if isinstance(ref, ById):
        found = catalog.by_id(ref.id)
        if found:
            return found
        name = ref.name
    elif isinstance(ref, ByName):
        name = ref.name

    if name:
        found = catalog.by_name(name)
        if found:
            return found

    return catalog.by_name(DEFAULT_CATEGORY_NAME) or catalog.categories[0]


def resolve_subcategory(ref: CategoryRef, category: CatalogCategory) -> CatalogSubcategory | None:
    name: str | None = None
    if isinstance(ref, ById):
        found = category.subcategory_by_id(ref.id)
        if found:
            return found
        name = ref.name
    elif isinstance(ref, ByName):
        name = ref.name

    if name:
        return category.subcategory_by_name(name)
    return None

from __future__ import annotations

import uuid

from pydantic import BaseModel


class SubcategoryOut(BaseModel):
    id: uuid.UUID
    name: str


class CategoryOut(BaseModel):
    id: uuid.UUID
    name: str
    color: str | None
    sort_order: int
    subcategories: list[SubcategoryOut]

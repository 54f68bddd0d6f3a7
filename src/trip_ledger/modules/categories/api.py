from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trip_ledger.core.db import db_session
from trip_ledger.modules.categories.schemas import CategoryOut
from trip_ledger.modules.categories.service import list_categories

router = APIRouter(tags=["categories"])


@router.get("/categories", response_model=list[CategoryOut])
def list_categories_endpoint(session: Session = Depends(db_session)) -> list[CategoryOut]:
    return [CategoryOut.model_validate(c, from_attributes=True) for c in list_categories(session)]

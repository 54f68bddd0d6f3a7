from __future__ import annotations

from fastapi import APIRouter

from trip_ledger.modules.categories.api import router as categories_router
from trip_ledger.modules.expenses.api import router as expenses_router
from trip_ledger.modules.fx.api import router as fx_router
from trip_ledger.modules.reconciliation.api import router as imports_router
from trip_ledger.modules.trips.api import router as trips_router

router = APIRouter()

router.include_router(trips_router, prefix="/api")
router.include_router(categories_router, prefix="/api")
router.include_router(fx_router, prefix="/api")
router.include_router(expenses_router, prefix="/api")
router.include_router(imports_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from trip_ledger.api.router import router as api_router
from trip_ledger.bootstrap import bootstrap
from trip_ledger.core.errors import LedgerError
from trip_ledger.core.logging import RequestContextMiddleware, get_logger, log_event

logger = get_logger(__name__)


def create_app() -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI):
        bootstrap()
        yield

    app = FastAPI(title="Trip Ledger", version="0.1.0", lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        log_event(
            logger,
            "http.request.rejected",
            method=request.method,
            path=request.url.path,
            status_code=exc.status_code,
            error=type(exc).__name__,
            detail=exc.detail,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    app.include_router(api_router)
    return app


app = create_app()

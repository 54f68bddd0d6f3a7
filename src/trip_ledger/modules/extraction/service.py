from __future__ import annotations

import time
from typing import Protocol

import httpx

from trip_ledger.core.logging import get_logger, log_event, log_exception, monotonic_ms
from trip_ledger.modules.categories.resolver import Catalog
from trip_ledger.modules.extraction.ai import (
    receipt_ai_available,
    request_receipt_fields,
    request_statement_rows,
    sanitize_receipt,
    sanitize_statement,
)
from trip_ledger.modules.extraction.files import image_media_type
from trip_ledger.modules.extraction.schemas import RawCandidate, UploadedFile

logger = get_logger(__name__)


class ReceiptExtractor(Protocol):
    async def extract(self, upload: UploadedFile, catalog: Catalog) -> RawCandidate | None:
        """One candidate per image, or None when the image could not be read."""


class StatementExtractor(Protocol):
    async def extract(self, text: str, catalog: Catalog) -> list[RawCandidate]:
        """Statement rows in document order; empty on failure."""


class OpenAIReceiptExtractor:
    def __init__(self, *, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def extract(self, upload: UploadedFile, catalog: Catalog) -> RawCandidate | None:
        if not receipt_ai_available():
            log_event(logger, "extraction.receipt.disabled", filename=upload.filename)
            return None

        start = time.monotonic()
        try:
            async with _client_scope(self._client) as client:
                obj = await request_receipt_fields(
                    client,
                    image=upload.body,
                    media_type=image_media_type(upload),
                    category_listing=catalog.prompt_listing(),
                )
        except httpx.HTTPError:
            log_exception(
                logger,
                "extraction.receipt.failed",
                filename=upload.filename,
                duration_ms=monotonic_ms(start),
            )
            return None

        candidate = sanitize_receipt(obj) if obj else None
        log_event(
            logger,
            "extraction.receipt.finish",
            filename=upload.filename,
            parsed=candidate is not None,
            duration_ms=monotonic_ms(start),
        )
        return candidate


class OpenAIStatementExtractor:
    def __init__(self, *, client: httpx.AsyncClient | None = None) -> None:
        self._client = client

    async def extract(self, text: str, catalog: Catalog) -> list[RawCandidate]:
        if not receipt_ai_available():
            log_event(logger, "extraction.statement.disabled")
            return []

        start = time.monotonic()
        try:
            async with _client_scope(self._client) as client:
                obj = await request_statement_rows(
                    client, text=text, category_listing=catalog.prompt_listing()
                )
        except httpx.HTTPError:
            log_exception(
                logger,
                "extraction.statement.failed",
                char_count=len(text),
                duration_ms=monotonic_ms(start),
            )
            return []

        rows = sanitize_statement(obj) if obj else []
        log_event(
            logger,
            "extraction.statement.finish",
            char_count=len(text),
            row_count=len(rows),
            duration_ms=monotonic_ms(start),
        )
        return rows


class _client_scope:
    """Use the injected client as-is, or open (and close) a private one."""

    def __init__(self, client: httpx.AsyncClient | None) -> None:
        self._given = client
        self._owned: httpx.AsyncClient | None = None

    async def __aenter__(self) -> httpx.AsyncClient:
        if self._given is not None:
            return self._given
        self._owned = httpx.AsyncClient()
        return self._owned

    async def __aexit__(self, *exc) -> None:
        if self._owned is not None:
            await self._owned.aclose()

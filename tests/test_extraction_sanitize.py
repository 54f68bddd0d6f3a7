from __future__ import annotations

import asyncio
import json
import uuid
from datetime import date
from decimal import Decimal

import httpx

from trip_ledger.core.currencies import CurrencyCode
from trip_ledger.modules.categories.resolver import Catalog, CatalogCategory
from trip_ledger.modules.expenses.models import PaymentType
from trip_ledger.modules.extraction.ai import sanitize_receipt, sanitize_statement
from trip_ledger.modules.extraction.schemas import CandidateOrigin, UploadedFile

CATALOG = Catalog(
    categories=(
        CatalogCategory(id=uuid.uuid4(), name="Food"),
        CatalogCategory(id=uuid.uuid4(), name="Other"),
    )
)


def test_sanitize_receipt_reads_model_fields():
    candidate = sanitize_receipt(
        {
            "merchant": " Konoba Dalmatino ",
            "date": "2024-08-16",
            "amount": "45,50",
            "currency": "€",
            "category": "Food",
            "subcategory": None,
            "description": "Dinner by the harbour",
            "paymentType": "card",
            "rawItems": ["Grilled squid: 22.00", "", 7, "House wine: 23.50"],
            "originalItems": ["Lignje na žaru: 22,00"],
        }
    )

    assert candidate is not None
    assert candidate.origin == CandidateOrigin.RECEIPT
    assert candidate.merchant == "Konoba Dalmatino"
    assert candidate.transaction_date == date(2024, 8, 16)
    assert candidate.amount == Decimal("45.50")
    assert candidate.currency == CurrencyCode.EUR
    assert candidate.payment_method == PaymentType.CARD
    assert candidate.subcategory_name is None
    assert candidate.line_items == ("Grilled squid: 22.00", "House wine: 23.50")
    assert candidate.raw_items_text == "Grilled squid: 22.00\nHouse wine: 23.50"
    assert candidate.original_items_text == "Lignje na žaru: 22,00"


def test_sanitize_receipt_drops_unusable_responses():
    assert sanitize_receipt({"date": "2024-08-16", "amount": 10, "currency": "GBP"}) is None
    assert sanitize_receipt({"date": "16/08/2024", "amount": 10, "currency": "EUR"}) is None
    assert sanitize_receipt({"date": "2024-08-16", "amount": 0, "currency": "EUR"}) is None
    assert sanitize_receipt({"date": "2024-08-16", "amount": True, "currency": "EUR"}) is None


def test_sanitize_statement_keeps_valid_rows_as_absolute_amounts():
    rows = sanitize_statement(
        {
            "transactions": [
                {
                    "date": "2024-08-16",
                    "amount": -45.45,
                    "currency": "EUR",
                    "merchant": "KONOBA",
                    "category": "Food",
                    "originalCategory": "Étterem",
                },
                {"date": "2024-08-17", "amount": "-1.234,56", "currency": "HUF"},
                {"date": None, "amount": 3, "currency": "EUR"},
                "garbage",
            ]
        }
    )

    assert [r.amount for r in rows] == [Decimal("45.45"), Decimal("1234.56")]
    assert rows[0].origin == CandidateOrigin.STATEMENT
    assert rows[0].original_category == "Étterem"
    assert rows[1].merchant is None


def test_sanitize_statement_without_transactions_is_empty():
    assert sanitize_statement({}) == []
    assert sanitize_statement({"transactions": "none"}) == []


def _chat_response(content: dict) -> httpx.Response:
    fenced = "```json\n" + json.dumps(content) + "\n```"
    return httpx.Response(200, json={"choices": [{"message": {"content": fenced}}]})


def test_openai_receipt_extractor_sends_image_and_category_list(monkeypatch):
    from trip_ledger.modules.extraction import service as extraction_service

    monkeypatch.setattr(extraction_service, "receipt_ai_available", lambda: True)
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(json.loads(request.content))
        return _chat_response(
            {"merchant": "Konoba", "date": "2024-08-16", "amount": 45.5, "currency": "EUR"}
        )

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            extractor = extraction_service.OpenAIReceiptExtractor(client=client)
            upload = UploadedFile("r.png", "image/png", b"\x89PNG\r\n\x1a\nrest")
            return await extractor.extract(upload, CATALOG)

    candidate = asyncio.run(run())

    assert candidate is not None
    assert candidate.amount == Decimal("45.5")
    content = requests[0]["messages"][1]["content"]
    assert "- Food: []" in content[0]["text"]
    assert content[1]["image_url"]["url"].startswith("data:image/png;base64,")


def test_openai_extractors_swallow_http_errors(monkeypatch):
    from trip_ledger.modules.extraction import service as extraction_service

    monkeypatch.setattr(extraction_service, "receipt_ai_available", lambda: True)

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"error": "overloaded"})

    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            receipt = await extraction_service.OpenAIReceiptExtractor(client=client).extract(
                UploadedFile("r.png", "image/png", b"\x89PNG\r\n\x1a\nrest"), CATALOG
            )
            rows = await extraction_service.OpenAIStatementExtractor(client=client).extract(
                "Date,Amount\n2024-08-16,45.45\n", CATALOG
            )
            return receipt, rows

    assert asyncio.run(run()) == (None, [])


def test_extractors_are_inert_without_api_key(monkeypatch):
    from trip_ledger.modules.extraction import service as extraction_service

    monkeypatch.setattr(extraction_service, "receipt_ai_available", lambda: False)

    async def run():
        rows = await extraction_service.OpenAIStatementExtractor().extract("x", CATALOG)
        receipt = await extraction_service.OpenAIReceiptExtractor().extract(
            UploadedFile("r.png", "image/png", b"\x89PNG\r\n\x1a\n"), CATALOG
        )
        return receipt, rows

    assert asyncio.run(run()) == (None, [])

from __future__ import annotations

import base64
import json
import re
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from trip_ledger.core.config import settings
from trip_ledger.core.currencies import normalize_currency
from trip_ledger.modules.expenses.models import PaymentType
from trip_ledger.modules.extraction.schemas import CandidateOrigin, RawCandidate

_MAX_LINE_ITEMS = 100
_MAX_STATEMENT_ROWS = 500

_RECEIPT_SYSTEM_PROMPT = (
    "You read photographed receipts for a holiday expense tracker.\n"
    "Only use information visible on the receipt. If a field is not clearly present, "
    "return null for it.\n"
    "Return JSON only."
)

_STATEMENT_SYSTEM_PROMPT = (
    "You extract transactions from bank statements and card exports (CSV, text or PDF text).\n"
    "Headers may be in any language, e.g. 'Kategória' -> category, 'Partner' -> merchant, "
    "'Összeg' -> amount.\n"
    "Ignore header lines, opening/closing balances, totals and failed transactions.\n"
    "Return JSON only."
)


def receipt_ai_available() -> bool:
    return bool(settings.receipt_ai_enabled and settings.openai_api_key)


async def request_receipt_fields(
    client: httpx.AsyncClient,
    *,
    image: bytes,
    media_type: str,
    category_listing: str,
) -> dict[str, Any] | None:
    """
    Ask the model for the fields of one receipt image.

    Returns the parsed JSON object, or None when the response is unusable. Transport and
    HTTP status errors propagate to the caller.
    """
    data_url = f"data:{media_type};base64,{base64.b64encode(image).decode('ascii')}"
    instructions = (
        "Extract this receipt as JSON with this exact shape:\n"
        "{\n"
        '  "merchant": string|null,\n'
        '  "date": "YYYY-MM-DD"|null,\n'
        '  "amount": number|null,\n'
        '  "currency": "HUF"|"EUR"|"USD"|"HRK"|null,\n'
        '  "category": string|null,\n'
        '  "subcategory": string|null,\n'
        '  "description": string|null,\n'
        '  "paymentType": "CASH"|"CARD"|"WIRE_TRANSFER"|null,\n'
        '  "rawItems": string[],\n'
        '  "originalItems": string[]\n'
        "}\n\n"
        "Rules:\n"
        "- amount is the grand total actually paid, not a subtotal or tax line.\n"
        "- Infer currency from symbols (€, $, Ft, kn) or the country of the merchant.\n"
        "- description is a 3-5 word summary of what was bought.\n"
        "- rawItems are line items translated to English as 'Item: price'; originalItems are "
        "the same lines in the receipt's language.\n"
        "- category and subcategory MUST be names from this list:\n"
        + category_listing
    )
    messages = [
        {"role": "system", "content": _RECEIPT_SYSTEM_PROMPT},
        {
            "role": "user",
            "content": [
                {"type": "text", "text": instructions},
                {"type": "image_url", "image_url": {"url": data_url}},
            ],
        },
    ]
    return await _chat_json(client, messages=messages)


async def request_statement_rows(
    client: httpx.AsyncClient,
    *,
    text: str,
    category_listing: str,
) -> dict[str, Any] | None:
    cleaned = _truncate_text(text, max_chars=int(settings.receipt_ai_max_chars or 0) or 20000)
    if not cleaned:
        return None
    instructions = (
        "Extract every transaction from the statement below.\n"
        'Return JSON: {"transactions": [{"date": "YYYY-MM-DD", "amount": number, '
        '"currency": "HUF"|"EUR"|"USD"|"HRK", "merchant": string|null, '
        '"description": string|null, "category": string|null, "subcategory": string|null, '
        '"originalCategory": string|null}]}\n\n'
        "Rules:\n"
        "- amount is the absolute value of the transaction.\n"
        "- When a row has both a source and a target amount, use the amount in the currency "
        "the merchant charged.\n"
        "- category MUST be mapped to one of the available categories below (semantic match, "
        "e.g. 'Útiköltség' -> 'Travel'); use 'Other' when nothing fits.\n"
        "- originalCategory is the category text exactly as written in the document.\n\n"
        "Available categories:\n"
        + category_listing
        + "\n\nStatement:\n"
        + cleaned
    )
    messages = [
        {"role": "system", "content": _STATEMENT_SYSTEM_PROMPT},
        {"role": "user", "content": instructions},
    ]
    return await _chat_json(client, messages=messages)


def sanitize_receipt(obj: dict[str, Any]) -> RawCandidate | None:
    """Best-effort conversion of a model response to a receipt candidate."""
    txn_date = _parse_date(obj.get("date"))
    amount = _parse_amount(obj.get("amount"))
    currency = normalize_currency(obj.get("currency"))
    if txn_date is None or amount is None or currency is None:
        return None
    return RawCandidate(
        origin=CandidateOrigin.RECEIPT,
        transaction_date=txn_date,
        amount=amount,
        currency=currency,
        merchant=_clean_str(obj.get("merchant"), max_len=200),
        category_name=_clean_str(obj.get("category"), max_len=100),
        subcategory_name=_clean_str(obj.get("subcategory"), max_len=100),
        description=_clean_str(obj.get("description"), max_len=500),
        payment_method=_parse_payment_type(obj.get("paymentType")),
        line_items=_clean_lines(obj.get("rawItems")),
        original_line_items=_clean_lines(obj.get("originalItems")),
    )


def sanitize_statement(obj: dict[str, Any]) -> list[RawCandidate]:
    rows = obj.get("transactions")
    if not isinstance(rows, list):
        return []
    out: list[RawCandidate] = []
    for row in rows[:_MAX_STATEMENT_ROWS]:
        if not isinstance(row, dict):
            continue
        txn_date = _parse_date(row.get("date"))
        amount = _parse_amount(row.get("amount"), absolute=True)
        currency = normalize_currency(row.get("currency"))
        if txn_date is None or amount is None or currency is None:
            continue
        out.append(
            RawCandidate(
                origin=CandidateOrigin.STATEMENT,
                transaction_date=txn_date,
                amount=amount,
                currency=currency,
                merchant=_clean_str(row.get("merchant"), max_len=200),
                category_name=_clean_str(row.get("category"), max_len=100),
                subcategory_name=_clean_str(row.get("subcategory"), max_len=100),
                description=_clean_str(row.get("description"), max_len=500),
                original_category=_clean_str(row.get("originalCategory"), max_len=100),
            )
        )
    return out


async def _chat_json(
    client: httpx.AsyncClient, *, messages: list[dict[str, Any]]
) -> dict[str, Any] | None:
    payload = {
        "model": settings.openai_model,
        "temperature": 0,
        "response_format": {"type": "json_object"},
        "messages": messages,
    }
    headers = {
        "Authorization": f"Bearer {settings.openai_api_key}",
        "Content-Type": "application/json",
    }
    url = settings.openai_base_url.rstrip("/") + "/chat/completions"
    resp = await client.post(
        url,
        headers=headers,
        json=payload,
        timeout=float(settings.receipt_ai_timeout_seconds or 30.0),
        follow_redirects=True,
    )
    resp.raise_for_status()

    try:
        msg = resp.json()["choices"][0]["message"]
    except (KeyError, IndexError, TypeError, ValueError):
        return None
    if not isinstance(msg, dict) or msg.get("refusal"):
        return None
    content = msg.get("content")
    if not isinstance(content, str) or not content.strip():
        return None

    obj = _parse_json_object(content)
    return obj if isinstance(obj, dict) else None


def _parse_json_object(content: str) -> Any:
    c = (content or "").strip()
    c = re.sub(r"^```(?:json)?\s*|\s*```$", "", c).strip()
    if not c:
        return None
    try:
        return json.loads(c)
    except ValueError:
        pass

    # Fallback: extract the first {...} block.
    m = re.search(r"\{.*\}", c, re.S)
    if not m:
        return None
    try:
        return json.loads(m.group(0))
    except ValueError:
        return None


def _truncate_text(text: str, *, max_chars: int) -> str:
    t = (text or "").replace("\u202f", " ").replace("\xa0", " ").strip()
    if not t:
        return ""
    if max_chars <= 0 or len(t) <= max_chars:
        return t
    return t[: max_chars - 20].rstrip() + "\n\n[TRUNCATED]"


def _parse_date(raw: Any) -> date | None:
    if not isinstance(raw, str):
        return None
    try:
        return date.fromisoformat(raw.strip()[:10])
    except ValueError:
        return None


def _parse_amount(raw: Any, *, absolute: bool = False) -> Decimal | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float, str)):
        return None
    s = str(raw).strip().replace(" ", "").replace("\xa0", "")
    if "," in s and "." in s:
        # The separator that appears last is the decimal point.
        if s.rfind(",") > s.rfind("."):
            s = s.replace(".", "").replace(",", ".")
        else:
            s = s.replace(",", "")
    elif "," in s:
        head, _, tail = s.rpartition(",")
        s = f"{head.replace(',', '')}.{tail}" if len(tail) in (1, 2) else s.replace(",", "")
    try:
        amount = Decimal(s)
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    if absolute:
        amount = abs(amount)
    if amount <= 0:
        return None
    return amount


def _parse_payment_type(raw: Any) -> PaymentType | None:
    if not isinstance(raw, str):
        return None
    try:
        return PaymentType(raw.strip().upper())
    except ValueError:
        return None


def _clean_str(raw: Any, *, max_len: int) -> str | None:
    if not isinstance(raw, str):
        return None
    s = raw.strip()
    return s[:max_len] if s else None


def _clean_lines(raw: Any) -> tuple[str, ...]:
    if not isinstance(raw, list):
        return ()
    out: list[str] = []
    for x in raw[:_MAX_LINE_ITEMS]:
        if not isinstance(x, str):
            continue
        s = x.strip()
        if s:
            out.append(s[:300])
    return tuple(out)

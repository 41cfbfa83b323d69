from __future__ import annotations

import json
import time
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

import httpx

from receipt_vault.core.errors import ExtractionError

UNKNOWN_TITLE = "Unknown Expense"

RECEIPT_SCAN_PROMPT = """You are analyzing a receipt or invoice document. Carefully read all text \
in the image and extract the following information:

1. **Store/Business Name**: the merchant, store or business name, usually the largest text at \
the top. Examples: "Walmart", "CVS Pharmacy", "Walgreens", "Target".

2. **Date**: the transaction, purchase or invoice date, converted to ISO 8601 (YYYY-MM-DD).

3. **Total Amount**: the final total, grand total or amount due, as a number only \
(42.75 for $42.75).

Return ONLY valid JSON in this exact format:
{
  "title": "Store Name - Brief Description",
  "date": "YYYY-MM-DD",
  "amount": 0.00
}

Important:
- The title should start with the actual store/business name from the receipt
- The date must be in YYYY-MM-DD format
- The amount must be a number (not a string), representing dollars and cents
- If you cannot find a field, use null for that field
- Do not include any text before or after the JSON
- Do not use markdown code blocks"""

SYSTEM_PROMPT = (
    "You are an expert at reading and extracting information from receipts and invoices. "
    "You must carefully read all text in images and extract accurate information."
)

_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%m/%d/%Y", "%d-%m-%Y")


@dataclass(frozen=True)
class ExtractedReceipt:
    """Best-effort guess from an extractor. ``date`` is a string on purpose; callers validate."""

    title: str
    date: str
    amount: Decimal


class Extractor:
    """Vision extraction capability.

    ``data`` is canonical PNG. ``timeout`` is the caller's deadline in seconds; an
    implementation must give up once it passes.
    """

    name = "extractor"

    def extract(
        self, data: bytes, content_type: str, *, timeout: float
    ) -> ExtractedReceipt:  # pragma: no cover
        raise NotImplementedError

    def close(self) -> None:
        return None


def parse_receipt_json(text: str, *, today: date | None = None) -> ExtractedReceipt:
    raw = (text or "").strip()
    raw = raw.removeprefix("```json").removeprefix("```").strip()

    start = raw.find("{")
    if start == -1:
        raise ExtractionError("parsing receipt data: no JSON object found in response")
    end = raw.rfind("}")
    if end < start:
        raise ExtractionError("parsing receipt data: invalid JSON object in response")

    try:
        obj = json.loads(raw[start : end + 1], parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"parsing receipt data: {e}") from e
    if not isinstance(obj, dict):
        raise ExtractionError("parsing receipt data: response is not a JSON object")

    return ExtractedReceipt(
        title=_clean_title(obj.get("title")),
        date=normalize_date_string(obj.get("date"), today=today),
        amount=_coerce_amount(obj.get("amount")),
    )


def normalize_date_string(value: Any, *, today: date | None = None) -> str:
    fallback = (today or date.today()).isoformat()
    if not isinstance(value, str) or not value.strip():
        return fallback
    raw = value.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date().isoformat()
        except ValueError:
            continue
    return fallback


def _clean_title(value: Any) -> str:
    title = str(value).strip() if value is not None else ""
    return title or UNKNOWN_TITLE


def _coerce_amount(value: Any) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    if isinstance(value, Decimal):
        return value
    try:
        return Decimal(str(value).strip().lstrip("$").replace(",", ""))
    except InvalidOperation as e:
        raise ExtractionError(f"parsing receipt data: amount is not a number: {value!r}") from e


def post_json(
    provider: str,
    url: str,
    *,
    payload: dict[str, Any],
    timeout: float,
    headers: dict[str, str] | None = None,
) -> dict[str, Any]:
    """POST to a provider and return the decoded body.

    ``timeout`` bounds the whole call: the body is streamed and abandoned once the deadline
    passes, so a provider that trickles bytes cannot hold the caller past it. Every failure
    becomes an ``ExtractionError`` whose message keeps the provider's status and body verbatim.
    """
    deadline = time.monotonic() + timeout
    timed_out = ExtractionError(f"calling {provider} API: timed out after {timeout:g}s")
    try:
        with httpx.stream(
            "POST",
            url,
            json=payload,
            headers=headers,
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
        ) as resp:
            chunks: list[bytes] = []
            for chunk in resp.iter_bytes():
                if time.monotonic() > deadline:
                    raise timed_out
                chunks.append(chunk)
    except httpx.TimeoutException as e:
        raise timed_out from e
    except httpx.HTTPError as e:
        raise ExtractionError(f"calling {provider} API: {e}") from e

    raw = b"".join(chunks)
    if resp.status_code != 200:
        text = raw.decode(resp.encoding or "utf-8", errors="replace")
        raise ExtractionError(
            f"{provider} API error (status {resp.status_code}): {text}",
            upstream_status=resp.status_code,
            retry_after=_retry_after_seconds(resp.headers.get("retry-after")),
        )
    try:
        body = json.loads(raw)
    except ValueError as e:
        raise ExtractionError(f"decoding {provider} response: {e}") from e
    if not isinstance(body, dict):
        raise ExtractionError(f"decoding {provider} response: expected a JSON object")
    return body


def _retry_after_seconds(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value.strip())
    except ValueError:
        return None
    return seconds if seconds >= 0 else None

"""Structured JSON logging.

Every record is one JSON object. Fields bound with ``bind_log_context`` (the request id, the
receipt or reimbursement being worked on) are attached to every record emitted inside the
``with`` block, including records from storage and normalization code that never sees the ids.
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import time
import uuid
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ROOT_LOGGER = "receipt_vault"

_log_context: contextvars.ContextVar[Mapping[str, Any]] = contextvars.ContextVar(
    "receipt_vault_log_context", default={}
)


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=UTC).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_timestamp(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or record.getMessage(),
        }
        payload.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging(level_name: str | None = None) -> None:
    logger = logging.getLogger(ROOT_LOGGER)
    if any(isinstance(h.formatter, JsonFormatter) for h in logger.handlers):
        return
    name = (level_name or os.getenv("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelNamesMapping().get(name, logging.INFO)
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def current_log_context() -> Mapping[str, Any]:
    return _log_context.get()


@contextmanager
def bind_log_context(**fields: Any) -> Iterator[Mapping[str, Any]]:
    merged = {**_log_context.get(), **{k: v for k, v in fields.items() if v is not None}}
    token = _log_context.set(merged)
    try:
        yield merged
    finally:
        _log_context.reset(token)


def _record_fields(fields: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(_log_context.get())
    out.update((k, v) for k, v in fields.items() if v is not None)
    return out


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": _record_fields(fields)})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    logger.exception(event, extra={"event": event, "fields": _record_fields(fields)})


def monotonic_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds ``request_id`` (from ``x-request-id`` or a fresh uuid) and logs one line per request."""

    async def dispatch(self, request: Request, call_next) -> Response:
        logger = get_logger(__name__)
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        start = time.monotonic()
        bound = {"request_id": request_id, "method": request.method, "path": request.url.path}
        with bind_log_context(**bound):
            try:
                response = await call_next(request)
            except Exception:
                log_exception(logger, "http.request.error", duration_ms=monotonic_ms(start))
                raise
            response.headers["x-request-id"] = request_id
            log_event(
                logger,
                "http.request.finish",
                status_code=response.status_code,
                duration_ms=monotonic_ms(start),
            )
            return response

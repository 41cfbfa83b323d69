from __future__ import annotations

import json
import logging

import pytest

from receipt_vault.core.logging import (
    JsonFormatter,
    bind_log_context,
    current_log_context,
    get_logger,
    log_event,
    log_exception,
)


class _ListHandler(logging.Handler):
    def __init__(self) -> None:
        super().__init__()
        self.setFormatter(JsonFormatter())
        self.lines: list[dict] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.lines.append(json.loads(self.format(record)))


@pytest.fixture
def captured():
    logger = get_logger("receipt_vault.tests.logging")
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler.lines
    logger.removeHandler(handler)


def test_bound_fields_nest_and_unwind():
    assert current_log_context() == {}
    with bind_log_context(request_id="req-1", method="POST"):
        with bind_log_context(receipt_id="r1", method=None):
            assert current_log_context() == {
                "request_id": "req-1",
                "method": "POST",
                "receipt_id": "r1",
            }
        assert current_log_context() == {"request_id": "req-1", "method": "POST"}
    assert current_log_context() == {}


def test_bound_context_is_reset_when_block_raises():
    with pytest.raises(RuntimeError):
        with bind_log_context(receipt_id="r1"):
            raise RuntimeError("boom")
    assert current_log_context() == {}


def test_records_carry_bound_fields_and_call_fields(captured):
    logger, lines = captured

    with bind_log_context(request_id="req-9", receipt_id="r1"):
        log_event(logger, "ingestion.process.success", amount=2599, receipt_id="r2", skipped=None)
    log_event(logger, "outside", level=logging.WARNING)

    inside, outside = lines
    assert inside["event"] == "ingestion.process.success"
    assert inside["level"] == "INFO"
    assert inside["logger"] == "receipt_vault.tests.logging"
    assert inside["request_id"] == "req-9"
    assert inside["receipt_id"] == "r2"
    assert inside["amount"] == 2599
    assert "skipped" not in inside
    assert inside["ts"].endswith("Z")
    assert outside["level"] == "WARNING"
    assert "request_id" not in outside


def test_log_exception_includes_traceback(captured):
    logger, lines = captured

    try:
        raise ValueError("bad bytes")
    except ValueError:
        log_exception(logger, "ingestion.extract.failure", storage_key="r1_a.jpg")

    (line,) = lines
    assert line["level"] == "ERROR"
    assert line["storage_key"] == "r1_a.jpg"
    assert "ValueError: bad bytes" in line["exc_info"]

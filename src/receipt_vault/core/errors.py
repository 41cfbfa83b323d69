"""Error taxonomy for the ingestion and reimbursement engine.

Every error raised on purpose by the engine derives from ``ReceiptVaultError`` and carries the
HTTP status a transport layer should answer with. The engine itself never imports the transport;
``register_error_handlers`` is the only bridge.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class ReceiptVaultError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(detail)


class FormatError(ReceiptVaultError):
    """Input could not be decoded or converted; retrying the same bytes will not help."""

    status_code = 415

    def __init__(self, format_name: str, detail: str):
        self.format_name = format_name
        super().__init__(f"{format_name}: {detail}")


class ExtractionError(ReceiptVaultError):
    """Opaque failure reported by an extractor backend.

    ``detail`` is the provider's message, untouched, because callers parse it for rate-limit
    hints. ``status_code`` becomes 429 when the provider itself answered 429.
    """

    status_code = 502

    def __init__(
        self,
        detail: str,
        *,
        upstream_status: int | None = None,
        retry_after: float | None = None,
    ):
        super().__init__(detail)
        self.upstream_status = upstream_status
        self.retry_after = retry_after
        if upstream_status == 429:
            self.status_code = 429


class NotFoundError(ReceiptVaultError):
    status_code = 404

    def __init__(self, kind: str, identifier: str):
        self.kind = kind
        self.identifier = identifier
        super().__init__(f"{kind} not found: {identifier}")


class ValidationError(ReceiptVaultError):
    status_code = 400


class AlreadyReimbursedError(ReceiptVaultError):
    status_code = 409

    def __init__(self, receipt_id: str, reimbursement_id: str):
        self.receipt_id = receipt_id
        self.reimbursement_id = reimbursement_id
        super().__init__(f"receipt {receipt_id} is already reimbursed by {reimbursement_id}")


class ConflictError(ReceiptVaultError):
    """A compare-and-swap write lost against a concurrent writer, or a record already exists."""

    status_code = 409


async def _handle_receipt_vault_error(_: Request, exc: ReceiptVaultError) -> JSONResponse:
    headers: dict[str, str] = {}
    retry_after = getattr(exc, "retry_after", None)
    if retry_after is not None:
        headers["Retry-After"] = str(max(1, int(round(retry_after))))
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "type": type(exc).__name__},
        headers=headers or None,
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ReceiptVaultError, _handle_receipt_vault_error)

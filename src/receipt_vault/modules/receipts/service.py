from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, date, datetime

from receipt_vault.core.config import settings
from receipt_vault.core.currencies import MAX_MINOR_UNITS, amount_to_minor_units
from receipt_vault.core.errors import (
    ConflictError,
    ExtractionError,
    NotFoundError,
    ReceiptVaultError,
    ValidationError,
)
from receipt_vault.core.filenames import blob_key
from receipt_vault.core.logging import (
    bind_log_context,
    get_logger,
    log_event,
    log_exception,
    monotonic_ms,
)
from receipt_vault.core.storage import ObjectStorage
from receipt_vault.modules.extraction.base import UNKNOWN_TITLE, ExtractedReceipt, Extractor
from receipt_vault.modules.normalization.detect import normalize_content_type
from receipt_vault.modules.normalization.service import NormalizedImage, normalize
from receipt_vault.modules.receipts.domain import Receipt
from receipt_vault.modules.receipts.store import ReceiptStore

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class IngestionService:
    """Turns an uploaded document into a draft receipt and manages finalized receipts.

    ``process`` stores the original bytes first and removes them again if anything after that
    fails, so a failed upload never leaves an orphaned blob behind. Drafts are not persisted
    until ``finalize``.
    """

    def __init__(
        self,
        *,
        storage: ObjectStorage,
        extractor: Extractor,
        receipts: ReceiptStore,
        normalizer: Callable[[bytes, str | None], NormalizedImage] = normalize,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
        extraction_timeout: float | None = None,
    ):
        self._storage = storage
        self._extractor = extractor
        self._receipts = receipts
        self._normalizer = normalizer
        self._clock = clock
        self._id_factory = id_factory
        self._extraction_timeout = (
            extraction_timeout
            if extraction_timeout is not None
            else settings.extraction_timeout_seconds
        )

    def process(
        self,
        filename: str,
        data: bytes,
        content_type: str | None,
        *,
        timeout: float | None = None,
    ) -> Receipt:
        receipt_id = self._id_factory()
        ctype = normalize_content_type(content_type)
        start = time.monotonic()
        budget = timeout if timeout is not None else self._extraction_timeout

        with bind_log_context(receipt_id=receipt_id):
            stored = self._storage.put(key=blob_key(receipt_id, filename), body=data)
            try:
                extracted = self._extract(data, ctype, deadline=start + budget, budget=budget)
                draft = Receipt(
                    id=receipt_id,
                    title=(extracted.title or "").strip() or UNKNOWN_TITLE,
                    date=self._parse_date(extracted.date),
                    amount=amount_to_minor_units(extracted.amount),
                    blob_ref=stored.key,
                    content_type=ctype,
                )
            except Exception:
                log_exception(
                    logger,
                    "ingestion.extract.failure",
                    storage_key=stored.key,
                    content_type=ctype,
                )
                self._compensate(stored.key)
                raise

            log_event(
                logger,
                "ingestion.process.success",
                storage_key=stored.key,
                content_type=ctype,
                byte_size=stored.byte_size,
                amount=draft.amount,
                duration_ms=monotonic_ms(start),
            )
        return draft

    def _extract(
        self, data: bytes, content_type: str, *, deadline: float, budget: float
    ) -> ExtractedReceipt:
        normalized = self._normalizer(data, content_type)
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ExtractionError(
                f"{self._extractor.name}: deadline of {budget:g}s passed before extraction started"
            )
        start = time.monotonic()
        try:
            extracted = self._extractor.extract(
                normalized.data, normalized.content_type, timeout=remaining
            )
        except ReceiptVaultError:
            raise
        except Exception as e:
            raise ExtractionError(f"{self._extractor.name}: {e}") from e
        log_event(
            logger,
            "ingestion.extract.success",
            extractor=self._extractor.name,
            converted=normalized.converted,
            duration_ms=monotonic_ms(start),
        )
        return extracted

    def _compensate(self, key: str) -> None:
        try:
            self._storage.delete(key=key)
        except Exception:  # noqa: BLE001
            # The caller re-raises the original failure; this one is only reported.
            log_exception(logger, "ingestion.compensation.failure", storage_key=key)

    def _parse_date(self, value: str | None) -> date:
        try:
            return datetime.strptime(str(value or "").strip(), "%Y-%m-%d").date()
        except ValueError:
            return self._clock().date()

    def finalize(self, draft: Receipt) -> Receipt:
        if not draft.id:
            raise ValidationError("receipt id is required")
        if draft.reimbursement_id:
            raise ValidationError("a new receipt cannot already belong to a reimbursement")
        if isinstance(draft.amount, bool) or not isinstance(draft.amount, int):
            raise ValidationError(f"amount must be an integer number of cents: {draft.amount!r}")
        if not 0 <= draft.amount <= MAX_MINOR_UNITS:
            raise ValidationError(
                f"amount must be between 0 and {MAX_MINOR_UNITS} cents: {draft.amount}"
            )
        if not draft.blob_ref.startswith(f"{draft.id}_"):
            raise ValidationError(f"blob {draft.blob_ref!r} does not belong to receipt {draft.id}")
        if not self._storage.exists(key=draft.blob_ref):
            raise ValidationError(f"blob not found for receipt {draft.id}: {draft.blob_ref}")

        now = self._clock()
        receipt = replace(
            draft,
            title=draft.title.strip() or UNKNOWN_TITLE,
            content_type=normalize_content_type(draft.content_type),
            created_at=now,
            updated_at=now,
            version=1,
        )
        self._receipts.insert(receipt)
        log_event(logger, "receipt.finalized", receipt_id=receipt.id, amount=receipt.amount)
        return receipt

    def discard(self, draft: Receipt) -> None:
        """Drop the blob of a draft the user abandoned."""
        if self._is_persisted(draft.id):
            raise ConflictError(f"receipt {draft.id} is already finalized; delete it instead")
        if not draft.blob_ref.startswith(f"{draft.id}_"):
            raise ValidationError(f"blob {draft.blob_ref!r} does not belong to receipt {draft.id}")
        self._storage.delete(key=draft.blob_ref)
        log_event(logger, "receipt.discarded", receipt_id=draft.id, storage_key=draft.blob_ref)

    def _is_persisted(self, receipt_id: str) -> bool:
        try:
            self._receipts.get(receipt_id)
        except NotFoundError:
            return False
        return True

    def get(self, receipt_id: str) -> Receipt:
        return self._receipts.get(receipt_id)

    def list_all(self) -> list[Receipt]:
        return self._receipts.list_all()

    def get_file(self, receipt_id: str) -> tuple[bytes, str]:
        receipt = self._receipts.get(receipt_id)
        return self._storage.get(key=receipt.blob_ref), receipt.content_type

    def delete(self, receipt_id: str) -> None:
        receipt = self._receipts.get(receipt_id)
        try:
            self._storage.delete(key=receipt.blob_ref)
        except Exception as e:  # noqa: BLE001
            # Blob removal is best effort; the record goes regardless.
            log_event(
                logger,
                "receipt.delete.blob_failure",
                level=logging.WARNING,
                receipt_id=receipt_id,
                storage_key=receipt.blob_ref,
                error=str(e),
                error_type=type(e).__name__,
            )
        self._receipts.delete(receipt_id)
        log_event(logger, "receipt.deleted", receipt_id=receipt_id)

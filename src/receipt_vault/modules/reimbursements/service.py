from __future__ import annotations

import logging
import uuid
from collections import Counter
from collections.abc import Callable, Sequence
from dataclasses import replace
from datetime import UTC, datetime

from receipt_vault.core.currencies import MAX_MINOR_UNITS
from receipt_vault.core.errors import AlreadyReimbursedError, ValidationError
from receipt_vault.core.logging import bind_log_context, get_logger, log_event, log_exception
from receipt_vault.modules.receipts.domain import Receipt
from receipt_vault.modules.receipts.store import ReceiptStore
from receipt_vault.modules.reimbursements.domain import Reimbursement
from receipt_vault.modules.reimbursements.store import ReimbursementStore

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid.uuid4().hex


class ReimbursementAggregator:
    """Groups finalized receipts into reimbursement batches.

    ``create`` validates every receipt before writing anything, then tags the receipts with
    compare-and-swap updates against the versions it validated. If tagging fails part way, the
    receipts already tagged are reverted and the batch record is removed before the error is
    re-raised. If a revert itself fails, the batch record is kept so that no receipt points at a
    missing batch. A receipt therefore never ends up claimed by two batches.
    """

    def __init__(
        self,
        *,
        receipts: ReceiptStore,
        reimbursements: ReimbursementStore,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ):
        self._receipts = receipts
        self._reimbursements = reimbursements
        self._clock = clock
        self._id_factory = id_factory

    def create(self, receipt_ids: Sequence[str]) -> Reimbursement:
        ids = [rid.strip() for rid in receipt_ids]
        if not ids:
            raise ValidationError("at least one receipt is required")
        if any(not rid for rid in ids):
            raise ValidationError("receipt ids must not be empty")
        duplicates = sorted(rid for rid, n in Counter(ids).items() if n > 1)
        if duplicates:
            raise ValidationError(f"duplicate receipt ids: {', '.join(duplicates)}")

        members: list[Receipt] = []
        for rid in ids:
            receipt = self._receipts.get(rid)
            if receipt.reimbursement_id:
                raise AlreadyReimbursedError(rid, receipt.reimbursement_id)
            members.append(receipt)

        now = self._clock()
        total = sum(r.amount for r in members)
        if total > MAX_MINOR_UNITS:
            raise ValidationError(f"reimbursement total is too large: {total}")
        batch = Reimbursement(
            id=self._id_factory(),
            receipt_ids=tuple(ids),
            total_amount=total,
            created_at=now,
            updated_at=now,
        )

        with bind_log_context(reimbursement_id=batch.id):
            self._reimbursements.insert(batch)
            tagged: list[Receipt] = []
            try:
                for receipt in members:
                    tagged.append(
                        self._receipts.update(
                            replace(receipt, reimbursement_id=batch.id, updated_at=now),
                            expected_version=receipt.version,
                        )
                    )
            except Exception:
                log_exception(
                    logger,
                    "reimbursement.tag.failure",
                    tagged_count=len(tagged),
                    receipt_count=len(members),
                )
                self._rollback(batch, tagged)
                raise

            log_event(
                logger,
                "reimbursement.created",
                receipt_count=len(ids),
                total_amount=batch.total_amount,
            )
        return batch

    def _rollback(self, batch: Reimbursement, tagged: list[Receipt]) -> None:
        # Failures here are logged only; the caller re-raises the tagging error. The batch record
        # is removed only once no receipt still points at it.
        still_tagged: list[str] = []
        for receipt in reversed(tagged):
            try:
                self._receipts.update(
                    replace(receipt, reimbursement_id=None, updated_at=self._clock()),
                    expected_version=receipt.version,
                )
            except Exception:  # noqa: BLE001
                still_tagged.append(receipt.id)
                log_exception(logger, "reimbursement.rollback.failure", receipt_id=receipt.id)

        if still_tagged:
            log_event(
                logger,
                "reimbursement.rollback.partial",
                level=logging.WARNING,
                tagged_receipt_ids=sorted(still_tagged),
            )
            return
        try:
            self._reimbursements.delete(batch.id)
        except Exception:  # noqa: BLE001
            log_exception(logger, "reimbursement.rollback.failure")

    def get(self, reimbursement_id: str) -> Reimbursement:
        return self._reimbursements.get(reimbursement_id)

    def list_all(self) -> list[Reimbursement]:
        return self._reimbursements.list_all()

    def get_with_receipts(self, reimbursement_id: str) -> tuple[Reimbursement, list[Receipt]]:
        batch = self._reimbursements.get(reimbursement_id)
        return batch, [self._receipts.get(rid) for rid in batch.receipt_ids]

from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receipt_vault.core.db import SessionLocal
from receipt_vault.core.errors import ConflictError, NotFoundError
from receipt_vault.modules.receipts.domain import Receipt
from receipt_vault.modules.receipts.models import ReceiptRecord


class ReceiptStore:
    """Persistence capability for finalized receipts.

    ``update`` is a compare-and-swap on ``version``: it fails with ``ConflictError`` when the
    stored version no longer matches ``expected_version`` and returns the receipt with its new
    version otherwise.
    """

    def get(self, receipt_id: str) -> Receipt:  # pragma: no cover
        raise NotImplementedError

    def list_all(self) -> list[Receipt]:  # pragma: no cover
        raise NotImplementedError

    def insert(self, receipt: Receipt) -> Receipt:  # pragma: no cover
        raise NotImplementedError

    def update(self, receipt: Receipt, *, expected_version: int) -> Receipt:  # pragma: no cover
        raise NotImplementedError

    def delete(self, receipt_id: str) -> None:  # pragma: no cover
        raise NotImplementedError


class SqlReceiptStore(ReceiptStore):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get(self, receipt_id: str) -> Receipt:
        with self._session_factory() as session:
            record = session.get(ReceiptRecord, receipt_id)
            if record is None:
                raise NotFoundError("receipt", receipt_id)
            return _to_domain(record)

    def list_all(self) -> list[Receipt]:
        with self._session_factory() as session:
            records = session.scalars(
                select(ReceiptRecord).order_by(ReceiptRecord.created_at.desc(), ReceiptRecord.id)
            )
            return [_to_domain(r) for r in records]

    def insert(self, receipt: Receipt) -> Receipt:
        with self._session_factory() as session:
            if session.get(ReceiptRecord, receipt.id) is not None:
                raise ConflictError(f"receipt already exists: {receipt.id}")
            session.add(
                ReceiptRecord(
                    id=receipt.id,
                    title=receipt.title,
                    date=receipt.date,
                    amount=receipt.amount,
                    blob_ref=receipt.blob_ref,
                    content_type=receipt.content_type,
                    reimbursement_id=receipt.reimbursement_id,
                    created_at=receipt.created_at,
                    updated_at=receipt.updated_at,
                    version=receipt.version,
                )
            )
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConflictError(f"receipt already exists: {receipt.id}") from e
        return receipt

    def update(self, receipt: Receipt, *, expected_version: int) -> Receipt:
        new_version = expected_version + 1
        with self._session_factory() as session:
            result = session.execute(
                update(ReceiptRecord)
                .where(
                    ReceiptRecord.id == receipt.id,
                    ReceiptRecord.version == expected_version,
                )
                .values(
                    title=receipt.title,
                    date=receipt.date,
                    amount=receipt.amount,
                    blob_ref=receipt.blob_ref,
                    content_type=receipt.content_type,
                    reimbursement_id=receipt.reimbursement_id,
                    updated_at=receipt.updated_at or datetime.now(UTC),
                    version=new_version,
                )
            )
            if result.rowcount != 1:
                session.rollback()
                if session.get(ReceiptRecord, receipt.id) is None:
                    raise NotFoundError("receipt", receipt.id)
                raise ConflictError(
                    f"receipt {receipt.id} was modified concurrently "
                    f"(expected version {expected_version})"
                )
            session.commit()
        return replace(receipt, version=new_version)

    def delete(self, receipt_id: str) -> None:
        with self._session_factory() as session:
            result = session.execute(delete(ReceiptRecord).where(ReceiptRecord.id == receipt_id))
            if result.rowcount != 1:
                session.rollback()
                raise NotFoundError("receipt", receipt_id)
            session.commit()


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_domain(record: ReceiptRecord) -> Receipt:
    return Receipt(
        id=record.id,
        title=record.title,
        date=record.date,
        amount=record.amount,
        blob_ref=record.blob_ref,
        content_type=record.content_type,
        reimbursement_id=record.reimbursement_id,
        created_at=_as_utc(record.created_at),
        updated_at=_as_utc(record.updated_at),
        version=record.version,
    )

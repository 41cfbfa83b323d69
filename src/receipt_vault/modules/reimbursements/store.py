from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from receipt_vault.core.db import SessionLocal
from receipt_vault.core.errors import ConflictError, NotFoundError
from receipt_vault.modules.reimbursements.domain import Reimbursement
from receipt_vault.modules.reimbursements.models import ReimbursementRecord


class ReimbursementStore:
    def get(self, reimbursement_id: str) -> Reimbursement:  # pragma: no cover
        raise NotImplementedError

    def list_all(self) -> list[Reimbursement]:  # pragma: no cover
        raise NotImplementedError

    def insert(self, reimbursement: Reimbursement) -> Reimbursement:  # pragma: no cover
        raise NotImplementedError

    def delete(self, reimbursement_id: str) -> None:  # pragma: no cover
        raise NotImplementedError


class SqlReimbursementStore(ReimbursementStore):
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get(self, reimbursement_id: str) -> Reimbursement:
        with self._session_factory() as session:
            record = session.get(ReimbursementRecord, reimbursement_id)
            if record is None:
                raise NotFoundError("reimbursement", reimbursement_id)
            return _to_domain(record)

    def list_all(self) -> list[Reimbursement]:
        with self._session_factory() as session:
            records = session.scalars(
                select(ReimbursementRecord).order_by(
                    ReimbursementRecord.created_at.desc(), ReimbursementRecord.id
                )
            )
            return [_to_domain(r) for r in records]

    def insert(self, reimbursement: Reimbursement) -> Reimbursement:
        with self._session_factory() as session:
            session.add(
                ReimbursementRecord(
                    id=reimbursement.id,
                    receipt_ids=list(reimbursement.receipt_ids),
                    total_amount=reimbursement.total_amount,
                    created_at=reimbursement.created_at,
                    updated_at=reimbursement.updated_at,
                )
            )
            try:
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise ConflictError(f"reimbursement already exists: {reimbursement.id}") from e
        return reimbursement

    def delete(self, reimbursement_id: str) -> None:
        with self._session_factory() as session:
            result = session.execute(
                delete(ReimbursementRecord).where(ReimbursementRecord.id == reimbursement_id)
            )
            if result.rowcount != 1:
                session.rollback()
                raise NotFoundError("reimbursement", reimbursement_id)
            session.commit()


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _to_domain(record: ReimbursementRecord) -> Reimbursement:
    return Reimbursement(
        id=record.id,
        receipt_ids=tuple(record.receipt_ids or ()),
        total_amount=record.total_amount,
        created_at=_as_utc(record.created_at),
        updated_at=_as_utc(record.updated_at),
    )

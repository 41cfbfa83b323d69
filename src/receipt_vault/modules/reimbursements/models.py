from __future__ import annotations

from sqlalchemy import JSON, BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from receipt_vault.core.models import Base, OpaqueIdPrimaryKey, Timestamped


class ReimbursementRecord(OpaqueIdPrimaryKey, Timestamped, Base):
    __tablename__ = "reimbursements_reimbursement"

    receipt_ids: Mapped[list[str]] = mapped_column(JSON)
    total_amount: Mapped[int] = mapped_column(BigInteger)

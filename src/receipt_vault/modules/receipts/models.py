from __future__ import annotations

import datetime as dt

from sqlalchemy import BigInteger, Date, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from receipt_vault.core.models import Base, OpaqueIdPrimaryKey, Timestamped


class ReceiptRecord(OpaqueIdPrimaryKey, Timestamped, Base):
    __tablename__ = "receipts_receipt"

    title: Mapped[str] = mapped_column(String(512))
    date: Mapped[dt.date] = mapped_column(Date)
    amount: Mapped[int] = mapped_column(BigInteger)
    blob_ref: Mapped[str] = mapped_column(String(1024), unique=True)
    content_type: Mapped[str] = mapped_column(String(200))
    reimbursement_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    version: Mapped[int] = mapped_column(Integer, default=1)

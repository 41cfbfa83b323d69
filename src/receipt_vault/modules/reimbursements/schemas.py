from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from receipt_vault.core.currencies import format_minor_units
from receipt_vault.modules.receipts.schemas import ReceiptOut
from receipt_vault.modules.reimbursements.domain import Reimbursement


class ReimbursementCreate(BaseModel):
    receipt_ids: list[str] = Field(default_factory=list)


class ReimbursementOut(BaseModel):
    id: str
    receipt_ids: list[str]
    total_amount: int
    total_display: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, batch: Reimbursement) -> ReimbursementOut:
        return cls(
            id=batch.id,
            receipt_ids=list(batch.receipt_ids),
            total_amount=batch.total_amount,
            total_display=format_minor_units(batch.total_amount),
            created_at=batch.created_at,
            updated_at=batch.updated_at,
        )


class ReimbursementDetailOut(ReimbursementOut):
    receipts: list[ReceiptOut]

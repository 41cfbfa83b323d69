from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from receipt_vault.core.currencies import format_minor_units
from receipt_vault.modules.receipts.domain import Receipt


class ReceiptOut(BaseModel):
    id: str
    title: str
    date: dt.date
    amount: int
    amount_display: str
    blob_ref: str
    content_type: str
    reimbursement_id: str | None
    created_at: dt.datetime | None
    updated_at: dt.datetime | None
    version: int

    @classmethod
    def from_domain(cls, receipt: Receipt) -> ReceiptOut:
        return cls(
            id=receipt.id,
            title=receipt.title,
            date=receipt.date,
            amount=receipt.amount,
            amount_display=format_minor_units(receipt.amount),
            blob_ref=receipt.blob_ref,
            content_type=receipt.content_type,
            reimbursement_id=receipt.reimbursement_id,
            created_at=receipt.created_at,
            updated_at=receipt.updated_at,
            version=receipt.version,
        )


class ReceiptDraftIn(BaseModel):
    """A draft as returned by upload, possibly edited by the user before saving."""

    id: str = Field(min_length=1, max_length=64)
    title: str = ""
    date: dt.date
    amount: int = Field(ge=0)
    blob_ref: str = Field(min_length=1)
    content_type: str = ""
    reimbursement_id: str | None = None

    def to_domain(self) -> Receipt:
        return Receipt(
            id=self.id,
            title=self.title,
            date=self.date,
            amount=self.amount,
            blob_ref=self.blob_ref,
            content_type=self.content_type,
            reimbursement_id=self.reimbursement_id,
        )

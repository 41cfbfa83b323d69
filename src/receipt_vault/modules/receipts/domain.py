from __future__ import annotations

import datetime as dt
from dataclasses import dataclass


@dataclass(frozen=True)
class Receipt:
    """One uploaded expense document.

    ``version`` is 0 for a draft that was never written, 1 once finalized, and grows by one
    on every later write; stores use it for compare-and-swap updates.
    """

    id: str
    title: str
    date: dt.date
    amount: int
    blob_ref: str
    content_type: str
    reimbursement_id: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None
    version: int = 0

    @property
    def is_draft(self) -> bool:
        return self.version == 0

    @property
    def is_reimbursed(self) -> bool:
        return bool(self.reimbursement_id)

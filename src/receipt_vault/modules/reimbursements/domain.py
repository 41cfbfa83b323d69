from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Reimbursement:
    """A batch of receipts submitted together. ``total_amount`` is fixed at creation."""

    id: str
    receipt_ids: tuple[str, ...]
    total_amount: int
    created_at: datetime
    updated_at: datetime

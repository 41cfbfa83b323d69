"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from receipt_vault.modules.receipts.models import ReceiptRecord  # noqa: F401
from receipt_vault.modules.reimbursements.models import ReimbursementRecord  # noqa: F401

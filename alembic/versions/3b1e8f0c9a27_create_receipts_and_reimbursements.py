"""create receipts and reimbursements

Revision ID: 3b1e8f0c9a27
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3b1e8f0c9a27"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "receipts_receipt",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("title", sa.String(length=512), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("blob_ref", sa.String(length=1024), nullable=False),
        sa.Column("content_type", sa.String(length=200), nullable=False),
        sa.Column("reimbursement_id", sa.String(length=64), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.UniqueConstraint("blob_ref", name="uq_receipts_receipt_blob_ref"),
    )
    op.create_index(
        "ix_receipts_receipt_reimbursement_id",
        "receipts_receipt",
        ["reimbursement_id"],
    )
    op.create_table(
        "reimbursements_reimbursement",
        sa.Column("id", sa.String(length=64), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("receipt_ids", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("reimbursements_reimbursement")
    op.drop_index("ix_receipts_receipt_reimbursement_id", table_name="receipts_receipt")
    op.drop_table("receipts_receipt")

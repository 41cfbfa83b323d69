from __future__ import annotations

from fastapi import APIRouter, Depends, status

from receipt_vault.api.deps import get_reimbursement_aggregator, require_auth
from receipt_vault.modules.receipts.schemas import ReceiptOut
from receipt_vault.modules.reimbursements.schemas import (
    ReimbursementCreate,
    ReimbursementDetailOut,
    ReimbursementOut,
)
from receipt_vault.modules.reimbursements.service import ReimbursementAggregator

router = APIRouter(tags=["reimbursements"], dependencies=[Depends(require_auth)])


@router.post(
    "/reimbursements", response_model=ReimbursementOut, status_code=status.HTTP_201_CREATED
)
def create_reimbursement(
    payload: ReimbursementCreate,
    aggregator: ReimbursementAggregator = Depends(get_reimbursement_aggregator),
) -> ReimbursementOut:
    return ReimbursementOut.from_domain(aggregator.create(payload.receipt_ids))


@router.get("/reimbursements", response_model=list[ReimbursementOut])
def list_reimbursements(
    aggregator: ReimbursementAggregator = Depends(get_reimbursement_aggregator),
) -> list[ReimbursementOut]:
    return [ReimbursementOut.from_domain(b) for b in aggregator.list_all()]


@router.get("/reimbursements/{reimbursement_id}", response_model=ReimbursementDetailOut)
def get_reimbursement(
    reimbursement_id: str,
    aggregator: ReimbursementAggregator = Depends(get_reimbursement_aggregator),
) -> ReimbursementDetailOut:
    batch, receipts = aggregator.get_with_receipts(reimbursement_id)
    return ReimbursementDetailOut(
        **ReimbursementOut.from_domain(batch).model_dump(),
        receipts=[ReceiptOut.from_domain(r) for r in receipts],
    )

from __future__ import annotations

from fastapi import APIRouter

from receipt_vault.modules.receipts.api import router as receipts_router
from receipt_vault.modules.reimbursements.api import router as reimbursements_router

router = APIRouter()

router.include_router(receipts_router, prefix="/api")
router.include_router(reimbursements_router, prefix="/api")


@router.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}

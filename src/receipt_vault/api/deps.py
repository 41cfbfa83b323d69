from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from receipt_vault.core.config import settings
from receipt_vault.core.storage import get_storage
from receipt_vault.modules.extraction.service import get_extractor
from receipt_vault.modules.receipts.service import IngestionService
from receipt_vault.modules.receipts.store import SqlReceiptStore
from receipt_vault.modules.reimbursements.service import ReimbursementAggregator
from receipt_vault.modules.reimbursements.store import SqlReimbursementStore

basic_scheme = HTTPBasic(auto_error=False)


def require_auth(
    credentials: HTTPBasicCredentials | None = Depends(basic_scheme),
) -> None:
    """HTTP basic auth, enforced only when both credentials are configured."""
    if not settings.auth_user or not settings.auth_password:
        return
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Basic"},
        )
    user_ok = secrets.compare_digest(
        credentials.username.encode("utf-8"), settings.auth_user.encode("utf-8")
    )
    password_ok = secrets.compare_digest(
        credentials.password.encode("utf-8"), settings.auth_password.encode("utf-8")
    )
    if not (user_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )


def get_ingestion_service() -> IngestionService:
    return IngestionService(
        storage=get_storage(),
        extractor=get_extractor(),
        receipts=SqlReceiptStore(),
    )


def get_reimbursement_aggregator() -> ReimbursementAggregator:
    return ReimbursementAggregator(
        receipts=SqlReceiptStore(),
        reimbursements=SqlReimbursementStore(),
    )

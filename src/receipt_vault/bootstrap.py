from __future__ import annotations

from receipt_vault.core.config import settings
from receipt_vault.core.db import engine
from receipt_vault.core.logging import get_logger, log_event
from receipt_vault.core.models import Base
from receipt_vault.models import ReceiptRecord, ReimbursementRecord  # noqa: F401

logger = get_logger(__name__)


def bootstrap() -> None:
    """Create the tables directly for local SQLite databases; elsewhere Alembic owns the schema."""
    if settings.environment in {"dev", "test"} and settings.database_url.startswith("sqlite"):
        Base.metadata.create_all(engine)
        log_event(logger, "bootstrap.schema.created", database_url=settings.database_url)

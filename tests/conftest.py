from __future__ import annotations

import os
import shutil
from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path

import pytest

# Set env before any receipt_vault imports (settings/engine are created at import time).
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///./.receipt_vault_test.db")
os.environ.setdefault("STORAGE_BACKEND", "local")
os.environ.setdefault("LOCAL_STORAGE_PATH", ".tmp_storage_test")
os.environ.setdefault("EXTRACTOR_BACKEND", "openai")
os.environ.setdefault("PDF_RENDER_DPI", "72")

from receipt_vault.core.errors import ConflictError, NotFoundError  # noqa: E402
from receipt_vault.core.storage import (  # noqa: E402
    ObjectNotFoundError,
    ObjectStorage,
    StorageError,
    StoredObject,
)
from receipt_vault.modules.extraction.base import ExtractedReceipt, Extractor  # noqa: E402
from receipt_vault.modules.receipts.domain import Receipt  # noqa: E402
from receipt_vault.modules.receipts.service import IngestionService  # noqa: E402
from receipt_vault.modules.receipts.store import ReceiptStore  # noqa: E402
from receipt_vault.modules.reimbursements.domain import Reimbursement  # noqa: E402
from receipt_vault.modules.reimbursements.service import ReimbursementAggregator  # noqa: E402
from receipt_vault.modules.reimbursements.store import ReimbursementStore  # noqa: E402

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class InMemoryStorage(ObjectStorage):
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.fail_put = False
        self.fail_delete = False

    def put(self, *, key: str, body: bytes) -> StoredObject:
        if self.fail_put:
            raise StorageError(f"Could not store object: {key}")
        self.objects[key] = body
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        try:
            return self.objects[key]
        except KeyError:
            raise ObjectNotFoundError(key) from None

    def delete(self, *, key: str) -> None:
        if self.fail_delete:
            raise StorageError(f"Could not delete object: {key}")
        self.objects.pop(key, None)

    def exists(self, *, key: str) -> bool:
        return key in self.objects


class InMemoryReceiptStore(ReceiptStore):
    def __init__(self) -> None:
        self.records: dict[str, Receipt] = {}

    def get(self, receipt_id: str) -> Receipt:
        try:
            return self.records[receipt_id]
        except KeyError:
            raise NotFoundError("receipt", receipt_id) from None

    def list_all(self) -> list[Receipt]:
        return list(self.records.values())

    def insert(self, receipt: Receipt) -> Receipt:
        if receipt.id in self.records:
            raise ConflictError(f"receipt already exists: {receipt.id}")
        self.records[receipt.id] = receipt
        return receipt

    def update(self, receipt: Receipt, *, expected_version: int) -> Receipt:
        current = self.get(receipt.id)
        if current.version != expected_version:
            raise ConflictError(f"receipt {receipt.id} was modified concurrently")
        updated = replace(receipt, version=expected_version + 1)
        self.records[receipt.id] = updated
        return updated

    def delete(self, receipt_id: str) -> None:
        if self.records.pop(receipt_id, None) is None:
            raise NotFoundError("receipt", receipt_id)


class InMemoryReimbursementStore(ReimbursementStore):
    def __init__(self) -> None:
        self.records: dict[str, Reimbursement] = {}

    def get(self, reimbursement_id: str) -> Reimbursement:
        try:
            return self.records[reimbursement_id]
        except KeyError:
            raise NotFoundError("reimbursement", reimbursement_id) from None

    def list_all(self) -> list[Reimbursement]:
        return list(self.records.values())

    def insert(self, reimbursement: Reimbursement) -> Reimbursement:
        if reimbursement.id in self.records:
            raise ConflictError(f"reimbursement already exists: {reimbursement.id}")
        self.records[reimbursement.id] = reimbursement
        return reimbursement

    def delete(self, reimbursement_id: str) -> None:
        if self.records.pop(reimbursement_id, None) is None:
            raise NotFoundError("reimbursement", reimbursement_id)


class StubExtractor(Extractor):
    name = "stub"

    def __init__(self) -> None:
        self.result = ExtractedReceipt(
            title="CVS Pharmacy", date="2024-01-15", amount=Decimal("25.99")
        )
        self.error: Exception | None = None
        self.calls: list[tuple[bytes, str, float]] = []

    def extract(self, data: bytes, content_type: str, *, timeout: float) -> ExtractedReceipt:
        self.calls.append((data, content_type, timeout))
        if self.error is not None:
            raise self.error
        return self.result


class SequentialIds:
    def __init__(self, prefix: str) -> None:
        self._prefix = prefix
        self._n = 0

    def __call__(self) -> str:
        self._n += 1
        return f"{self._prefix}{self._n}"


@pytest.fixture(autouse=True)
def _reset_db_and_storage():
    import receipt_vault.core.storage as storage_mod
    import receipt_vault.models  # noqa: F401
    import receipt_vault.modules.extraction.service as extraction_mod
    from receipt_vault.core.db import engine
    from receipt_vault.core.models import Base

    storage_mod._storage = None
    extraction_mod._extractor = None

    storage_path = Path(os.environ["LOCAL_STORAGE_PATH"])
    if storage_path.exists():
        shutil.rmtree(storage_path)

    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)

    yield

    storage_mod._storage = None
    extraction_mod._extractor = None


@pytest.fixture
def storage() -> InMemoryStorage:
    return InMemoryStorage()


@pytest.fixture
def receipt_store() -> InMemoryReceiptStore:
    return InMemoryReceiptStore()


@pytest.fixture
def reimbursement_store() -> InMemoryReimbursementStore:
    return InMemoryReimbursementStore()


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def ingestion(storage, extractor, receipt_store) -> IngestionService:
    return IngestionService(
        storage=storage,
        extractor=extractor,
        receipts=receipt_store,
        clock=lambda: FIXED_NOW,
        id_factory=SequentialIds("r"),
        extraction_timeout=30.0,
    )


@pytest.fixture
def aggregator(receipt_store, reimbursement_store) -> ReimbursementAggregator:
    return ReimbursementAggregator(
        receipts=receipt_store,
        reimbursements=reimbursement_store,
        clock=lambda: FIXED_NOW,
        id_factory=SequentialIds("batch"),
    )


@pytest.fixture
def make_receipt(receipt_store, storage):
    """Persist a finalized receipt with a stored blob, bypassing extraction."""

    def _make(receipt_id: str, amount: int, **overrides) -> Receipt:
        blob_ref = f"{receipt_id}_receipt.png"
        storage.put(key=blob_ref, body=b"png-bytes")
        receipt = Receipt(
            id=receipt_id,
            title=overrides.pop("title", f"Store {receipt_id}"),
            date=overrides.pop("date", FIXED_NOW.date()),
            amount=amount,
            blob_ref=blob_ref,
            content_type="image/png",
            created_at=FIXED_NOW,
            updated_at=FIXED_NOW,
            version=1,
            **overrides,
        )
        return receipt_store.insert(receipt)

    return _make

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from receipt_vault.core.config import settings
from receipt_vault.core.errors import NotFoundError
from receipt_vault.core.logging import get_logger, log_event, log_exception, monotonic_ms

logger = get_logger(__name__)


class StorageError(RuntimeError):
    pass


class ObjectNotFoundError(StorageError, NotFoundError):
    def __init__(self, key: str):
        NotFoundError.__init__(self, "blob", key)


@dataclass(frozen=True)
class StoredObject:
    key: str
    byte_size: int


class ObjectStorage:
    """Blob store capability: original receipt bytes addressed by key."""

    def put(self, *, key: str, body: bytes) -> StoredObject:  # pragma: no cover
        raise NotImplementedError

    def get(self, *, key: str) -> bytes:  # pragma: no cover
        raise NotImplementedError

    def delete(self, *, key: str) -> None:  # pragma: no cover
        raise NotImplementedError

    def exists(self, *, key: str) -> bool:  # pragma: no cover
        raise NotImplementedError


class LocalObjectStorage(ObjectStorage):
    def __init__(self, root: Path):
        self._root = root.resolve()
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        if not path.is_relative_to(self._root):
            raise StorageError(f"Key escapes storage root: {key}")
        return path

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        path = self._path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError:
            log_exception(
                logger,
                "storage.put.failure",
                backend="local",
                storage_key=key,
                byte_size=len(body),
            )
            raise
        log_event(
            logger,
            "storage.put.success",
            backend="local",
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        start = time.monotonic()
        path = self._path(key)
        if not path.is_file():
            log_event(
                logger,
                "storage.get.failure",
                backend="local",
                storage_key=key,
                duration_ms=monotonic_ms(start),
            )
            raise ObjectNotFoundError(key)
        try:
            return path.read_bytes()
        except OSError:
            log_exception(
                logger,
                "storage.get.failure",
                backend="local",
                storage_key=key,
                duration_ms=monotonic_ms(start),
            )
            raise

    def delete(self, *, key: str) -> None:
        path = self._path(key)
        if not path.exists():
            return
        try:
            path.unlink()
        except OSError:
            log_exception(logger, "storage.delete.failure", backend="local", storage_key=key)
            raise

    def exists(self, *, key: str) -> bool:
        return self._path(key).is_file()


class S3ObjectStorage(ObjectStorage):
    def __init__(self) -> None:
        region = settings.s3_region
        if not region or region.lower() == "auto":
            region = "us-east-1"

        session = boto3.session.Session(
            aws_access_key_id=settings.s3_access_key_id,
            aws_secret_access_key=settings.s3_secret_access_key,
            region_name=region,
        )
        config = Config(
            retries={"max_attempts": 3, "mode": "adaptive"},
            connect_timeout=30,
            read_timeout=60,
        )
        self._client = session.client(
            "s3", endpoint_url=settings.s3_endpoint_url or None, config=config
        )
        self._bucket = settings.s3_bucket

    def _retry_delay_s(self, attempt: int) -> float:
        # attempt=1 => 0.25s, attempt=2 => 0.5s, attempt=3 => 1.0s, ...
        return min(3.0, 0.25 * (2 ** (attempt - 1)))

    def _should_retry_error(self, error: Exception) -> bool:
        if isinstance(error, ClientError):
            code = _error_code(error)
            return code in {
                "RequestTimeout",
                "Throttling",
                "ThrottlingException",
                "SlowDown",
                "InternalError",
                "ServiceUnavailable",
            }
        return isinstance(error, BotoCoreError)

    def put(self, *, key: str, body: bytes) -> StoredObject:
        start = time.monotonic()
        max_attempts = 5
        for attempt in range(1, max_attempts + 1):
            try:
                self._client.put_object(Bucket=self._bucket, Key=key, Body=body)
                break
            except (BotoCoreError, ClientError) as e:
                if attempt < max_attempts and self._should_retry_error(e):
                    delay_s = self._retry_delay_s(attempt)
                    log_event(
                        logger,
                        "storage.put.retry",
                        backend="s3",
                        storage_key=key,
                        attempt=attempt,
                        delay_s=delay_s,
                        error_code=_error_code(e),
                        error_type=type(e).__name__,
                    )
                    time.sleep(delay_s)
                    continue
                log_exception(
                    logger,
                    "storage.put.failure",
                    backend="s3",
                    storage_key=key,
                    byte_size=len(body),
                    attempt=attempt,
                )
                raise StorageError(f"Could not store object: {key}") from e
        log_event(
            logger,
            "storage.put.success",
            backend="s3",
            storage_key=key,
            byte_size=len(body),
            duration_ms=monotonic_ms(start),
        )
        return StoredObject(key=key, byte_size=len(body))

    def get(self, *, key: str) -> bytes:
        start = time.monotonic()
        try:
            resp = self._client.get_object(Bucket=self._bucket, Key=key)
            return resp["Body"].read()
        except ClientError as e:
            if _error_code(e) in {"NoSuchKey", "404"}:
                raise ObjectNotFoundError(key) from e
            log_exception(
                logger,
                "storage.get.failure",
                backend="s3",
                storage_key=key,
                duration_ms=monotonic_ms(start),
            )
            raise StorageError(f"Could not read object: {key}") from e
        except BotoCoreError as e:
            log_exception(logger, "storage.get.failure", backend="s3", storage_key=key)
            raise StorageError(f"Could not read object: {key}") from e

    def delete(self, *, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (BotoCoreError, ClientError) as e:
            log_exception(logger, "storage.delete.failure", backend="s3", storage_key=key)
            raise StorageError(f"Could not delete object: {key}") from e

    def exists(self, *, key: str) -> bool:
        try:
            self._client.head_object(Bucket=self._bucket, Key=key)
        except ClientError as e:
            if _error_code(e) in {"NoSuchKey", "404", "NotFound"}:
                return False
            raise StorageError(f"Could not stat object: {key}") from e
        return True


def _error_code(error: Exception) -> str | None:
    if isinstance(error, ClientError):
        return (error.response.get("Error") or {}).get("Code")
    return None


_storage: ObjectStorage | None = None


def get_storage() -> ObjectStorage:
    global _storage  # noqa: PLW0603
    if _storage is not None:
        return _storage

    if settings.storage_backend == "s3":
        _storage = S3ObjectStorage()
    else:
        root = settings.local_storage_path
        if not root.is_absolute():
            root = Path(os.getcwd()) / root
        _storage = LocalObjectStorage(root)
    return _storage

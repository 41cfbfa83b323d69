from __future__ import annotations

from fastapi import APIRouter, Depends, File, UploadFile, status
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from receipt_vault.api.deps import get_ingestion_service, require_auth
from receipt_vault.core.config import settings
from receipt_vault.core.errors import ValidationError
from receipt_vault.core.logging import get_logger, log_event
from receipt_vault.modules.normalization.detect import content_type_for_upload
from receipt_vault.modules.receipts.schemas import ReceiptDraftIn, ReceiptOut
from receipt_vault.modules.receipts.service import IngestionService

router = APIRouter(tags=["receipts"], dependencies=[Depends(require_auth)])
logger = get_logger(__name__)


@router.post("/receipts", response_model=ReceiptOut)
async def upload_receipt(
    file: UploadFile = File(...),
    service: IngestionService = Depends(get_ingestion_service),
) -> ReceiptOut:
    body = await file.read(settings.max_upload_bytes + 1)
    if len(body) > settings.max_upload_bytes:
        raise ValidationError(
            f"file is too large (limit is {settings.max_upload_bytes // (1024 * 1024)} MB)"
        )
    if not body:
        raise ValidationError("file is empty")
    filename = file.filename or "receipt"
    content_type = content_type_for_upload(filename, file.content_type)
    log_event(
        logger,
        "upload.received",
        filename=filename,
        content_type=content_type,
        byte_size=len(body),
    )
    # Normalization and extraction are blocking.
    draft = await run_in_threadpool(service.process, filename, body, content_type)
    return ReceiptOut.from_domain(draft)


@router.post("/receipts/finalize", response_model=ReceiptOut, status_code=status.HTTP_201_CREATED)
def finalize_receipt(
    payload: ReceiptDraftIn,
    service: IngestionService = Depends(get_ingestion_service),
) -> ReceiptOut:
    return ReceiptOut.from_domain(service.finalize(payload.to_domain()))


@router.post("/receipts/discard", status_code=status.HTTP_204_NO_CONTENT)
def discard_receipt(
    payload: ReceiptDraftIn,
    service: IngestionService = Depends(get_ingestion_service),
) -> Response:
    service.discard(payload.to_domain())
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/receipts", response_model=list[ReceiptOut])
def list_receipts(
    service: IngestionService = Depends(get_ingestion_service),
) -> list[ReceiptOut]:
    return [ReceiptOut.from_domain(r) for r in service.list_all()]


@router.get("/receipts/{receipt_id}", response_model=ReceiptOut)
def get_receipt(
    receipt_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> ReceiptOut:
    return ReceiptOut.from_domain(service.get(receipt_id))


@router.get("/receipts/{receipt_id}/file")
def get_receipt_file(
    receipt_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> Response:
    data, content_type = service.get_file(receipt_id)
    return Response(content=data, media_type=content_type)


@router.delete("/receipts/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_receipt(
    receipt_id: str,
    service: IngestionService = Depends(get_ingestion_service),
) -> Response:
    service.delete(receipt_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

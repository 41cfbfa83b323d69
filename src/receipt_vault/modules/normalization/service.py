from __future__ import annotations

import time
from dataclasses import dataclass
from io import BytesIO

import fitz
import pillow_heif
from PIL import Image, UnidentifiedImageError

from receipt_vault.core.config import settings
from receipt_vault.core.errors import FormatError
from receipt_vault.core.logging import get_logger, log_event, monotonic_ms
from receipt_vault.modules.normalization.detect import (
    CANONICAL_CONTENT_TYPE,
    FORMAT_CANONICAL,
    FORMAT_HEIF,
    FORMAT_PDF,
    FORMAT_RASTER,
    detect_format,
    normalize_content_type,
)

logger = get_logger(__name__)

# Modes the PNG encoder writes as-is; anything else (CMYK, YCbCr, ...) goes through RGB.
_PNG_MODES = {"1", "L", "LA", "I", "I;16", "P", "RGB", "RGBA"}


@dataclass(frozen=True)
class NormalizedImage:
    data: bytes
    content_type: str
    converted: bool


def normalize(data: bytes, content_type: str | None) -> NormalizedImage:
    """Convert an uploaded receipt into canonical PNG bytes.

    Only the first page of a PDF and the first frame of an animated or multi-image
    file are kept.
    """
    ctype = normalize_content_type(content_type)
    format_name = detect_format(data, ctype)
    if format_name == FORMAT_CANONICAL:
        return NormalizedImage(data=data, content_type=CANONICAL_CONTENT_TYPE, converted=False)

    start = time.monotonic()
    if format_name == FORMAT_PDF:
        png = render_pdf_first_page(data, dpi=settings.pdf_render_dpi)
    elif format_name == FORMAT_HEIF:
        png = encode_png(decode_heif(data), format_name=FORMAT_HEIF)
    else:
        png = encode_png(decode_raster(data, ctype), format_name=FORMAT_RASTER)

    log_event(
        logger,
        "normalize.converted",
        source_format=format_name,
        content_type=ctype,
        byte_size=len(data),
        output_byte_size=len(png),
        duration_ms=monotonic_ms(start),
    )
    return NormalizedImage(data=png, content_type=CANONICAL_CONTENT_TYPE, converted=True)


def render_pdf_first_page(data: bytes, *, dpi: int) -> bytes:
    try:
        with fitz.open(stream=data, filetype="pdf") as doc:
            if doc.page_count < 1:
                raise FormatError(FORMAT_PDF, "document has no pages")
            page = doc.load_page(0)
            zoom = dpi / 72
            pix = page.get_pixmap(matrix=fitz.Matrix(zoom, zoom), alpha=False)
            return pix.tobytes("png")
    except FormatError:
        raise
    except Exception as e:
        raise FormatError(FORMAT_PDF, f"could not render PDF: {e}") from e


def decode_heif(data: bytes) -> Image.Image:
    try:
        heif_file = pillow_heif.open_heif(BytesIO(data), convert_hdr_to_8bit=True)
        return heif_file.to_pillow()
    except Exception as e:
        raise FormatError(FORMAT_HEIF, f"could not decode HEIC/HEIF image: {e}") from e


def decode_raster(data: bytes, content_type: str) -> Image.Image:
    try:
        image = Image.open(BytesIO(data))
        image.seek(0)
        image.load()
    except UnidentifiedImageError as e:
        raise FormatError(
            FORMAT_RASTER,
            f"unsupported image format ({content_type}). "
            "Supported formats: JPEG, PNG, GIF, WEBP, BMP, TIFF, HEIC, HEIF, PDF",
        ) from e
    except (OSError, ValueError, EOFError) as e:
        raise FormatError(FORMAT_RASTER, f"could not decode image ({content_type}): {e}") from e
    return image


def encode_png(image: Image.Image, *, format_name: str) -> bytes:
    if image.mode not in _PNG_MODES:
        image = image.convert("RGB")
    buf = BytesIO()
    try:
        image.save(buf, format="PNG")
    except (OSError, ValueError) as e:
        raise FormatError(format_name, f"could not encode PNG: {e}") from e
    return buf.getvalue()

"""Format detection as an ordered chain of pure predicates.

Nothing here decodes anything: each predicate looks at the raw byte prefix and/or the declared
content type, and ``detect_format`` returns the first format whose predicate matches.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import PurePosixPath

DEFAULT_CONTENT_TYPE = "image/jpeg"
CANONICAL_CONTENT_TYPE = "image/png"
PDF_CONTENT_TYPE = "application/pdf"

FORMAT_PDF = "pdf"
FORMAT_HEIF = "heif"
FORMAT_CANONICAL = "png"
FORMAT_RASTER = "raster"

# ISO base media file: 4-byte box size, then "ftyp", then the major brand.
_HEIF_BOX_TAG = b"ftyp"
_HEIF_BRANDS = frozenset({b"heic", b"heif", b"mif1", b"msf1"})

_EXTENSION_CONTENT_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".pdf": "application/pdf",
    ".heic": "image/heic",
    ".heif": "image/heif",
}


def normalize_content_type(content_type: str | None) -> str:
    value = (content_type or "").strip().lower()
    return value or DEFAULT_CONTENT_TYPE


def content_type_for_upload(filename: str | None, declared: str | None) -> str:
    """Content type for an upload part, falling back to the file extension when undeclared."""
    if declared and declared.strip():
        return declared.strip().lower()
    ext = PurePosixPath((filename or "").replace("\\", "/")).suffix.lower()
    return _EXTENSION_CONTENT_TYPES.get(ext, "application/octet-stream")


def is_pdf_type(content_type: str) -> bool:
    return content_type == PDF_CONTENT_TYPE


def has_heif_signature(data: bytes) -> bool:
    if len(data) < 12:
        return False
    return data[4:8] == _HEIF_BOX_TAG and data[8:12] in _HEIF_BRANDS


def is_heif_type(content_type: str) -> bool:
    return "heic" in content_type or "heif" in content_type


def is_canonical_type(content_type: str) -> bool:
    return content_type == CANONICAL_CONTENT_TYPE


Predicate = Callable[[bytes, str], bool]

# Order matters: HEIF magic bytes win over a declared-but-wrong image type (phones mislabel
# HEIC as image/jpeg), but an explicit PDF declaration is honoured first.
DETECTION_CHAIN: tuple[tuple[Predicate, str], ...] = (
    (lambda _data, ctype: is_pdf_type(ctype), FORMAT_PDF),
    (lambda data, ctype: has_heif_signature(data) or is_heif_type(ctype), FORMAT_HEIF),
    (lambda _data, ctype: is_canonical_type(ctype), FORMAT_CANONICAL),
)


def detect_format(data: bytes, content_type: str | None) -> str:
    ctype = normalize_content_type(content_type)
    for predicate, format_name in DETECTION_CHAIN:
        if predicate(data, ctype):
            return format_name
    return FORMAT_RASTER

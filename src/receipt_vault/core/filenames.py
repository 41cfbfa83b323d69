from __future__ import annotations

import re

DEFAULT_BASE_NAME = "receipt"
MAX_BASE_LENGTH = 50

_DISALLOWED_BASE_CHARS = re.compile(r"[^A-Za-z0-9\s_-]", re.ASCII)
_WHITESPACE_RUN = re.compile(r"\s+", re.ASCII)


def split_extension(filename: str) -> tuple[str, str]:
    idx = filename.rfind(".")
    if idx < 0:
        return filename, ""
    return filename[:idx], filename[idx:]


def sanitize_filename(filename: str) -> str:
    """Reduce a user-supplied filename to a short, storage-safe name.

    Phones produce long names full of symbols; only letters, digits, spaces, hyphens and
    underscores survive in the base name. The extension (from the last dot) is kept verbatim, so
    the stored name still tells which format was uploaded. Idempotent.
    """
    name = (filename or "").replace("\\", "/").split("/")[-1]
    base, ext = split_extension(name)
    base = _DISALLOWED_BASE_CHARS.sub("", base)
    base = _WHITESPACE_RUN.sub(" ", base).strip()
    base = base[:MAX_BASE_LENGTH].rstrip()
    if not base:
        base = DEFAULT_BASE_NAME
    return base + ext


def blob_key(receipt_id: str, filename: str) -> str:
    return f"{receipt_id}_{sanitize_filename(filename)}"

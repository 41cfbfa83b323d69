from __future__ import annotations

from receipt_vault.core.config import settings
from receipt_vault.core.logging import get_logger, log_event
from receipt_vault.modules.extraction.base import Extractor
from receipt_vault.modules.extraction.ollama import OllamaExtractor
from receipt_vault.modules.extraction.openai_compat import OpenAICompatibleExtractor

logger = get_logger(__name__)

_extractor: Extractor | None = None


def build_extractor(backend: str) -> Extractor:
    if backend == "openai":
        return OpenAICompatibleExtractor(
            api_key=settings.openai_api_key or "",
            base_url=settings.openai_base_url,
            model=settings.openai_model,
        )
    if backend == "ollama":
        return OllamaExtractor(base_url=settings.ollama_url, model=settings.ollama_model)
    raise ValueError(f"unknown extractor backend: {backend!r} (expected 'openai' or 'ollama')")


def get_extractor() -> Extractor:
    global _extractor  # noqa: PLW0603
    if _extractor is not None:
        return _extractor
    _extractor = build_extractor(settings.extractor_backend)
    log_event(logger, "extractor.initialized", backend=_extractor.name)
    return _extractor

from __future__ import annotations

import base64

from receipt_vault.core.errors import ExtractionError
from receipt_vault.modules.extraction.base import (
    RECEIPT_SCAN_PROMPT,
    SYSTEM_PROMPT,
    ExtractedReceipt,
    Extractor,
    parse_receipt_json,
    post_json,
)


class OllamaExtractor(Extractor):
    """Local vision model served by Ollama (llava, qwen2-vl, bakllava, ...)."""

    name = "ollama"

    def __init__(self, *, base_url: str, model: str):
        self._url = (base_url or "http://localhost:11434").rstrip("/") + "/api/chat"
        self._model = model or "llava"

    def extract(self, data: bytes, content_type: str, *, timeout: float) -> ExtractedReceipt:
        payload = {
            "model": self._model,
            "stream": False,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": RECEIPT_SCAN_PROMPT,
                    "images": [base64.b64encode(data).decode("ascii")],
                },
            ],
        }
        raw = post_json(self.name, self._url, payload=payload, timeout=timeout)

        message = raw.get("message")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ExtractionError(f"decoding {self.name} response: empty message content")
        return parse_receipt_json(content)

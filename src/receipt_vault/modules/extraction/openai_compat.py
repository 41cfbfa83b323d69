from __future__ import annotations

import base64
from typing import Any

from receipt_vault.core.errors import ExtractionError
from receipt_vault.modules.extraction.base import (
    RECEIPT_SCAN_PROMPT,
    SYSTEM_PROMPT,
    ExtractedReceipt,
    Extractor,
    parse_receipt_json,
    post_json,
)


class OpenAICompatibleExtractor(Extractor):
    """Chat-completions vision backend (OpenAI, or any endpoint speaking the same API)."""

    name = "openai"

    def __init__(self, *, api_key: str, base_url: str, model: str):
        self._api_key = api_key
        self._url = base_url.rstrip("/") + "/chat/completions"
        self._model = model

    def extract(self, data: bytes, content_type: str, *, timeout: float) -> ExtractedReceipt:
        if not self._api_key:
            raise ExtractionError(f"{self.name} API key is not configured (set OPENAI_API_KEY)")
        image_url = f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"
        payload: dict[str, Any] = {
            "model": self._model,
            "temperature": 0,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": RECEIPT_SCAN_PROMPT},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                },
            ],
        }
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        raw = post_json(self.name, self._url, payload=payload, timeout=timeout, headers=headers)

        try:
            message = raw["choices"][0]["message"]
        except (KeyError, IndexError, TypeError) as e:
            raise ExtractionError(f"decoding {self.name} response: no message in {raw!r}") from e
        if isinstance(message, dict) and message.get("refusal"):
            raise ExtractionError(f"{self.name} refused the request: {message['refusal']}")
        content = message.get("content") if isinstance(message, dict) else None
        if not isinstance(content, str) or not content.strip():
            raise ExtractionError(f"decoding {self.name} response: empty message content")
        return parse_receipt_json(content)

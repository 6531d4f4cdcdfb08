"""Gemini generateContent backend over plain HTTPS."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

import requests

from ..errors import TierFailure
from ..logging import get_logger
from .base import StructuredAIParser
from .schema import gemini_response_schema

LOG = get_logger("ai-gemini")

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiReceiptParser(StructuredAIParser):
    name = "gemini"

    def __init__(self, *, api_key: Optional[str], model: str = "gemini-2.0-flash",
                 timeout: int = 60, temperature: float = 0.1) -> None:
        super().__init__(timeout=timeout, temperature=temperature)
        self.api_key = api_key
        self.model = model

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _generation_config(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "topP": 0.95,
            "topK": 40,
            "maxOutputTokens": 8192,
            # Pure JSON output, numbers as numbers
            "responseMimeType": "application/json",
            "responseSchema": gemini_response_schema(),
        }

    def _request_image(self, data: bytes, mime_type: str, prompt: str) -> Optional[str]:
        parts = [
            {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(data).decode("ascii")}},
            {"text": prompt},
        ]
        return self._generate(parts)

    def _request_text(self, prompt: str) -> Optional[str]:
        return self._generate([{"text": prompt}])

    def _generate(self, parts: List[Dict[str, Any]]) -> Optional[str]:
        url = GEMINI_API_URL.format(model=self.model)
        payload = {"contents": [{"parts": parts}], "generationConfig": self._generation_config()}
        LOG.debug(f"Calling Gemini API: {url} (timeout {self.timeout}s)")
        try:
            resp = requests.post(
                url,
                params={"key": self.api_key},
                headers={"Content-Type": "application/json"},
                json=payload,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TierFailure("Gemini request failed", component="gemini", original_error=exc)

        if resp.status_code != 200:
            LOG.error(f"Gemini API error: {resp.status_code} - {resp.text[:500]}")
            raise TierFailure(f"Gemini API returned status {resp.status_code}", component="gemini")

        try:
            body = resp.json()
        except ValueError as exc:
            raise TierFailure("Gemini response is not JSON", component="gemini", original_error=exc)
        LOG.debug(f"Gemini API response received ({len(resp.text)} chars)")
        return _first_candidate_text(body)


def _first_candidate_text(body: Any) -> str:
    candidates = body.get("candidates") if isinstance(body, dict) else None
    if not candidates:
        raise TierFailure("No candidates in Gemini response", component="gemini")
    content = (candidates[0] or {}).get("content") or {}
    parts = content.get("parts") or []
    texts = [p.get("text") for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
    if not texts:
        raise TierFailure("Gemini candidate has no text part", component="gemini")
    text = "".join(texts)
    LOG.debug(f"Gemini response text: {text[:200]}")
    return text

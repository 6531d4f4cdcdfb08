"""OpenAI (or any OpenAI-compatible endpoint) Chat Completions backend."""

from __future__ import annotations

import base64
from typing import Any, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, OpenAI

from ..errors import TierFailure
from ..logging import get_logger
from .base import StructuredAIParser
from .schema import openai_json_schema

LOG = get_logger("ai-openai")

SYSTEM_PROMPT = (
    "You are a strict JSON generator. Output ONLY a single JSON object that matches the provided schema. "
    "No prose, no markdown fences, no trailing text."
)


class OpenAIReceiptParser(StructuredAIParser):
    name = "openai"

    def __init__(self, *, api_key: Optional[str], model: str = "gpt-4o-mini",
                 base_url: Optional[str] = None, timeout: int = 60, temperature: float = 0.1) -> None:
        super().__init__(timeout=timeout, temperature=temperature)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url

    def is_available(self) -> bool:
        return bool(self.api_key)

    def _request_image(self, data: bytes, mime_type: str, prompt: str) -> Optional[str]:
        url = f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"
        content = [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": url}},
        ]
        return self._complete(content)

    def _request_text(self, prompt: str) -> Optional[str]:
        return self._complete(prompt)

    def _client(self):
        # Fresh client per call; max_retries=0 because failure means fallback.
        http_client = httpx.Client(timeout=httpx.Timeout(float(self.timeout), connect=10.0))
        client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            http_client=http_client,
            max_retries=0,
        )
        return client, http_client

    def _complete(self, content: Any) -> Optional[str]:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]
        client, http_client = self._client()
        LOG.debug(f"Calling Chat Completions model='{self.model}' base_url={self.base_url or 'default'}")
        try:
            completion = client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=self.temperature,
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": "receipt", "strict": True, "schema": openai_json_schema()},
                },
            )
        except (APIConnectionError, APITimeoutError) as exc:
            raise TierFailure("Network/timeout while calling OpenAI", component="openai", original_error=exc)
        except APIStatusError as exc:
            body = getattr(getattr(exc, "response", None), "text", None)
            LOG.error(f"OpenAI API returned {exc.status_code}. Body preview: {(body[:300] if body else None)!r}")
            raise TierFailure(f"OpenAI API returned status {exc.status_code}", component="openai", original_error=exc)
        finally:
            http_client.close()

        choice = completion.choices[0] if getattr(completion, "choices", None) else None
        message = getattr(choice, "message", None)
        refusal = getattr(message, "refusal", None)
        if refusal:
            raise TierFailure(f"Model refused: {refusal}", component="openai")
        usage = getattr(completion, "usage", None)
        usage_dict = {k: getattr(usage, k, None) if usage else None for k in ("prompt_tokens", "completion_tokens", "total_tokens")}
        LOG.info(f"Chat completion finished id={getattr(completion, 'id', None)} usage={usage_dict}")
        return getattr(message, "content", None)

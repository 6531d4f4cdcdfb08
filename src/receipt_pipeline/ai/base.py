from __future__ import annotations

import time
from typing import Optional

from ..domain.models import ExtractionCandidate
from ..errors import ReceiptPipelineError
from ..logging import get_logger
from .payload import candidate_from_text
from .schema import IMAGE_PREAMBLE, RECEIPT_EXTRACTION_PROMPT, build_text_prompt

LOG = get_logger("ai")

DEFAULT_TEMPERATURE = 0.1


class StructuredAIParser:
    """Schema-constrained receipt parsing against a completion backend.

    Subclasses implement ``is_available`` plus the two raw request hooks
    returning the model's text. Every failure (transport, HTTP status, bad
    JSON) ends in ``None`` here; nothing is raised to the caller and
    nothing is retried.
    """

    name = "ai"

    def __init__(self, *, timeout: int = 60, temperature: float = DEFAULT_TEMPERATURE) -> None:
        self.timeout = timeout
        self.temperature = temperature

    def is_available(self) -> bool:
        raise NotImplementedError

    def _request_image(self, data: bytes, mime_type: str, prompt: str) -> Optional[str]:
        raise NotImplementedError

    def _request_text(self, prompt: str) -> Optional[str]:
        raise NotImplementedError

    # ---- public contract ------------------------------------------------------
    def parse_from_image(self, data: bytes, mime_type: Optional[str]) -> Optional[ExtractionCandidate]:
        if not self.is_available():
            LOG.warning(f"{self.name}: not configured, skipping vision parsing")
            return None
        mime = mime_type or "image/jpeg"
        LOG.info(f"{self.name}: parsing receipt image (size: {len(data)} bytes, type: {mime})")
        return self._run("vision", lambda: self._request_image(data, mime, IMAGE_PREAMBLE + RECEIPT_EXTRACTION_PROMPT))

    def parse_from_text(self, text: str) -> Optional[ExtractionCandidate]:
        if not self.is_available():
            LOG.warning(f"{self.name}: not configured, skipping text parsing")
            return None
        if not text or not text.strip():
            LOG.info(f"{self.name}: no OCR text to parse")
            return None
        LOG.info(f"{self.name}: parsing receipt text (text length: {len(text)})")
        return self._run("text", lambda: self._request_text(build_text_prompt(text)))

    def _run(self, mode: str, call) -> Optional[ExtractionCandidate]:
        t0 = time.perf_counter()
        try:
            candidate = candidate_from_text(call())
        except ReceiptPipelineError as exc:
            LOG.error(f"{self.name} {mode} parsing failed: {exc}")
            return None
        except Exception as exc:
            LOG.error(f"{self.name} {mode} parsing failed unexpectedly: {exc}")
            return None
        LOG.info(
            f"{self.name} {mode} parsing finished in {time.perf_counter() - t0:.2f}s - "
            f"merchant={candidate.merchant_name}, total={candidate.total}"
        )
        return candidate

"""Optical text service backed by the Tesseract CLI through pytesseract."""

from __future__ import annotations

import re
import shutil
from typing import Optional

import pytesseract

from ..domain.models import PreprocessedImage
from ..errors import CapabilityUnavailable, TierFailure
from ..logging import get_logger

LOG = get_logger("ocr")

# LSTM engine, automatic page segmentation with OSD.
DEFAULT_CONFIG = "--oem 1 --psm 1"


def cleanup_text(text: Optional[str]) -> str:
    """Collapse space runs, drop blank lines, trim every line."""
    if not text:
        return ""
    text = re.sub(r" +", " ", text)
    text = re.sub(r"\n{3,}", "\n\n", text)
    lines = [ln.strip() for ln in text.split("\n")]
    return "\n".join(ln for ln in lines if ln).strip()


class TesseractTextService:
    """``extract_text(preprocessed) -> str``.

    Each call spawns its own tesseract process, so one instance can be
    shared by concurrent pipeline invocations.
    """

    def __init__(self, *, lang: str = "eng", tesseract_cmd: Optional[str] = None,
                 config: str = DEFAULT_CONFIG, timeout: int = 60) -> None:
        self.lang = lang
        self.tesseract_cmd = tesseract_cmd
        self.config = config
        self.timeout = timeout
        if tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = tesseract_cmd

    def is_available(self) -> bool:
        cmd = self.tesseract_cmd or pytesseract.pytesseract.tesseract_cmd
        if not shutil.which(cmd):
            LOG.debug(f"Tesseract binary not found: {cmd}")
            return False
        return True

    def extract_text(self, image: PreprocessedImage) -> str:
        if not self.is_available():
            raise CapabilityUnavailable("Tesseract is not installed", component="ocr")
        try:
            text = pytesseract.image_to_string(
                image.pixels, lang=self.lang, config=self.config, timeout=self.timeout
            )
        except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
            raise TierFailure("Tesseract OCR failed", component="ocr", original_error=exc)
        text = cleanup_text(text)
        LOG.info(f"Extracted {len(text)} characters from image")
        preview = text[:100] + "..." if len(text) > 100 else text
        LOG.debug(f"Extracted text preview: {preview!r}")
        return text

from __future__ import annotations

from typing import Optional

from ..ai.base import StructuredAIParser
from ..ai.gemini import GeminiReceiptParser
from ..ai.openai_backend import OpenAIReceiptParser
from ..config import PipelineSettings
from ..errors import ConfigurationError
from ..extraction.gate import QualityGate
from ..extraction.regex import RegexExtractor
from ..extraction.validator import ExtractionValidator
from ..logging import get_logger
from ..ocr.tesseract import TesseractTextService
from ..preprocess.image import ImagePreprocessor
from .pipeline import PipelineOrchestrator

LOG = get_logger("wiring")


def build_ai_parser(settings: PipelineSettings) -> Optional[StructuredAIParser]:
    """The configured AI backend, or None when AI tiers are switched off."""
    backend = settings.ai_backend
    if backend == "none":
        return None
    if backend == "gemini":
        return GeminiReceiptParser(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.ai_timeout,
        )
    if backend == "openai":
        return OpenAIReceiptParser(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            base_url=settings.openai_base_url,
            timeout=settings.ai_timeout,
        )
    raise ConfigurationError(f"Unknown AI backend {backend!r}", component="wiring")


def build_pipeline(settings: PipelineSettings) -> PipelineOrchestrator:
    parser = build_ai_parser(settings)
    ocr = TesseractTextService(
        lang=settings.tesseract_lang,
        tesseract_cmd=settings.tesseract_cmd,
        timeout=settings.ai_timeout,
    )
    LOG.info(
        f"Pipeline wired: ai={settings.ai_backend} "
        f"(available={bool(parser and parser.is_available())}), ocr_lang={settings.tesseract_lang}"
    )
    return PipelineOrchestrator(
        vision_parser=parser,
        text_parser=parser,
        ocr_service=ocr,
        preprocessor=ImagePreprocessor(),
        regex_extractor=RegexExtractor(),
        quality_gate=QualityGate(),
        validator=ExtractionValidator(),
    )

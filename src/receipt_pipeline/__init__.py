"""
Receipt extraction pipeline.

Turns receipt images into structured drafts through vision AI, OCR + text
AI and a deterministic regex fallback, with confidence scoring on top.
"""

from .domain.models import CanonicalDraft, RawImage
from .orchestrator import PipelineOrchestrator, build_pipeline

__all__ = [
    "CanonicalDraft",
    "RawImage",
    "PipelineOrchestrator",
    "build_pipeline",
]

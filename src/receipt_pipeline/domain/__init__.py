"""Data model and shared normalisation helpers."""

from .models import (
    CanonicalDraft,
    ExtractionCandidate,
    LineItemCandidate,
    PreprocessedImage,
    RawImage,
)
from .merchant import CATEGORIES, OTHER_CATEGORY, UNKNOWN_MERCHANT

__all__ = [
    "CanonicalDraft",
    "ExtractionCandidate",
    "LineItemCandidate",
    "PreprocessedImage",
    "RawImage",
    "CATEGORIES",
    "OTHER_CATEGORY",
    "UNKNOWN_MERCHANT",
]

from .gate import QualityGate
from .regex import RegexExtractor
from .validator import ExtractionValidator

__all__ = ["QualityGate", "RegexExtractor", "ExtractionValidator"]

from .pipeline import PipelineOrchestrator, TierState, next_state
from .wiring import build_ai_parser, build_pipeline

__all__ = ["PipelineOrchestrator", "TierState", "next_state", "build_ai_parser", "build_pipeline"]

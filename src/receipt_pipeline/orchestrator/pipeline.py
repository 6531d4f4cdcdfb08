"""Tiered extraction: vision AI, then OCR + text AI, then regex.

Tiers run strictly in order and the first accepted candidate ends the run.
Routing is the pure function :func:`next_state`; :class:`PipelineOrchestrator`
only performs the I/O for the state it is in.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from ..ai.base import StructuredAIParser
from ..domain.models import CanonicalDraft, ExtractionCandidate, RawImage
from ..errors import CapabilityUnavailable, ConfigurationError, ReceiptPipelineError, TierFailure
from ..extraction.gate import QualityGate
from ..extraction.regex import REGEX_CONFIDENCE, RegexExtractor
from ..extraction.validator import ExtractionValidator
from ..logging import get_logger
from ..preprocess.image import ImagePreprocessor, decode_image

LOG = get_logger("orchestrator")

AI_DEFAULT_CONFIDENCE = Decimal("0.95")


class TierState(enum.Enum):
    START = "start"
    TIER1_VISION = "tier1_vision"
    TIER2_TEXT = "tier2_text"
    TIER3_REGEX = "tier3_regex"
    DONE = "done"


_FOLLOWING = {
    TierState.START: TierState.TIER1_VISION,
    TierState.TIER1_VISION: TierState.TIER2_TEXT,
    TierState.TIER2_TEXT: TierState.TIER3_REGEX,
    TierState.TIER3_REGEX: TierState.DONE,
    TierState.DONE: TierState.DONE,
}


def next_state(
    state: TierState,
    *,
    available: bool = True,
    candidate: Optional[ExtractionCandidate] = None,
    accepted: bool = False,
) -> TierState:
    """Where to go after attempting ``state``.

    An accepted candidate jumps straight to DONE; an unavailable capability,
    a missing candidate or a gate rejection moves to the following tier.
    The regex tier always ends in DONE.
    """
    if state in (TierState.START, TierState.DONE):
        return _FOLLOWING[state]
    if state is TierState.TIER3_REGEX:
        return TierState.DONE
    if available and candidate is not None and accepted:
        return TierState.DONE
    return _FOLLOWING[state]


@dataclass
class _Run:
    """Per-invocation scratch state; never shared between invocations."""

    raw: RawImage
    bitmap: object = None
    ocr_text: Optional[str] = None
    ocr_ran: bool = False
    candidate: Optional[ExtractionCandidate] = None
    source: Optional[str] = None
    tier_confidence: Decimal = AI_DEFAULT_CONFIDENCE


class PipelineOrchestrator:
    """``process(raw_image) -> CanonicalDraft``.

    Only DecodeError (unreadable upload) and ConfigurationError (no regex
    tier wired) ever escape; every other failure routes to the next tier.
    """

    def __init__(
        self,
        *,
        vision_parser: Optional[StructuredAIParser] = None,
        text_parser: Optional[StructuredAIParser] = None,
        ocr_service=None,
        preprocessor: Optional[ImagePreprocessor] = None,
        regex_extractor: Optional[RegexExtractor] = None,
        quality_gate: Optional[QualityGate] = None,
        validator: Optional[ExtractionValidator] = None,
    ) -> None:
        if regex_extractor is None:
            raise ConfigurationError("The regex tier is required; no tier could run", component="orchestrator")
        self.vision_parser = vision_parser
        self.text_parser = text_parser
        self.ocr_service = ocr_service
        self.preprocessor = preprocessor or ImagePreprocessor()
        self.regex_extractor = regex_extractor
        self.quality_gate = quality_gate or QualityGate()
        self.validator = validator or ExtractionValidator()

    # ---- public entry point ----------------------------------------------------
    def process(self, raw_image: RawImage) -> CanonicalDraft:
        run = _Run(raw=raw_image)
        state = TierState.START
        while state is not TierState.DONE:
            LOG.debug(f"State {state.value}")
            if state is TierState.START:
                run.bitmap = decode_image(raw_image)
                state = next_state(state)
            elif state is TierState.TIER1_VISION:
                state = self._tier1(run)
            elif state is TierState.TIER2_TEXT:
                state = self._tier2(run)
            else:
                state = self._tier3(run)

        draft = self.validator.validate(
            run.candidate,
            run.tier_confidence,
            raw_text=run.ocr_text if run.ocr_ran else None,
            source=run.source,
        )
        LOG.info(
            f"Extraction done via {run.source} - Merchant: {draft.merchant_name}, Amount: {draft.amount}, "
            f"Items: {len(draft.items)}, Confidence: {draft.confidence_score}, Review: {draft.needs_review}"
        )
        return draft

    # ---- tiers -----------------------------------------------------------------
    def _attempt_ai(self, run: _Run, state: TierState, parser: Optional[StructuredAIParser], call) -> TierState:
        available = _is_available(parser)
        candidate = None
        accepted = False
        if available:
            try:
                candidate = call(parser)
            except Exception as exc:
                LOG.error(f"{state.value}: {TierFailure('parser raised', component=state.value, original_error=exc)}")
                candidate = None
            accepted = self.quality_gate.accepts(candidate)
            if candidate is None:
                LOG.warning(f"{state.value}: parser returned nothing, falling back")
            elif not accepted:
                LOG.warning(f"{state.value}: insufficient data, falling back")
        else:
            LOG.info(f"{state.value}: capability unavailable, skipping")
        nxt = next_state(state, available=available, candidate=candidate, accepted=accepted)
        if nxt is TierState.DONE:
            run.candidate = candidate
            run.source = state.value
            run.tier_confidence = AI_DEFAULT_CONFIDENCE
        return nxt

    def _tier1(self, run: _Run) -> TierState:
        return self._attempt_ai(
            run,
            TierState.TIER1_VISION,
            self.vision_parser,
            lambda p: p.parse_from_image(run.raw.data, run.raw.mime_type),
        )

    def _tier2(self, run: _Run) -> TierState:
        self._run_ocr(run)
        return self._attempt_ai(
            run,
            TierState.TIER2_TEXT,
            self.text_parser,
            lambda p: p.parse_from_text(run.ocr_text or ""),
        )

    def _tier3(self, run: _Run) -> TierState:
        run.candidate = self.regex_extractor.extract(run.ocr_text or "")
        run.source = TierState.TIER3_REGEX.value
        run.tier_confidence = REGEX_CONFIDENCE
        return next_state(TierState.TIER3_REGEX)

    def _run_ocr(self, run: _Run) -> None:
        """Preprocess + OCR, once per invocation; the text feeds tiers 2 and 3."""
        if run.ocr_ran or self.ocr_service is None:
            return
        try:
            if not self.ocr_service.is_available():
                raise CapabilityUnavailable("OCR engine not available", component="ocr")
            pre = self.preprocessor.preprocess(run.bitmap)
            run.ocr_text = self.ocr_service.extract_text(pre)
        except CapabilityUnavailable as exc:
            LOG.info(f"Skipping OCR: {exc}")
            return
        except ReceiptPipelineError as exc:
            LOG.error(f"OCR failed: {exc}")
            run.ocr_text = ""
        except Exception as exc:
            LOG.error(f"OCR failed: {TierFailure('OCR engine error', component='ocr', original_error=exc)}")
            run.ocr_text = ""
        run.ocr_ran = True


def _is_available(parser: Optional[StructuredAIParser]) -> bool:
    if parser is None:
        return False
    try:
        return bool(parser.is_available())
    except Exception as exc:
        LOG.warning(f"Availability check failed for {getattr(parser, 'name', parser)}: {exc}")
        return False

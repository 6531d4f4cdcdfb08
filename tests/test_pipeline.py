from decimal import Decimal

import pytest

from receipt_pipeline.config import PipelineSettings
from receipt_pipeline.domain.models import ExtractionCandidate, RawImage
from receipt_pipeline.errors import ConfigurationError, DecodeError, TierFailure
from receipt_pipeline.extraction.regex import RegexExtractor
from receipt_pipeline.orchestrator import PipelineOrchestrator, TierState, build_pipeline, next_state
from receipt_pipeline.ai.base import StructuredAIParser
from receipt_pipeline.ai.gemini import GeminiReceiptParser


class FakeParser:
    name = "fake"

    def __init__(self, image_result=None, text_result=None, available=True, raises=False):
        self.image_result = image_result
        self.text_result = text_result
        self.available = available
        self.raises = raises
        self.image_calls = 0
        self.text_calls = []

    def is_available(self):
        return self.available

    def parse_from_image(self, data, mime_type):
        self.image_calls += 1
        if self.raises:
            raise RuntimeError("backend exploded")
        return self.image_result

    def parse_from_text(self, text):
        self.text_calls.append(text)
        return self.text_result


class FakeOCR:
    def __init__(self, text="", available=True, error=None):
        self.text = text
        self.available = available
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    def extract_text(self, image):
        self.calls += 1
        assert set(image.pixels.ravel().tolist()) <= {0, 255}
        if self.error is not None:
            raise self.error
        return self.text


GOOD = ExtractionCandidate(merchant_name="Kroger", total=Decimal("12.50"))
EMPTY = ExtractionCandidate()


def _pipeline(**kwargs):
    kwargs.setdefault("regex_extractor", RegexExtractor())
    return PipelineOrchestrator(**kwargs)


# ---------- transition function ----------
def test_next_state_happy_and_fallback_paths():
    assert next_state(TierState.START) is TierState.TIER1_VISION
    assert next_state(TierState.TIER1_VISION, candidate=GOOD, accepted=True) is TierState.DONE
    assert next_state(TierState.TIER1_VISION, candidate=GOOD, accepted=False) is TierState.TIER2_TEXT
    assert next_state(TierState.TIER1_VISION, candidate=None) is TierState.TIER2_TEXT
    assert next_state(TierState.TIER2_TEXT, available=False, candidate=GOOD, accepted=True) is TierState.TIER3_REGEX
    assert next_state(TierState.TIER2_TEXT, candidate=GOOD, accepted=True) is TierState.DONE
    assert next_state(TierState.TIER3_REGEX) is TierState.DONE
    assert next_state(TierState.DONE) is TierState.DONE


# ---------- orchestration ----------
def test_accepted_vision_result_short_circuits(receipt_image):
    vision, text, ocr = FakeParser(image_result=GOOD), FakeParser(text_result=GOOD), FakeOCR("KROGER")
    draft = _pipeline(vision_parser=vision, text_parser=text, ocr_service=ocr).process(receipt_image)

    assert vision.image_calls == 1
    assert ocr.calls == 0
    assert text.text_calls == []
    assert draft.merchant_name == "Kroger"
    assert draft.confidence_score == Decimal("0.95")
    assert draft.raw_text is None
    assert draft.source == "tier1_vision"
    assert draft.needs_review is False


def test_rejected_vision_result_falls_to_text_tier(receipt_image):
    vision = FakeParser(image_result=EMPTY)
    text = FakeParser(text_result=ExtractionCandidate(merchant_name="Aldi", total=Decimal("3.10")))
    ocr = FakeOCR("ALDI\nTOTAL 3.10")
    draft = _pipeline(vision_parser=vision, text_parser=text, ocr_service=ocr).process(receipt_image)

    assert text.text_calls == ["ALDI\nTOTAL 3.10"]
    assert ocr.calls == 1
    assert draft.merchant_name == "Aldi"
    assert draft.raw_text == "ALDI\nTOTAL 3.10"
    assert draft.source == "tier2_text"


def test_rejected_text_result_falls_to_regex_with_same_ocr_text(receipt_image):
    text = FakeParser(text_result=ExtractionCandidate(merchant_name="Unknown"))
    ocr = FakeOCR("CORNER MARKET\nMilk  2.50\nTOTAL 2.50")
    draft = _pipeline(vision_parser=None, text_parser=text, ocr_service=ocr).process(receipt_image)

    assert ocr.calls == 1
    assert draft.source == "tier3_regex"
    assert draft.merchant_name == "CORNER MARKET"
    assert draft.amount == Decimal("2.50")
    assert draft.category == "Groceries"
    assert draft.confidence_score == Decimal("0.70")


def test_raising_parser_is_treated_as_tier_failure(receipt_image):
    vision = FakeParser(raises=True)
    draft = _pipeline(vision_parser=vision, ocr_service=FakeOCR("SHOP\nTOTAL 1.00")).process(receipt_image)
    assert vision.image_calls == 1
    assert draft.source == "tier3_regex"


def test_unavailable_parser_is_skipped_silently(receipt_image):
    vision = FakeParser(image_result=GOOD, available=False)
    draft = _pipeline(vision_parser=vision, ocr_service=FakeOCR("")).process(receipt_image)
    assert vision.image_calls == 0
    assert draft.source == "tier3_regex"


def test_coffee_line_without_ai(receipt_image):
    draft = _pipeline(ocr_service=FakeOCR("2x Coffee $3.50")).process(receipt_image)

    assert len(draft.items) == 1
    item = draft.items[0]
    assert (item.name, item.quantity, item.price) == ("Coffee", 2, Decimal("3.50"))
    assert draft.confidence_score == Decimal("0.70")
    assert draft.amount == Decimal("3.50")
    assert draft.needs_review is False
    assert draft.raw_text == "2x Coffee $3.50"


@pytest.mark.parametrize("ocr_text", ["", "~\n.\n,"])
def test_garbage_text_without_ai_still_returns_draft(receipt_image, ocr_text):
    draft = _pipeline(ocr_service=FakeOCR(ocr_text)).process(receipt_image)

    assert draft.amount == Decimal("0")
    assert draft.merchant_name == "Unknown Merchant"
    assert draft.confidence_score <= Decimal("0.10")
    assert draft.needs_review is True
    assert draft.category == "Other"


def test_ocr_failure_routes_to_regex(receipt_image):
    ocr = FakeOCR(error=TierFailure("tesseract crashed", component="ocr"))
    draft = _pipeline(ocr_service=ocr).process(receipt_image)
    assert draft.raw_text == ""
    assert draft.needs_review is True


def test_unexpected_ocr_error_routes_to_regex(receipt_image):
    draft = _pipeline(ocr_service=FakeOCR(error=RuntimeError("segfault"))).process(receipt_image)
    assert draft.source == "tier3_regex"


def test_missing_ocr_leaves_raw_text_unset(receipt_image):
    draft = _pipeline(ocr_service=FakeOCR("TOTAL 9.99", available=False)).process(receipt_image)
    assert draft.raw_text is None
    assert draft.amount == Decimal("0")


def test_unreadable_image_raises_decode_error():
    vision = FakeParser(image_result=GOOD)
    with pytest.raises(DecodeError):
        _pipeline(vision_parser=vision).process(RawImage(data=b"not an image", mime_type="image/png"))
    assert vision.image_calls == 0


def test_regex_tier_is_required():
    with pytest.raises(ConfigurationError):
        PipelineOrchestrator(regex_extractor=None)


# ---------- wiring ----------
def test_build_pipeline_without_ai():
    p = build_pipeline(PipelineSettings(ai_backend="none"))
    assert p.vision_parser is None
    assert p.text_parser is None
    assert isinstance(p.regex_extractor, RegexExtractor)


def test_build_pipeline_gemini_without_key_is_unavailable():
    p = build_pipeline(PipelineSettings(ai_backend="gemini", gemini_api_key=None))
    assert isinstance(p.vision_parser, GeminiReceiptParser)
    assert p.vision_parser.is_available() is False


class CannedParser(StructuredAIParser):
    """Real parser contract over a fixed model reply."""

    name = "canned"

    def __init__(self, reply):
        super().__init__(timeout=1)
        self.reply = reply

    def is_available(self):
        return True

    def _request_image(self, data, mime_type, prompt):
        return self.reply

    def _request_text(self, prompt):
        return self.reply


@pytest.mark.parametrize(
    "reply",
    [
        '{"merchantName": null, "total": NaN}',
        '{"merchantName": null, "total": -Infinity, "subtotal": NaN}',
        '{"merchantName": "Shop", "total": Infinity}',
    ],
)
def test_non_finite_ai_totals_never_reach_the_draft(receipt_image, reply):
    draft = _pipeline(vision_parser=CannedParser(reply), ocr_service=FakeOCR("")).process(receipt_image)
    assert draft.amount.is_finite()
    assert draft.needs_review is True


def test_infinite_total_is_rejected_by_the_gate(receipt_image):
    draft = _pipeline(
        vision_parser=CannedParser('{"merchantName": null, "total": Infinity}'),
        ocr_service=FakeOCR("CORNER MARKET\nTOTAL 2.50"),
    ).process(receipt_image)
    assert draft.source == "tier3_regex"
    assert draft.amount == Decimal("2.50")


def test_nan_confidence_falls_back_to_tier_default(receipt_image):
    draft = _pipeline(
        vision_parser=CannedParser('{"merchantName": "Shop", "total": 5.0, "confidenceScore": NaN}')
    ).process(receipt_image)
    assert draft.source == "tier1_vision"
    assert draft.amount == Decimal("5.0")
    assert draft.confidence_score == Decimal("0.95")
    assert draft.needs_review is False

"""Reconcile one accepted candidate into the canonical draft."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from ..domain.merchant import UNKNOWN_MERCHANT, is_unknown_merchant, normalize_category
from ..domain.models import CanonicalDraft, ExtractionCandidate
from ..domain.normalize import clamp_unit
from ..logging import get_logger

LOG = get_logger("validator")

FAILURE_CONFIDENCE = Decimal("0.10")
ZERO_AMOUNT_CEILING = Decimal("0.30")
UNKNOWN_MERCHANT_CEILING = Decimal("0.50")
REVIEW_THRESHOLD = Decimal("0.50")


def _finite(value: Optional[Decimal]) -> Optional[Decimal]:
    return value if value is not None and value.is_finite() else None


def _amount(candidate: ExtractionCandidate) -> Decimal:
    amount = _finite(candidate.total)
    if amount is None or amount == 0:
        amount = _finite(candidate.subtotal)
    if amount is None or amount < 0:
        return Decimal("0")
    return amount


class ExtractionValidator:
    def __init__(self, *, today: Callable[[], date] = date.today) -> None:
        self._today = today

    def validate(
        self,
        candidate: ExtractionCandidate,
        tier_confidence: Decimal,
        *,
        raw_text: Optional[str] = None,
        source: Optional[str] = None,
    ) -> CanonicalDraft:
        """Build the draft and apply the confidence downgrades.

        ``tier_confidence`` is used when the candidate reports no score of its
        own. ``needs_review`` is derived from the final values, not from the
        model's self-reported confidence.
        """
        merchant = candidate.merchant_name
        if is_unknown_merchant(merchant):
            merchant = UNKNOWN_MERCHANT
        amount = _amount(candidate)

        confidence = candidate.confidence_score
        if confidence is None:
            confidence = tier_confidence
        confidence = clamp_unit(confidence)

        zero_amount = amount == 0
        unknown_merchant = merchant == UNKNOWN_MERCHANT
        if zero_amount and unknown_merchant:
            LOG.error(f"EXTRACTION FAILURE: both amount (0.00) and merchant unknown (source={source})")
            confidence = FAILURE_CONFIDENCE
        elif zero_amount:
            LOG.warning(f"EXTRACTION WARNING: amount is 0.00 for merchant '{merchant}' (source={source})")
            confidence = min(confidence, ZERO_AMOUNT_CEILING)
        elif unknown_merchant:
            LOG.warning(f"EXTRACTION WARNING: merchant unknown for amount {amount} (source={source})")
            confidence = min(confidence, UNKNOWN_MERCHANT_CEILING)

        needs_review = confidence < REVIEW_THRESHOLD or zero_amount or unknown_merchant

        return CanonicalDraft(
            merchant_name=merchant,
            amount=amount,
            transaction_date=candidate.transaction_date or self._today(),
            category=normalize_category(candidate.category),
            items=list(candidate.items),
            confidence_score=confidence,
            needs_review=needs_review,
            raw_text=raw_text,
            payment_method=candidate.payment_method,
            source=source,
        )

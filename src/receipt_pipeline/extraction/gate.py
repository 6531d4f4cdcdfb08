from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..domain.merchant import is_unknown_merchant
from ..domain.models import ExtractionCandidate
from ..logging import get_logger

LOG = get_logger("quality-gate")


def _positive(value: Optional[Decimal]) -> bool:
    return value is not None and value.is_finite() and value > 0


class QualityGate:
    """Minimal-sufficiency check for AI tier output.

    A candidate passes with a positive total or subtotal, or with a merchant
    name that is present and not a placeholder. Anything less lets a better
    fallback tier run instead.
    """

    def accepts(self, candidate: Optional[ExtractionCandidate]) -> bool:
        if candidate is None:
            return False
        has_amount = _positive(candidate.total) or _positive(candidate.subtotal)
        has_merchant = not is_unknown_merchant(candidate.merchant_name)
        accepted = has_amount or has_merchant
        if not accepted:
            LOG.debug("Candidate rejected: no positive amount and no merchant name")
        return accepted

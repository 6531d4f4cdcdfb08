"""Turn model output text into an ExtractionCandidate without ever raising on bad fields."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from ..domain.merchant import normalize_category
from ..domain.models import ExtractionCandidate, LineItemCandidate
from ..domain.normalize import clean_text, parse_iso_date, parse_money, parse_quantity
from ..errors import TierFailure
from ..logging import get_logger

LOG = get_logger("ai-payload")


def scavenge_json_block(s: str) -> Optional[Any]:
    """Find a JSON object in chatty model output (fences, leading prose)."""
    if not s:
        return None

    candidates: List[str] = []

    fenced = re.search(r"```(?:json)?\s*(.*?)```", s, re.DOTALL)
    if fenced and fenced.group(1):
        candidates.append(fenced.group(1).strip())

    start_obj = s.find("{")
    end_obj = s.rfind("}")
    if start_obj != -1 and end_obj != -1 and end_obj > start_obj:
        candidates.append(s[start_obj : end_obj + 1])

    for candidate in candidates:
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    return None


def load_json_object(text: Optional[str]) -> Dict[str, Any]:
    """Parse model text to a dict; TierFailure when nothing usable is found."""
    if not text or not text.strip():
        raise TierFailure("Model returned empty content", component="ai")
    try:
        data = json.loads(text)
    except ValueError:
        LOG.debug(f"Strict JSON parse failed; scavenging (first 200 chars: {text[:200]!r})")
        data = scavenge_json_block(text)
    if not isinstance(data, dict):
        raise TierFailure("Model output is not a JSON object", component="ai")
    return data


def _item_from_payload(raw: Any) -> Optional[LineItemCandidate]:
    if not isinstance(raw, dict):
        return None
    name = clean_text(raw.get("name"))
    if not name:
        return None
    return LineItemCandidate(
        name=name,
        quantity=parse_quantity(raw.get("quantity")),
        unit_price=parse_money(raw.get("unitPrice")),
        price=parse_money(raw.get("price")),
        category=clean_text(raw.get("category")),
    )


def candidate_from_payload(data: Dict[str, Any]) -> ExtractionCandidate:
    """Field-by-field null-safe mapping of the AI schema onto a candidate."""
    raw_items = data.get("items")
    items = []
    if isinstance(raw_items, list):
        for raw in raw_items:
            item = _item_from_payload(raw)
            if item is not None:
                items.append(item)

    raw_category = clean_text(data.get("category"))
    return ExtractionCandidate(
        merchant_name=clean_text(data.get("merchantName")),
        subtotal=parse_money(data.get("subtotal")),
        tax=parse_money(data.get("tax")),
        total=parse_money(data.get("total")),
        transaction_date=parse_iso_date(data.get("transactionDate")),
        category=normalize_category(raw_category) if raw_category else None,
        items=tuple(items),
        confidence_score=parse_money(data.get("confidenceScore")),
        payment_method=clean_text(data.get("paymentMethod")),
        transaction_id=clean_text(data.get("transactionId")),
        address=clean_text(data.get("address")),
        phone_number=clean_text(data.get("phoneNumber")),
    )


def candidate_from_text(text: Optional[str]) -> ExtractionCandidate:
    return candidate_from_payload(load_json_object(text))

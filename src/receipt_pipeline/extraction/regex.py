"""Deterministic text-pattern extraction: the tier that always answers.

Every heuristic that depends on priority is an ordered table below; the
first row that produces a usable value wins, so reordering rows changes
behavior.
"""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, List, Optional, Tuple

from ..domain.merchant import OTHER_CATEGORY, UNKNOWN_MERCHANT
from ..domain.models import ExtractionCandidate, LineItemCandidate
from ..logging import get_logger

LOG = get_logger("regex")

REGEX_CONFIDENCE = Decimal("0.70")
MAX_MERCHANT_CANDIDATES = 3

_MONEY = r"(\d+[.,]\d{2})"

# ---------- merchant ----------
# (label, pattern, matcher): a line matching any row is never a merchant name.
MERCHANT_EXCLUSIONS: Tuple[Tuple[str, re.Pattern, str], ...] = (
    ("phone", re.compile(r"\d{3}[-.\s]\d{3}[-.\s]\d{4}"), "search"),
    ("postal-code", re.compile(r"\d{5}(-\d{4})?"), "search"),
    ("street", re.compile(r"\b(street|avenue|blvd|road|dr\.|suite|ste|apt|floor)\b", re.I), "search"),
    ("header-label", re.compile(r"(tel|fax|phone|date|time|cashier|server|table|order|receipt|register|terminal|store|#)", re.I), "match"),
    ("date", re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}"), "match"),
    ("bare-price", re.compile(r"\$?\d+\.\d{2}"), "fullmatch"),
    ("summary", re.compile(r"(subtotal|total|tax|change|cash|credit|debit|visa|mastercard|amex)", re.I), "match"),
)

_STORE_HEADER = re.compile(r"[A-Z]{3,}")

# ---------- amount ----------
AMOUNT_PATTERNS: Tuple[Tuple[str, re.Pattern], ...] = (
    ("total", re.compile(r"(?:grand\s*)?total[:\s]*\$?\s*" + _MONEY, re.I)),
    ("amount-due", re.compile(r"amount\s*due[:\s]*\$?\s*" + _MONEY, re.I)),
    ("balance", re.compile(r"balance\s*(?:due)?[:\s]*\$?\s*" + _MONEY, re.I)),
    ("paid", re.compile(r"(?:you\s*)?paid[:\s]*\$?\s*" + _MONEY, re.I)),
    ("card-tender", re.compile(r"(?:debit|credit)\s*(?:tend)?[:\s]*\$?\s*" + _MONEY, re.I)),
    ("sale", re.compile(r"sale[:\s]*\$?\s*" + _MONEY, re.I)),
)
_ANY_AMOUNT = re.compile(r"\$?\s*" + _MONEY)

# ---------- date ----------
DATE_FORMATS: Tuple[Tuple[str, re.Pattern, str], ...] = (
    ("MM/DD/YYYY", re.compile(r"(\d{2})/(\d{2})/(\d{4})"), "%m/%d/%Y"),
    ("YYYY-MM-DD", re.compile(r"(\d{4})-(\d{2})-(\d{2})"), "%Y-%m-%d"),
    ("M/D/YYYY", re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})"), "%m/%d/%Y"),
)

# ---------- line items ----------
_SUMMARY_LINE = re.compile(
    r"(sub\s*total|total|tax|grand total|change|balance|amount|paid|cash|credit|debit|visa|mastercard)", re.I
)
_DATE_SHAPED = re.compile(r"\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}")

# (label, pattern, quantity group or None, name group, price group)
ITEM_PATTERNS: Tuple[Tuple[str, re.Pattern, Optional[int], int, int], ...] = (
    ("qty-name-price", re.compile(r"(\d+)\s*[xX]\s*(.+?)\s+\$?\s*" + _MONEY), 1, 2, 3),
    ("name-gap-price", re.compile(r"(.+?)\s{2,}\$?\s*" + _MONEY), None, 1, 2),
    ("name-dollar-price", re.compile(r"(.+?)\s+\$" + _MONEY), None, 1, 2),
)

# ---------- category ----------
MERCHANT_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Groceries", ("grocery", "market", "supermarket", "food")),
    ("Food", ("coffee", "cafe", "restaurant", "pizza", "burger", "diner")),
    ("Transport", ("gas", "fuel", "shell", "chevron")),
    ("Health", ("pharmacy", "drug", "cvs", "walgreens")),
    ("Shopping", ("mall", "store", "shop")),
)


def _to_decimal(value: str) -> Optional[Decimal]:
    try:
        return Decimal(value.replace(",", "."))
    except InvalidOperation:
        return None


def _lines(text: str) -> List[str]:
    return [ln.strip() for ln in text.split("\n")]


def _excluded_by(line: str) -> Optional[str]:
    for label, pattern, how in MERCHANT_EXCLUSIONS:
        matcher: Callable = getattr(pattern, how)
        if matcher(line):
            return label
    return None


def extract_merchant(text: str) -> str:
    candidates: List[str] = []
    for line in _lines(text):
        if len(line) < 2:
            continue
        if _excluded_by(line):
            continue
        candidates.append(line)
        if len(candidates) >= MAX_MERCHANT_CANDIDATES:
            break

    # ALL-CAPS lines are typical store-name headers.
    for candidate in candidates:
        if candidate == candidate.upper() and _STORE_HEADER.search(candidate):
            return candidate
    if candidates:
        return candidates[0]
    return UNKNOWN_MERCHANT


def extract_amount(text: str) -> Decimal:
    for label, pattern in AMOUNT_PATTERNS:
        last: Optional[Decimal] = None
        for m in pattern.finditer(text):
            value = _to_decimal(m.group(1))
            if value is not None:
                last = value
        if last is not None and last > 0:
            LOG.debug(f"Extracted total amount {last} using pattern '{label}'")
            return last

    largest = Decimal("0")
    for m in _ANY_AMOUNT.finditer(text):
        value = _to_decimal(m.group(1))
        if value is not None and value > largest:
            largest = value
    if largest > 0:
        LOG.debug(f"Extracted total amount {largest} using largest-amount heuristic")
        return largest

    LOG.warning(f"Could not extract total amount from receipt text ({len(text)} chars)")
    return Decimal("0")


def extract_date(text: str) -> Optional[date]:
    """First format whose first occurrence parses; None when nothing does."""
    for label, pattern, fmt in DATE_FORMATS:
        m = pattern.search(text)
        if not m:
            continue
        try:
            return datetime.strptime(m.group(0), fmt).date()
        except ValueError:
            LOG.debug(f"Failed to parse date {m.group(0)!r} as {label}")
    return None


def _item_from_line(line: str) -> Optional[LineItemCandidate]:
    for label, pattern, qty_group, name_group, price_group in ITEM_PATTERNS:
        m = pattern.search(line)
        if not m:
            continue
        name = m.group(name_group).strip()
        if len(name) < 2:
            continue
        if qty_group is None and _DATE_SHAPED.fullmatch(name):
            continue
        price = _to_decimal(m.group(price_group))
        if price is None:
            continue
        quantity = None
        if qty_group is not None:
            quantity = int(m.group(qty_group))
            if quantity < 1:
                quantity = None
        return LineItemCandidate(name=name, quantity=quantity, price=price)
    return None


def extract_items(text: str) -> List[LineItemCandidate]:
    items: List[LineItemCandidate] = []
    for line in _lines(text):
        if not line or _SUMMARY_LINE.match(line):
            continue
        item = _item_from_line(line)
        if item is not None:
            items.append(item)
    return items


def categorize_by_merchant(merchant_name: str) -> str:
    lower = merchant_name.lower()
    for category, keywords in MERCHANT_CATEGORIES:
        if any(k in lower for k in keywords):
            return category
    return OTHER_CATEGORY


class RegexExtractor:
    """``extract(raw_text) -> ExtractionCandidate``; pure, total, never None.

    The transaction date is left unset when no format parses so that the
    validator's "today" default stays the only clock read in the pipeline.
    """

    confidence = REGEX_CONFIDENCE

    def extract(self, raw_text: Optional[str]) -> ExtractionCandidate:
        text = raw_text or ""
        merchant = extract_merchant(text)
        candidate = ExtractionCandidate(
            merchant_name=merchant,
            total=extract_amount(text),
            transaction_date=extract_date(text),
            category=categorize_by_merchant(merchant),
            items=tuple(extract_items(text)),
            confidence_score=REGEX_CONFIDENCE,
        )
        LOG.info(
            f"Basic parsing complete - Merchant: {candidate.merchant_name}, Amount: {candidate.total}, "
            f"Date: {candidate.transaction_date}, Category: {candidate.category}, Items: {len(candidate.items)}"
        )
        return candidate

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class RawImage:
    """Uploaded receipt bytes plus the MIME type reported by the client."""

    data: bytes
    mime_type: str = "image/jpeg"

    def __repr__(self) -> str:
        return f"RawImage(mime_type={self.mime_type!r}, bytes={len(self.data)})"


@dataclass(frozen=True, eq=False)
class PreprocessedImage:
    """Grayscale, binarized, dark-text-on-light bitmap ready for OCR.

    ``pixels`` is a single-channel uint8 array holding only 0 and 255.
    """

    pixels: np.ndarray
    scale: float = 1.0
    inverted: bool = False
    applied: Tuple[str, ...] = ()

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1])

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    def dark_fraction(self) -> float:
        total = self.pixels.size
        if total == 0:
            return 0.0
        return float(np.count_nonzero(self.pixels == 0)) / float(total)


@dataclass(frozen=True)
class LineItemCandidate:
    name: str
    quantity: Optional[int] = None
    unit_price: Optional[Decimal] = None
    price: Optional[Decimal] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class ExtractionCandidate:
    """What one tier recovered from the receipt; never shared across tiers."""

    merchant_name: Optional[str] = None
    subtotal: Optional[Decimal] = None
    tax: Optional[Decimal] = None
    total: Optional[Decimal] = None
    transaction_date: Optional[date] = None
    category: Optional[str] = None
    items: Tuple[LineItemCandidate, ...] = ()
    confidence_score: Optional[Decimal] = None
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None


@dataclass
class CanonicalDraft:
    """Pipeline output handed by value to the persistence collaborator."""

    merchant_name: str
    amount: Decimal
    transaction_date: date
    category: str
    confidence_score: Decimal
    needs_review: bool
    items: List[LineItemCandidate] = field(default_factory=list)
    raw_text: Optional[str] = None
    payment_method: Optional[str] = None
    source: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        def _money(v: Optional[Decimal]) -> Optional[str]:
            return None if v is None else str(v)

        return {
            "merchantName": self.merchant_name,
            "amount": _money(self.amount),
            "transactionDate": self.transaction_date.isoformat(),
            "category": self.category,
            "items": [
                {
                    "name": it.name,
                    "quantity": it.quantity,
                    "unitPrice": _money(it.unit_price),
                    "price": _money(it.price),
                    "category": it.category,
                }
                for it in self.items
            ],
            "confidenceScore": _money(self.confidence_score),
            "needsReview": self.needs_review,
            "rawText": self.raw_text,
            "paymentMethod": self.payment_method,
            "source": self.source,
        }

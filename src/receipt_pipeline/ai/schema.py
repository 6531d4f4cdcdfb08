"""Prompt and response schemas shared by every structured AI backend."""

from __future__ import annotations

from typing import Any, Dict

from ..domain.merchant import CATEGORIES

_CATEGORY_LIST = ", ".join(CATEGORIES)

RECEIPT_EXTRACTION_PROMPT = f"""
You are a receipt parsing expert. Extract structured data from this receipt image or OCR text.

IMPORTANT: This may be a mobile app screenshot with UI elements (close buttons, navigation bars, share buttons).
IGNORE all app UI chrome: buttons, icons, app title bars, navigation elements. Focus only on the actual receipt content.

Return ONLY a valid JSON object (no markdown, no explanation) with these keys:
merchantName, subtotal, tax, total, transactionDate, category, items, confidenceScore,
paymentMethod, transactionId, address, phoneNumber.
Each entry of items has: name, quantity, unitPrice, price, category.

Rules:
1. Extract ALL product line items. Use the full product name, NOT the quantity/unit-price sub-line (e.g. "1.0 x $3.50 ea.").
2. category must be one of: {_CATEGORY_LIST}.
3. Set confidenceScore to your confidence in the extraction (0.0-1.0).
4. Use null for missing fields.
5. All prices are numbers, not strings.
6. transactionDate must be in YYYY-MM-DD format.
7. For total use the "Order Total" or "Amount Due": the final amount charged including tax. Do NOT use the cash tendered or the change.
8. For merchantName prefer the store name from the footer (website, phone number) over app headers like "Receipt".
   If a URL like "www.kroger.com" is present, the merchant is "Kroger".
"""

IMAGE_PREAMBLE = "Analyze this receipt image carefully.\n\n"


def build_text_prompt(ocr_text: str) -> str:
    return "Analyze the following OCR text from a receipt:\n\n" + ocr_text + "\n\n" + RECEIPT_EXTRACTION_PROMPT


_STRING_FIELDS = ("merchantName", "transactionDate", "paymentMethod", "transactionId", "address", "phoneNumber")
_NUMBER_FIELDS = ("subtotal", "tax", "total", "confidenceScore")


def gemini_response_schema() -> Dict[str, Any]:
    """OpenAPI-subset schema accepted by Gemini's ``responseSchema``."""
    props: Dict[str, Any] = {}
    for key in _STRING_FIELDS:
        props[key] = {"type": "STRING", "nullable": True}
    for key in _NUMBER_FIELDS:
        props[key] = {"type": "NUMBER", "nullable": True}
    props["category"] = {"type": "STRING", "enum": list(CATEGORIES)}
    props["items"] = {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                "name": {"type": "STRING"},
                "quantity": {"type": "NUMBER", "nullable": True},
                "unitPrice": {"type": "NUMBER", "nullable": True},
                "price": {"type": "NUMBER", "nullable": True},
                "category": {"type": "STRING", "nullable": True},
            },
        },
    }
    return {"type": "OBJECT", "properties": props}


def openai_json_schema() -> Dict[str, Any]:
    """Strict JSON schema for Structured Outputs (every key required, nulls explicit)."""
    item_props = {
        "name": {"type": "string"},
        "quantity": {"type": ["number", "null"]},
        "unitPrice": {"type": ["number", "null"]},
        "price": {"type": ["number", "null"]},
        "category": {"type": ["string", "null"]},
    }
    props: Dict[str, Any] = {}
    for key in _STRING_FIELDS:
        props[key] = {"type": ["string", "null"]}
    for key in _NUMBER_FIELDS:
        props[key] = {"type": ["number", "null"]}
    props["category"] = {"type": "string", "enum": list(CATEGORIES)}
    props["items"] = {
        "type": "array",
        "items": {
            "type": "object",
            "additionalProperties": False,
            "required": list(item_props),
            "properties": item_props,
        },
    }
    return {
        "type": "object",
        "additionalProperties": False,
        "required": list(props),
        "properties": props,
    }

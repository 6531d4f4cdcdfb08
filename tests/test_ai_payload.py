import json
from datetime import date
from decimal import Decimal

import pytest

from receipt_pipeline.ai.payload import (
    candidate_from_payload,
    candidate_from_text,
    load_json_object,
    scavenge_json_block,
)
from receipt_pipeline.ai.schema import gemini_response_schema, openai_json_schema
from receipt_pipeline.domain.normalize import clamp_unit, parse_money
from receipt_pipeline.errors import TierFailure


def test_scavenges_fenced_json():
    text = 'Here you go:\n```json\n{"merchantName": "Kroger"}\n```\nthanks'
    assert scavenge_json_block(text) == {"merchantName": "Kroger"}


def test_scavenges_object_inside_prose():
    assert scavenge_json_block('sure! {"total": 3} done') == {"total": 3}


@pytest.mark.parametrize("text", ["", "   ", "no json at all", "[1, 2, 3]"])
def test_unusable_output_is_tier_failure(text):
    with pytest.raises(TierFailure):
        load_json_object(text)


def test_full_payload_maps_every_field():
    payload = {
        "merchantName": " Kroger ",
        "subtotal": 15.5,
        "tax": "$1.24",
        "total": "17,99 €",
        "transactionDate": "2024-05-03",
        "category": "restaurant",
        "items": [
            {"name": "Cake", "quantity": 2.0, "unitPrice": 3.5, "price": "7.00", "category": "Bakery"},
            {"name": "", "price": 1},
            "garbage",
            {"name": "Milk", "quantity": 0, "price": None},
        ],
        "confidenceScore": 0.82,
        "paymentMethod": "Credit",
        "transactionId": 12345,
        "address": "1 Main St",
        "phoneNumber": None,
    }
    c = candidate_from_payload(payload)
    assert c.merchant_name == "Kroger"
    assert c.subtotal == Decimal("15.5")
    assert c.tax == Decimal("1.24")
    assert c.total == Decimal("17.99")
    assert c.transaction_date == date(2024, 5, 3)
    assert c.category == "Dining"
    assert [(i.name, i.quantity, i.price) for i in c.items] == [
        ("Cake", 2, Decimal("7.00")),
        ("Milk", None, None),
    ]
    assert c.items[0].unit_price == Decimal("3.5")
    assert c.items[0].category == "Bakery"
    assert c.confidence_score == Decimal("0.82")
    assert c.transaction_id == "12345"
    assert c.phone_number is None


def test_malformed_fields_become_none():
    c = candidate_from_payload(
        {"total": True, "subtotal": "n/a", "transactionDate": "05/03/2024", "items": {"name": "x"}, "category": None}
    )
    assert c.total is None
    assert c.subtotal is None
    assert c.transaction_date is None
    assert c.items == ()
    assert c.category is None


def test_empty_object_is_an_empty_candidate():
    c = candidate_from_text("{}")
    assert c.merchant_name is None
    assert c.total is None


def test_candidate_from_chatty_text():
    c = candidate_from_text("```json\n" + json.dumps({"merchantName": "Aldi", "total": 4.2}) + "\n```")
    assert c.merchant_name == "Aldi"
    assert c.total == Decimal("4.2")


def test_schemas_share_keys():
    g = gemini_response_schema()["properties"]
    o = openai_json_schema()
    assert set(g) == set(o["properties"]) == set(o["required"])
    assert "Other" in o["properties"]["category"]["enum"]
    assert o["additionalProperties"] is False


@pytest.mark.parametrize("literal", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_numbers_become_none(literal):
    text = (
        '{"merchantName": "Shop", "total": %s, "subtotal": %s, "confidenceScore": %s,'
        ' "items": [{"name": "Milk", "quantity": %s, "price": %s}]}' % ((literal,) * 5)
    )
    c = candidate_from_text(text)
    assert c.merchant_name == "Shop"
    assert c.total is None
    assert c.subtotal is None
    assert c.confidence_score is None
    assert c.items[0].quantity is None
    assert c.items[0].price is None


def test_non_finite_decimals_are_rejected():
    assert parse_money(Decimal("NaN")) is None
    assert parse_money(Decimal("-Infinity")) is None
    assert parse_money(float("inf")) is None
    assert parse_money(Decimal("2.50")) == Decimal("2.50")
    assert clamp_unit(Decimal("NaN")) == Decimal("0")

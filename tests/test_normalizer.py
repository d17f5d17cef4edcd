"""Test declarative vendor → canonical field mapping."""
from datetime import date, datetime, timezone
from decimal import Decimal

from hub.integrations.normalizer import DataNormalizer, FieldMapping, SchemaMapping
from providers.crm.models import Contact


def build():
    normalizer = DataNormalizer()
    normalizer.register_mapping(SchemaMapping(
        platform="acme",
        entity_type="contact",
        mappings=[
            FieldMapping("id", "id", "str"),
            FieldMapping("properties.email", "email", "lowercase"),
            FieldMapping("phones.0.number", "phone", "optional_str"),
            FieldMapping("balance", "balance", "decimal"),
            FieldMapping("born", "born", "date"),
            FieldMapping("created", "created_at", "datetime"),
            FieldMapping("tier", "tier", "uppercase", default="basic"),
        ],
    ))
    return normalizer


def test_nested_paths_and_transforms():
    result = build().normalize("acme", "contact", {
        "id": 42,
        "properties": {"email": "Ana@Example.COM"},
        "phones": [{"number": "11999998888"}],
        "balance": "10.50",
        "born": "15/03/1990",
        "created": "2024-01-02T03:04:05",
    })
    assert result["id"] == "42"
    assert result["email"] == "ana@example.com"
    assert result["phone"] == "11999998888"
    assert result["balance"] == Decimal("10.50")
    assert result["born"] == date(1990, 3, 15)
    assert result["created_at"] == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert result["tier"] == "BASIC"
    assert result["platform"] == "acme"


def test_missing_paths_fall_back_to_defaults():
    result = build().normalize("acme", "contact", {"phones": []})
    assert result["phone"] is None
    assert result["balance"] == Decimal("0")


def test_bad_value_falls_back_to_default():
    result = build().normalize("acme", "contact", {"balance": "not-a-number"})
    assert result["balance"] is None


def test_unmapped_platform_passes_through():
    raw = {"x": 1}
    assert build().normalize("other", "contact", raw) == {"raw_data": raw, "platform": "other"}


def test_normalize_as_drops_unknown_and_none():
    contact = build().normalize_as(
        Contact, "acme", "contact",
        {"id": 1, "properties": {"email": "a@b.co"}},
        company="Acme",
    )
    assert contact.id == "1"
    assert contact.email == "a@b.co"
    assert contact.company == "Acme"
    assert contact.phone is None

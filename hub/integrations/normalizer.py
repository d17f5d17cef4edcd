"""
Integration Hub Data Normalizer — Vendor → Canonical Field Mapping.

Maps vendor wire payloads to canonical entities. Each vendor module
declares a SchemaMapping per entity type and registers it with the
shared ``normalizer`` at import time. Supports nested field access
(dot notation, numeric segments index into lists), named transforms
and per-field defaults.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


# ---------------------------------------------------------------------------
# Field mapping
# ---------------------------------------------------------------------------

@dataclass
class FieldMapping:
    """Maps a source vendor field to a canonical target field."""
    source_field: str       # Dot-notation path, e.g. "properties.email" or "email.0.value"
    target_field: str       # Canonical field name, e.g. "email"
    transform: str | None = None  # Optional transform name
    default: Any = None     # Default if source is missing


@dataclass
class SchemaMapping:
    """Complete mapping config for a platform + entity type."""
    platform: str
    entity_type: str  # contact | deal | activity | product | customer | invoice | payment ...
    mappings: list[FieldMapping] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Transform functions
# ---------------------------------------------------------------------------

def _to_decimal(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"not a decimal: {value!r}")


def _to_datetime(value: Any) -> datetime | None:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _to_date(value: Any) -> date | None:
    if not value:
        return None
    if isinstance(value, date):
        return value
    text = str(value)
    # dd/mm/yyyy is common in Brazilian ERPs
    if len(text) == 10 and text[2] == "/" and text[5] == "/":
        return datetime.strptime(text, "%d/%m/%Y").date()
    return date.fromisoformat(text[:10])


TRANSFORMS: dict[str, Callable[[Any], Any]] = {
    "lowercase": lambda v: str(v).lower() if v else "",
    "uppercase": lambda v: str(v).upper() if v else "",
    "int": lambda v: int(v) if v is not None else 0,
    "decimal": _to_decimal,
    "str": lambda v: str(v) if v is not None else "",
    "optional_str": lambda v: str(v) if v not in (None, "") else None,
    "strip": lambda v: str(v).strip() if v else "",
    "datetime": _to_datetime,
    "timestamp": lambda v: datetime.fromtimestamp(int(v), tz=timezone.utc) if v else None,
    "date": _to_date,
    "list_from_csv": lambda v: [s.strip() for s in str(v).split(",")] if v else [],
    "list": lambda v: list(v) if v else [],
    "bool": lambda v: bool(v) if v is not None else False,
}


# ---------------------------------------------------------------------------
# DataNormalizer
# ---------------------------------------------------------------------------

class DataNormalizer:
    """Normalizes vendor data to canonical schemas using registered mappings."""

    def __init__(self):
        self._mappings: dict[str, SchemaMapping] = {}  # key: {platform}:{entity_type}

    def register_mapping(self, mapping: SchemaMapping) -> None:
        """Register a schema mapping for a platform + entity type."""
        key = f"{mapping.platform}:{mapping.entity_type}"
        self._mappings[key] = mapping

    def get_mapping(self, platform: str, entity_type: str) -> SchemaMapping | None:
        return self._mappings.get(f"{platform}:{entity_type}")

    def normalize(
        self,
        platform: str,
        entity_type: str,
        raw_data: dict[str, Any],
    ) -> dict[str, Any]:
        """
        Normalize raw vendor data to canonical field names.

        Unmapped platforms pass through with only ``raw_data`` and
        ``platform`` set.
        """
        result: dict[str, Any] = {"raw_data": raw_data, "platform": platform}
        mapping = self.get_mapping(platform, entity_type)
        if not mapping:
            return result

        for fm in mapping.mappings:
            value = self._get_nested(raw_data, fm.source_field)
            if value is None:
                value = fm.default

            if fm.transform and fm.transform in TRANSFORMS:
                try:
                    value = TRANSFORMS[fm.transform](value)
                except (ValueError, TypeError, KeyError):
                    value = fm.default

            result[fm.target_field] = value

        return result

    def normalize_as(
        self,
        model: type[ModelT],
        platform: str,
        entity_type: str,
        raw_data: dict[str, Any],
        **overrides: Any,
    ) -> ModelT:
        """Normalize and build the canonical model, dropping unknown keys."""
        data = self.normalize(platform, entity_type, raw_data)
        data.update(overrides)
        known = model.model_fields
        return model(**{k: v for k, v in data.items() if k in known and v is not None})

    @staticmethod
    def _get_nested(data: Any, path: str) -> Any:
        """Access nested values via dot notation (e.g. 'properties.email', 'email.0.value')."""
        current = data
        for part in path.split("."):
            if isinstance(current, dict):
                current = current.get(part)
            elif isinstance(current, list) and part.isdigit():
                index = int(part)
                current = current[index] if index < len(current) else None
            else:
                return None
            if current is None:
                return None
        return current


# Shared instance; vendor modules register their mappings on import.
normalizer = DataNormalizer()

"""Pipedrive CRM wire format.

Responses arrive wrapped as ``{"success": true, "data": {...}}``. Persons
carry email/phone as lists of ``{value, primary}`` objects; person search
results flatten them to plain strings.
"""

from typing import Any, Optional

from hub.integrations.models import WebhookResult
from hub.integrations.normalizer import FieldMapping, SchemaMapping, normalizer
from hub.integrations.transport import AuthCredentials, AuthType, VendorCall, compact
from providers.crm.models import (
    Activity,
    Contact,
    CreateActivityRequest,
    CreateContactRequest,
    CreateDealRequest,
    CRMConfig,
    CRMPlatform,
    CRMWebhookEvent,
    Deal,
    DealStatus,
    deal_status_from,
    vendor_activity_type,
)

PLATFORM = CRMPlatform.PIPEDRIVE.value

# Pipedrive object names → canonical entity types
OBJECT_TYPES = {
    "person": "contact",
    "deal": "deal",
    "activity": "activity",
    "organization": "organization",
}

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="contact",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("name", "name", "str"),
        FieldMapping("email.0.value", "email", "lowercase"),
        FieldMapping("phone.0.value", "phone", "optional_str"),
        FieldMapping("org_name", "company", "optional_str"),
        FieldMapping("add_time", "created_at", "datetime"),
        FieldMapping("update_time", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="contact_search",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("name", "name", "str"),
        FieldMapping("emails.0", "email", "lowercase"),
        FieldMapping("phones.0", "phone", "optional_str"),
        FieldMapping("organization.name", "company", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="deal",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("title", "title", "str"),
        FieldMapping("value", "value", "decimal"),
        FieldMapping("currency", "currency", "uppercase", default="BRL"),
        FieldMapping("stage_id", "stage", "str"),
        FieldMapping("expected_close_date", "expected_close_date", "datetime"),
        FieldMapping("add_time", "created_at", "datetime"),
        FieldMapping("update_time", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="activity",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("type", "type", "str", default="task"),
        FieldMapping("subject", "subject", "str"),
        FieldMapping("note", "description", "optional_str"),
        FieldMapping("due_date", "due_date", "datetime"),
        FieldMapping("done", "completed", "bool"),
        FieldMapping("add_time", "created_at", "datetime"),
        FieldMapping("update_time", "updated_at", "datetime"),
    ],
))


def _unwrap(response: Any) -> dict[str, Any]:
    if isinstance(response, dict) and isinstance(response.get("data"), dict):
        return response["data"]
    return response


def _ref_id(value: Any) -> Optional[str]:
    """Pipedrive references are ids in writes and ``{"value": id, ...}`` in reads."""
    if isinstance(value, dict):
        value = value.get("value") or value.get("id")
    return str(value) if value not in (None, "") else None


def _as_date(value: Any) -> Optional[str]:
    return value.date().isoformat() if value else None


class PipedriveMapper:
    platform = CRMPlatform.PIPEDRIVE
    default_base_url = "https://api.pipedrive.com/v1"

    def credentials(self, config: CRMConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.QUERY, token=config.api_key, key_name="api_token")

    # --- Contacts ---

    def create_contact(self, request: CreateContactRequest) -> VendorCall:
        return VendorCall("POST", "/persons", body=compact({
            "name": request.name,
            "email": [{"value": request.email, "primary": True}],
            "phone": [{"value": request.phone, "primary": True}] if request.phone else None,
            "org_name": request.company,
            **request.custom_fields,
        }))

    def find_contact(self, email: str) -> VendorCall:
        return VendorCall(
            "GET", "/persons/search",
            params={"term": email, "fields": "email", "exact_match": "true"},
        )

    def parse_contact(self, raw: Any) -> Contact:
        return normalizer.normalize_as(Contact, PLATFORM, "contact", _unwrap(raw))

    def parse_found_contact(self, response: Any) -> Optional[Contact]:
        items = ((response or {}).get("data") or {}).get("items") or []
        if not items:
            return None
        return normalizer.normalize_as(Contact, PLATFORM, "contact_search", items[0].get("item") or {})

    # --- Deals ---

    def create_deal(self, request: CreateDealRequest) -> VendorCall:
        return VendorCall("POST", "/deals", body=compact({
            "title": request.title,
            "value": float(request.value),
            "currency": "BRL",
            "person_id": request.contact_id,
            "stage_id": request.stage,
            "expected_close_date": _as_date(request.expected_close_date),
            **request.custom_fields,
        }))

    def update_deal_status(self, deal_id: str, status: DealStatus, stage: Optional[str]) -> VendorCall:
        body: dict[str, Any] = {"status": status.value}
        if stage:
            body["stage_id"] = stage
        return VendorCall("PUT", f"/deals/{deal_id}", body=body)

    def parse_deal(self, raw: Any) -> Deal:
        data = _unwrap(raw)
        return normalizer.normalize_as(
            Deal, PLATFORM, "deal", data,
            status=deal_status_from(data.get("status")),
            contact_id=_ref_id(data.get("person_id")),
            owner_id=_ref_id(data.get("user_id")),
        )

    # --- Activities ---

    def create_activity(self, request: CreateActivityRequest) -> VendorCall:
        return VendorCall("POST", "/activities", body=compact({
            "subject": request.subject,
            "type": vendor_activity_type(request.type),
            "note": request.description,
            "person_id": request.contact_id,
            "deal_id": request.deal_id,
            "due_date": _as_date(request.due_date),
        }))

    def parse_activity(self, raw: Any) -> Activity:
        data = _unwrap(raw)
        return normalizer.normalize_as(
            Activity, PLATFORM, "activity", data,
            contact_id=_ref_id(data.get("person_id")),
            deal_id=_ref_id(data.get("deal_id")),
            owner_id=_ref_id(data.get("user_id")),
        )

    # --- Webhooks ---

    def webhook(self, event: CRMWebhookEvent) -> WebhookResult:
        data = event.data
        meta = data.get("meta") or {}
        obj = meta.get("object") or event.event.rsplit(".", 1)[-1]
        current = data.get("current") or data
        entity_id = current.get("id") if isinstance(current, dict) else None
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type=OBJECT_TYPES.get(obj, "deal"),
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/users/me")

    def listings(self) -> dict[str, VendorCall]:
        return {
            "contacts": VendorCall("GET", "/persons", params={"limit": 100}),
            "deals": VendorCall("GET", "/deals", params={"limit": 100}),
            "activities": VendorCall("GET", "/activities", params={"limit": 100}),
        }

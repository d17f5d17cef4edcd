"""RD Station CRM wire format.

RD Station returns entities unwrapped; contacts are keyed by ``uuid`` and
custom fields travel as top-level ``cf_*`` keys.
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

PLATFORM = CRMPlatform.RDSTATION.value

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="contact",
    mappings=[
        FieldMapping("uuid", "id", "str"),
        FieldMapping("name", "name", "str"),
        FieldMapping("email", "email", "lowercase"),
        FieldMapping("mobile_phone", "phone", "optional_str"),
        FieldMapping("company", "company", "optional_str"),
        FieldMapping("job_title", "position", "optional_str"),
        FieldMapping("tags", "tags", "list"),
        FieldMapping("custom_fields", "custom_fields"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="deal",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("name", "title", "str"),
        FieldMapping("deal_value", "value", "decimal"),
        FieldMapping("deal_stage.name", "stage", "str"),
        FieldMapping("contacts.0.contact_id", "contact_id", "optional_str"),
        FieldMapping("user.id", "owner_id", "optional_str"),
        FieldMapping("predicted_close_date", "expected_close_date", "datetime"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="activity",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("activity_type", "type", "str", default="task"),
        FieldMapping("text", "subject", "str"),
        FieldMapping("description", "description", "optional_str"),
        FieldMapping("contact_id", "contact_id", "optional_str"),
        FieldMapping("deal_id", "deal_id", "optional_str"),
        FieldMapping("due_date", "due_date", "datetime"),
        FieldMapping("done", "completed", "bool"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))


class RDStationMapper:
    platform = CRMPlatform.RDSTATION
    default_base_url = "https://api.rd.services"

    def credentials(self, config: CRMConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=config.api_key)

    # --- Contacts ---

    def create_contact(self, request: CreateContactRequest) -> VendorCall:
        custom = {
            key if key.startswith("cf_") else f"cf_{key}": value
            for key, value in request.custom_fields.items()
        }
        return VendorCall("POST", "/platform/contacts", body=compact({
            "name": request.name,
            "email": request.email,
            "mobile_phone": request.phone,
            "company": request.company,
            "job_title": request.position,
            "tags": request.tags or None,
            **custom,
        }))

    def find_contact(self, email: str) -> VendorCall:
        return VendorCall("GET", f"/platform/contacts/email:{email}")

    def parse_contact(self, raw: dict[str, Any]) -> Contact:
        return normalizer.normalize_as(Contact, PLATFORM, "contact", raw)

    def parse_found_contact(self, response: Any) -> Optional[Contact]:
        if not isinstance(response, dict) or not response.get("uuid"):
            return None
        return self.parse_contact(response)

    # --- Deals ---

    def create_deal(self, request: CreateDealRequest) -> VendorCall:
        return VendorCall("POST", "/platform/deals", body=compact({
            "name": request.title,
            "deal_value": float(request.value),
            "contacts": [{"contact_id": request.contact_id}],
            "deal_stage_id": request.stage,
            "predicted_close_date": (
                request.expected_close_date.isoformat() if request.expected_close_date else None
            ),
        }))

    def update_deal_status(self, deal_id: str, status: DealStatus, stage: Optional[str]) -> VendorCall:
        body: dict[str, Any] = {}
        if stage:
            body["deal_stage_id"] = stage
        if status == DealStatus.WON:
            body["win"] = True
            body["deal_status"] = "won"
        elif status == DealStatus.LOST:
            body["win"] = False
            body["deal_status"] = "lost"
            body["lost_reason"] = "Não especificado"
        return VendorCall("PATCH", f"/platform/deals/{deal_id}", body=body)

    def parse_deal(self, raw: dict[str, Any]) -> Deal:
        return normalizer.normalize_as(
            Deal, PLATFORM, "deal", raw,
            status=deal_status_from(raw.get("deal_status")),
        )

    # --- Activities ---

    def create_activity(self, request: CreateActivityRequest) -> VendorCall:
        return VendorCall("POST", "/platform/activities", body=compact({
            "activity_type": vendor_activity_type(request.type),
            "text": request.subject,
            "description": request.description,
            "contact_id": request.contact_id,
            "deal_id": request.deal_id,
            "due_date": request.due_date.isoformat() if request.due_date else None,
        }))

    def parse_activity(self, raw: dict[str, Any]) -> Activity:
        return normalizer.normalize_as(Activity, PLATFORM, "activity", raw)

    # --- Webhooks ---

    def webhook(self, event: CRMWebhookEvent) -> WebhookResult:
        data = event.data
        leads = data.get("leads")
        lead = leads[0] if isinstance(leads, list) and leads else data
        entity_id = lead.get("uuid") or lead.get("id") if isinstance(lead, dict) else None
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type="deal" if "deal" in event.event.lower() else "contact",
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/platform/contacts", params={"page_size": 1})

    def listings(self) -> dict[str, VendorCall]:
        return {
            "contacts": VendorCall("GET", "/platform/contacts", params={"page_size": 100}),
            "deals": VendorCall("GET", "/platform/deals", params={"limit": 100}),
            "activities": VendorCall("GET", "/platform/activities", params={"limit": 100}),
        }

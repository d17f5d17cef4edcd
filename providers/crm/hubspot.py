"""HubSpot CRM (v3 objects API) wire format.

Every object is ``{"id": ..., "properties": {...}}``; deal ↔ contact links
travel as associations. Activities are modelled as HubSpot tasks.
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

PLATFORM = CRMPlatform.HUBSPOT.value

# HUBSPOT_DEFINED association type for deal → contact
DEAL_TO_CONTACT = 3

TASK_TYPES = {"call": "CALL", "email": "EMAIL"}
TASK_TYPES_REVERSE = {"CALL": "call", "EMAIL": "email", "TODO": "task"}

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="contact",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("properties.email", "email", "lowercase"),
        FieldMapping("properties.phone", "phone", "optional_str"),
        FieldMapping("properties.company", "company", "optional_str"),
        FieldMapping("properties.jobtitle", "position", "optional_str"),
        FieldMapping("properties.createdate", "created_at", "datetime"),
        FieldMapping("properties.lastmodifieddate", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="deal",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("properties.dealname", "title", "str"),
        FieldMapping("properties.amount", "value", "decimal"),
        FieldMapping("properties.dealstage", "stage", "str"),
        FieldMapping("properties.hubspot_owner_id", "owner_id", "optional_str"),
        FieldMapping("properties.closedate", "expected_close_date", "datetime"),
        FieldMapping("associations.contacts.results.0.id", "contact_id", "optional_str"),
        FieldMapping("properties.createdate", "created_at", "datetime"),
        FieldMapping("properties.hs_lastmodifieddate", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="activity",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("properties.hs_task_subject", "subject", "str"),
        FieldMapping("properties.hs_task_body", "description", "optional_str"),
        FieldMapping("properties.hubspot_owner_id", "owner_id", "optional_str"),
        FieldMapping("properties.hs_timestamp", "due_date", "datetime"),
        FieldMapping("properties.hs_createdate", "created_at", "datetime"),
        FieldMapping("properties.hs_lastmodifieddate", "updated_at", "datetime"),
    ],
))


def _split_name(name: str) -> tuple[str, str]:
    first, _, rest = name.strip().partition(" ")
    return first, rest.strip()


class HubSpotMapper:
    platform = CRMPlatform.HUBSPOT
    default_base_url = "https://api.hubapi.com"

    def credentials(self, config: CRMConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=config.api_key)

    # --- Contacts ---

    def create_contact(self, request: CreateContactRequest) -> VendorCall:
        first, last = _split_name(request.name)
        return VendorCall("POST", "/crm/v3/objects/contacts", body={
            "properties": compact({
                "firstname": first,
                "lastname": last or None,
                "email": request.email,
                "phone": request.phone,
                "company": request.company,
                "jobtitle": request.position,
                **request.custom_fields,
            }),
        })

    def find_contact(self, email: str) -> VendorCall:
        return VendorCall(
            "GET", f"/crm/v3/objects/contacts/{email}",
            params={"idProperty": "email"},
        )

    def parse_contact(self, raw: dict[str, Any]) -> Contact:
        props = raw.get("properties") or {}
        name = f"{props.get('firstname') or ''} {props.get('lastname') or ''}".strip()
        return normalizer.normalize_as(Contact, PLATFORM, "contact", raw, name=name)

    def parse_found_contact(self, response: Any) -> Optional[Contact]:
        if not isinstance(response, dict) or not response.get("id"):
            return None
        return self.parse_contact(response)

    # --- Deals ---

    def create_deal(self, request: CreateDealRequest) -> VendorCall:
        return VendorCall("POST", "/crm/v3/objects/deals", body={
            "properties": compact({
                "dealname": request.title,
                "amount": str(request.value),
                "dealstage": request.stage,
                "closedate": (
                    request.expected_close_date.isoformat() if request.expected_close_date else None
                ),
                **request.custom_fields,
            }),
            "associations": [
                {
                    "to": {"id": request.contact_id},
                    "types": [{
                        "associationCategory": "HUBSPOT_DEFINED",
                        "associationTypeId": DEAL_TO_CONTACT,
                    }],
                },
            ],
        })

    def update_deal_status(self, deal_id: str, status: DealStatus, stage: Optional[str]) -> VendorCall:
        properties: dict[str, Any] = {}
        if stage:
            properties["dealstage"] = stage
        if status == DealStatus.WON:
            properties["dealstage"] = "closedwon"
        elif status == DealStatus.LOST:
            properties["dealstage"] = "closedlost"
        return VendorCall("PATCH", f"/crm/v3/objects/deals/{deal_id}", body={"properties": properties})

    def parse_deal(self, raw: dict[str, Any]) -> Deal:
        stage = (raw.get("properties") or {}).get("dealstage")
        return normalizer.normalize_as(Deal, PLATFORM, "deal", raw, status=deal_status_from(stage))

    # --- Activities ---

    def create_activity(self, request: CreateActivityRequest) -> VendorCall:
        return VendorCall("POST", "/crm/v3/objects/tasks", body={
            "properties": compact({
                "hs_task_subject": request.subject,
                "hs_task_body": request.description,
                "hs_task_type": TASK_TYPES.get(vendor_activity_type(request.type), "TODO"),
                "hs_timestamp": request.due_date.isoformat() if request.due_date else None,
            }),
        })

    def parse_activity(self, raw: dict[str, Any]) -> Activity:
        props = raw.get("properties") or {}
        return normalizer.normalize_as(
            Activity, PLATFORM, "activity", raw,
            type=TASK_TYPES_REVERSE.get(str(props.get("hs_task_type") or "").upper(), "task"),
            completed=props.get("hs_task_status") == "COMPLETED",
        )

    # --- Webhooks ---

    def webhook(self, event: CRMWebhookEvent) -> WebhookResult:
        data = event.data
        subscription = str(data.get("subscriptionType") or event.event)
        entity_id = data.get("objectId") or data.get("id")
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type=subscription.split(".", 1)[0] if "." in subscription else "contact",
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/crm/v3/objects/contacts", params={"limit": 1})

    def listings(self) -> dict[str, VendorCall]:
        return {
            "contacts": VendorCall("GET", "/crm/v3/objects/contacts", params={"limit": 100}),
            "deals": VendorCall("GET", "/crm/v3/objects/deals", params={"limit": 100}),
            "activities": VendorCall("GET", "/crm/v3/objects/tasks", params={"limit": 100}),
        }

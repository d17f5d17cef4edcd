"""
CRM provider — RD Station, Pipedrive and HubSpot behind one contract.

- CRMAdapter: create/find/update contacts, deals and activities
- Vendor mappers: pure translation between canonical entities and wire payloads
"""
from providers.crm.adapter import CRMAdapter, CRMVendor, VENDORS
from providers.crm.models import (
    Activity,
    ActivityType,
    Contact,
    CreateActivityRequest,
    CreateContactRequest,
    CreateDealRequest,
    CRMConfig,
    CRMPlatform,
    CRMWebhookEvent,
    Deal,
    DealStatus,
)

__all__ = [
    "CRMAdapter",
    "CRMVendor",
    "VENDORS",
    "Activity",
    "ActivityType",
    "Contact",
    "CreateActivityRequest",
    "CreateContactRequest",
    "CreateDealRequest",
    "CRMConfig",
    "CRMPlatform",
    "CRMWebhookEvent",
    "Deal",
    "DealStatus",
]

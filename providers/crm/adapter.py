"""
CRM Adapter — one canonical contract over RD Station, Pipedrive and HubSpot.

The vendor is chosen once, from ``CRMConfig.platform``, and never changes
for the adapter's lifetime. Every operation goes:

    request model → vendor mapper → VendorCall → transport → canonical entity

and leaves one OperationRecord in the ledger.
"""
from __future__ import annotations
from typing import Any, Optional, Protocol

import structlog

from hub.errors import ValidationError
from hub.integrations.base import ProviderAdapter, parse_request
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus, SyncResult, WebhookResult
from hub.integrations.registry import Clock, utc_now
from hub.integrations.transport import AuthCredentials, HttpTransport, TransportFn, VendorCall
from providers.crm.hubspot import HubSpotMapper
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
)
from providers.crm.pipedrive import PipedriveMapper
from providers.crm.rdstation import RDStationMapper

logger = structlog.get_logger(__name__)


class CRMVendor(Protocol):
    """What a CRM vendor mapper must provide. Mappers are pure: no I/O."""

    platform: CRMPlatform
    default_base_url: str

    def credentials(self, config: CRMConfig) -> AuthCredentials: ...
    def create_contact(self, request: CreateContactRequest) -> VendorCall: ...
    def find_contact(self, email: str) -> VendorCall: ...
    def parse_contact(self, raw: Any) -> Contact: ...
    def parse_found_contact(self, response: Any) -> Optional[Contact]: ...
    def create_deal(self, request: CreateDealRequest) -> VendorCall: ...
    def update_deal_status(self, deal_id: str, status: DealStatus, stage: Optional[str]) -> VendorCall: ...
    def parse_deal(self, raw: Any) -> Deal: ...
    def create_activity(self, request: CreateActivityRequest) -> VendorCall: ...
    def parse_activity(self, raw: Any) -> Activity: ...
    def webhook(self, event: CRMWebhookEvent) -> WebhookResult: ...
    def ping(self) -> VendorCall: ...
    def listings(self) -> dict[str, VendorCall]: ...


VENDORS: dict[CRMPlatform, type[CRMVendor]] = {
    CRMPlatform.RDSTATION: RDStationMapper,
    CRMPlatform.PIPEDRIVE: PipedriveMapper,
    CRMPlatform.HUBSPOT: HubSpotMapper,
}


class CRMAdapter(ProviderAdapter):
    """Contacts, deals, activities and webhooks for one CRM account."""

    integration_type = IntegrationType.CRM

    def __init__(
        self,
        config: CRMConfig,
        transport: TransportFn | None = None,
        ledger: OperationLedger | None = None,
        integration_id: str | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config
        self._vendor: CRMVendor = VENDORS[config.platform]()
        if transport is None:
            transport = HttpTransport(
                config.platform.value,
                config.base_url or self._vendor.default_base_url,
                self._vendor.credentials(config),
            )
        super().__init__(config.platform.value, transport, ledger, integration_id, clock)

    def _vendor_fields(self, custom_fields: dict[str, Any]) -> dict[str, Any]:
        """Rename canonical custom field keys to the account's vendor keys."""
        mapping = self.config.custom_fields
        return {mapping.get(key, key): value for key, value in custom_fields.items()}

    # --- Contacts ---

    async def create_contact(self, request: CreateContactRequest | dict[str, Any]) -> Contact:
        request = parse_request(CreateContactRequest, request)
        request = request.model_copy(update={"custom_fields": self._vendor_fields(request.custom_fields)})
        return await self._call(
            "create_contact",
            self._vendor.create_contact(request),
            self._vendor.parse_contact,
        )

    async def find_contact_by_email(self, email: str) -> Optional[Contact]:
        """Best-effort search. Vendor failure looks the same as not found."""
        if not email:
            return None
        return await self._lookup(
            "find_contact",
            self._vendor.find_contact(email.strip().lower()),
            self._vendor.parse_found_contact,
        )

    # --- Deals ---

    async def create_deal(self, request: CreateDealRequest | dict[str, Any]) -> Deal:
        request = parse_request(CreateDealRequest, request)
        request = request.model_copy(update={"custom_fields": self._vendor_fields(request.custom_fields)})
        return await self._call(
            "create_deal",
            self._vendor.create_deal(request),
            self._vendor.parse_deal,
            record_data={"contact_id": request.contact_id},
        )

    async def update_deal_status(
        self,
        deal_id: str,
        status: DealStatus | str,
        stage: str | None = None,
    ) -> Deal:
        if not deal_id:
            raise ValidationError("deal_id is required")
        try:
            status = DealStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown deal status: {status}")
        return await self._call(
            "update_deal_status",
            self._vendor.update_deal_status(str(deal_id), status, stage),
            self._vendor.parse_deal,
            record_data={"deal_id": str(deal_id), "status": status.value},
        )

    # --- Activities ---

    async def create_activity(self, request: CreateActivityRequest | dict[str, Any]) -> Activity:
        request = parse_request(CreateActivityRequest, request)
        return await self._call(
            "create_activity",
            self._vendor.create_activity(request),
            self._vendor.parse_activity,
        )

    # --- Webhooks ---

    async def process_webhook(self, event: CRMWebhookEvent | dict[str, Any]) -> WebhookResult:
        """Reduce a vendor webhook to a WebhookResult. Safe to repeat."""
        event = parse_request(CRMWebhookEvent, event)
        if event.source != self.platform:
            raise ValidationError(
                f"Webhook source {event.source!r} does not match platform {self.platform!r}"
            )
        result = self._vendor.webhook(event)
        logger.info(
            "crm.webhook_processed",
            platform=self.platform,
            webhook_event=event.event,
            entity_type=result.entity_type,
        )
        self._record(
            "process_webhook",
            OperationStatus.SUCCESS,
            data={"event": event.event, "entity_type": result.entity_type, "entity_id": result.entity_id},
        )
        return result

    # --- Connectivity / sync ---

    async def test_connection(self) -> bool:
        return await self._ping(self._vendor.ping())

    async def sync(self) -> SyncResult:
        """Pull contacts, deals and activities; failed pulls count as errors."""
        return await self._sync_pass(self._vendor.listings())

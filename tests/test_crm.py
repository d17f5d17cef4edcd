"""Test the CRM adapter over RD Station, Pipedrive and HubSpot wire formats."""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from structlog.testing import capture_logs

from hub.errors import ConfigurationError, UpstreamError, ValidationError
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import OperationStatus
from providers.crm import ActivityType, CRMAdapter, CRMConfig, DealStatus


def adapter(platform, transport, clock, **config):
    ledger = OperationLedger(clock=clock)
    crm = CRMAdapter(CRMConfig(platform=platform, api_key="key", **config), transport, ledger, clock=clock)
    return crm, ledger


def test_config_rejects_unknown_platform():
    with pytest.raises(ConfigurationError):
        CRMConfig(platform="salesforce", api_key="key")
    with pytest.raises(ConfigurationError):
        CRMConfig(platform="hubspot", api_key="")


# --- Contacts ---

@pytest.mark.asyncio
async def test_hubspot_create_contact(transport, clock):
    transport.respond("POST", "/crm/v3/objects/contacts", {
        "id": "101",
        "properties": {
            "firstname": "Ana",
            "lastname": "Souza Lima",
            "email": "Ana@Empresa.com.br",
            "createdate": "2024-06-01T12:00:00+00:00",
        },
    })
    crm, ledger = adapter("hubspot", transport, clock)

    contact = await crm.create_contact({"name": "Ana Souza Lima", "email": "ana@empresa.com.br", "company": "Acme"})

    assert contact.id == "101"
    assert contact.name == "Ana Souza Lima"
    assert contact.email == "ana@empresa.com.br"
    assert contact.created_at == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    props = transport.last.body["properties"]
    assert props["firstname"] == "Ana"
    assert props["lastname"] == "Souza Lima"
    assert props["company"] == "Acme"
    assert "phone" not in props

    [record] = ledger.snapshot()
    assert record.operation == "create_contact"
    assert record.status == OperationStatus.SUCCESS


@pytest.mark.asyncio
async def test_invalid_contact_never_reaches_vendor(transport, clock):
    crm, ledger = adapter("pipedrive", transport, clock)
    with pytest.raises(ValidationError):
        await crm.create_contact({"name": "Ana", "email": "not-an-email"})
    assert transport.calls == []
    assert len(ledger) == 0


@pytest.mark.asyncio
async def test_vendor_rejection_is_recorded_and_raised(transport, clock):
    transport.respond("POST", "/platform/contacts", UpstreamError("rdstation", "email already taken", 422))
    crm, ledger = adapter("rdstation", transport, clock)

    with pytest.raises(UpstreamError, match="email already taken"):
        await crm.create_contact({"name": "Ana", "email": "ana@x.com"})

    [record] = ledger.snapshot()
    assert record.status == OperationStatus.ERROR
    assert "email already taken" in record.error


@pytest.mark.asyncio
async def test_missing_create_response_is_upstream_error(transport, clock):
    transport.respond("POST", "/persons", None)
    crm, _ = adapter("pipedrive", transport, clock)
    with pytest.raises(UpstreamError) as info:
        await crm.create_contact({"name": "Ana", "email": "ana@x.com"})
    assert info.value.status_code == 404


@pytest.mark.asyncio
async def test_rdstation_custom_fields_use_account_keys(transport, clock):
    transport.respond("POST", "/platform/contacts", {"uuid": "u-1", "name": "Ana", "email": "ana@x.com"})
    crm, _ = adapter("rdstation", transport, clock, custom_fields={"segment": "cf_segmento"})

    contact = await crm.create_contact({
        "name": "Ana",
        "email": "ana@x.com",
        "custom_fields": {"segment": "varejo", "origem": "site"},
    })

    assert contact.id == "u-1"
    assert transport.last.body["cf_segmento"] == "varejo"
    assert transport.last.body["cf_origem"] == "site"


@pytest.mark.asyncio
async def test_pipedrive_find_contact(transport, clock):
    transport.respond("GET", "/persons/search", {
        "success": True,
        "data": {"items": [{"item": {"id": 5, "name": "Ana", "emails": ["ana@x.com"], "phones": ["11999998888"]}}]},
    })
    crm, _ = adapter("pipedrive", transport, clock)

    contact = await crm.find_contact_by_email(" ANA@X.com ")
    assert contact.id == "5"
    assert contact.phone == "11999998888"
    assert transport.last.params["term"] == "ana@x.com"


@pytest.mark.asyncio
async def test_find_contact_failure_looks_like_not_found(transport, clock):
    transport.respond("GET", "/persons/search", UpstreamError("pipedrive", "rate limited", 429))
    crm, ledger = adapter("pipedrive", transport, clock)

    assert await crm.find_contact_by_email("ana@x.com") is None
    assert ledger.snapshot()[0].status == OperationStatus.ERROR


@pytest.mark.asyncio
async def test_find_contact_empty_result(transport, clock):
    transport.respond("GET", "/persons/search", {"success": True, "data": {"items": []}})
    crm, _ = adapter("pipedrive", transport, clock)
    assert await crm.find_contact_by_email("ana@x.com") is None
    assert await crm.find_contact_by_email("") is None


# --- Deals ---

@pytest.mark.asyncio
async def test_rdstation_deal_won(transport, clock):
    transport.respond("PATCH", "/platform/deals/9", {
        "id": "9", "name": "Plano anual", "deal_value": 1500.0, "deal_status": "won",
    })
    crm, ledger = adapter("rdstation", transport, clock)

    deal = await crm.update_deal_status("9", "won")
    assert deal.status == DealStatus.WON
    assert deal.value == Decimal("1500.0")
    assert transport.last.body == {"win": True, "deal_status": "won"}
    assert ledger.snapshot()[0].data == {"deal_id": "9", "status": "won"}


@pytest.mark.asyncio
async def test_hubspot_deal_lost_sets_closed_stage(transport, clock):
    transport.respond("PATCH", "/crm/v3/objects/deals/42", {
        "id": "42", "properties": {"dealname": "Renovação", "amount": "900", "dealstage": "closedlost"},
    })
    crm, _ = adapter("hubspot", transport, clock)

    deal = await crm.update_deal_status("42", DealStatus.LOST, stage="negotiation")
    assert deal.status == DealStatus.LOST
    assert transport.last.body == {"properties": {"dealstage": "closedlost"}}


@pytest.mark.asyncio
async def test_update_deal_status_rejects_unknown_status(transport, clock):
    crm, _ = adapter("pipedrive", transport, clock)
    with pytest.raises(ValidationError):
        await crm.update_deal_status("1", "archived")
    with pytest.raises(ValidationError):
        await crm.update_deal_status("", "won")
    assert transport.calls == []


@pytest.mark.asyncio
async def test_hubspot_deal_associates_contact(transport, clock):
    transport.respond("POST", "/crm/v3/objects/deals", {
        "id": "7",
        "properties": {"dealname": "Plano", "amount": "250.50", "dealstage": "appointmentscheduled"},
        "associations": {"contacts": {"results": [{"id": "101"}]}},
    })
    crm, _ = adapter("hubspot", transport, clock)

    deal = await crm.create_deal({"title": "Plano", "value": "250.50", "contact_id": "101"})
    assert deal.contact_id == "101"
    assert deal.value == Decimal("250.50")
    assert deal.status == DealStatus.OPEN
    assert transport.last.body["associations"][0]["to"] == {"id": "101"}
    assert transport.last.body["properties"]["amount"] == "250.50"


# --- Activities ---

@pytest.mark.asyncio
async def test_whatsapp_activity_logged_as_call(transport, clock):
    transport.respond("POST", "/activities", {
        "success": True,
        "data": {"id": 3, "subject": "Follow-up", "type": "call", "person_id": {"value": 5, "name": "Ana"}},
    })
    crm, _ = adapter("pipedrive", transport, clock)

    activity = await crm.create_activity({
        "type": ActivityType.WHATSAPP, "subject": "Follow-up", "contact_id": "5",
    })
    assert transport.last.body["type"] == "call"
    assert activity.id == "3"
    assert activity.type == "call"
    assert activity.contact_id == "5"


# --- Webhooks ---

@pytest.mark.asyncio
async def test_webhook_source_mismatch(transport, clock):
    crm, _ = adapter("hubspot", transport, clock)
    with pytest.raises(ValidationError):
        await crm.process_webhook({"event": "deal.updated", "data": {}, "source": "pipedrive"})


@pytest.mark.asyncio
async def test_hubspot_webhook(transport, clock):
    crm, ledger = adapter("hubspot", transport, clock)
    result = await crm.process_webhook({
        "event": "contact.creation",
        "data": {"objectId": 77, "subscriptionType": "contact.creation"},
        "source": "hubspot",
    })
    assert result.processed
    assert result.entity_type == "contact"
    assert result.entity_id == "77"
    assert ledger.snapshot()[0].operation == "process_webhook"


@pytest.mark.asyncio
async def test_pipedrive_webhook_maps_object(transport, clock):
    crm, _ = adapter("pipedrive", transport, clock)
    result = await crm.process_webhook({
        "event": "updated.person",
        "data": {"meta": {"object": "person"}, "current": {"id": 12}},
        "source": "pipedrive",
    })
    assert result.entity_type == "contact"
    assert result.entity_id == "12"


@pytest.mark.asyncio
async def test_webhook_logs_vendor_event_name(transport, clock):
    crm, _ = adapter("hubspot", transport, clock)
    with capture_logs() as logs:
        await crm.process_webhook({"event": "contact.created", "data": {"id": "1"}, "source": "hubspot"})

    [entry] = [log for log in logs if log["event"] == "crm.webhook_processed"]
    assert entry["webhook_event"] == "contact.created"
    assert entry["entity_type"] == "contact"


@pytest.mark.asyncio
async def test_hubspot_webhook_numeric_subscription_type(transport, clock):
    crm, _ = adapter("hubspot", transport, clock)
    result = await crm.process_webhook({
        "event": "contact.propertyChange",
        "data": {"objectId": 5, "subscriptionType": 12345},
        "source": "hubspot",
    })
    assert result.processed
    assert result.entity_type == "contact"
    assert result.entity_id == "5"


# --- Connectivity / sync ---

@pytest.mark.asyncio
async def test_sync_counts_failed_listing(transport, clock):
    transport.respond("GET", "/persons", {"success": True, "data": [{"id": 1}, {"id": 2}]})
    transport.respond("GET", "/deals", UpstreamError("pipedrive", "timeout"))
    transport.respond("GET", "/activities", {"success": True, "data": []})
    crm, ledger = adapter("pipedrive", transport, clock)

    result = await crm.sync()
    assert not result.success
    assert result.errors == 1
    assert result.synchronized == 2
    assert result.details == {"contacts": 2, "deals": 0, "activities": 0}

    [record] = ledger.snapshot()
    assert record.operation == "sync"
    assert record.status == OperationStatus.ERROR


@pytest.mark.asyncio
async def test_test_connection(transport, clock):
    transport.respond("GET", "/users/me", {"success": True, "data": {"id": 1}})
    crm, ledger = adapter("pipedrive", transport, clock)
    assert await crm.test_connection() is True
    assert len(ledger) == 0

    transport.respond("GET", "/users/me", None)
    assert await crm.test_connection() is False

"""Test sync orchestration fan-out."""
import asyncio

import pytest

from hub.integrations.health import HealthMonitor
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import OperationStatus, SyncResult
from hub.integrations.registry import IntegrationRegistry
from hub.integrations.sync import SyncOrchestrator


class Adapter:
    def __init__(self, connected=True, sync_result=None, sync_error=None, delay=0.0):
        self.connected = connected
        self.sync_result = sync_result or SyncResult(success=True, synchronized=3)
        self.sync_error = sync_error
        self.delay = delay
        self.synced = False

    async def test_connection(self):
        return self.connected

    async def check_connection(self):
        return self.connected

    async def sync(self):
        await asyncio.sleep(self.delay)
        if self.sync_error:
            raise self.sync_error
        self.synced = True
        return self.sync_result


class LegacyCRM:
    """Handle exposing only the domain-specific sync name."""

    def __init__(self):
        self.called = False

    async def test_connection(self):
        return True

    async def sync_with_crm(self):
        self.called = True
        return {"success": True, "synchronized": 1}


def build(clock):
    registry = IntegrationRegistry(clock=clock)
    ledger = OperationLedger(registry, clock=clock)
    monitor = HealthMonitor(registry, ledger)
    return registry, SyncOrchestrator(registry, monitor)


@pytest.mark.asyncio
async def test_sync_all_invariant(clock):
    registry, orchestrator = build(clock)
    registry.register("crm-1", Adapter(), "crm", "hubspot")
    registry.register("erp-1", Adapter(sync_error=RuntimeError("erp down")), "erp", "omie")
    registry.register("pay-1", Adapter(sync_result=SyncResult(success=False, errors=2)), "payments", "mercadopago")
    registry.register("wa-1", Adapter(connected=False), "messaging", "meta")

    outcome = await orchestrator.sync_all()
    assert outcome.successful + outcome.failed == 3
    assert outcome.successful == 1
    assert outcome.failed == 2

    details = {d.id: d for d in outcome.details}
    assert "wa-1" not in details
    assert details["crm-1"].status == OperationStatus.SUCCESS
    assert details["erp-1"].error == "erp down"
    assert "2 errors" in details["pay-1"].error


@pytest.mark.asyncio
async def test_one_failure_does_not_cancel_others(clock):
    registry, orchestrator = build(clock)
    slow = Adapter(delay=0.05)
    registry.register("slow", slow, "crm", "hubspot")
    registry.register("boom", Adapter(sync_error=ValueError("bad")), "crm", "pipedrive")

    outcome = await orchestrator.sync_all()
    assert slow.synced
    assert outcome.successful == 1
    assert outcome.failed == 1


@pytest.mark.asyncio
async def test_successful_sync_marks_last_sync(clock):
    registry, orchestrator = build(clock)
    registry.register("crm-1", Adapter(), "crm", "hubspot")
    await orchestrator.sync_all()
    assert registry.get("crm-1").last_sync == clock.now


@pytest.mark.asyncio
async def test_domain_specific_sync_name(clock):
    registry, orchestrator = build(clock)
    legacy = LegacyCRM()
    registry.register("crm-1", legacy, "crm", "rdstation")

    outcome = await orchestrator.sync_all()
    assert legacy.called
    assert outcome.successful == 1


@pytest.mark.asyncio
async def test_no_connected_integrations(clock):
    _, orchestrator = build(clock)
    outcome = await orchestrator.sync_all()
    assert outcome.successful == 0
    assert outcome.failed == 0
    assert outcome.to_dict() == {"successful": 0, "failed": 0, "details": []}


@pytest.mark.asyncio
async def test_handle_without_sync_counts_as_failed(clock):
    registry, orchestrator = build(clock)

    class ProbeOnly:
        async def check_connection(self):
            return True

    registry.register("wa-1", ProbeOnly(), "messaging", "meta")
    registry.register("crm-1", Adapter(), "crm", "hubspot")

    outcome = await orchestrator.sync_all()
    assert (outcome.successful, outcome.failed) == (1, 1)
    details = {d.id: d for d in outcome.details}
    assert details["wa-1"].error == "no sync capability"
    assert registry.get("wa-1").last_sync is None

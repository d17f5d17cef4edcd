"""Test health monitor probes and rolling metrics."""
import time

import pytest

from hub.integrations.health import HealthMonitor, invoke_capability, success_rate
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import HealthStatus
from hub.integrations.registry import IntegrationRegistry


class Probe:
    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error

    async def check_connection(self):
        if self.error:
            raise self.error
        return self.result

    async def test_connection(self):
        return await self.check_connection()


class SyncProbe:
    def test_connection(self):
        return True


def build(clock):
    registry = IntegrationRegistry(clock=clock)
    ledger = OperationLedger(registry, clock=clock)
    return registry, ledger, HealthMonitor(registry, ledger)


@pytest.mark.asyncio
async def test_metrics_scenario(clock):
    registry, ledger, monitor = build(clock)
    registry.register("wa-1", Probe(True), "messaging", "Meta")
    ledger.append("messaging", "Meta", "send_text_message", "success")
    ledger.append("messaging", "Meta", "send_text_message", "error")

    snapshot = await monitor.check_one("wa-1")
    assert snapshot.status == HealthStatus.CONNECTED
    assert snapshot.metrics.success_rate == 50.0
    assert snapshot.metrics.monthly_volume == 2
    assert snapshot.metrics.total_operations == 2
    assert snapshot.name == "Meta WhatsApp Business"
    assert "access_token" in snapshot.configuration.required_fields


@pytest.mark.asyncio
async def test_total_operations_is_lifetime_not_window(clock):
    registry, ledger, monitor = build(clock)
    registry.register("crm-1", Probe(True), "crm", "hubspot")
    ledger.append("crm", "hubspot", "create_contact", "success")
    clock.advance(days=45)
    ledger.append("crm", "hubspot", "create_contact", "success")

    snapshot = await monitor.check_one("crm-1")
    assert snapshot.metrics.monthly_volume == 1
    assert snapshot.metrics.total_operations == 2


@pytest.mark.asyncio
async def test_probe_outcomes(clock):
    registry, _, monitor = build(clock)
    registry.register("ok", Probe(True), "crm", "hubspot")
    registry.register("false", Probe(False), "crm", "pipedrive")
    registry.register("raises", Probe(error=RuntimeError("timeout")), "erp", "omie")
    registry.register("none", None, "payments", "mercadopago")
    registry.register("missing", object(), "messaging", "meta")

    by_id = {s.id: s for s in await monitor.check_all()}
    assert by_id["ok"].status == HealthStatus.CONNECTED
    assert by_id["false"].status == HealthStatus.DISCONNECTED
    assert by_id["raises"].status == HealthStatus.ERROR
    assert by_id["raises"].error_message == "timeout"
    assert by_id["none"].status == HealthStatus.DISCONNECTED
    assert by_id["missing"].status == HealthStatus.DISCONNECTED
    assert registry.get("raises").last_status == HealthStatus.ERROR


@pytest.mark.asyncio
async def test_sync_probe_runs_in_thread(clock):
    registry, _, monitor = build(clock)
    registry.register("erp-1", SyncProbe(), "erp", "bling")
    snapshot = await monitor.check_one("erp-1")
    assert snapshot.status == HealthStatus.CONNECTED


@pytest.mark.asyncio
async def test_check_one_unknown(clock):
    _, _, monitor = build(clock)
    assert await monitor.check_one("nope") is None


@pytest.mark.asyncio
async def test_invoke_capability_sync_and_async():
    def blocking():
        time.sleep(0.01)
        return "done"

    async def coro():
        return "async"

    assert await invoke_capability(blocking) == "done"
    assert await invoke_capability(coro) == "async"


def test_success_rate_empty():
    assert success_rate([]) == 0.0

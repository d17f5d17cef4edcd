"""Test the IntegrationHub facade: stats, export, history."""
from decimal import Decimal
import logging

import pytest
import structlog

from hub.config import HubSettings
from hub.logging import configure_from_settings
from hub.integrations.service import IntegrationHub


class Probe:
    def __init__(self, connected=True):
        self.connected = connected

    async def check_connection(self):
        return self.connected

    async def test_connection(self):
        return self.connected


@pytest.mark.asyncio
async def test_stats_and_revenue(clock):
    hub = IntegrationHub(clock=clock)
    hub.register("pix-1", Probe(), "payments", "mercadopago")
    hub.register("wa-1", Probe(), "messaging", "meta")
    hub.register("erp-1", Probe(False), "erp", "omie")

    for _ in range(4):
        hub.record_operation("payments", "mercadopago", "create_payment", "success")
    hub.record_operation("messaging", "meta", "send_text_message", "success")
    hub.record_operation("messaging", "meta", "send_text_message", "error")
    hub.record_operation("erp", "omie", "create_product", "success")

    stats = await hub.get_stats()
    assert stats.total_integrations == 3
    assert stats.active_integrations == 2
    assert stats.monthly_operations == 7
    # mean of 100.0 and 50.0 over connected integrations
    assert stats.success_rate == 75.0
    # 4 * 0.50 + 2 * 0.10 + 1 * 0.05
    assert stats.total_revenue == Decimal("2.25")


@pytest.mark.asyncio
async def test_stats_with_nothing_connected(clock):
    hub = IntegrationHub(clock=clock)
    hub.register("erp-1", Probe(False), "erp", "omie")
    stats = await hub.get_stats()
    assert stats.success_rate == 0.0
    assert stats.total_revenue == Decimal("0.00")


@pytest.mark.asyncio
async def test_export_monitoring_data(clock):
    hub = IntegrationHub(clock=clock)
    hub.register("crm-1", Probe(), "crm", "hubspot")
    hub.register("erp-1", Probe(False), "erp", "bling")
    hub.record_operation("crm", "hubspot", "create_contact", "success", data={"id": "1"})

    export = await hub.export_monitoring_data()
    assert export["exported_at"] == clock.now.isoformat()
    assert export["integrations"] == [
        {"id": "crm-1", "type": "crm", "platform": "hubspot", "status": "connected"},
        {"id": "erp-1", "type": "erp", "platform": "bling", "status": "disconnected"},
    ]
    assert export["operations"][0]["operation"] == "create_contact"
    assert export["stats"]["total_integrations"] == 2
    assert export["stats"]["total_revenue"] == "0.05"

    export["operations"][0]["data"]["id"] = "tampered"
    assert hub.get_operation_history()[0].data == {"id": "1"}


def test_operation_history_and_cleanup(clock):
    hub = IntegrationHub(clock=clock)
    hub.register("crm-1", Probe(), "crm", "hubspot")
    hub.record_operation("crm", "hubspot", "old", "success")
    clock.advance(days=91)
    hub.record_operation("crm", "hubspot", "new", "error", error="boom")

    assert [r.operation for r in hub.get_operation_history(limit=5)] == ["new", "old"]
    assert [r.operation for r in hub.get_operation_history(status="error")] == ["new"]
    assert hub.cleanup_old_data() == 1
    assert hub.registry.get("crm-1").operation_count == 2


def test_operation_count_grows_by_n(clock):
    hub = IntegrationHub(clock=clock)
    hub.register("pix-1", Probe(), "payments", "mercadopago")
    before = hub.registry.get("pix-1").operation_count
    for _ in range(7):
        hub.record_operation("payments", "mercadopago", "create_payment", "success", integration_id="pix-1")
    assert hub.registry.get("pix-1").operation_count == before + 7


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("INTEGRATIONS_HUB_MAX_CONCURRENCY", "16")
    monkeypatch.setenv("INTEGRATIONS_HUB_LOG_JSON", "true")
    settings = HubSettings.from_env()
    assert settings.max_concurrency == 16
    assert settings.log_json is True
    assert settings.retention_days == 90


def test_settings_reject_inconsistent_bounds():
    with pytest.raises(ValueError):
        HubSettings(ledger_max_records=10, ledger_retain_records=20)


def test_configure_logging_from_settings(caplog):
    configure_from_settings(HubSettings(log_json=True))
    try:
        with caplog.at_level(logging.INFO):
            structlog.get_logger("hub.test").info("hub.test_event", integration_id="crm-1")
        assert '"event": "hub.test_event"' in caplog.text
    finally:
        structlog.reset_defaults()

"""Test operation ledger: bounds, queries, retention, counters."""
import threading

import pytest

from hub.config import HubSettings
from hub.integrations.ledger import BoundedLog, OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus
from hub.integrations.registry import IntegrationRegistry


def test_append_assigns_id_and_timestamp(clock):
    ledger = OperationLedger(clock=clock)
    record = ledger.append("crm", "hubspot", "create_contact", "success")
    assert record.id.startswith("op_")
    assert record.timestamp == clock.now
    assert ledger.get(record.id) == record


def test_append_bumps_registry_counters(clock):
    registry = IntegrationRegistry(clock=clock)
    registry.register("crm-1", object(), "crm", "hubspot")
    ledger = OperationLedger(registry, clock=clock)

    for _ in range(3):
        ledger.append("crm", "hubspot", "create_contact", "success")
    ledger.append("crm", "hubspot", "create_deal", "error", error="boom")

    integration = registry.get("crm-1")
    assert integration.operation_count == 4
    assert integration.error_count == 1
    assert integration.last_activity == clock.now


def test_trim_to_newest_5000():
    ledger = OperationLedger()
    for i in range(10_001):
        ledger.append("messaging", "meta", f"op-{i}", "success")
    assert len(ledger) == 5_000
    operations = [r.operation for r in ledger.snapshot()]
    assert operations[0] == "op-5001"
    assert operations[-1] == "op-10000"


def test_never_exceeds_bound_after_append():
    ledger = OperationLedger(settings=HubSettings(ledger_max_records=10, ledger_retain_records=5))
    for i in range(37):
        ledger.append("erp", "omie", "sync", "success")
        assert len(ledger) <= 10


def test_bounded_log_rejects_bad_bounds():
    with pytest.raises(ValueError):
        BoundedLog(max_size=5, retain=10)


def test_query_filters_and_orders(clock):
    ledger = OperationLedger(clock=clock)
    ledger.append("payments", "mercadopago", "create_payment", "success")
    clock.advance(minutes=1)
    ledger.append("payments", "mercadopago", "create_payment", "error")
    clock.advance(minutes=1)
    ledger.append("crm", "pipedrive", "create_deal", "success")

    results = ledger.query(type="payments")
    assert [r.status for r in results] == [OperationStatus.ERROR, OperationStatus.SUCCESS]

    assert len(ledger.query(type="payments", status="success")) == 1
    assert ledger.query(platform="pipedrive")[0].integration_type == IntegrationType.CRM


def test_query_limit_applied_after_sort(clock):
    ledger = OperationLedger(clock=clock)
    for i in range(5):
        ledger.append("erp", "bling", f"op-{i}", "success")
        clock.advance(seconds=1)

    results = ledger.query(limit=2)
    assert len(results) == 2
    assert [r.operation for r in results] == ["op-4", "op-3"]
    assert results[0].timestamp > results[1].timestamp


def test_query_date_range(clock):
    ledger = OperationLedger(clock=clock)
    start = clock.now
    ledger.append("erp", "bling", "early", "success")
    clock.advance(days=2)
    ledger.append("erp", "bling", "late", "success")

    results = ledger.query(start_date=start, end_date=start.replace(hour=23))
    assert [r.operation for r in results] == ["early"]


def test_cleanup_removes_records_older_than_90_days(clock):
    ledger = OperationLedger(clock=clock)
    ledger.append("messaging", "meta", "old", "success")
    clock.advance(days=91)
    ledger.append("messaging", "meta", "new", "success")

    assert ledger.cleanup() == 1
    assert [r.operation for r in ledger.snapshot()] == ["new"]


def test_window_counts_trailing_days(clock):
    ledger = OperationLedger(clock=clock)
    ledger.append("messaging", "meta", "old", "success")
    clock.advance(days=31)
    ledger.append("messaging", "meta", "recent", "success")
    ledger.append("messaging", "other", "recent", "success")

    window = ledger.window(IntegrationType.MESSAGING, "meta", 30)
    assert [r.operation for r in window] == ["recent"]


def test_record_data_detached_from_caller(clock):
    ledger = OperationLedger(clock=clock)
    payload = {"amount": "10", "items": [{"sku": "A"}]}
    record = ledger.append("payments", "mercadopago", "create_payment", "success", data=payload)

    payload["amount"] = "999"
    payload["items"][0]["sku"] = "B"
    assert record.data == {"amount": "10", "items": [{"sku": "A"}]}

    exported = record.to_dict()
    exported["data"]["amount"] = "0"
    assert ledger.get(record.id).data["amount"] == "10"


def test_concurrent_appends_respect_bound_and_counters(clock):
    settings = HubSettings(ledger_max_records=50, ledger_retain_records=20)
    registry = IntegrationRegistry(clock=clock)
    registry.register("wa-1", object(), "messaging", "meta")
    ledger = OperationLedger(registry, settings=settings, clock=clock)
    threads, per_thread = 8, 250
    start = threading.Barrier(threads)
    observed = []

    def worker(n):
        start.wait()
        for i in range(per_thread):
            ledger.append("messaging", "meta", f"send-{n}-{i}", "success")
            observed.append(len(ledger))

    pool = [threading.Thread(target=worker, args=(n,)) for n in range(threads)]
    for t in pool:
        t.start()
    for t in pool:
        t.join()

    assert max(observed) <= settings.ledger_max_records
    assert len(ledger) <= settings.ledger_max_records
    assert len(ledger) >= settings.ledger_retain_records
    assert registry.get("wa-1").operation_count == threads * per_thread

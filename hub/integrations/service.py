"""
Integration Hub — single entry point for the host application.

Wires registry, ledger, health monitor and sync orchestrator from one
HubSettings. Build it once at process start and hand it (or its parts)
to whatever needs it::

    hub = IntegrationHub(HubSettings.from_env())
    crm = CRMAdapter(config, ledger=hub.ledger, integration_id="crm-1")
    hub.register("crm-1", crm, "crm", crm.platform)
    outcome = await hub.sync_all()
"""
from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from hub.config import HubSettings
from hub.integrations.health import HealthMonitor
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import (
    REVENUE_PER_OPERATION,
    HealthSnapshot,
    HealthStatus,
    Integration,
    IntegrationStats,
    IntegrationType,
    OperationRecord,
    OperationStatus,
    SyncOutcome,
)
from hub.integrations.registry import Clock, IntegrationRegistry, utc_now
from hub.integrations.sync import SyncOrchestrator


class IntegrationHub:
    """Registry + ledger + monitoring behind one object."""

    def __init__(self, settings: HubSettings | None = None, clock: Clock = utc_now):
        self.settings = settings or HubSettings.default()
        self._clock = clock
        self.registry = IntegrationRegistry(clock=clock)
        self.ledger = OperationLedger(self.registry, self.settings, clock=clock)
        self.monitor = HealthMonitor(self.registry, self.ledger, self.settings)
        self.orchestrator = SyncOrchestrator(self.registry, self.monitor)

    # --- Registration ---

    def register(
        self,
        integration_id: str,
        handle: Any,
        integration_type: IntegrationType | str,
        platform: str,
    ) -> Integration:
        return self.registry.register(integration_id, handle, integration_type, platform)

    def unregister(self, integration_id: str) -> None:
        self.registry.unregister(integration_id)

    # --- History ---

    def record_operation(
        self,
        integration_type: IntegrationType | str,
        platform: str,
        operation: str,
        status: OperationStatus | str,
        data: dict[str, Any] | None = None,
        error: str | None = None,
        integration_id: str | None = None,
    ) -> OperationRecord:
        return self.ledger.append(
            integration_type, platform, operation, status,
            data=data, error=error, integration_id=integration_id,
        )

    def get_operation_history(self, **filters: Any) -> list[OperationRecord]:
        """Filters: type, platform, status, start_date, end_date, limit."""
        return self.ledger.query(**filters)

    def cleanup_old_data(self) -> int:
        return self.ledger.cleanup()

    # --- Monitoring ---

    async def get_health(self) -> list[HealthSnapshot]:
        return await self.monitor.check_all()

    async def get_integration_health(self, integration_id: str) -> Optional[HealthSnapshot]:
        return await self.monitor.check_one(integration_id)

    async def get_stats(self, health: list[HealthSnapshot] | None = None) -> IntegrationStats:
        """Totals, mean success rate over connected integrations, estimated revenue."""
        if health is None:
            health = await self.monitor.check_all()
        active = [h for h in health if h.status == HealthStatus.CONNECTED]

        monthly = sum(h.metrics.monthly_volume for h in health)
        avg_rate = (
            sum(h.metrics.success_rate for h in active) / len(active) if active else 0.0
        )
        revenue = sum(
            (REVENUE_PER_OPERATION[h.type] * h.metrics.monthly_volume for h in health),
            Decimal("0.00"),
        )

        return IntegrationStats(
            total_integrations=len(health),
            active_integrations=len(active),
            monthly_operations=monthly,
            success_rate=round(avg_rate, 1),
            total_revenue=revenue.quantize(Decimal("0.01")),
        )

    # --- Sync ---

    async def sync_all(self) -> SyncOutcome:
        return await self.orchestrator.sync_all()

    # --- Export ---

    async def export_monitoring_data(self) -> dict[str, Any]:
        """Full snapshot: integrations with live status, operations, stats."""
        health = await self.monitor.check_all()
        status_by_id = {h.id: h.status for h in health}
        integrations = self.registry.list()

        return {
            "integrations": [
                {
                    "id": i.id,
                    "type": i.type.value,
                    "platform": i.platform,
                    "status": status_by_id.get(i.id, i.last_status).value,
                }
                for i in integrations
            ],
            "operations": [r.to_dict() for r in self.ledger.snapshot()],
            "stats": (await self.get_stats(health)).to_dict(),
            "exported_at": self._clock().isoformat(),
        }

    def now(self) -> datetime:
        return self._clock()

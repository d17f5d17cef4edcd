"""
Integration Hub Health Monitor — Connectivity Probes + Rolling Metrics

For every registered integration:
1. Probe connectivity (check_connection for messaging/payments,
   test_connection for CRM/ERP)
2. Derive success rate and monthly volume from the ledger window
3. Report a HealthSnapshot; a failing probe never aborts the others

Probes run concurrently, bounded by ``max_concurrency``.
"""
from __future__ import annotations
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Optional
import asyncio
import inspect

import structlog

from hub.config import HubSettings
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import (
    OPTIONAL_FIELDS,
    REQUIRED_FIELDS,
    TYPE_DISPLAY_NAMES,
    ConfigurationInfo,
    HealthMetrics,
    HealthSnapshot,
    HealthStatus,
    Integration,
    IntegrationType,
    OperationStatus,
)
from hub.integrations.registry import IntegrationRegistry

logger = structlog.get_logger(__name__)

PROBE_METHODS: dict[IntegrationType, str] = {
    IntegrationType.MESSAGING: "check_connection",
    IntegrationType.PAYMENTS: "check_connection",
    IntegrationType.CRM: "test_connection",
    IntegrationType.ERP: "test_connection",
}


async def invoke_capability(fn: Callable[[], Any]) -> Any:
    """Call a sync or async capability; sync callables run in a worker thread."""
    if inspect.iscoroutinefunction(fn):
        return await fn()
    result = await asyncio.to_thread(fn)
    if inspect.isawaitable(result):
        result = await result
    return result


def error_text(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def success_rate(records: list) -> float:
    """Percentage of successful records, one decimal; 0.0 when empty."""
    if not records:
        return 0.0
    ok = sum(1 for r in records if r.status == OperationStatus.SUCCESS)
    rate = Decimal(ok * 100) / Decimal(len(records))
    return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


class HealthMonitor:
    """Computes HealthSnapshots from the registry and ledger."""

    def __init__(
        self,
        registry: IntegrationRegistry,
        ledger: OperationLedger,
        settings: HubSettings | None = None,
    ):
        settings = settings or HubSettings.default()
        self.registry = registry
        self.ledger = ledger
        self.window_days = settings.metrics_window_days
        self.max_concurrency = settings.max_concurrency

    async def probe(self, integration: Integration) -> tuple[HealthStatus, Optional[str]]:
        """Run the connectivity probe for one integration."""
        handle = integration.handle
        if handle is None:
            return HealthStatus.DISCONNECTED, None

        method = getattr(handle, PROBE_METHODS[integration.type], None)
        if method is None or not callable(method):
            return HealthStatus.DISCONNECTED, None

        try:
            connected = await invoke_capability(method)
        except Exception as exc:
            logger.warning(
                "health.probe_failed",
                integration_id=integration.id,
                platform=integration.platform,
                error=error_text(exc),
            )
            return HealthStatus.ERROR, error_text(exc)

        return (HealthStatus.CONNECTED if connected else HealthStatus.DISCONNECTED), None

    def _snapshot(
        self,
        integration: Integration,
        status: HealthStatus,
        error_message: Optional[str],
    ) -> HealthSnapshot:
        records = self.ledger.window(integration.type, integration.platform, self.window_days)
        return HealthSnapshot(
            id=integration.id,
            name=f"{integration.platform} {TYPE_DISPLAY_NAMES[integration.type]}",
            type=integration.type,
            status=status,
            platform=integration.platform,
            last_sync=integration.last_sync,
            error_message=error_message,
            metrics=HealthMetrics(
                total_operations=integration.operation_count,
                success_rate=success_rate(records),
                monthly_volume=len(records),
                last_activity=integration.last_activity,
            ),
            configuration=ConfigurationInfo(
                is_configured=status != HealthStatus.DISCONNECTED,
                required_fields=list(REQUIRED_FIELDS[integration.type]),
                optional_fields=list(OPTIONAL_FIELDS[integration.type]),
            ),
        )

    async def check(self, integration: Integration) -> HealthSnapshot:
        """Health of one integration. Never raises."""
        try:
            status, error_message = await self.probe(integration)
            snapshot = self._snapshot(integration, status, error_message)
        except Exception as exc:
            logger.error("health.check_failed", integration_id=integration.id, error=error_text(exc))
            snapshot = HealthSnapshot(
                id=integration.id,
                name=integration.platform,
                type=integration.type,
                status=HealthStatus.ERROR,
                platform=integration.platform,
                error_message=error_text(exc),
                metrics=HealthMetrics(
                    total_operations=integration.operation_count,
                    last_activity=integration.last_activity,
                ),
                configuration=ConfigurationInfo(is_configured=False),
            )
        self.registry.mark_status(integration.id, snapshot.status)
        return snapshot

    async def check_one(self, integration_id: str) -> Optional[HealthSnapshot]:
        integration = self.registry.get(integration_id)
        if integration is None:
            return None
        return await self.check(integration)

    async def check_all(self) -> list[HealthSnapshot]:
        """Health of every registered integration, in registration order."""
        integrations = self.registry.list()
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(integration: Integration) -> HealthSnapshot:
            async with semaphore:
                return await self.check(integration)

        snapshots = await asyncio.gather(*(bounded(i) for i in integrations))
        logger.debug(
            "health.pass_complete",
            total=len(snapshots),
            connected=sum(1 for s in snapshots if s.status == HealthStatus.CONNECTED),
        )
        return list(snapshots)

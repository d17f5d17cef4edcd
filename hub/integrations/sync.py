"""
Integration Hub Sync Orchestrator — Fan-out Reconciliation.

Runs ``sync()`` on every connected integration concurrently:
- Selection comes from a fresh health pass (status == connected)
- Every call settles before results are assembled; one failure never
  cancels or delays the others
- ``successful + failed`` always equals the number of connected integrations
- A connected handle without a sync method counts as failed
"""
from __future__ import annotations
from typing import Any
import asyncio

import structlog

from hub.integrations.health import HealthMonitor, error_text, invoke_capability
from hub.integrations.models import (
    HealthStatus,
    IntegrationType,
    OperationStatus,
    SyncDetail,
    SyncOutcome,
)
from hub.integrations.registry import IntegrationRegistry

logger = structlog.get_logger(__name__)

# Looked up in order; plain handles may expose a domain-specific name.
SYNC_METHODS: dict[IntegrationType, tuple[str, ...]] = {
    IntegrationType.MESSAGING: ("sync",),
    IntegrationType.PAYMENTS: ("sync", "sync_transactions"),
    IntegrationType.CRM: ("sync", "sync_with_crm"),
    IntegrationType.ERP: ("sync", "sync_with_erp"),
}


class SyncFailed(Exception):
    """An adapter's sync pass reported failure without raising."""


class SyncOrchestrator:
    """Fans out sync calls to all connected integrations."""

    def __init__(self, registry: IntegrationRegistry, monitor: HealthMonitor):
        self.registry = registry
        self.monitor = monitor
        self.max_concurrency = monitor.max_concurrency

    async def _sync_one(self, integration_id: str) -> None:
        integration = self.registry.get(integration_id)
        if integration is None:
            raise LookupError(f"Integration not found: {integration_id}")

        handle = integration.handle
        method = None
        for name in SYNC_METHODS[integration.type]:
            method = getattr(handle, name, None)
            if callable(method):
                break
        if method is None or not callable(method):
            raise SyncFailed("no sync capability")

        result: Any = await invoke_capability(method)
        success = getattr(result, "success", None)
        if success is None and isinstance(result, dict):
            success = result.get("success")
        if success is False:
            errors = getattr(result, "errors", None)
            if errors is None and isinstance(result, dict):
                errors = result.get("errors")
            raise SyncFailed(f"sync reported {errors or 0} errors")

        self.registry.mark_synced(integration_id)

    async def sync_all(self) -> SyncOutcome:
        """Sync every connected integration; per-item failures land in ``details``."""
        health = await self.monitor.check_all()
        connected = [h.id for h in health if h.status == HealthStatus.CONNECTED]
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def bounded(integration_id: str) -> None:
            async with semaphore:
                await self._sync_one(integration_id)

        results = await asyncio.gather(
            *(bounded(i) for i in connected),
            return_exceptions=True,
        )

        outcome = SyncOutcome()
        for integration_id, result in zip(connected, results):
            if isinstance(result, BaseException):
                outcome.failed += 1
                outcome.details.append(
                    SyncDetail(id=integration_id, status=OperationStatus.ERROR, error=error_text(result))
                )
                logger.warning("sync.integration_failed", integration_id=integration_id, error=error_text(result))
            else:
                outcome.successful += 1
                outcome.details.append(SyncDetail(id=integration_id, status=OperationStatus.SUCCESS))

        logger.info("sync.complete", successful=outcome.successful, failed=outcome.failed)
        return outcome

"""
Integration Hub Registry — Directory of Live Integrations

Tracks adapter instances by integration id:
- Register/unregister at runtime (no silent overwrite)
- Type/platform metadata for health probes and ledger attribution
- Activity counters updated as operations are recorded

Construct one registry at process start and pass it to every consumer.
"""
from __future__ import annotations
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional
import threading

import structlog

from hub.errors import DuplicateIdError
from hub.integrations.models import HealthStatus, Integration, IntegrationType, OperationStatus

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IntegrationRegistry:
    """Central registry for all integration instances."""

    def __init__(self, clock: Clock = utc_now):
        self._integrations: dict[str, Integration] = {}
        self._lock = threading.Lock()
        self._clock = clock

    def register(
        self,
        integration_id: str,
        handle: Any,
        integration_type: IntegrationType | str,
        platform: str,
    ) -> Integration:
        """Register an integration. Raises DuplicateIdError if the id is taken."""
        integration_type = IntegrationType(integration_type)
        with self._lock:
            if integration_id in self._integrations:
                raise DuplicateIdError(integration_id)
            now = self._clock()
            integration = Integration(
                id=integration_id,
                type=integration_type,
                platform=platform,
                handle=handle,
                registered_at=now,
                last_activity=now,
            )
            self._integrations[integration_id] = integration
            snapshot = replace(integration)

        logger.info(
            "registry.registered",
            integration_id=integration_id,
            type=integration_type.value,
            platform=platform,
        )
        return snapshot

    def unregister(self, integration_id: str) -> None:
        """Remove an integration. Unknown ids are ignored."""
        with self._lock:
            removed = self._integrations.pop(integration_id, None)
        if removed is not None:
            logger.info("registry.unregistered", integration_id=integration_id)

    def get(self, integration_id: str) -> Optional[Integration]:
        """Copy of one integration, or None."""
        with self._lock:
            integration = self._integrations.get(integration_id)
            return replace(integration) if integration else None

    def list(self) -> list[Integration]:
        """Point-in-time copy of every registered integration."""
        with self._lock:
            return [replace(i) for i in self._integrations.values()]

    def find(self, integration_type: IntegrationType | str, platform: str) -> Optional[Integration]:
        """First integration registered for (type, platform), if any."""
        integration_type = IntegrationType(integration_type)
        with self._lock:
            for integration in self._integrations.values():
                if integration.type == integration_type and integration.platform == platform:
                    return replace(integration)
        return None

    def record_activity(
        self,
        integration_type: IntegrationType,
        platform: str,
        status: OperationStatus,
        integration_id: str | None = None,
        at: datetime | None = None,
    ) -> Optional[str]:
        """
        Bump the owning integration's counters.

        The owner is ``integration_id`` when given and registered, otherwise
        the first integration matching (type, platform). Returns the id
        that was updated, or None.
        """
        with self._lock:
            integration = self._integrations.get(integration_id) if integration_id else None
            if integration is None:
                integration = next(
                    (
                        i for i in self._integrations.values()
                        if i.type == integration_type and i.platform == platform
                    ),
                    None,
                )
            if integration is None:
                return None
            integration.operation_count += 1
            if status == OperationStatus.ERROR:
                integration.error_count += 1
            integration.last_activity = at or self._clock()
            return integration.id

    def mark_status(self, integration_id: str, status: HealthStatus) -> None:
        """Remember the status observed by the latest health pass."""
        with self._lock:
            integration = self._integrations.get(integration_id)
            if integration is not None:
                integration.last_status = status

    def mark_synced(self, integration_id: str, at: datetime | None = None) -> None:
        with self._lock:
            integration = self._integrations.get(integration_id)
            if integration is not None:
                integration.last_sync = at or self._clock()

    def __contains__(self, integration_id: str) -> bool:
        with self._lock:
            return integration_id in self._integrations

    def __len__(self) -> int:
        with self._lock:
            return len(self._integrations)

"""
Integration Hub Operation Ledger — Bounded History of Business Calls.

Every adapter call leaves an immutable OperationRecord here. Supports:
- Size bound enforced on append (oldest-first eviction)
- Age-based cleanup on demand
- Conjunctive filtered queries, newest first
- Per-integration counters kept in step with the registry
"""
from __future__ import annotations
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Iterator, Optional
import copy
import threading
import uuid

import structlog

from hub.config import HubSettings
from hub.integrations.models import IntegrationType, OperationRecord, OperationStatus
from hub.integrations.registry import Clock, IntegrationRegistry, utc_now

logger = structlog.get_logger(__name__)


class BoundedLog:
    """
    Append-only log with a hard size bound.

    Once an append pushes the log past ``max_size`` entries, the oldest
    entries are evicted until exactly ``retain`` remain. Not thread-safe;
    the ledger serializes access.
    """

    def __init__(self, max_size: int, retain: int):
        if retain > max_size:
            raise ValueError("retain must not exceed max_size")
        self.max_size = max_size
        self.retain = retain
        self._items: deque[OperationRecord] = deque()

    def append(self, item: OperationRecord) -> int:
        """Append and trim. Returns how many entries were evicted."""
        self._items.append(item)
        if len(self._items) <= self.max_size:
            return 0
        evicted = len(self._items) - self.retain
        for _ in range(evicted):
            self._items.popleft()
        return evicted

    def replace(self, items: list[OperationRecord]) -> None:
        self._items = deque(items)

    def snapshot(self) -> list[OperationRecord]:
        return list(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[OperationRecord]:
        return iter(self._items)


class OperationLedger:
    """In-memory operation history. Replace backing store for persistence."""

    def __init__(
        self,
        registry: IntegrationRegistry | None = None,
        settings: HubSettings | None = None,
        clock: Clock = utc_now,
    ):
        settings = settings or HubSettings.default()
        self._registry = registry
        self._clock = clock
        self._log = BoundedLog(settings.ledger_max_records, settings.ledger_retain_records)
        self._lock = threading.Lock()
        self.retention = timedelta(days=settings.retention_days)

    def append(
        self,
        integration_type: IntegrationType | str,
        platform: str,
        operation: str,
        status: OperationStatus | str,
        data: dict[str, Any] | None = None,
        error: str | None = None,
        integration_id: str | None = None,
    ) -> OperationRecord:
        """Record one operation outcome and bump the owning integration's counters."""
        integration_type = IntegrationType(integration_type)
        status = OperationStatus(status)
        now = self._clock()
        record = OperationRecord(
            id=f"op_{uuid.uuid4().hex[:16]}",
            integration_type=integration_type,
            platform=platform,
            operation=operation,
            status=status,
            timestamp=now,
            integration_id=integration_id,
            data=copy.deepcopy(data),
            error=error,
        )

        with self._lock:
            evicted = self._log.append(record)

        if evicted:
            logger.info("ledger.trimmed", evicted=evicted, retained=len(self._log))

        if self._registry is not None:
            self._registry.record_activity(
                integration_type, platform, status, integration_id=integration_id, at=now
            )
        return record

    def query(
        self,
        type: IntegrationType | str | None = None,
        platform: str | None = None,
        status: OperationStatus | str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        limit: int | None = None,
    ) -> list[OperationRecord]:
        """Filtered history, newest first. All filters are conjunctive."""
        with self._lock:
            results = self._log.snapshot()

        if type:
            wanted_type = IntegrationType(type)
            results = [r for r in results if r.integration_type == wanted_type]
        if platform:
            results = [r for r in results if r.platform == platform]
        if status:
            wanted_status = OperationStatus(status)
            results = [r for r in results if r.status == wanted_status]
        if start_date:
            results = [r for r in results if r.timestamp >= start_date]
        if end_date:
            results = [r for r in results if r.timestamp <= end_date]

        results.sort(key=lambda r: r.timestamp, reverse=True)
        if limit:
            results = results[:limit]
        return results

    def window(
        self,
        integration_type: IntegrationType,
        platform: str,
        days: int,
    ) -> list[OperationRecord]:
        """Records for (type, platform) in the trailing ``days`` days."""
        cutoff = self._clock() - timedelta(days=days)
        with self._lock:
            return [
                r for r in self._log
                if r.integration_type == integration_type
                and r.platform == platform
                and r.timestamp > cutoff
            ]

    def cleanup(self) -> int:
        """Remove records older than the retention period. Returns count removed."""
        cutoff = self._clock() - self.retention
        with self._lock:
            before = len(self._log)
            self._log.replace([r for r in self._log if r.timestamp > cutoff])
            removed = before - len(self._log)

        if removed:
            logger.info("ledger.cleanup", removed=removed)
        return removed

    def snapshot(self) -> list[OperationRecord]:
        """Every record, in append order."""
        with self._lock:
            return self._log.snapshot()

    def get(self, record_id: str) -> Optional[OperationRecord]:
        with self._lock:
            return next((r for r in self._log if r.id == record_id), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._log)

"""Hub configuration.

Retention limits, metric windows and fan-out bounds live in one frozen
dataclass so every component built from the same settings agrees on them.
Defaults match production; override from environment variables::

    INTEGRATIONS_HUB_MAX_CONCURRENCY=16
    INTEGRATIONS_HUB_LOG_JSON=true
"""

import os
from dataclasses import dataclass, fields


@dataclass(frozen=True)
class HubSettings:
    """Settings shared by the registry, ledger, monitor and orchestrator."""

    # Operation ledger
    ledger_max_records: int = 10_000
    ledger_retain_records: int = 5_000
    retention_days: int = 90

    # Health metrics
    metrics_window_days: int = 30

    # Fan-out
    max_concurrency: int = 8

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        if self.ledger_retain_records > self.ledger_max_records:
            raise ValueError("ledger_retain_records must not exceed ledger_max_records")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

    @classmethod
    def default(cls) -> "HubSettings":
        """Create settings with all defaults."""
        return cls()

    @classmethod
    def from_env(cls, prefix: str = "INTEGRATIONS_HUB_") -> "HubSettings":
        """Create settings from environment variables.

        Example: INTEGRATIONS_HUB_RETENTION_DAYS=30
        """
        overrides = {}
        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            if f.type in (bool, "bool"):
                overrides[f.name] = raw.strip().lower() in ("1", "true", "yes")
            elif f.type in (int, "int"):
                overrides[f.name] = int(raw)
            else:
                overrides[f.name] = raw
        return cls(**overrides)

"""
Integration Hub data model.

Registry entries, ledger records and the derived views computed from them:
- Integration: one live adapter instance (owned by the registry)
- OperationRecord: immutable outcome of one business call
- HealthSnapshot: derived connectivity + rolling metrics, never stored
- IntegrationStats / SyncOutcome: aggregates produced per request
- WebhookResult / SyncResult: canonical adapter outputs shared by all domains
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
import copy

from pydantic import BaseModel, Field


class IntegrationType(str, Enum):
    MESSAGING = "messaging"
    PAYMENTS = "payments"
    CRM = "crm"
    ERP = "erp"


class OperationStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


class HealthStatus(str, Enum):
    CONFIGURING = "configuring"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"


TYPE_DISPLAY_NAMES: dict[IntegrationType, str] = {
    IntegrationType.MESSAGING: "WhatsApp Business",
    IntegrationType.PAYMENTS: "PIX",
    IntegrationType.CRM: "CRM",
    IntegrationType.ERP: "ERP",
}

REQUIRED_FIELDS: dict[IntegrationType, list[str]] = {
    IntegrationType.MESSAGING: ["access_token", "phone_number_id", "webhook_verify_token"],
    IntegrationType.PAYMENTS: ["access_token", "public_key", "environment"],
    IntegrationType.CRM: ["api_key", "base_url"],
    IntegrationType.ERP: ["api_key", "api_url"],
}

OPTIONAL_FIELDS: dict[IntegrationType, list[str]] = {
    IntegrationType.MESSAGING: ["webhook_secret", "business_account_id"],
    IntegrationType.PAYMENTS: ["webhook_secret", "application_id"],
    IntegrationType.CRM: ["webhook_url", "custom_fields"],
    IntegrationType.ERP: ["api_secret", "company_id", "webhook_secret"],
}

# Estimated revenue per operation, in BRL
REVENUE_PER_OPERATION: dict[IntegrationType, Decimal] = {
    IntegrationType.PAYMENTS: Decimal("0.50"),
    IntegrationType.MESSAGING: Decimal("0.10"),
    IntegrationType.CRM: Decimal("0.05"),
    IntegrationType.ERP: Decimal("0.05"),
}


# ---------------------------------------------------------------------------
# Registry entry
# ---------------------------------------------------------------------------

@dataclass
class Integration:
    """A registered integration instance and its activity counters."""
    id: str
    type: IntegrationType
    platform: str
    handle: Any = None
    registered_at: datetime | None = None
    operation_count: int = 0
    error_count: int = 0
    last_activity: datetime | None = None
    last_sync: datetime | None = None
    last_status: HealthStatus = HealthStatus.CONFIGURING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "platform": self.platform,
            "registered_at": self.registered_at.isoformat() if self.registered_at else None,
            "operation_count": self.operation_count,
            "error_count": self.error_count,
            "last_activity": self.last_activity.isoformat() if self.last_activity else None,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "status": self.last_status.value,
        }


# ---------------------------------------------------------------------------
# Ledger record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class OperationRecord:
    """Outcome of one business call. Immutable once appended."""
    id: str
    integration_type: IntegrationType
    platform: str
    operation: str
    status: OperationStatus
    timestamp: datetime
    integration_id: str | None = None
    data: dict[str, Any] | None = None
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "integration_type": self.integration_type.value,
            "platform": self.platform,
            "operation": self.operation,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "integration_id": self.integration_id,
            "data": copy.deepcopy(self.data),
            "error": self.error,
        }


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------

@dataclass
class HealthMetrics:
    total_operations: int = 0
    success_rate: float = 0.0
    monthly_volume: int = 0
    last_activity: datetime | None = None


@dataclass
class ConfigurationInfo:
    is_configured: bool
    required_fields: list[str] = field(default_factory=list)
    optional_fields: list[str] = field(default_factory=list)


@dataclass
class HealthSnapshot:
    """Point-in-time connectivity and rolling metrics for one integration."""
    id: str
    name: str
    type: IntegrationType
    status: HealthStatus
    platform: str
    metrics: HealthMetrics
    configuration: ConfigurationInfo
    last_sync: datetime | None = None
    error_message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "status": self.status.value,
            "platform": self.platform,
            "last_sync": self.last_sync.isoformat() if self.last_sync else None,
            "error_message": self.error_message,
            "metrics": {
                "total_operations": self.metrics.total_operations,
                "success_rate": self.metrics.success_rate,
                "monthly_volume": self.metrics.monthly_volume,
                "last_activity": (
                    self.metrics.last_activity.isoformat() if self.metrics.last_activity else "never"
                ),
            },
            "configuration": {
                "is_configured": self.configuration.is_configured,
                "required_fields": list(self.configuration.required_fields),
                "optional_fields": list(self.configuration.optional_fields),
            },
        }


@dataclass
class IntegrationStats:
    """Aggregate view across all integrations."""
    total_integrations: int = 0
    active_integrations: int = 0
    monthly_operations: int = 0
    success_rate: float = 0.0
    total_revenue: Decimal = Decimal("0.00")

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_integrations": self.total_integrations,
            "active_integrations": self.active_integrations,
            "monthly_operations": self.monthly_operations,
            "success_rate": self.success_rate,
            "total_revenue": str(self.total_revenue),
        }


@dataclass
class SyncDetail:
    id: str
    status: OperationStatus
    error: str | None = None


@dataclass
class SyncOutcome:
    """Result of one orchestration run. Never persisted."""
    successful: int = 0
    failed: int = 0
    details: list[SyncDetail] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful": self.successful,
            "failed": self.failed,
            "details": [
                {"id": d.id, "status": d.status.value, **({"error": d.error} if d.error else {})}
                for d in self.details
            ],
        }


# ---------------------------------------------------------------------------
# Canonical adapter outputs
# ---------------------------------------------------------------------------

class WebhookResult(BaseModel):
    """Vendor webhook reduced to a vendor-neutral shape."""
    processed: bool
    action: str
    entity_type: str
    entity_id: str | None = None


class SyncResult(BaseModel):
    """Best-effort reconciliation pass summary returned by ``adapter.sync()``."""
    success: bool
    synchronized: int = 0
    errors: int = 0
    details: dict[str, int] = Field(default_factory=dict)

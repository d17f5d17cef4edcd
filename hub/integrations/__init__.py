"""
Integration Hub Core — Registry, Ledger, Monitoring, Sync.

Provides vendor-neutral orchestration for provider adapters:
- IntegrationRegistry: live adapter instances keyed by integration id
- OperationLedger: bounded history of business calls
- HealthMonitor: connectivity probes + 30-day rolling metrics
- SyncOrchestrator: concurrent sync fan-out with isolated failure
- IntegrationHub: facade wiring all of the above from HubSettings
- ProviderAdapter / HttpTransport / DataNormalizer: adapter building blocks
"""
from hub.integrations.base import ProviderAdapter, as_list, parse_request
from hub.integrations.health import HealthMonitor
from hub.integrations.ledger import BoundedLog, OperationLedger
from hub.integrations.models import (
    HealthSnapshot,
    HealthStatus,
    Integration,
    IntegrationStats,
    IntegrationType,
    OperationRecord,
    OperationStatus,
    SyncOutcome,
    SyncResult,
    WebhookResult,
)
from hub.integrations.normalizer import (
    DataNormalizer,
    FieldMapping,
    SchemaMapping,
    TRANSFORMS,
    normalizer,
)
from hub.integrations.registry import IntegrationRegistry
from hub.integrations.service import IntegrationHub
from hub.integrations.sync import SyncOrchestrator
from hub.integrations.transport import (
    AuthCredentials,
    AuthType,
    HttpTransport,
    TransportFn,
    VendorCall,
)

__all__ = [
    # Orchestration
    "HealthMonitor",
    "IntegrationHub",
    "IntegrationRegistry",
    "OperationLedger",
    "BoundedLog",
    "SyncOrchestrator",
    # Models
    "HealthSnapshot",
    "HealthStatus",
    "Integration",
    "IntegrationStats",
    "IntegrationType",
    "OperationRecord",
    "OperationStatus",
    "SyncOutcome",
    "SyncResult",
    "WebhookResult",
    # Adapter building blocks
    "ProviderAdapter",
    "as_list",
    "parse_request",
    "DataNormalizer",
    "FieldMapping",
    "SchemaMapping",
    "TRANSFORMS",
    "normalizer",
    "AuthCredentials",
    "AuthType",
    "HttpTransport",
    "TransportFn",
    "VendorCall",
]

"""
Integration Hub error taxonomy.

- ValidationError: bad input shape or checksum, raised before any vendor call
- UpstreamError: the vendor rejected the call or the network failed
- ConfigurationError: adapter built without the credentials it needs
- DuplicateIdError: integration id already registered

Lookups never raise for "not found"; they return None.
"""
from __future__ import annotations


class IntegrationError(Exception):
    """Base for every error raised by the hub."""


class ValidationError(IntegrationError):
    """Request failed structural validation."""


class ConfigurationError(IntegrationError):
    """Adapter configuration is missing required fields."""


class UpstreamError(IntegrationError):
    """Vendor API or transport failure, wrapping the vendor's message."""

    def __init__(self, vendor: str, message: str, status_code: int | None = None):
        self.vendor = vendor
        self.message = message
        self.status_code = status_code
        super().__init__(f"{vendor}: {message}")


class DuplicateIdError(IntegrationError):
    """An integration with this id is already registered."""

    def __init__(self, integration_id: str):
        self.integration_id = integration_id
        super().__init__(f"Integration already registered: {integration_id}")

"""CRM canonical entities, requests and configuration."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from hub.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class CRMPlatform(str, Enum):
    RDSTATION = "rdstation"
    PIPEDRIVE = "pipedrive"
    HUBSPOT = "hubspot"


class DealStatus(str, Enum):
    OPEN = "open"
    WON = "won"
    LOST = "lost"


class ActivityType(str, Enum):
    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    TASK = "task"
    NOTE = "note"
    WHATSAPP = "whatsapp"


# WhatsApp conversations are logged as calls; vendors have no such type.
ACTIVITY_TYPE_MAP: dict[ActivityType, str] = {
    ActivityType.CALL: "call",
    ActivityType.EMAIL: "email",
    ActivityType.MEETING: "meeting",
    ActivityType.TASK: "task",
    ActivityType.NOTE: "note",
    ActivityType.WHATSAPP: "call",
}


def vendor_activity_type(activity_type: ActivityType | str) -> str:
    try:
        return ACTIVITY_TYPE_MAP[ActivityType(activity_type)]
    except ValueError:
        return "task"


def deal_status_from(value: Any) -> DealStatus:
    """Vendor deal status/stage text → canonical status."""
    text = str(value or "").lower()
    if "won" in text:
        return DealStatus.WON
    if "lost" in text:
        return DealStatus.LOST
    return DealStatus.OPEN


# ---------------------------------------------------------------------------
# Canonical entities
# ---------------------------------------------------------------------------

class Contact(BaseModel):
    id: str
    name: str = ""
    email: str = ""
    phone: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Deal(BaseModel):
    id: str
    title: str = ""
    value: Decimal = Decimal("0")
    currency: str = "BRL"
    stage: str = ""
    status: DealStatus = DealStatus.OPEN
    contact_id: Optional[str] = None
    owner_id: Optional[str] = None
    expected_close_date: Optional[datetime] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Activity(BaseModel):
    id: str
    type: str = "task"
    subject: str = ""
    description: Optional[str] = None
    contact_id: Optional[str] = None
    deal_id: Optional[str] = None
    owner_id: Optional[str] = None
    due_date: Optional[datetime] = None
    completed: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateContactRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    phone: Optional[str] = None
    company: Optional[str] = None
    position: Optional[str] = None
    tags: list[str] = Field(default_factory=list)
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CreateDealRequest(BaseModel):
    title: str = Field(..., min_length=1)
    value: Decimal = Field(..., ge=0)
    contact_id: str = Field(..., min_length=1)
    stage: Optional[str] = None
    expected_close_date: Optional[datetime] = None
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class CreateActivityRequest(BaseModel):
    type: ActivityType = ActivityType.TASK
    subject: str = Field(..., min_length=1)
    description: Optional[str] = None
    contact_id: Optional[str] = None
    deal_id: Optional[str] = None
    due_date: Optional[datetime] = None


class CRMWebhookEvent(BaseModel):
    """Generic CRM webhook envelope as delivered by the host's route layer."""
    event: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None
    source: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CRMConfig:
    """Credentials for one CRM account. Immutable per adapter."""

    platform: CRMPlatform
    api_key: str
    base_url: str = ""
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = None
    custom_fields: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        try:
            object.__setattr__(self, "platform", CRMPlatform(self.platform))
        except ValueError:
            raise ConfigurationError(f"Unsupported CRM platform: {self.platform}")
        if not self.api_key:
            raise ConfigurationError("CRM api_key is required")

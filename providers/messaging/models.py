"""Messaging canonical entities, requests and configuration (WhatsApp Business)."""

import os
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from hub.errors import ConfigurationError


class MessagingPlatform(str, Enum):
    META = "meta"


class MessageType(str, Enum):
    TEXT = "text"
    TEMPLATE = "template"
    INTERACTIVE = "interactive"
    DOCUMENT = "document"
    IMAGE = "image"
    AUDIO = "audio"
    VIDEO = "video"


# Cloud API limits
MAX_TEXT_LENGTH = 4096
MAX_REPLY_BUTTONS = 3
MAX_LIST_SECTIONS = 10


# ---------------------------------------------------------------------------
# Canonical entities
# ---------------------------------------------------------------------------

class SentMessage(BaseModel):
    """Acknowledgement of an outbound message."""
    id: str
    to: str
    wa_id: Optional[str] = None
    type: MessageType


class InboundMessage(BaseModel):
    """One customer message extracted from a webhook envelope."""
    sender: str
    phone_number_id: str = ""
    message_id: str
    timestamp: datetime
    type: str
    text: Optional[str] = None
    interaction_data: Optional[dict[str, Any]] = None
    contact_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ReplyButton(BaseModel):
    id: str = Field(..., min_length=1, max_length=256)
    title: str = Field(..., min_length=1, max_length=20)


class ListRow(BaseModel):
    id: str = Field(..., min_length=1, max_length=200)
    title: str = Field(..., min_length=1, max_length=24)
    description: Optional[str] = Field(None, max_length=72)


class ListSection(BaseModel):
    title: str = Field(..., max_length=24)
    rows: list[ListRow] = Field(..., min_length=1)


class WhatsAppWebhook(BaseModel):
    """Webhook envelope posted by the Graph API."""
    object: str = "whatsapp_business_account"
    entry: list[dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WhatsAppConfig:
    """WhatsApp Business (Cloud API) credentials. Immutable per adapter."""

    access_token: str
    phone_number_id: str
    webhook_verify_token: str
    business_account_id: str = ""
    webhook_secret: Optional[str] = None
    api_version: str = "v18.0"
    base_url: str = ""

    def __post_init__(self):
        missing = [
            name for name in ("access_token", "phone_number_id", "webhook_verify_token")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"WhatsApp config missing: {', '.join(missing)}")

    @classmethod
    def from_env(cls) -> "WhatsAppConfig":
        """Create config from WHATSAPP_* environment variables."""
        return cls(
            access_token=os.getenv("WHATSAPP_ACCESS_TOKEN", ""),
            phone_number_id=os.getenv("WHATSAPP_PHONE_NUMBER_ID", ""),
            webhook_verify_token=os.getenv("WHATSAPP_WEBHOOK_VERIFY_TOKEN", ""),
            business_account_id=os.getenv("WHATSAPP_BUSINESS_ACCOUNT_ID", ""),
            webhook_secret=os.getenv("WHATSAPP_WEBHOOK_SECRET"),
            api_version=os.getenv("WHATSAPP_API_VERSION", "v18.0"),
        )

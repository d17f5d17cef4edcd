"""
Messaging provider — WhatsApp Business (Meta Cloud API).

- WhatsAppAdapter: outbound messages, webhook handshake, inbound parsing
- format_phone: Brazilian numbers to international digits
"""
from providers.messaging.adapter import WhatsAppAdapter
from providers.messaging.models import (
    InboundMessage,
    ListRow,
    ListSection,
    MessageType,
    MessagingPlatform,
    ReplyButton,
    SentMessage,
    WhatsAppConfig,
    WhatsAppWebhook,
)
from providers.messaging.whatsapp import format_phone

__all__ = [
    "WhatsAppAdapter",
    "InboundMessage",
    "ListRow",
    "ListSection",
    "MessageType",
    "MessagingPlatform",
    "ReplyButton",
    "SentMessage",
    "WhatsAppConfig",
    "WhatsAppWebhook",
    "format_phone",
]

"""
WhatsApp Adapter — WhatsApp Business Cloud API behind the hub contract.

Outbound: text, templates, reply buttons, list menus, documents, images,
read receipts. Inbound: webhook verification handshake, signature check
and extraction of customer messages from Graph API envelopes.
Recipient numbers are normalized to Brazilian international format
before they are sent.
"""
from __future__ import annotations
from typing import Any, Optional
import hashlib
import hmac

import structlog

from hub.errors import ValidationError
from hub.integrations.base import ProviderAdapter, parse_request
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus, SyncResult, WebhookResult
from hub.integrations.registry import Clock, utc_now
from hub.integrations.transport import HttpTransport, TransportFn, VendorCall
from providers.messaging.models import (
    MAX_LIST_SECTIONS,
    MAX_REPLY_BUTTONS,
    MAX_TEXT_LENGTH,
    InboundMessage,
    ListSection,
    MessageType,
    MessagingPlatform,
    ReplyButton,
    SentMessage,
    WhatsAppConfig,
    WhatsAppWebhook,
)
from providers.messaging.whatsapp import WhatsAppCloudMapper, format_phone

logger = structlog.get_logger(__name__)


def _require(**values: Any) -> None:
    for name, value in values.items():
        if not value:
            raise ValidationError(f"{name} is required")


class WhatsAppAdapter(ProviderAdapter):
    """Send and receive WhatsApp Business messages for one phone number."""

    integration_type = IntegrationType.MESSAGING

    def __init__(
        self,
        config: WhatsAppConfig,
        transport: TransportFn | None = None,
        ledger: OperationLedger | None = None,
        integration_id: str | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config
        self._vendor = WhatsAppCloudMapper(config)
        if transport is None:
            transport = HttpTransport(
                MessagingPlatform.META.value,
                self._vendor.base_url(),
                self._vendor.credentials(),
            )
        super().__init__(MessagingPlatform.META.value, transport, ledger, integration_id, clock)

    async def _deliver(self, operation: str, to: str, kind: MessageType, call: VendorCall) -> SentMessage:
        return await self._call(
            operation,
            call,
            lambda raw: self._vendor.parse_sent(raw, to, kind),
            record_data={"type": kind.value},
        )

    # --- Outbound ---

    async def send_text_message(self, to: str, message: str, preview_url: bool = False) -> SentMessage:
        _require(to=to, message=message)
        if len(message) > MAX_TEXT_LENGTH:
            raise ValidationError(f"message exceeds {MAX_TEXT_LENGTH} characters")
        return await self._deliver(
            "send_text_message", to, MessageType.TEXT,
            self._vendor.text(to, message, preview_url),
        )

    async def send_template(
        self,
        to: str,
        template_name: str,
        language_code: str = "pt_BR",
        components: Optional[list[dict[str, Any]]] = None,
    ) -> SentMessage:
        _require(to=to, template_name=template_name)
        return await self._deliver(
            "send_template", to, MessageType.TEMPLATE,
            self._vendor.template(to, template_name, language_code, components),
        )

    async def send_interactive_buttons(
        self,
        to: str,
        body_text: str,
        buttons: list[ReplyButton | dict[str, Any]],
        header_text: Optional[str] = None,
        footer_text: Optional[str] = None,
    ) -> SentMessage:
        _require(to=to, body_text=body_text)
        if not 1 <= len(buttons) <= MAX_REPLY_BUTTONS:
            raise ValidationError(f"between 1 and {MAX_REPLY_BUTTONS} buttons are required")
        parsed = [parse_request(ReplyButton, b) for b in buttons]
        return await self._deliver(
            "send_interactive_buttons", to, MessageType.INTERACTIVE,
            self._vendor.buttons(to, body_text, parsed, header_text, footer_text),
        )

    async def send_interactive_list(
        self,
        to: str,
        body_text: str,
        button_text: str,
        sections: list[ListSection | dict[str, Any]],
        header_text: Optional[str] = None,
        footer_text: Optional[str] = None,
    ) -> SentMessage:
        _require(to=to, body_text=body_text, button_text=button_text)
        if not 1 <= len(sections) <= MAX_LIST_SECTIONS:
            raise ValidationError(f"between 1 and {MAX_LIST_SECTIONS} sections are required")
        parsed = [parse_request(ListSection, s) for s in sections]
        return await self._deliver(
            "send_interactive_list", to, MessageType.INTERACTIVE,
            self._vendor.list_menu(to, body_text, button_text, parsed, header_text, footer_text),
        )

    async def send_document(
        self,
        to: str,
        document_link: str,
        filename: str,
        caption: Optional[str] = None,
    ) -> SentMessage:
        _require(to=to, document_link=document_link, filename=filename)
        return await self._deliver(
            "send_document", to, MessageType.DOCUMENT,
            self._vendor.document(to, document_link, filename, caption),
        )

    async def send_image(self, to: str, image_link: str, caption: Optional[str] = None) -> SentMessage:
        _require(to=to, image_link=image_link)
        return await self._deliver(
            "send_image", to, MessageType.IMAGE,
            self._vendor.image(to, image_link, caption),
        )

    async def mark_as_read(self, message_id: str) -> bool:
        _require(message_id=message_id)
        response = await self._call("mark_as_read", self._vendor.mark_read(message_id))
        return bool(response.get("success", True)) if isinstance(response, dict) else True

    async def get_user_profile(self, phone_number: str) -> Optional[dict[str, Any]]:
        """Best-effort profile lookup; None when unknown or unreachable."""
        if not phone_number:
            return None
        return await self._lookup(
            "get_user_profile",
            self._vendor.profile(phone_number),
            lambda raw: raw if isinstance(raw, dict) else None,
        )

    # --- Inbound ---

    def verify_webhook(self, mode: str, token: str, challenge: str) -> Optional[str]:
        """Subscription handshake: echo the challenge only for our verify token."""
        if mode == "subscribe" and hmac.compare_digest(
            (token or "").encode(), self.config.webhook_verify_token.encode()
        ):
            return challenge
        return None

    def verify_signature(self, payload: bytes, signature: str) -> bool:
        """Check an ``X-Hub-Signature-256`` header. Always True without a webhook secret."""
        if not self.config.webhook_secret:
            return True
        expected = "sha256=" + hmac.new(
            self.config.webhook_secret.encode(), payload, hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature or "")

    def process_incoming_message(self, envelope: WhatsAppWebhook | dict[str, Any]) -> list[InboundMessage]:
        """Customer messages in a webhook envelope, in delivery order."""
        envelope = parse_request(WhatsAppWebhook, envelope)
        messages = self._vendor.parse_inbound(envelope)
        logger.debug("messaging.inbound_parsed", platform=self.platform, count=len(messages))
        return messages

    async def process_webhook(self, envelope: WhatsAppWebhook | dict[str, Any]) -> WebhookResult:
        """Reduce a Graph API envelope to a WebhookResult. Safe to repeat."""
        envelope = parse_request(WhatsAppWebhook, envelope)
        result = self._vendor.webhook(envelope)
        self._record(
            "process_webhook",
            OperationStatus.SUCCESS,
            data={"action": result.action, "entity_id": result.entity_id},
        )
        return result

    # --- Connectivity / sync ---

    async def check_connection(self) -> bool:
        return await self._ping(self._vendor.ping())

    async def sync(self) -> SyncResult:
        """Pull the account's message templates; a failed pull counts as an error."""
        return await self._sync_pass(self._vendor.listings())

    @staticmethod
    def format_phone_number(phone_number: str) -> str:
        return format_phone(phone_number)

"""WhatsApp Business Cloud API (Graph API) wire format.

Every outbound message is a POST to ``/{phone_number_id}/messages`` with
``messaging_product: "whatsapp"``. Inbound traffic arrives as
``entry[].changes[].value`` envelopes; only changes whose ``field`` is
``messages`` carry customer messages or delivery statuses.
"""

from typing import Any, Optional
import re

from hub.integrations.models import WebhookResult
from hub.integrations.normalizer import FieldMapping, SchemaMapping, normalizer
from hub.integrations.transport import AuthCredentials, AuthType, VendorCall, compact
from providers.messaging.models import (
    InboundMessage,
    ListSection,
    MessageType,
    MessagingPlatform,
    ReplyButton,
    SentMessage,
    WhatsAppConfig,
    WhatsAppWebhook,
)

PLATFORM = MessagingPlatform.META.value

BRAZIL_COUNTRY_CODE = "55"

_NON_DIGITS = re.compile(r"\D")

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="inbound_message",
    mappings=[
        FieldMapping("from", "sender", "str"),
        FieldMapping("id", "message_id", "str"),
        FieldMapping("timestamp", "timestamp", "timestamp"),
        FieldMapping("type", "type", "str", default="text"),
        FieldMapping("text.body", "text", "optional_str"),
    ],
))


def format_phone(number: str) -> str:
    """Normalize a Brazilian phone number to international digits (55 + DDD + number)."""
    digits = _NON_DIGITS.sub("", number or "")
    if digits.startswith("0"):
        digits = digits[1:]
    if not digits.startswith(BRAZIL_COUNTRY_CODE) and len(digits) <= 11:
        digits = BRAZIL_COUNTRY_CODE + digits
    return digits


def message_changes(envelope: WhatsAppWebhook) -> list[dict[str, Any]]:
    """The ``value`` of every ``messages`` change in the envelope."""
    values = []
    for entry in envelope.entry:
        for change in entry.get("changes") or []:
            if change.get("field") == "messages" and isinstance(change.get("value"), dict):
                values.append(change["value"])
    return values


class WhatsAppCloudMapper:
    platform = MessagingPlatform.META

    def __init__(self, config: WhatsAppConfig):
        self.config = config

    def base_url(self) -> str:
        return self.config.base_url or f"https://graph.facebook.com/{self.config.api_version}"

    def credentials(self) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=self.config.access_token)

    # --- Outbound ---

    def _message(self, to: str, kind: MessageType, content: dict[str, Any]) -> VendorCall:
        return VendorCall("POST", f"/{self.config.phone_number_id}/messages", body={
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": format_phone(to),
            "type": kind.value,
            kind.value: content,
        })

    def text(self, to: str, body: str, preview_url: bool = False) -> VendorCall:
        return self._message(to, MessageType.TEXT, {"body": body, "preview_url": preview_url})

    def template(
        self,
        to: str,
        name: str,
        language: str = "pt_BR",
        components: Optional[list[dict[str, Any]]] = None,
    ) -> VendorCall:
        return self._message(to, MessageType.TEMPLATE, compact({
            "name": name,
            "language": {"code": language},
            "components": components or None,
        }))

    @staticmethod
    def _interactive(
        kind: str,
        body: str,
        action: dict[str, Any],
        header: Optional[str],
        footer: Optional[str],
    ) -> dict[str, Any]:
        return compact({
            "type": kind,
            "header": {"type": "text", "text": header} if header else None,
            "body": {"text": body},
            "footer": {"text": footer} if footer else None,
            "action": action,
        })

    def buttons(
        self,
        to: str,
        body: str,
        buttons: list[ReplyButton],
        header: Optional[str] = None,
        footer: Optional[str] = None,
    ) -> VendorCall:
        action = {
            "buttons": [
                {"type": "reply", "reply": {"id": b.id, "title": b.title}} for b in buttons
            ],
        }
        return self._message(to, MessageType.INTERACTIVE, self._interactive("button", body, action, header, footer))

    def list_menu(
        self,
        to: str,
        body: str,
        button_text: str,
        sections: list[ListSection],
        header: Optional[str] = None,
        footer: Optional[str] = None,
    ) -> VendorCall:
        action = {
            "button": button_text,
            "sections": [s.model_dump(exclude_none=True) for s in sections],
        }
        return self._message(to, MessageType.INTERACTIVE, self._interactive("list", body, action, header, footer))

    def document(self, to: str, link: str, filename: str, caption: Optional[str] = None) -> VendorCall:
        return self._message(to, MessageType.DOCUMENT, compact({
            "link": link,
            "filename": filename,
            "caption": caption,
        }))

    def image(self, to: str, link: str, caption: Optional[str] = None) -> VendorCall:
        return self._message(to, MessageType.IMAGE, compact({"link": link, "caption": caption}))

    def parse_sent(self, raw: dict[str, Any], to: str, kind: MessageType) -> SentMessage:
        messages = raw.get("messages") or [{}]
        contacts = raw.get("contacts") or [{}]
        return SentMessage(
            id=str(messages[0].get("id") or ""),
            to=format_phone(to),
            wa_id=contacts[0].get("wa_id"),
            type=kind,
        )

    def mark_read(self, message_id: str) -> VendorCall:
        return VendorCall("POST", f"/{self.config.phone_number_id}/messages", body={
            "messaging_product": "whatsapp",
            "status": "read",
            "message_id": message_id,
        })

    def profile(self, phone: str) -> VendorCall:
        return VendorCall("GET", f"/{format_phone(phone)}")

    # --- Inbound ---

    def parse_inbound(self, envelope: WhatsAppWebhook) -> list[InboundMessage]:
        inbound = []
        for value in message_changes(envelope):
            phone_number_id = str((value.get("metadata") or {}).get("phone_number_id") or "")
            names = {
                c.get("wa_id"): (c.get("profile") or {}).get("name")
                for c in value.get("contacts") or []
            }
            for message in value.get("messages") or []:
                interaction = message.get("interactive") or message.get("button")
                inbound.append(normalizer.normalize_as(
                    InboundMessage, PLATFORM, "inbound_message", message,
                    phone_number_id=phone_number_id,
                    contact_name=names.get(message.get("from")),
                    interaction_data=interaction,
                ))
        return inbound

    def webhook(self, envelope: WhatsAppWebhook) -> WebhookResult:
        for value in message_changes(envelope):
            messages = value.get("messages") or []
            if messages:
                return WebhookResult(
                    processed=True,
                    action="message.received",
                    entity_type="message",
                    entity_id=messages[0].get("id"),
                )
            statuses = value.get("statuses") or []
            if statuses:
                return WebhookResult(
                    processed=True,
                    action=f"message.{statuses[0].get('status') or 'status'}",
                    entity_type="message",
                    entity_id=statuses[0].get("id"),
                )
        return WebhookResult(processed=False, action="ignored", entity_type=envelope.object)

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", f"/{self.config.phone_number_id}")

    def listings(self) -> dict[str, VendorCall]:
        if not self.config.business_account_id:
            return {}
        return {
            "templates": VendorCall(
                "GET", f"/{self.config.business_account_id}/message_templates",
                params={"limit": 100},
            ),
        }

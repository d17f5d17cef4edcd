"""Test the WhatsApp Business adapter."""
from datetime import datetime, timezone
import hashlib
import hmac

import pytest

from hub.errors import ConfigurationError, UpstreamError, ValidationError
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import OperationStatus
from providers.messaging import MessageType, WhatsAppAdapter, WhatsAppConfig

MESSAGES_PATH = "/1234567890/messages"

SENT = {
    "messaging_product": "whatsapp",
    "contacts": [{"input": "5511999998888", "wa_id": "5511999998888"}],
    "messages": [{"id": "wamid.HBgN"}],
}


def adapter(transport, clock, **config):
    ledger = OperationLedger(clock=clock)
    settings = {
        "access_token": "EAAG",
        "phone_number_id": "1234567890",
        "webhook_verify_token": "verify-me",
        **config,
    }
    return WhatsAppAdapter(WhatsAppConfig(**settings), transport, ledger, clock=clock), ledger


def envelope(value):
    return {
        "object": "whatsapp_business_account",
        "entry": [{"id": "WABA", "changes": [{"field": "messages", "value": value}]}],
    }


@pytest.mark.parametrize("raw, expected", [
    ("(11) 99999-8888", "5511999998888"),
    ("011 99999-8888", "5511999998888"),
    ("+55 11 99999-8888", "5511999998888"),
    ("5511999998888", "5511999998888"),
    ("11 3333-4444", "551133334444"),
])
def test_format_phone_number(raw, expected):
    assert WhatsAppAdapter.format_phone_number(raw) == expected


def test_config_requires_credentials(monkeypatch):
    with pytest.raises(ConfigurationError, match="phone_number_id"):
        WhatsAppConfig(access_token="EAAG", phone_number_id="", webhook_verify_token="v")

    monkeypatch.setenv("WHATSAPP_ACCESS_TOKEN", "EAAG")
    monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "42")
    monkeypatch.setenv("WHATSAPP_WEBHOOK_VERIFY_TOKEN", "v")
    config = WhatsAppConfig.from_env()
    assert config.phone_number_id == "42"
    assert config.api_version == "v18.0"


# --- Outbound ---

@pytest.mark.asyncio
async def test_send_text_message(transport, clock):
    transport.respond("POST", MESSAGES_PATH, SENT)
    wa, ledger = adapter(transport, clock)

    sent = await wa.send_text_message("(11) 99999-8888", "Olá! Seu pedido foi enviado.")

    assert sent.id == "wamid.HBgN"
    assert sent.to == "5511999998888"
    assert sent.wa_id == "5511999998888"
    assert sent.type == MessageType.TEXT
    assert transport.last.body == {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": "5511999998888",
        "type": "text",
        "text": {"body": "Olá! Seu pedido foi enviado.", "preview_url": False},
    }
    [record] = ledger.snapshot()
    assert record.operation == "send_text_message"
    assert record.data == {"type": "text"}


@pytest.mark.asyncio
async def test_text_limits(transport, clock):
    wa, _ = adapter(transport, clock)
    with pytest.raises(ValidationError):
        await wa.send_text_message("11999998888", "x" * 4097)
    with pytest.raises(ValidationError):
        await wa.send_text_message("", "oi")
    assert transport.calls == []


@pytest.mark.asyncio
async def test_send_template_defaults_to_pt_br(transport, clock):
    transport.respond("POST", MESSAGES_PATH, SENT)
    wa, _ = adapter(transport, clock)
    await wa.send_template("11999998888", "pedido_confirmado")
    assert transport.last.body["template"] == {"name": "pedido_confirmado", "language": {"code": "pt_BR"}}


@pytest.mark.asyncio
async def test_send_interactive_buttons(transport, clock):
    transport.respond("POST", MESSAGES_PATH, SENT)
    wa, _ = adapter(transport, clock)

    await wa.send_interactive_buttons(
        "11999998888",
        "Confirma o pedido?",
        [{"id": "yes", "title": "Sim"}, {"id": "no", "title": "Não"}],
        footer_text="Loja Exemplo",
    )
    interactive = transport.last.body["interactive"]
    assert interactive["type"] == "button"
    assert interactive["body"] == {"text": "Confirma o pedido?"}
    assert interactive["footer"] == {"text": "Loja Exemplo"}
    assert "header" not in interactive
    assert interactive["action"]["buttons"][1] == {"type": "reply", "reply": {"id": "no", "title": "Não"}}


@pytest.mark.asyncio
async def test_button_limits(transport, clock):
    wa, _ = adapter(transport, clock)
    four = [{"id": str(i), "title": f"Opção {i}"} for i in range(4)]
    with pytest.raises(ValidationError):
        await wa.send_interactive_buttons("11999998888", "Escolha", four)
    with pytest.raises(ValidationError):
        await wa.send_interactive_buttons("11999998888", "Escolha", [])
    with pytest.raises(ValidationError):
        await wa.send_interactive_buttons("11999998888", "Escolha", [{"id": "a", "title": "x" * 21}])
    assert transport.calls == []


@pytest.mark.asyncio
async def test_send_interactive_list(transport, clock):
    transport.respond("POST", MESSAGES_PATH, SENT)
    wa, _ = adapter(transport, clock)

    await wa.send_interactive_list(
        "11999998888", "Escolha um produto", "Ver opções",
        [{"title": "Canecas", "rows": [{"id": "can-1", "title": "Caneca branca"}]}],
    )
    action = transport.last.body["interactive"]["action"]
    assert action["button"] == "Ver opções"
    assert action["sections"] == [{"title": "Canecas", "rows": [{"id": "can-1", "title": "Caneca branca"}]}]

    with pytest.raises(ValidationError):
        await wa.send_interactive_list("11999998888", "Escolha", "Ver", [{"title": "Vazio", "rows": []}])


@pytest.mark.asyncio
async def test_send_document_and_image(transport, clock):
    transport.respond("POST", MESSAGES_PATH, SENT)
    wa, _ = adapter(transport, clock)

    doc = await wa.send_document("11999998888", "https://cdn.example.com/nf.pdf", "nf-123.pdf")
    assert doc.type == MessageType.DOCUMENT
    assert transport.last.body["document"] == {"link": "https://cdn.example.com/nf.pdf", "filename": "nf-123.pdf"}

    await wa.send_image("11999998888", "https://cdn.example.com/p.png", caption="Novo produto")
    assert transport.last.body["image"] == {"link": "https://cdn.example.com/p.png", "caption": "Novo produto"}


@pytest.mark.asyncio
async def test_send_failure_recorded(transport, clock):
    transport.respond("POST", MESSAGES_PATH, UpstreamError("meta", "Recipient phone number not in allowed list", 400))
    wa, ledger = adapter(transport, clock)
    with pytest.raises(UpstreamError):
        await wa.send_text_message("11999998888", "oi")
    assert ledger.snapshot()[0].status == OperationStatus.ERROR


@pytest.mark.asyncio
async def test_mark_as_read(transport, clock):
    transport.respond("POST", MESSAGES_PATH, {"success": True})
    wa, _ = adapter(transport, clock)
    assert await wa.mark_as_read("wamid.HBgN")
    assert transport.last.body == {"messaging_product": "whatsapp", "status": "read", "message_id": "wamid.HBgN"}


@pytest.mark.asyncio
async def test_get_user_profile(transport, clock):
    transport.respond("GET", "/5511999998888", {"id": "5511999998888", "name": "Ana"})
    transport.respond("GET", "/5511888887777", UpstreamError("meta", "unsupported get request", 400))
    wa, _ = adapter(transport, clock)

    assert (await wa.get_user_profile("11999998888"))["name"] == "Ana"
    assert await wa.get_user_profile("11888887777") is None


# --- Inbound ---

def test_verify_webhook(transport, clock):
    wa, _ = adapter(transport, clock)
    assert wa.verify_webhook("subscribe", "verify-me", "1158201444") == "1158201444"
    assert wa.verify_webhook("subscribe", "wrong", "1158201444") is None
    assert wa.verify_webhook("unsubscribe", "verify-me", "1158201444") is None


def test_verify_signature(transport, clock):
    payload = b'{"object":"whatsapp_business_account"}'
    signature = "sha256=" + hmac.new(b"app-secret", payload, hashlib.sha256).hexdigest()

    wa, _ = adapter(transport, clock, webhook_secret="app-secret")
    assert wa.verify_signature(payload, signature)
    assert not wa.verify_signature(payload, "sha256=deadbeef")
    assert not wa.verify_signature(payload, "")

    unsigned, _ = adapter(transport, clock)
    assert unsigned.verify_signature(payload, "")


def test_process_incoming_message(transport, clock):
    wa, _ = adapter(transport, clock)
    messages = wa.process_incoming_message(envelope({
        "messaging_product": "whatsapp",
        "metadata": {"display_phone_number": "551140000000", "phone_number_id": "1234567890"},
        "contacts": [{"profile": {"name": "Ana Souza"}, "wa_id": "5511999998888"}],
        "messages": [
            {
                "from": "5511999998888",
                "id": "wamid.A",
                "timestamp": "1717243200",
                "type": "text",
                "text": {"body": "Quero comprar"},
            },
            {
                "from": "5511999998888",
                "id": "wamid.B",
                "timestamp": "1717243260",
                "type": "interactive",
                "interactive": {"type": "button_reply", "button_reply": {"id": "yes", "title": "Sim"}},
            },
        ],
    }))

    first, second = messages
    assert first.sender == "5511999998888"
    assert first.phone_number_id == "1234567890"
    assert first.message_id == "wamid.A"
    assert first.text == "Quero comprar"
    assert first.contact_name == "Ana Souza"
    assert first.timestamp == datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert second.text is None
    assert second.interaction_data["button_reply"]["id"] == "yes"


def test_status_only_envelope_has_no_messages(transport, clock):
    wa, _ = adapter(transport, clock)
    status = envelope({"statuses": [{"id": "wamid.A", "status": "delivered"}]})
    assert wa.process_incoming_message(status) == []
    assert wa.process_incoming_message({"object": "whatsapp_business_account", "entry": []}) == []


@pytest.mark.asyncio
async def test_process_webhook(transport, clock):
    wa, ledger = adapter(transport, clock)

    received = await wa.process_webhook(envelope({"messages": [{"id": "wamid.A", "from": "55119"}]}))
    assert (received.processed, received.action, received.entity_id) == (True, "message.received", "wamid.A")

    delivered = await wa.process_webhook(envelope({"statuses": [{"id": "wamid.A", "status": "delivered"}]}))
    assert delivered.action == "message.delivered"

    ignored = await wa.process_webhook({"object": "whatsapp_business_account", "entry": []})
    assert not ignored.processed
    assert ignored.action == "ignored"
    assert len(ledger) == 3


# --- Connectivity / sync ---

@pytest.mark.asyncio
async def test_check_connection_and_sync(transport, clock):
    transport.respond("GET", "/1234567890", {"id": "1234567890", "display_phone_number": "551140000000"})
    transport.respond("GET", "/WABA/message_templates", {"data": [{"name": "pedido_confirmado"}]})

    wa, _ = adapter(transport, clock, business_account_id="WABA")
    assert await wa.check_connection()
    result = await wa.sync()
    assert result.success
    assert result.details == {"templates": 1}

    bare, _ = adapter(transport, clock)
    assert (await bare.sync()).synchronized == 0

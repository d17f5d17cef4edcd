"""Mercado Pago PIX wire format.

PIX charges are ordinary ``/v1/payments`` with ``payment_method_id=pix``;
the copy-and-paste code and QR image come back under
``point_of_interaction.transaction_data``. Recurring charges are
pre-approvals.
"""

import calendar
from datetime import datetime, timedelta
from typing import Any, Optional

from hub.integrations.models import WebhookResult
from hub.integrations.normalizer import FieldMapping, SchemaMapping, normalizer
from hub.integrations.transport import AuthCredentials, AuthType, VendorCall, compact
from hub.validation import clean_document, document_type
from providers.payments.models import (
    CreatePaymentRequest,
    Payment,
    PaymentsPlatform,
    PixConfig,
    PixWebhookEvent,
    RecurrenceFrequency,
    RecurringPaymentRequest,
    payment_status_from,
)

PLATFORM = PaymentsPlatform.MERCADOPAGO.value

CHECKOUT_URL = "https://www.mercadopago.com.br/checkout/v1/redirect"

# Canonical frequency → (frequency, frequency_type) for auto_recurring
RECURRENCE = {
    RecurrenceFrequency.MONTHLY: (1, "months"),
    RecurrenceFrequency.WEEKLY: (7, "days"),
    RecurrenceFrequency.DAILY: (1, "days"),
}

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="payment",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("id", "transaction_id", "optional_str"),
        FieldMapping("transaction_amount", "amount", "decimal"),
        FieldMapping("description", "description", "str"),
        FieldMapping("point_of_interaction.transaction_data.qr_code", "qr_code", "str"),
        FieldMapping("point_of_interaction.transaction_data.qr_code", "pix_key", "str"),
        FieldMapping("point_of_interaction.transaction_data.qr_code_base64", "qr_code_base64", "str"),
        FieldMapping("point_of_interaction.transaction_data.ticket_url", "ticket_url", "optional_str"),
        FieldMapping("date_of_expiration", "expiration_date", "datetime"),
        FieldMapping("external_reference", "external_reference", "optional_str"),
        FieldMapping("date_created", "created_at", "datetime"),
    ],
))


def has_pix_data(raw: Any) -> bool:
    data = ((raw or {}).get("point_of_interaction") or {}).get("transaction_data") or {}
    return bool(data.get("qr_code"))


class MercadoPagoMapper:
    platform = PaymentsPlatform.MERCADOPAGO
    default_base_url = "https://api.mercadopago.com"

    def credentials(self, config: PixConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=config.access_token)

    # --- One-off charges ---

    def create_payment(
        self,
        request: CreatePaymentRequest,
        idempotency_key: str,
        notification_url: Optional[str] = None,
    ) -> VendorCall:
        identification = None
        if request.payer_document:
            identification = {
                "type": document_type(request.payer_document),
                "number": clean_document(request.payer_document),
            }
        return VendorCall(
            "POST", "/v1/payments",
            body=compact({
                "transaction_amount": float(request.amount),
                "description": request.description,
                "payment_method_id": "pix",
                "payer": compact({
                    "email": request.payer_email,
                    "first_name": request.payer_name,
                    "identification": identification,
                }),
                "external_reference": request.external_reference,
                "notification_url": request.notification_url or notification_url,
                "metadata": {"integration_type": "integrations_hub_pix"},
            }),
            headers={"X-Idempotency-Key": idempotency_key},
        )

    def get_payment(self, payment_id: str) -> VendorCall:
        return VendorCall("GET", f"/v1/payments/{payment_id}")

    def parse_payment(self, raw: dict[str, Any]) -> Payment:
        return normalizer.normalize_as(
            Payment, PLATFORM, "payment", raw,
            status=payment_status_from(raw.get("status")),
        )

    def parse_found_payment(self, response: Any) -> Optional[Payment]:
        if not isinstance(response, dict) or not response.get("id"):
            return None
        return self.parse_payment(response)

    # --- Recurring charges ---

    def create_preapproval(self, request: RecurringPaymentRequest, back_url: str) -> VendorCall:
        frequency, frequency_type = RECURRENCE[request.frequency]
        return VendorCall("POST", "/preapproval", body={
            "reason": request.description,
            "auto_recurring": compact({
                "frequency": frequency,
                "frequency_type": frequency_type,
                "transaction_amount": float(request.amount),
                "currency_id": "BRL",
                "start_date": request.start_date.isoformat(),
                "end_date": request.end_date.isoformat() if request.end_date else None,
            }),
            "payer_email": request.payer_email,
            "back_url": back_url,
            "status": "pending",
        })

    def parse_preapproval(self, raw: dict[str, Any]) -> tuple[str, str]:
        return str(raw.get("id") or ""), str(raw.get("status") or "pending")

    # --- Links ---

    def payment_link(self, payment_id: str) -> str:
        return f"{CHECKOUT_URL}?pref_id={payment_id}"

    # --- Webhooks ---

    def webhook(self, event: PixWebhookEvent) -> WebhookResult:
        entity_id = event.data.get("id")
        return WebhookResult(
            processed=event.type == "payment",
            action=event.action or f"{event.type}.updated",
            entity_type=event.type,
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/users/me")

    def listings(self) -> dict[str, VendorCall]:
        return {
            "payments": VendorCall("GET", "/v1/payments/search", params={
                "payment_method_id": "pix",
                "sort": "date_created",
                "criteria": "desc",
                "limit": 100,
            }),
        }


def next_payment_date(start: datetime, frequency: RecurrenceFrequency) -> datetime:
    """First charge after ``start`` for the given frequency."""
    if frequency == RecurrenceFrequency.MONTHLY:
        month = start.month % 12 + 1
        year = start.year + (1 if start.month == 12 else 0)
        day = min(start.day, calendar.monthrange(year, month)[1])
        return start.replace(year=year, month=month, day=day)
    if frequency == RecurrenceFrequency.WEEKLY:
        return start + timedelta(days=7)
    return start + timedelta(days=1)


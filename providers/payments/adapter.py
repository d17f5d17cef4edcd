"""
PIX Adapter — instant payments through Mercado Pago.

Creates PIX charges (QR code + copy-and-paste key), looks up their
status, sets up recurring pre-approvals and reduces payment
notifications to WebhookResults. Payer documents are checked locally
before a charge is sent.
"""
from __future__ import annotations
from datetime import timedelta
from typing import Any, Optional, Protocol
import uuid

import structlog

from hub.errors import UpstreamError, ValidationError
from hub.integrations.base import ProviderAdapter, parse_request
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus, SyncResult, WebhookResult
from hub.integrations.registry import Clock, utc_now
from hub.integrations.transport import AuthCredentials, HttpTransport, TransportFn, VendorCall
from hub.validation import validate_document
from providers.payments.mercadopago import MercadoPagoMapper, has_pix_data, next_payment_date
from providers.payments.models import (
    CreatePaymentRequest,
    Payment,
    PaymentsPlatform,
    PixConfig,
    PixWebhookEvent,
    RecurringPayment,
    RecurringPaymentRequest,
    format_brl,
)

logger = structlog.get_logger(__name__)

# PIX charges expire after a day unless the vendor says otherwise.
PIX_EXPIRATION = timedelta(hours=24)


class PaymentsVendor(Protocol):
    """What a payments vendor mapper must provide. Mappers are pure: no I/O."""

    platform: PaymentsPlatform
    default_base_url: str

    def credentials(self, config: PixConfig) -> AuthCredentials: ...
    def create_payment(
        self, request: CreatePaymentRequest, idempotency_key: str, notification_url: Optional[str] = None
    ) -> VendorCall: ...
    def get_payment(self, payment_id: str) -> VendorCall: ...
    def parse_payment(self, raw: Any) -> Payment: ...
    def parse_found_payment(self, response: Any) -> Optional[Payment]: ...
    def create_preapproval(self, request: RecurringPaymentRequest, back_url: str) -> VendorCall: ...
    def parse_preapproval(self, raw: Any) -> tuple[str, str]: ...
    def payment_link(self, payment_id: str) -> str: ...
    def webhook(self, event: PixWebhookEvent) -> WebhookResult: ...
    def ping(self) -> VendorCall: ...
    def listings(self) -> dict[str, VendorCall]: ...


VENDORS: dict[PaymentsPlatform, type[PaymentsVendor]] = {
    PaymentsPlatform.MERCADOPAGO: MercadoPagoMapper,
}


class PIXAdapter(ProviderAdapter):
    """PIX charges, recurring payments and payment notifications."""

    integration_type = IntegrationType.PAYMENTS

    def __init__(
        self,
        config: PixConfig,
        transport: TransportFn | None = None,
        ledger: OperationLedger | None = None,
        integration_id: str | None = None,
        clock: Clock = utc_now,
        platform: PaymentsPlatform = PaymentsPlatform.MERCADOPAGO,
    ):
        self.config = config
        self._vendor: PaymentsVendor = VENDORS[platform]()
        if transport is None:
            transport = HttpTransport(
                platform.value,
                config.base_url or self._vendor.default_base_url,
                self._vendor.credentials(config),
            )
        super().__init__(platform.value, transport, ledger, integration_id, clock)

    # --- Charges ---

    def _parse_charge(self, raw: Any) -> Payment:
        if not has_pix_data(raw):
            raise UpstreamError(self.platform, "response carries no PIX transaction data")
        payment = self._vendor.parse_payment(raw)
        if payment.expiration_date is None:
            payment = payment.model_copy(update={"expiration_date": self._clock() + PIX_EXPIRATION})
        return payment

    async def create_payment(self, request: CreatePaymentRequest | dict[str, Any]) -> Payment:
        """Create a PIX charge and return its QR code and copy-and-paste key."""
        request = parse_request(CreatePaymentRequest, request)
        if request.payer_document and not validate_document(request.payer_document):
            raise ValidationError("Invalid payer CPF/CNPJ document")
        payment = await self._call(
            "create_payment",
            self._vendor.create_payment(
                request,
                idempotency_key=f"hub_{uuid.uuid4().hex}",
                notification_url=self.config.notification_url,
            ),
            self._parse_charge,
            record_data={"amount": str(request.amount), "external_reference": request.external_reference},
        )
        logger.info(
            "payments.payment_created",
            platform=self.platform,
            payment_id=payment.id,
            amount=format_brl(payment.amount),
        )
        return payment

    async def get_payment_status(self, payment_id: str) -> Optional[Payment]:
        """Current state of a charge, or None when it cannot be found."""
        if not payment_id:
            return None
        return await self._lookup(
            "get_payment_status",
            self._vendor.get_payment(str(payment_id)),
            self._vendor.parse_found_payment,
            record_data={"payment_id": str(payment_id)},
        )

    async def create_recurring_payment(
        self,
        request: RecurringPaymentRequest | dict[str, Any],
    ) -> RecurringPayment:
        request = parse_request(RecurringPaymentRequest, request)
        if request.end_date and request.end_date <= request.start_date:
            raise ValidationError("end_date must be after start_date")
        preapproval_id, status = await self._call(
            "create_recurring_payment",
            self._vendor.create_preapproval(request, self.config.back_url),
            self._vendor.parse_preapproval,
            record_data={"frequency": request.frequency.value, "amount": str(request.amount)},
        )
        return RecurringPayment(
            preapproval_id=preapproval_id,
            status=status,
            next_payment_date=next_payment_date(request.start_date, request.frequency),
        )

    def generate_payment_link(self, payment_id: str) -> str:
        if not payment_id:
            raise ValidationError("payment_id is required")
        return self._vendor.payment_link(str(payment_id))

    # --- Webhooks ---

    async def process_webhook(self, event: PixWebhookEvent | dict[str, Any]) -> WebhookResult:
        """Reduce a payment notification to a WebhookResult. Safe to repeat."""
        event = parse_request(PixWebhookEvent, event)
        result = self._vendor.webhook(event)
        if not result.processed:
            logger.info("payments.webhook_ignored", platform=self.platform, type=event.type)
        self._record(
            "process_webhook",
            OperationStatus.SUCCESS,
            data={"type": event.type, "action": result.action, "entity_id": result.entity_id},
        )
        return result

    # --- Connectivity / sync ---

    async def check_connection(self) -> bool:
        return await self._ping(self._vendor.ping())

    async def sync(self) -> SyncResult:
        """Pull recent PIX payments; a failed pull counts as an error."""
        return await self._sync_pass(self._vendor.listings())

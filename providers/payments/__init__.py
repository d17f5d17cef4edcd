"""
Payments provider — PIX through Mercado Pago.

- PIXAdapter: charges, status lookups, recurring pre-approvals, webhooks
- format_brl: pt-BR currency display
"""
from providers.payments.adapter import PIXAdapter, PaymentsVendor, VENDORS
from providers.payments.models import (
    CreatePaymentRequest,
    Payment,
    PaymentsPlatform,
    PaymentStatus,
    PixConfig,
    PixWebhookEvent,
    RecurrenceFrequency,
    RecurringPayment,
    RecurringPaymentRequest,
    format_brl,
    payment_status_from,
)

__all__ = [
    "PIXAdapter",
    "PaymentsVendor",
    "VENDORS",
    "CreatePaymentRequest",
    "Payment",
    "PaymentsPlatform",
    "PaymentStatus",
    "PixConfig",
    "PixWebhookEvent",
    "RecurrenceFrequency",
    "RecurringPayment",
    "RecurringPaymentRequest",
    "format_brl",
    "payment_status_from",
]

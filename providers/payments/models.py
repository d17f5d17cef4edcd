"""Payments canonical entities, requests and configuration (PIX)."""

import os
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from hub.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class PaymentsPlatform(str, Enum):
    MERCADOPAGO = "mercadopago"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RecurrenceFrequency(str, Enum):
    MONTHLY = "monthly"
    WEEKLY = "weekly"
    DAILY = "daily"


# Vendor statuses with no canonical counterpart collapse to pending.
VENDOR_STATUSES: dict[str, PaymentStatus] = {
    "pending": PaymentStatus.PENDING,
    "in_process": PaymentStatus.PENDING,
    "authorized": PaymentStatus.PENDING,
    "approved": PaymentStatus.APPROVED,
    "rejected": PaymentStatus.REJECTED,
    "cancelled": PaymentStatus.CANCELLED,
}


def payment_status_from(value: Any) -> PaymentStatus:
    return VENDOR_STATUSES.get(str(value or "").lower(), PaymentStatus.PENDING)


def format_brl(amount: Decimal | int | float | str) -> str:
    """Format an amount the way pt-BR shows Reais: ``R$ 1.234,56``."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    text = f"{abs(value):,.2f}".translate(str.maketrans(",.", ".,"))
    sign = "-" if value < 0 else ""
    return f"{sign}R$ {text}"


# ---------------------------------------------------------------------------
# Canonical entities
# ---------------------------------------------------------------------------

class Payment(BaseModel):
    id: str
    status: PaymentStatus = PaymentStatus.PENDING
    amount: Decimal = Decimal("0")
    description: str = ""
    qr_code: str = ""
    qr_code_base64: str = ""
    pix_key: str = ""  # copy-and-paste code; same as qr_code
    ticket_url: Optional[str] = None
    expiration_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    external_reference: Optional[str] = None
    created_at: Optional[datetime] = None


class RecurringPayment(BaseModel):
    preapproval_id: str
    status: str = "pending"
    next_payment_date: datetime


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreatePaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    payer_email: Optional[str] = None
    payer_name: Optional[str] = None
    payer_document: Optional[str] = None
    external_reference: Optional[str] = None
    notification_url: Optional[str] = None


class RecurringPaymentRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    frequency: RecurrenceFrequency
    start_date: datetime
    end_date: Optional[datetime] = None
    payer_email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    max_amount: Optional[Decimal] = Field(None, gt=0)


class PixWebhookEvent(BaseModel):
    """Mercado Pago notification body."""
    type: str
    action: str = ""
    data: dict[str, Any] = Field(default_factory=dict)
    id: Optional[str | int] = None
    live_mode: bool = False
    date_created: Optional[str] = None


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

ENVIRONMENTS = ("sandbox", "production")


@dataclass(frozen=True)
class PixConfig:
    """Mercado Pago credentials for one account. Immutable per adapter."""

    access_token: str
    public_key: str = ""
    environment: str = "sandbox"
    webhook_secret: Optional[str] = None
    application_id: Optional[str] = None
    notification_url: Optional[str] = None
    back_url: str = "https://www.mercadopago.com.br"
    base_url: str = ""

    def __post_init__(self):
        if not self.access_token:
            raise ConfigurationError("Mercado Pago access_token is required")
        if self.environment not in ENVIRONMENTS:
            raise ConfigurationError(f"Unknown Mercado Pago environment: {self.environment}")

    @classmethod
    def from_env(cls) -> "PixConfig":
        """Create config from MERCADO_PAGO_* environment variables."""
        return cls(
            access_token=os.getenv("MERCADO_PAGO_ACCESS_TOKEN", ""),
            public_key=os.getenv("MERCADO_PAGO_PUBLIC_KEY", ""),
            environment=os.getenv("MERCADO_PAGO_ENVIRONMENT", "sandbox"),
            webhook_secret=os.getenv("MERCADO_PAGO_WEBHOOK_SECRET"),
            application_id=os.getenv("MERCADO_PAGO_APPLICATION_ID"),
            notification_url=os.getenv("MERCADO_PAGO_NOTIFICATION_URL"),
            back_url=os.getenv("MERCADO_PAGO_BACK_URL", "https://www.mercadopago.com.br"),
        )

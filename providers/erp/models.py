"""ERP canonical entities, requests and configuration.

Monetary amounts are Decimal BRL. Brazilian tax attributes (NCM, CFOP,
ICMS/IPI/PIS/COFINS rates) pass through untouched; nothing here computes them.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from hub.errors import ConfigurationError


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class ERPPlatform(str, Enum):
    OMIE = "omie"
    CONTAAZUL = "contaazul"
    BLING = "bling"


class CustomerType(str, Enum):
    INDIVIDUAL = "individual"
    COMPANY = "company"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    ISSUED = "issued"
    SENT = "sent"
    PAID = "paid"
    CANCELLED = "cancelled"


class EntryType(str, Enum):
    RECEIVABLE = "receivable"
    PAYABLE = "payable"


class EntryStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class StockOperation(str, Enum):
    ADD = "add"
    SUBTRACT = "subtract"
    SET = "set"


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"
    ADJUSTMENT = "adjustment"
    TRANSFER = "transfer"


MOVEMENT_TYPES: dict[StockOperation, MovementType] = {
    StockOperation.ADD: MovementType.IN,
    StockOperation.SUBTRACT: MovementType.OUT,
    StockOperation.SET: MovementType.ADJUSTMENT,
}


def invoice_status_from(value: Any) -> InvoiceStatus:
    try:
        return InvoiceStatus(str(value or "").lower())
    except ValueError:
        return InvoiceStatus.DRAFT


# ---------------------------------------------------------------------------
# Canonical entities
# ---------------------------------------------------------------------------

class Address(BaseModel):
    street: str = ""
    number: str = ""
    complement: Optional[str] = None
    neighborhood: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = "Brasil"


class Product(BaseModel):
    id: str
    name: str = ""
    sku: str = ""
    price: Decimal = Decimal("0")
    cost: Optional[Decimal] = None
    category: str = ""
    description: Optional[str] = None
    stock_quantity: Decimal = Decimal("0")
    unit: str = "UN"
    ncm: Optional[str] = None
    cfop: Optional[str] = None
    icms_rate: Optional[Decimal] = None
    ipi_rate: Optional[Decimal] = None
    pis_rate: Optional[Decimal] = None
    cofins_rate: Optional[Decimal] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Customer(BaseModel):
    id: str
    name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    document: str = ""
    document_type: str = "CPF"
    address: Address = Field(default_factory=Address)
    state_registration: Optional[str] = None
    municipal_registration: Optional[str] = None
    customer_type: CustomerType = CustomerType.INDIVIDUAL
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class InvoiceItem(BaseModel):
    product_id: str
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal
    cfop: Optional[str] = None
    ncm: Optional[str] = None


class Invoice(BaseModel):
    id: str
    number: str = ""
    series: str = "1"
    type: str = "sale"
    status: InvoiceStatus = InvoiceStatus.DRAFT
    customer_id: Optional[str] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    paid_date: Optional[date] = None
    total_amount: Decimal = Decimal("0")
    discount_amount: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    net_amount: Decimal = Decimal("0")
    items: list[InvoiceItem] = Field(default_factory=list)
    payment_method: Optional[str] = None
    observations: Optional[str] = None
    nfe_key: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FinancialEntry(BaseModel):
    id: str
    type: EntryType = EntryType.RECEIVABLE
    status: EntryStatus = EntryStatus.PENDING
    customer_id: Optional[str] = None
    invoice_id: Optional[str] = None
    description: str = ""
    amount: Decimal = Decimal("0")
    due_date: Optional[date] = None
    paid_date: Optional[date] = None
    category: str = ""


class StockMovement(BaseModel):
    id: str
    product_id: str
    type: MovementType
    quantity: Decimal
    reason: str = ""
    reference: Optional[str] = None
    date: datetime


class ReconciliationResult(BaseModel):
    matched: bool
    entry_id: Optional[str] = None
    invoice_id: Optional[str] = None


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class CreateProductRequest(BaseModel):
    name: str = Field(..., min_length=1)
    sku: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    cost: Optional[Decimal] = Field(None, ge=0)
    category: str = ""
    description: Optional[str] = None
    stock_quantity: Decimal = Field(Decimal("0"), ge=0)
    unit: str = "UN"
    ncm: Optional[str] = Field(None, pattern=r"^\d{8}$")
    cfop: Optional[str] = Field(None, pattern=r"^\d{4}$")
    icms_rate: Optional[Decimal] = Field(None, ge=0, le=100)


class AddressRequest(BaseModel):
    street: str
    number: str
    complement: Optional[str] = None
    neighborhood: str = ""
    city: str
    state: str = Field(..., min_length=2, max_length=2)
    zip_code: str

    @field_validator("zip_code")
    @classmethod
    def digits_only(cls, v: str) -> str:
        return "".join(c for c in v if c.isdigit())


class CreateCustomerRequest(BaseModel):
    name: str = Field(..., min_length=1)
    document: str = Field(..., min_length=11)
    email: Optional[str] = None
    phone: Optional[str] = None
    address: AddressRequest
    customer_type: Optional[CustomerType] = None


class InvoiceItemRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: Decimal = Field(..., gt=0)
    unit_price: Decimal = Field(..., ge=0)

    @property
    def total(self) -> Decimal:
        return self.quantity * self.unit_price


class CreateInvoiceRequest(BaseModel):
    customer_id: str = Field(..., min_length=1)
    items: list[InvoiceItemRequest] = Field(..., min_length=1)
    due_date: date
    payment_method: Optional[str] = None
    observations: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return sum((item.total for item in self.items), Decimal("0"))


class BankStatementLine(BaseModel):
    date: date
    amount: Decimal
    description: str = ""
    reference: Optional[str] = None


class ERPWebhookEvent(BaseModel):
    """Generic ERP webhook envelope as delivered by the host's route layer."""
    event: str
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: Optional[str] = None
    source: str


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ERPConfig:
    """Credentials for one ERP account. Immutable per adapter."""

    platform: ERPPlatform
    api_key: str
    api_url: str = ""
    api_secret: Optional[str] = None
    company_id: Optional[str] = None
    webhook_secret: Optional[str] = None
    default_cfop: str = "5102"

    def __post_init__(self):
        try:
            object.__setattr__(self, "platform", ERPPlatform(self.platform))
        except ValueError:
            raise ConfigurationError(f"Unsupported ERP platform: {self.platform}")
        if not self.api_key:
            raise ConfigurationError("ERP api_key is required")
        # Omie authenticates every call with app_key + app_secret
        if self.platform == ERPPlatform.OMIE and not self.api_secret:
            raise ConfigurationError("Omie requires api_secret (app_secret)")

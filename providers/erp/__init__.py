"""
ERP provider — Omie, ContaAzul and Bling behind one contract.

- ERPAdapter: products, customers, invoices, stock and bank reconciliation
- Vendor mappers: pure translation between canonical entities and wire payloads
"""
from providers.erp.adapter import ERPAdapter, ERPVendor, VENDORS
from providers.erp.models import (
    Address,
    AddressRequest,
    BankStatementLine,
    CreateCustomerRequest,
    CreateInvoiceRequest,
    CreateProductRequest,
    Customer,
    CustomerType,
    EntryStatus,
    EntryType,
    ERPConfig,
    ERPPlatform,
    ERPWebhookEvent,
    FinancialEntry,
    Invoice,
    InvoiceItem,
    InvoiceItemRequest,
    InvoiceStatus,
    MovementType,
    Product,
    ReconciliationResult,
    StockMovement,
    StockOperation,
)

__all__ = [
    "ERPAdapter",
    "ERPVendor",
    "VENDORS",
    # Entities
    "Address",
    "Customer",
    "FinancialEntry",
    "Invoice",
    "InvoiceItem",
    "Product",
    "ReconciliationResult",
    "StockMovement",
    # Requests
    "AddressRequest",
    "BankStatementLine",
    "CreateCustomerRequest",
    "CreateInvoiceRequest",
    "CreateProductRequest",
    "ERPWebhookEvent",
    "InvoiceItemRequest",
    # Enums / config
    "CustomerType",
    "EntryStatus",
    "EntryType",
    "ERPConfig",
    "ERPPlatform",
    "InvoiceStatus",
    "MovementType",
    "StockOperation",
]

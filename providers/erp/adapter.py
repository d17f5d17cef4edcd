"""
ERP Adapter — products, customers, invoices, stock and receivables over
Omie, ContaAzul and Bling.

The vendor is fixed by ``ERPConfig.platform`` at construction. Customer
documents are checked locally (CPF/CNPJ check digits) before any call
leaves the process; bank reconciliation matches a statement line against
pending receivables and settles the first match.
"""
from __future__ import annotations
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Protocol
import uuid

import structlog

from hub.errors import ValidationError
from hub.integrations.base import ProviderAdapter, parse_request
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus, SyncResult, WebhookResult
from hub.integrations.registry import Clock, utc_now
from hub.integrations.transport import AuthCredentials, HttpTransport, TransportFn, VendorCall
from hub.validation import clean_document, document_type, validate_document
from providers.erp.bling import BlingMapper
from providers.erp.contaazul import ContaAzulMapper
from providers.erp.models import (
    MOVEMENT_TYPES,
    BankStatementLine,
    CreateCustomerRequest,
    CreateInvoiceRequest,
    CreateProductRequest,
    Customer,
    CustomerType,
    EntryStatus,
    ERPConfig,
    ERPPlatform,
    ERPWebhookEvent,
    FinancialEntry,
    Invoice,
    InvoiceItem,
    Product,
    ReconciliationResult,
    StockMovement,
    StockOperation,
)
from providers.erp.omie import OmieMapper

logger = structlog.get_logger(__name__)

# Amounts closer than one centavo are the same payment.
AMOUNT_TOLERANCE = Decimal("0.01")

OPEN_STATUSES = (EntryStatus.PENDING, EntryStatus.OVERDUE)


class ERPVendor(Protocol):
    """What an ERP vendor mapper must provide. Mappers are pure: no I/O."""

    platform: ERPPlatform
    default_base_url: str

    def credentials(self, config: ERPConfig) -> AuthCredentials: ...
    def create_product(self, request: CreateProductRequest) -> VendorCall: ...
    def parse_product(self, raw: Any, request: Optional[CreateProductRequest] = None) -> Product: ...
    def find_product(self, sku: str) -> VendorCall: ...
    def parse_found_product(self, response: Any) -> Optional[Product]: ...
    def create_customer(self, request: CreateCustomerRequest) -> VendorCall: ...
    def parse_customer(self, raw: Any, request: Optional[CreateCustomerRequest] = None) -> Customer: ...
    def create_invoice(self, request: CreateInvoiceRequest, issued: date) -> VendorCall: ...
    def parse_invoice(self, raw: Any, request: Optional[CreateInvoiceRequest] = None) -> Invoice: ...
    def update_stock(
        self, product_id: str, quantity: Decimal, operation: StockOperation, at: datetime
    ) -> VendorCall: ...
    def stock_movement_id(self, response: Any) -> Optional[str]: ...
    def pending_entries(self) -> VendorCall: ...
    def parse_entries(self, response: Any) -> list[FinancialEntry]: ...
    def mark_paid(self, entry: FinancialEntry, paid_on: date, amount: Decimal) -> VendorCall: ...
    def webhook(self, event: ERPWebhookEvent) -> WebhookResult: ...
    def ping(self) -> VendorCall: ...
    def listings(self) -> dict[str, VendorCall]: ...


VENDORS: dict[ERPPlatform, type[ERPVendor]] = {
    ERPPlatform.OMIE: OmieMapper,
    ERPPlatform.CONTAAZUL: ContaAzulMapper,
    ERPPlatform.BLING: BlingMapper,
}


def _with_request_lines(invoice: Invoice, request: CreateInvoiceRequest, default_cfop: str) -> Invoice:
    """Fill in lines and totals the vendor did not echo back."""
    update: dict[str, Any] = {}
    if not invoice.items:
        update["items"] = [
            InvoiceItem(
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                total_price=item.total,
                cfop=default_cfop,
            )
            for item in request.items
        ]
    total = invoice.total_amount or request.total
    update["total_amount"] = total
    if not invoice.net_amount:
        update["net_amount"] = total - invoice.discount_amount
    if invoice.due_date is None:
        update["due_date"] = request.due_date
    if invoice.payment_method is None:
        update["payment_method"] = request.payment_method
    return invoice.model_copy(update=update)


class ERPAdapter(ProviderAdapter):
    """Catalog, customers, sales, stock and receivables for one ERP account."""

    integration_type = IntegrationType.ERP

    def __init__(
        self,
        config: ERPConfig,
        transport: TransportFn | None = None,
        ledger: OperationLedger | None = None,
        integration_id: str | None = None,
        clock: Clock = utc_now,
    ):
        self.config = config
        self._vendor: ERPVendor = VENDORS[config.platform]()
        if transport is None:
            transport = HttpTransport(
                config.platform.value,
                config.api_url or self._vendor.default_base_url,
                self._vendor.credentials(config),
            )
        super().__init__(config.platform.value, transport, ledger, integration_id, clock)

    # --- Products ---

    async def create_product(self, request: CreateProductRequest | dict[str, Any]) -> Product:
        request = parse_request(CreateProductRequest, request)
        if request.cfop is None:
            request = request.model_copy(update={"cfop": self.config.default_cfop})
        return await self._call(
            "create_product",
            self._vendor.create_product(request),
            lambda raw: self._vendor.parse_product(raw, request),
            record_data={"sku": request.sku},
        )

    async def find_product_by_sku(self, sku: str) -> Optional[Product]:
        """Best-effort search. Vendor failure looks the same as not found."""
        if not sku:
            return None
        return await self._lookup(
            "find_product",
            self._vendor.find_product(sku.strip()),
            self._vendor.parse_found_product,
            record_data={"sku": sku},
        )

    # --- Customers ---

    async def create_customer(self, request: CreateCustomerRequest | dict[str, Any]) -> Customer:
        request = parse_request(CreateCustomerRequest, request)
        if not validate_document(request.document):
            raise ValidationError("Invalid CPF/CNPJ document")
        document = clean_document(request.document)
        customer_type = request.customer_type or (
            CustomerType.INDIVIDUAL if document_type(document) == "CPF" else CustomerType.COMPANY
        )
        request = request.model_copy(update={"document": document, "customer_type": customer_type})
        return await self._call(
            "create_customer",
            self._vendor.create_customer(request),
            lambda raw: self._vendor.parse_customer(raw, request),
            record_data={"document_type": document_type(document)},
        )

    # --- Invoices ---

    async def create_invoice(self, request: CreateInvoiceRequest | dict[str, Any]) -> Invoice:
        request = parse_request(CreateInvoiceRequest, request)
        invoice = await self._call(
            "create_invoice",
            self._vendor.create_invoice(request, self._clock().date()),
            lambda raw: self._vendor.parse_invoice(raw, request),
            record_data={"customer_id": request.customer_id, "items": len(request.items)},
        )
        return _with_request_lines(invoice, request, self.config.default_cfop)

    # --- Stock ---

    async def update_stock(
        self,
        product_id: str,
        quantity: Decimal | int | float | str,
        operation: StockOperation | str = StockOperation.SET,
    ) -> StockMovement:
        if not product_id:
            raise ValidationError("product_id is required")
        try:
            operation = StockOperation(operation)
        except ValueError:
            raise ValidationError(f"Unknown stock operation: {operation}")
        quantity = Decimal(str(quantity))
        if quantity < 0:
            raise ValidationError("quantity must be >= 0")

        now = self._clock()
        movement_id = await self._call(
            "update_stock",
            self._vendor.update_stock(str(product_id), quantity, operation, now),
            self._vendor.stock_movement_id,
            record_data={"product_id": str(product_id), "operation": operation.value},
        )
        return StockMovement(
            id=movement_id or f"{self.platform}_{uuid.uuid4().hex[:12]}",
            product_id=str(product_id),
            type=MOVEMENT_TYPES[operation],
            quantity=quantity,
            reason="Stock update via integration hub",
            date=now,
        )

    # --- Receivables ---

    async def process_bank_reconciliation(
        self,
        statement: BankStatementLine | dict[str, Any],
    ) -> ReconciliationResult:
        """
        Match one bank statement line against pending receivables.

        An entry matches when its amount is within one centavo of the
        statement amount and it fell due on or before the statement date.
        The first match is settled in the ERP; no match is not an error.
        """
        statement = parse_request(BankStatementLine, statement)
        entries = await self._call(
            "list_pending_entries",
            self._vendor.pending_entries(),
            self._vendor.parse_entries,
        )
        match = next(
            (
                entry for entry in entries
                if entry.status in OPEN_STATUSES
                and abs(entry.amount - statement.amount) < AMOUNT_TOLERANCE
                and (entry.due_date is None or entry.due_date <= statement.date)
            ),
            None,
        )
        if match is None:
            logger.info("erp.reconciliation_unmatched", platform=self.platform, candidates=len(entries))
            self._record(
                "process_bank_reconciliation",
                OperationStatus.SUCCESS,
                data={"matched": False, "reference": statement.reference},
            )
            return ReconciliationResult(matched=False)

        await self._call(
            "mark_entry_paid",
            self._vendor.mark_paid(match, statement.date, statement.amount),
            record_data={"entry_id": match.id},
        )
        logger.info("erp.reconciliation_matched", platform=self.platform, entry_id=match.id)
        self._record(
            "process_bank_reconciliation",
            OperationStatus.SUCCESS,
            data={"matched": True, "entry_id": match.id, "reference": statement.reference},
        )
        return ReconciliationResult(matched=True, entry_id=match.id, invoice_id=match.invoice_id)

    # --- Webhooks ---

    async def process_webhook(self, event: ERPWebhookEvent | dict[str, Any]) -> WebhookResult:
        """Reduce a vendor webhook to a WebhookResult. Safe to repeat."""
        event = parse_request(ERPWebhookEvent, event)
        if event.source != self.platform:
            raise ValidationError(
                f"Webhook source {event.source!r} does not match platform {self.platform!r}"
            )
        result = self._vendor.webhook(event)
        logger.info(
            "erp.webhook_processed",
            platform=self.platform,
            webhook_event=event.event,
            entity_type=result.entity_type,
        )
        self._record(
            "process_webhook",
            OperationStatus.SUCCESS,
            data={"event": event.event, "entity_type": result.entity_type, "entity_id": result.entity_id},
        )
        return result

    # --- Connectivity / sync ---

    async def test_connection(self) -> bool:
        return await self._ping(self._vendor.ping())

    async def sync(self) -> SyncResult:
        """Pull products, customers, invoices and receivables; failed pulls count as errors."""
        return await self._sync_pass(self._vendor.listings())

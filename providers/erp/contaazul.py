"""ContaAzul ERP wire format.

Plain REST with OAuth bearer tokens. Entities come back whole, so
responses normalize directly without the request that produced them.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from hub.integrations.models import WebhookResult
from hub.integrations.normalizer import FieldMapping, SchemaMapping, normalizer
from hub.integrations.transport import AuthCredentials, AuthType, VendorCall, compact
from hub.validation import clean_document, document_type
from providers.erp.models import (
    Address,
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
    Product,
    StockOperation,
    invoice_status_from,
)

PLATFORM = ERPPlatform.CONTAAZUL.value

OPERATION_TYPES = {
    StockOperation.ADD: "IN",
    StockOperation.SUBTRACT: "OUT",
    StockOperation.SET: "BALANCE",
}

PERSON_TYPES = {
    CustomerType.INDIVIDUAL: "NATURAL",
    CustomerType.COMPANY: "LEGAL",
}

# ContaAzul sale statuses → canonical invoice statuses
SALE_STATUSES = {
    "PENDING": "draft",
    "COMMITTED": "issued",
    "ISSUED": "issued",
    "PAID": "paid",
    "CANCELLED": "cancelled",
}

ENTRY_STATUSES = {
    "ACQUITTED": EntryStatus.PAID,
    "PAID": EntryStatus.PAID,
    "OVERDUE": EntryStatus.OVERDUE,
    "CANCELLED": EntryStatus.CANCELLED,
}

EVENT_ENTITIES = {
    "sale": "invoice",
    "product": "product",
    "customer": "customer",
    "receivable": "financial_entry",
}

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="product",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("name", "name", "str"),
        FieldMapping("code", "sku", "str"),
        FieldMapping("value", "price", "decimal"),
        FieldMapping("cost", "cost", "decimal"),
        FieldMapping("category.name", "category", "str"),
        FieldMapping("description", "description", "optional_str"),
        FieldMapping("available_stock", "stock_quantity", "decimal"),
        FieldMapping("unit", "unit", "uppercase", default="UN"),
        FieldMapping("ncm_code", "ncm", "optional_str"),
        FieldMapping("cfop", "cfop", "optional_str"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="customer",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("name", "name", "str"),
        FieldMapping("email", "email", "optional_str"),
        FieldMapping("business_phone", "phone", "optional_str"),
        FieldMapping("state_registration_number", "state_registration", "optional_str"),
        FieldMapping("city_registration_number", "municipal_registration", "optional_str"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="invoice",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("number", "number", "str"),
        FieldMapping("customer.id", "customer_id", "optional_str"),
        FieldMapping("emission", "issue_date", "date"),
        FieldMapping("due_date", "due_date", "date"),
        FieldMapping("total", "total_amount", "decimal"),
        FieldMapping("discount.value", "discount_amount", "decimal"),
        FieldMapping("notes", "observations", "optional_str"),
        FieldMapping("created_at", "created_at", "datetime"),
        FieldMapping("updated_at", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="financial_entry",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("customer_id", "customer_id", "optional_str"),
        FieldMapping("sale_id", "invoice_id", "optional_str"),
        FieldMapping("description", "description", "str"),
        FieldMapping("value", "amount", "decimal"),
        FieldMapping("due_date", "due_date", "date"),
        FieldMapping("category.name", "category", "str"),
    ],
))


def _first(response: Any) -> Optional[dict[str, Any]]:
    if isinstance(response, list):
        return response[0] if response else None
    if isinstance(response, dict):
        items = response.get("items") or response.get("data")
        if isinstance(items, list):
            return items[0] if items else None
        return response if response.get("id") else None
    return None


class ContaAzulMapper:
    platform = ERPPlatform.CONTAAZUL
    default_base_url = "https://api.contaazul.com/v1"

    def credentials(self, config: ERPConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=config.api_key)

    # --- Products ---

    def create_product(self, request: CreateProductRequest) -> VendorCall:
        return VendorCall("POST", "/products", body=compact({
            "name": request.name,
            "code": request.sku,
            "value": float(request.price),
            "cost": float(request.cost) if request.cost is not None else None,
            "description": request.description,
            "available_stock": float(request.stock_quantity),
            "unit": request.unit,
            "ncm_code": request.ncm,
            "cfop": request.cfop,
        }))

    def parse_product(self, raw: dict[str, Any], request: Optional[CreateProductRequest] = None) -> Product:
        overrides: dict[str, Any] = {}
        if request and not (raw.get("category") or {}).get("name"):
            overrides["category"] = request.category
        return normalizer.normalize_as(
            Product, PLATFORM, "product", raw,
            active=str(raw.get("status") or "ACTIVE").upper() != "INACTIVE",
            **overrides,
        )

    def find_product(self, sku: str) -> VendorCall:
        return VendorCall("GET", "/products", params={"code": sku})

    def parse_found_product(self, response: Any) -> Optional[Product]:
        row = _first(response)
        return self.parse_product(row) if row else None

    # --- Customers ---

    def create_customer(self, request: CreateCustomerRequest) -> VendorCall:
        address = request.address
        return VendorCall("POST", "/customers", body=compact({
            "name": request.name,
            "email": request.email,
            "business_phone": request.phone,
            "document": clean_document(request.document),
            "person_type": PERSON_TYPES[request.customer_type or CustomerType.INDIVIDUAL],
            "address": compact({
                "street": address.street,
                "number": address.number,
                "complement": address.complement,
                "neighborhood": address.neighborhood,
                "city": {"name": address.city},
                "state": {"abbreviation": address.state},
                "zip_code": address.zip_code,
            }),
        }))

    def parse_customer(self, raw: dict[str, Any], request: Optional[CreateCustomerRequest] = None) -> Customer:
        document = clean_document(str(raw.get("document") or (request.document if request else "")))
        address = raw.get("address") or {}
        person_type = raw.get("person_type")
        if person_type:
            customer_type = CustomerType.COMPANY if person_type == "LEGAL" else CustomerType.INDIVIDUAL
        else:
            customer_type = CustomerType.INDIVIDUAL if document_type(document) == "CPF" else CustomerType.COMPANY
        return normalizer.normalize_as(
            Customer, PLATFORM, "customer", raw,
            document=document,
            document_type=document_type(document),
            customer_type=customer_type,
            address=Address(
                street=address.get("street") or "",
                number=str(address.get("number") or ""),
                complement=address.get("complement"),
                neighborhood=address.get("neighborhood") or "",
                city=(address.get("city") or {}).get("name") or "",
                state=(address.get("state") or {}).get("abbreviation") or "",
                zip_code=address.get("zip_code") or "",
            ),
        )

    # --- Sales ---

    def create_invoice(self, request: CreateInvoiceRequest, issued: date) -> VendorCall:
        return VendorCall("POST", "/sales", body=compact({
            "customer_id": request.customer_id,
            "emission": issued.isoformat(),
            "status": "COMMITTED",
            "notes": request.observations,
            "products": [
                {
                    "product_id": item.product_id,
                    "quantity": float(item.quantity),
                    "value": float(item.unit_price),
                }
                for item in request.items
            ],
            "payment": {
                "type": "CASH",
                "method": request.payment_method or "BANKING_BILLET",
                "installments": [
                    {"number": 1, "value": float(request.total), "due_date": request.due_date.isoformat()},
                ],
            },
        }))

    def parse_invoice(self, raw: dict[str, Any], request: Optional[CreateInvoiceRequest] = None) -> Invoice:
        due = raw.get("due_date")
        if not due:
            installments = (raw.get("payment") or {}).get("installments") or []
            due = installments[0].get("due_date") if installments else None
        return normalizer.normalize_as(
            Invoice, PLATFORM, "invoice", {**raw, "due_date": due},
            status=invoice_status_from(SALE_STATUSES.get(str(raw.get("status") or "").upper())),
            customer_id=(raw.get("customer") or {}).get("id") or raw.get("customer_id"),
        )

    # --- Stock ---

    def update_stock(
        self,
        product_id: str,
        quantity: Decimal,
        operation: StockOperation,
        at: datetime,
    ) -> VendorCall:
        signed = -quantity if operation == StockOperation.SUBTRACT else quantity
        return VendorCall("POST", "/stock_entries", body={
            "product_id": product_id,
            "quantity": float(signed),
            "operation_type": OPERATION_TYPES[operation],
            "date": at.isoformat(),
            "description": "Stock update via integration hub",
        })

    def stock_movement_id(self, response: Any) -> Optional[str]:
        if isinstance(response, dict) and response.get("id"):
            return str(response["id"])
        return None

    # --- Receivables ---

    def pending_entries(self) -> VendorCall:
        return VendorCall("GET", "/receivables", params={"status": "PENDING", "size": 100})

    def parse_entries(self, response: Any) -> list[FinancialEntry]:
        rows = response if isinstance(response, list) else (response or {}).get("items") or []
        return [
            normalizer.normalize_as(
                FinancialEntry, PLATFORM, "financial_entry", row,
                status=ENTRY_STATUSES.get(str(row.get("status") or "").upper(), EntryStatus.PENDING),
            )
            for row in rows
        ]

    def mark_paid(self, entry: FinancialEntry, paid_on: date, amount: Decimal) -> VendorCall:
        return VendorCall("POST", f"/receivables/{entry.id}/acquittances", body={
            "payment_date": paid_on.isoformat(),
            "value": float(amount),
        })

    # --- Webhooks ---

    def webhook(self, event: ERPWebhookEvent) -> WebhookResult:
        resource = event.event.lower().split(".", 1)[0]
        entity_id = event.data.get("id")
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type=EVENT_ENTITIES.get(resource, "invoice"),
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/products", params={"size": 1})

    def listings(self) -> dict[str, VendorCall]:
        page = {"size": 100}
        return {
            "products": VendorCall("GET", "/products", params=page),
            "customers": VendorCall("GET", "/customers", params=page),
            "invoices": VendorCall("GET", "/sales", params=page),
            "financial_entries": VendorCall("GET", "/receivables", params=page),
        }

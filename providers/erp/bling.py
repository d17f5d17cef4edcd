"""Bling ERP wire format.

Writes wrap the entity under its Portuguese name (``produto``, ``contato``,
``pedido``). Reads come back either under ``data`` or under the older
``retorno.<plural>[0].<singular>`` envelope; both are unwrapped here.
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
)

PLATFORM = ERPPlatform.BLING.value

STOCK_OPERATIONS = {
    StockOperation.ADD: "E",
    StockOperation.SUBTRACT: "S",
    StockOperation.SET: "B",
}

# contas/receber "situacao" codes
ENTRY_STATUSES = {
    2: EntryStatus.PAID,
    3: EntryStatus.PENDING,  # partially paid
    4: EntryStatus.OVERDUE,
    5: EntryStatus.CANCELLED,
}

RESOURCE_ENTITIES = {
    "order": "order",
    "product": "product",
    "stock": "stock",
    "contact": "customer",
    "invoice": "invoice",
}

ENVELOPES = {
    "produto": "produtos",
    "contato": "contatos",
    "pedido": "pedidos",
}

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="product",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("descricao", "name", "str"),
        FieldMapping("codigo", "sku", "str"),
        FieldMapping("preco", "price", "decimal"),
        FieldMapping("precoCusto", "cost", "decimal"),
        FieldMapping("categoria.descricao", "category", "str"),
        FieldMapping("descricaoCurta", "description", "optional_str"),
        FieldMapping("estoque.atual", "stock_quantity", "decimal"),
        FieldMapping("unidade", "unit", "uppercase", default="UN"),
        FieldMapping("class_fiscal", "ncm", "optional_str"),
        FieldMapping("cfop", "cfop", "optional_str"),
        FieldMapping("dataInclusao", "created_at", "datetime"),
        FieldMapping("dataAlteracao", "updated_at", "datetime"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="customer",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("nome", "name", "str"),
        FieldMapping("email", "email", "optional_str"),
        FieldMapping("fone", "phone", "optional_str"),
        FieldMapping("ie", "state_registration", "optional_str"),
        FieldMapping("im", "municipal_registration", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="invoice",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("numero", "number", "str"),
        FieldMapping("cliente.id", "customer_id", "optional_str"),
        FieldMapping("data", "issue_date", "date"),
        FieldMapping("dataPrevista", "due_date", "date"),
        FieldMapping("total", "total_amount", "decimal"),
        FieldMapping("desconto", "discount_amount", "decimal"),
        FieldMapping("observacoes", "observations", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="financial_entry",
    mappings=[
        FieldMapping("id", "id", "str"),
        FieldMapping("contato.id", "customer_id", "optional_str"),
        FieldMapping("origem.id", "invoice_id", "optional_str"),
        FieldMapping("historico", "description", "str"),
        FieldMapping("valor", "amount", "decimal"),
        FieldMapping("vencimento", "due_date", "date"),
        FieldMapping("categoria.id", "category", "str"),
    ],
))


def _unwrap(response: Any, key: str) -> dict[str, Any]:
    """Pull the entity out of ``data`` or ``retorno.<plural>[0].<key>``."""
    if not isinstance(response, dict):
        return {}
    if isinstance(response.get("data"), dict):
        return response["data"]
    if isinstance(response.get("data"), list):
        return response["data"][0] if response["data"] else {}
    retorno = response.get("retorno")
    if isinstance(retorno, dict):
        rows = retorno.get(ENVELOPES[key]) or []
        if rows:
            row = rows[0]
            return row.get(key, row) if isinstance(row, dict) else {}
        return {}
    return response.get(key, response)


def _situacao(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 1


class BlingMapper:
    platform = ERPPlatform.BLING
    default_base_url = "https://www.bling.com.br/Api/v3"

    def credentials(self, config: ERPConfig) -> AuthCredentials:
        return AuthCredentials(AuthType.BEARER, token=config.api_key)

    # --- Products ---

    def _product_body(self, request: CreateProductRequest) -> dict[str, Any]:
        return compact({
            "codigo": request.sku,
            "descricao": request.name,
            "tipo": "P",
            "situacao": "Ativo",
            "unidade": request.unit,
            "preco": float(request.price),
            "precoCusto": float(request.cost) if request.cost is not None else None,
            "descricaoCurta": request.description,
            "class_fiscal": request.ncm,
            "cfop": request.cfop,
            "categoria": {"descricao": request.category} if request.category else None,
            "estoque": {"atual": float(request.stock_quantity)},
        })

    def create_product(self, request: CreateProductRequest) -> VendorCall:
        return VendorCall("POST", "/produto", body={"produto": self._product_body(request)})

    def parse_product(self, raw: Any, request: Optional[CreateProductRequest] = None) -> Product:
        data = _unwrap(raw, "produto")
        if request:
            data = {**self._product_body(request), **data}
        return normalizer.normalize_as(
            Product, PLATFORM, "product", data,
            active=str(data.get("situacao") or "Ativo").lower() not in ("inativo", "i"),
        )

    def find_product(self, sku: str) -> VendorCall:
        return VendorCall("GET", f"/produto/{sku}")

    def parse_found_product(self, response: Any) -> Optional[Product]:
        data = _unwrap(response, "produto")
        return self.parse_product(data) if data.get("id") or data.get("codigo") else None

    # --- Customers ---

    def _contact_body(self, request: CreateCustomerRequest) -> dict[str, Any]:
        address = request.address
        return compact({
            "nome": request.name,
            "tipoPessoa": "F" if request.customer_type == CustomerType.INDIVIDUAL else "J",
            "cpf_cnpj": clean_document(request.document),
            "email": request.email,
            "fone": request.phone,
            "endereco": compact({
                "endereco": address.street,
                "numero": address.number,
                "complemento": address.complement,
                "bairro": address.neighborhood,
                "cidade": address.city,
                "uf": address.state,
                "cep": address.zip_code,
            }),
        })

    def create_customer(self, request: CreateCustomerRequest) -> VendorCall:
        return VendorCall("POST", "/contato", body={"contato": self._contact_body(request)})

    def parse_customer(self, raw: Any, request: Optional[CreateCustomerRequest] = None) -> Customer:
        data = _unwrap(raw, "contato")
        if request:
            data = {**self._contact_body(request), **data}
        document = clean_document(str(data.get("cpf_cnpj") or data.get("numeroDocumento") or ""))
        address = data.get("endereco") or {}
        if isinstance(address.get("geral"), dict):
            address = address["geral"]
        return normalizer.normalize_as(
            Customer, PLATFORM, "customer", data,
            document=document,
            document_type=document_type(document),
            customer_type=CustomerType.INDIVIDUAL if data.get("tipoPessoa") == "F" else CustomerType.COMPANY,
            address=Address(
                street=address.get("endereco") or "",
                number=str(address.get("numero") or ""),
                complement=address.get("complemento"),
                neighborhood=address.get("bairro") or "",
                city=address.get("cidade") or address.get("municipio") or "",
                state=address.get("uf") or "",
                zip_code=address.get("cep") or "",
            ),
        )

    # --- Sales orders ---

    def _order_body(self, request: CreateInvoiceRequest, issued: date) -> dict[str, Any]:
        return compact({
            "cliente": {"id": request.customer_id},
            "data": issued.isoformat(),
            "dataPrevista": request.due_date.isoformat(),
            "observacoes": request.observations,
            "itens": [
                {
                    "codigo": item.product_id,
                    "quantidade": float(item.quantity),
                    "valor": float(item.unit_price),
                }
                for item in request.items
            ],
            "total": float(request.total),
        })

    def create_invoice(self, request: CreateInvoiceRequest, issued: date) -> VendorCall:
        return VendorCall("POST", "/pedido", body={"pedido": self._order_body(request, issued)})

    def parse_invoice(self, raw: Any, request: Optional[CreateInvoiceRequest] = None) -> Invoice:
        data = _unwrap(raw, "pedido")
        if request:
            data = {
                "cliente": {"id": request.customer_id},
                "dataPrevista": request.due_date.isoformat(),
                "observacoes": request.observations,
                **data,
            }
        if not data.get("id") and data.get("numero"):
            data = {**data, "id": data["numero"]}
        return normalizer.normalize_as(Invoice, PLATFORM, "invoice", data)

    # --- Stock ---

    def update_stock(
        self,
        product_id: str,
        quantity: Decimal,
        operation: StockOperation,
        at: datetime,
    ) -> VendorCall:
        return VendorCall("POST", "/estoques", body={
            "produto": {"id": product_id},
            "operacao": STOCK_OPERATIONS[operation],
            "quantidade": float(quantity),
            "data": at.strftime("%Y-%m-%d %H:%M:%S"),
            "observacoes": "Stock update via integration hub",
        })

    def stock_movement_id(self, response: Any) -> Optional[str]:
        data = (response or {}).get("data") if isinstance(response, dict) else None
        if isinstance(data, dict) and data.get("id"):
            return str(data["id"])
        return None

    # --- Receivables ---

    def pending_entries(self) -> VendorCall:
        return VendorCall("GET", "/contas/receber", params={"situacoes[]": 1, "limite": 100})

    def parse_entries(self, response: Any) -> list[FinancialEntry]:
        if isinstance(response, dict):
            rows = response.get("data") or []
        else:
            rows = response or []
        return [
            normalizer.normalize_as(
                FinancialEntry, PLATFORM, "financial_entry", row,
                status=ENTRY_STATUSES.get(_situacao(row.get("situacao")), EntryStatus.PENDING),
            )
            for row in rows
        ]

    def mark_paid(self, entry: FinancialEntry, paid_on: date, amount: Decimal) -> VendorCall:
        return VendorCall("POST", f"/contas/receber/{entry.id}/baixar", body={
            "data": paid_on.isoformat(),
            "valor": float(amount),
        })

    # --- Webhooks ---

    def webhook(self, event: ERPWebhookEvent) -> WebhookResult:
        resource = event.event.lower().split(".", 1)[0]
        payload = event.data.get("data") if isinstance(event.data.get("data"), dict) else event.data
        entity_id = payload.get("id")
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type=RESOURCE_ENTITIES.get(resource, "order"),
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return VendorCall("GET", "/produtos", params={"limite": 1})

    def listings(self) -> dict[str, VendorCall]:
        page = {"limite": 100}
        return {
            "products": VendorCall("GET", "/produtos", params=page),
            "customers": VendorCall("GET", "/contatos", params=page),
            "invoices": VendorCall("GET", "/pedidos/vendas", params=page),
            "financial_entries": VendorCall("GET", "/contas/receber", params=page),
        }

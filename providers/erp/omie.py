"""Omie ERP wire format.

Omie is JSON-RPC over HTTP: every request is a POST of
``{"call": <method>, "app_key", "app_secret", "param": [ {...} ]}``.
Write calls answer with ids and a status only, so created entities are
rebuilt from the parameters that were sent plus the ids returned.
Dates travel as ``dd/mm/yyyy``.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional
import uuid

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

PLATFORM = ERPPlatform.OMIE.value

STOCK_TYPES = {
    StockOperation.ADD: "ENT",
    StockOperation.SUBTRACT: "SAI",
    StockOperation.SET: "SLD",
}

ENTRY_STATUSES = {
    "RECEBIDO": EntryStatus.PAID,
    "LIQUIDADO": EntryStatus.PAID,
    "ATRASADO": EntryStatus.OVERDUE,
    "CANCELADO": EntryStatus.CANCELLED,
}

# Webhook topic prefix → canonical entity type
TOPIC_ENTITIES = {
    "produto": "product",
    "clientefornecedor": "customer",
    "cliente": "customer",
    "vendaproduto": "order",
    "pedido": "order",
    "financas": "financial_entry",
    "nfe": "invoice",
}

WEBHOOK_ID_KEYS = (
    "codigo_produto", "codigo_cliente_omie", "idPedido", "codigo_pedido",
    "codigo_lancamento_omie", "nIdNF", "id",
)

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="product",
    mappings=[
        FieldMapping("codigo_produto", "id", "str"),
        FieldMapping("descricao", "name", "str"),
        FieldMapping("valor_unitario", "price", "decimal"),
        FieldMapping("descricao_familia", "category", "str"),
        FieldMapping("obs_internas", "description", "optional_str"),
        FieldMapping("estoque_atual", "stock_quantity", "decimal"),
        FieldMapping("unidade", "unit", "uppercase", default="UN"),
        FieldMapping("ncm", "ncm", "optional_str"),
        FieldMapping("cfop", "cfop", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="customer",
    mappings=[
        FieldMapping("codigo_cliente_omie", "id", "str"),
        FieldMapping("email", "email", "optional_str"),
        FieldMapping("inscricao_estadual", "state_registration", "optional_str"),
        FieldMapping("inscricao_municipal", "municipal_registration", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="invoice",
    mappings=[
        FieldMapping("codigo_pedido", "id", "str"),
        FieldMapping("numero_pedido", "number", "str"),
        FieldMapping("cabecalho.codigo_cliente", "customer_id", "optional_str"),
        FieldMapping("cabecalho.data_previsao", "due_date", "date"),
        FieldMapping("total_pedido.valor_total_pedido", "total_amount", "decimal"),
        FieldMapping("observacoes.obs_venda", "observations", "optional_str"),
    ],
))

normalizer.register_mapping(SchemaMapping(
    platform=PLATFORM,
    entity_type="financial_entry",
    mappings=[
        FieldMapping("codigo_lancamento_omie", "id", "str"),
        FieldMapping("codigo_cliente_fornecedor", "customer_id", "optional_str"),
        FieldMapping("nCodPedido", "invoice_id", "optional_str"),
        FieldMapping("observacao", "description", "str"),
        FieldMapping("valor_documento", "amount", "decimal"),
        FieldMapping("data_vencimento", "due_date", "date"),
        FieldMapping("codigo_categoria", "category", "str"),
    ],
))


def br_date(value: date | datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _rpc(path: str, method: str, param: dict[str, Any]) -> VendorCall:
    return VendorCall("POST", path, body={"call": method, "param": [param]})


class OmieMapper:
    platform = ERPPlatform.OMIE
    default_base_url = "https://app.omie.com.br/api/v1"

    def credentials(self, config: ERPConfig) -> AuthCredentials:
        return AuthCredentials(
            AuthType.BODY,
            token=config.api_key,
            secret=config.api_secret,
            key_name="app_key",
            secret_name="app_secret",
        )

    # --- Products ---

    def _product_param(self, request: CreateProductRequest) -> dict[str, Any]:
        return compact({
            "codigo_produto_integracao": request.sku,
            "codigo": request.sku,
            "descricao": request.name,
            "unidade": request.unit,
            "ncm": request.ncm or "00000000",
            "valor_unitario": float(request.price),
            "descricao_familia": request.category or None,
            "obs_internas": request.description,
            "estoque_atual": float(request.stock_quantity),
            "cfop": request.cfop,
        })

    def create_product(self, request: CreateProductRequest) -> VendorCall:
        return _rpc("/geral/produtos/", "IncluirProduto", self._product_param(request))

    def parse_product(self, raw: dict[str, Any], request: Optional[CreateProductRequest] = None) -> Product:
        data = {**self._product_param(request), **raw} if request else raw
        return normalizer.normalize_as(
            Product, PLATFORM, "product", data,
            sku=str(data.get("codigo") or data.get("codigo_produto_integracao") or ""),
            active=data.get("inativo", "N") != "S",
        )

    def find_product(self, sku: str) -> VendorCall:
        return _rpc("/geral/produtos/", "ConsultarProduto", {"codigo": sku})

    def parse_found_product(self, response: Any) -> Optional[Product]:
        if not isinstance(response, dict) or not response.get("codigo_produto"):
            return None
        return self.parse_product(response)

    # --- Customers ---

    def _customer_param(self, request: CreateCustomerRequest) -> dict[str, Any]:
        phone = "".join(c for c in request.phone or "" if c.isdigit())
        return compact({
            "codigo_cliente_integracao": clean_document(request.document),
            "razao_social": request.name,
            "nome_fantasia": request.name,
            "cnpj_cpf": clean_document(request.document),
            "pessoa_fisica": "S" if request.customer_type == CustomerType.INDIVIDUAL else "N",
            "email": request.email,
            "telefone1_ddd": phone[:2] or None,
            "telefone1_numero": phone[2:] or None,
            "endereco": request.address.street,
            "endereco_numero": request.address.number,
            "complemento": request.address.complement,
            "bairro": request.address.neighborhood,
            "cidade": request.address.city,
            "estado": request.address.state,
            "cep": request.address.zip_code,
        })

    def create_customer(self, request: CreateCustomerRequest) -> VendorCall:
        return _rpc("/geral/clientes/", "IncluirCliente", self._customer_param(request))

    def parse_customer(self, raw: dict[str, Any], request: Optional[CreateCustomerRequest] = None) -> Customer:
        data = {**self._customer_param(request), **raw} if request else raw
        document = clean_document(str(data.get("cnpj_cpf") or ""))
        phone = f"{data.get('telefone1_ddd') or ''}{data.get('telefone1_numero') or ''}"
        return normalizer.normalize_as(
            Customer, PLATFORM, "customer", data,
            name=data.get("nome_fantasia") or data.get("razao_social") or "",
            phone=phone or None,
            document=document,
            document_type=document_type(document),
            customer_type=(
                CustomerType.INDIVIDUAL if document_type(document) == "CPF" else CustomerType.COMPANY
            ),
            address=Address(
                street=data.get("endereco") or "",
                number=str(data.get("endereco_numero") or ""),
                complement=data.get("complemento"),
                neighborhood=data.get("bairro") or "",
                city=data.get("cidade") or "",
                state=data.get("estado") or "",
                zip_code=data.get("cep") or "",
            ),
        )

    # --- Sales orders ---

    def _order_param(self, request: CreateInvoiceRequest, issued: date) -> dict[str, Any]:
        return {
            "cabecalho": compact({
                "codigo_pedido_integracao": f"hub-{uuid.uuid4().hex[:16]}",
                "codigo_cliente": request.customer_id,
                "data_previsao": br_date(request.due_date),
                "etapa": "10",
                "codigo_parcela": "000",
            }),
            "det": [
                {
                    "ide": {"codigo_item_integracao": str(index)},
                    "produto": {
                        "codigo_produto": item.product_id,
                        "quantidade": float(item.quantity),
                        "valor_unitario": float(item.unit_price),
                    },
                }
                for index, item in enumerate(request.items, start=1)
            ],
            "informacoes_adicionais": compact({
                "codigo_categoria": "1.01.01",
                "consumidor_final": "S",
                "data_emissao": br_date(issued),
            }),
            "observacoes": compact({"obs_venda": request.observations}),
        }

    def create_invoice(self, request: CreateInvoiceRequest, issued: date) -> VendorCall:
        return _rpc("/produtos/pedido/", "IncluirPedido", self._order_param(request, issued))

    def parse_invoice(self, raw: dict[str, Any], request: Optional[CreateInvoiceRequest] = None) -> Invoice:
        data = raw
        if request:
            data = {
                "cabecalho": {
                    "codigo_cliente": request.customer_id,
                    "data_previsao": br_date(request.due_date),
                },
                "observacoes": {"obs_venda": request.observations},
                **raw,
            }
        return normalizer.normalize_as(Invoice, PLATFORM, "invoice", data)

    # --- Stock ---

    def update_stock(
        self,
        product_id: str,
        quantity: Decimal,
        operation: StockOperation,
        at: datetime,
    ) -> VendorCall:
        return _rpc("/estoque/ajuste/", "IncluirAjusteEstoque", {
            "codigo_produto": product_id,
            "data": br_date(at),
            "quan": float(quantity),
            "tipo": STOCK_TYPES[operation],
            "origem": "AJU",
            "motivo": "INV" if operation == StockOperation.SET else "OUT",
            "obs": "Stock update via integration hub",
        })

    def stock_movement_id(self, response: Any) -> Optional[str]:
        if isinstance(response, dict) and response.get("id_ajuste"):
            return str(response["id_ajuste"])
        return None

    # --- Receivables ---

    def pending_entries(self) -> VendorCall:
        return _rpc("/financas/contareceber/", "ListarContasReceber", {
            "pagina": 1,
            "registros_por_pagina": 100,
            "filtrar_apenas_titulos_em_aberto": "S",
        })

    def parse_entries(self, response: Any) -> list[FinancialEntry]:
        rows = (response or {}).get("conta_receber_cadastro") or []
        return [
            normalizer.normalize_as(
                FinancialEntry, PLATFORM, "financial_entry", row,
                status=ENTRY_STATUSES.get(str(row.get("status_titulo") or "").upper(), EntryStatus.PENDING),
            )
            for row in rows
        ]

    def mark_paid(self, entry: FinancialEntry, paid_on: date, amount: Decimal) -> VendorCall:
        return _rpc("/financas/contareceber/", "LancarRecebimento", {
            "codigo_lancamento": entry.id,
            "codigo_baixa_integracao": f"hub-{entry.id}",
            "valor": float(amount),
            "data": br_date(paid_on),
            "observacao": "Bank reconciliation",
        })

    # --- Webhooks ---

    def webhook(self, event: ERPWebhookEvent) -> WebhookResult:
        topic = event.event.lower()
        prefix = topic.split(".", 1)[0]
        entity_id = next((event.data[k] for k in WEBHOOK_ID_KEYS if event.data.get(k)), None)
        return WebhookResult(
            processed=True,
            action=event.event,
            entity_type=TOPIC_ENTITIES.get(prefix, "product"),
            entity_id=str(entity_id) if entity_id else None,
        )

    # --- Connectivity / sync ---

    def ping(self) -> VendorCall:
        return _rpc("/geral/produtos/", "ListarProdutos", {"pagina": 1, "registros_por_pagina": 1})

    def listings(self) -> dict[str, VendorCall]:
        page = {"pagina": 1, "registros_por_pagina": 100}
        return {
            "products": _rpc("/geral/produtos/", "ListarProdutos", page),
            "customers": _rpc("/geral/clientes/", "ListarClientes", page),
            "invoices": _rpc("/produtos/pedido/", "ListarPedidos", page),
            "financial_entries": _rpc("/financas/contareceber/", "ListarContasReceber", page),
        }

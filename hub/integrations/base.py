"""
Integration Hub ProviderAdapter — common base for every domain adapter.

Subclasses set:
    integration_type: IntegrationType, domain of the adapter
and build VendorCalls through their configured vendor mapper. The base
provides the call pipeline:

    request model → mapper → VendorCall → transport → parse → ledger record

- ``_call``: surfaces failures (create/update/send); anything that is not
  already a hub error is wrapped in UpstreamError
- ``_lookup``: best-effort; failures are logged and become None
- ``_pull``: listing used by sync passes; raises so the pass can count it
"""
from __future__ import annotations
from abc import ABC
from typing import Any, Callable, Optional, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError
import structlog

from hub.errors import IntegrationError, UpstreamError, ValidationError
from hub.integrations.ledger import OperationLedger
from hub.integrations.models import IntegrationType, OperationStatus, SyncResult
from hub.integrations.registry import Clock, utc_now
from hub.integrations.transport import TransportFn, VendorCall

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)
ResultT = TypeVar("ResultT")

# Keys vendors wrap list payloads in, checked in order.
LIST_KEYS = (
    "data", "results", "items", "contacts", "deals", "activities",
    "produto_servico_cadastro", "clientes_cadastro", "pedido_venda_produto",
    "conta_receber_cadastro", "produtos", "contatos", "pedidos", "retorno",
)


def parse_request(model: type[ModelT], data: ModelT | dict[str, Any]) -> ModelT:
    """Coerce a dict into a request model, raising ValidationError on bad input."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except SchemaError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or model.__name__
        raise ValidationError(f"{where}: {first.get('msg', 'invalid value')}") from exc


def as_list(response: Any) -> list[Any]:
    """Best guess at the item list inside a vendor listing response."""
    if response is None:
        return []
    if isinstance(response, list):
        return response
    if isinstance(response, dict):
        for key in LIST_KEYS:
            value = response.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                nested = as_list(value)
                if nested:
                    return nested
    return []


class ProviderAdapter(ABC):
    """Base class for messaging, payments, CRM and ERP adapters."""

    integration_type: IntegrationType

    def __init__(
        self,
        platform: str,
        transport: TransportFn,
        ledger: OperationLedger | None = None,
        integration_id: str | None = None,
        clock: Clock = utc_now,
    ):
        self._platform = platform
        self._transport = transport
        self._ledger = ledger
        self._clock = clock
        self.integration_id = integration_id

    @property
    def platform(self) -> str:
        return self._platform

    # --- Ledger ---

    def _record(
        self,
        operation: str,
        status: OperationStatus,
        data: dict[str, Any] | None = None,
        error: str | None = None,
    ) -> None:
        if self._ledger is None:
            return
        self._ledger.append(
            self.integration_type,
            self._platform,
            operation,
            status,
            data=data,
            error=error,
            integration_id=self.integration_id,
        )

    def _fail(self, operation: str, exc: BaseException, data: dict[str, Any] | None) -> IntegrationError:
        if isinstance(exc, IntegrationError):
            error = exc
        else:
            error = UpstreamError(self._platform, f"unexpected response: {str(exc) or exc.__class__.__name__}")
        self._record(operation, OperationStatus.ERROR, data=data, error=str(error))
        return error

    # --- Call pipeline ---

    async def _send(self, call: VendorCall) -> Any:
        try:
            return await self._transport(call)
        except IntegrationError:
            raise
        except Exception as exc:
            raise UpstreamError(self._platform, str(exc) or exc.__class__.__name__) from exc

    async def _call(
        self,
        operation: str,
        call: VendorCall,
        parse: Callable[[Any], ResultT] | None = None,
        record_data: dict[str, Any] | None = None,
    ) -> Any:
        """Send a call whose failure the caller must see."""
        try:
            response = await self._send(call)
            if response is None:
                raise UpstreamError(self._platform, f"{call.path} not found", 404)
            result = parse(response) if parse else response
        except Exception as exc:
            error = self._fail(operation, exc, record_data)
            logger.error(
                f"{self.integration_type.value}.{operation}_failed",
                platform=self._platform,
                error=str(error),
            )
            if error is exc:
                raise
            raise error from exc

        self._record(operation, OperationStatus.SUCCESS, data=record_data)
        return result

    async def _lookup(
        self,
        operation: str,
        call: VendorCall,
        parse: Callable[[Any], Optional[ResultT]],
        record_data: dict[str, Any] | None = None,
    ) -> Optional[ResultT]:
        """Send a search call. Absence and vendor failure both become None."""
        try:
            response = await self._send(call)
            result = parse(response) if response is not None else None
        except Exception as exc:
            error = self._fail(operation, exc, record_data)
            logger.warning(
                f"{self.integration_type.value}.{operation}_failed",
                platform=self._platform,
                error=str(error),
            )
            return None

        self._record(operation, OperationStatus.SUCCESS, data=record_data)
        return result

    async def _ping(self, call: VendorCall) -> bool:
        """Connectivity probe. Vendor failure propagates; not recorded."""
        response = await self._send(call)
        return response is not None

    async def _pull(self, call: VendorCall) -> list[Any]:
        """List call for a sync pass."""
        return as_list(await self._send(call))

    async def _sync_entities(self, calls: dict[str, VendorCall]) -> tuple[dict[str, int], int]:
        """Pull every entity listing; failures count as errors instead of raising."""
        details: dict[str, int] = {}
        errors = 0
        for entity, call in calls.items():
            try:
                details[entity] = len(await self._pull(call))
            except IntegrationError as exc:
                details[entity] = 0
                errors += 1
                logger.warning(
                    f"{self.integration_type.value}.sync_pull_failed",
                    platform=self._platform,
                    entity=entity,
                    error=str(exc),
                )
        return details, errors

    async def _sync_pass(self, calls: dict[str, VendorCall]) -> SyncResult:
        """Run a sync pass over entity listings and record its outcome. Never raises."""
        details, errors = await self._sync_entities(calls)
        result = SyncResult(
            success=errors == 0,
            synchronized=sum(details.values()),
            errors=errors,
            details=details,
        )
        self._record(
            "sync",
            OperationStatus.SUCCESS if result.success else OperationStatus.ERROR,
            data=result.model_dump(),
            error=None if result.success else f"{errors} listing(s) failed",
        )
        logger.info(
            f"{self.integration_type.value}.sync_complete",
            platform=self._platform,
            synchronized=result.synchronized,
            errors=errors,
        )
        return result

"""
Integration Hub Transport — the seam between adapters and the network.

Adapters never talk HTTP themselves: they build a VendorCall and hand it
to a transport, any async callable ``(VendorCall) -> Any``. Hosts may
supply their own; HttpTransport is the default, providing:
- Vendor auth (bearer, header key, query token, body keys, basic)
- Retry with exponential backoff on 5xx and network failures
- 404 → None, other 4xx → UpstreamError carrying the vendor message
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol
import asyncio
import base64

import httpx
import structlog

from hub.errors import UpstreamError

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Request envelope
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VendorCall:
    """One outbound vendor request, built by a mapper."""
    method: str  # GET, POST, PUT, PATCH, DELETE
    path: str
    body: dict[str, Any] | None = None
    params: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)


class Transport(Protocol):
    def __call__(self, call: VendorCall) -> Awaitable[Any]: ...


TransportFn = Callable[[VendorCall], Awaitable[Any]]


def compact(body: dict[str, Any]) -> dict[str, Any]:
    """Drop keys whose value is None; vendors reject explicit nulls."""
    return {k: v for k, v in body.items() if v is not None}


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class AuthType(str, Enum):
    NONE = "none"
    BEARER = "bearer"
    HEADER = "header"
    QUERY = "query"
    BODY = "body"
    BASIC = "basic"


@dataclass(frozen=True)
class AuthCredentials:
    """Credentials for one vendor account."""
    auth_type: AuthType = AuthType.NONE
    token: str | None = None
    secret: str | None = None
    key_name: str = "Authorization"  # header, query or body key
    secret_name: str | None = None   # body key for the secret, when AuthType.BODY


def auth_headers(creds: AuthCredentials) -> dict[str, str]:
    if creds.auth_type == AuthType.BEARER and creds.token:
        return {"Authorization": f"Bearer {creds.token}"}
    if creds.auth_type == AuthType.HEADER and creds.token:
        return {creds.key_name: creds.token}
    if creds.auth_type == AuthType.BASIC and creds.token:
        encoded = base64.b64encode(f"{creds.token}:{creds.secret or ''}".encode()).decode()
        return {"Authorization": f"Basic {encoded}"}
    return {}


def auth_params(creds: AuthCredentials) -> dict[str, str]:
    if creds.auth_type == AuthType.QUERY and creds.token:
        return {creds.key_name: creds.token}
    return {}


def auth_body(creds: AuthCredentials) -> dict[str, str]:
    if creds.auth_type != AuthType.BODY or not creds.token:
        return {}
    body = {creds.key_name: creds.token}
    if creds.secret_name and creds.secret:
        body[creds.secret_name] = creds.secret
    return body


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}: {resp.text[:200]}"
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        for key in ("message", "error", "faultstring", "descricao"):
            if data.get(key):
                return str(data[key])
    return f"HTTP {resp.status_code}"


# ---------------------------------------------------------------------------
# HttpTransport
# ---------------------------------------------------------------------------

class HttpTransport:
    """
    Default httpx transport for one vendor account.

    Pass ``client`` to share a connection pool or to plug in
    ``httpx.MockTransport`` in tests; otherwise a client is opened per call.
    """

    MAX_RETRIES: int = 2
    BACKOFF_BASE: float = 0.5
    BACKOFF_MAX: float = 8.0

    def __init__(
        self,
        vendor: str,
        base_url: str,
        credentials: AuthCredentials | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.vendor = vendor
        self.base_url = base_url.rstrip("/")
        self.credentials = credentials or AuthCredentials()
        self.timeout = timeout
        self._client = client

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def __call__(self, call: VendorCall) -> Any:
        if self._client is not None:
            return await self._send(self._client, call)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._send(client, call)

    async def _send(self, client: httpx.AsyncClient, call: VendorCall) -> Any:
        headers = {**auth_headers(self.credentials), **call.headers}
        params = {**auth_params(self.credentials), **call.params}
        body = call.body
        extra = auth_body(self.credentials)
        if extra:
            body = {**extra, **(body or {})}

        last_error: str | None = None
        for attempt in range(self.MAX_RETRIES + 1):
            try:
                resp = await client.request(
                    method=call.method,
                    url=self._url(call.path),
                    params=params or None,
                    json=body,
                    headers=headers,
                    timeout=self.timeout,
                )
            except httpx.HTTPError as exc:
                last_error = str(exc) or exc.__class__.__name__
            else:
                if resp.status_code == 404:
                    return None
                if resp.status_code < 400:
                    if not resp.content:
                        return {}
                    if resp.headers.get("content-type", "").startswith("application/json"):
                        return resp.json()
                    return resp.text
                if resp.status_code < 500:
                    raise UpstreamError(self.vendor, _error_message(resp), resp.status_code)
                # 5xx: retry
                last_error = _error_message(resp)

            if attempt < self.MAX_RETRIES:
                backoff = min(self.BACKOFF_BASE * (2 ** attempt), self.BACKOFF_MAX)
                logger.warning(
                    "transport.retry",
                    vendor=self.vendor,
                    path=call.path,
                    attempt=attempt + 1,
                    error=last_error,
                )
                await asyncio.sleep(backoff)

        raise UpstreamError(self.vendor, last_error or "request failed")

"""Test HttpTransport against httpx.MockTransport."""
import json

import httpx
import pytest

from hub.errors import UpstreamError
from hub.integrations.transport import AuthCredentials, AuthType, HttpTransport, VendorCall, compact


def make_transport(handler, credentials=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = HttpTransport("acme", "https://api.acme.test/v1/", credentials, client=client)
    transport.BACKOFF_BASE = 0.0
    return transport


@pytest.mark.asyncio
async def test_bearer_auth_and_json_body():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": 7})

    transport = make_transport(handler, AuthCredentials(AuthType.BEARER, token="tok"))
    result = await transport(VendorCall("POST", "/contacts", body={"name": "Ana"}))

    assert result == {"id": 7}
    assert seen["url"] == "https://api.acme.test/v1/contacts"
    assert seen["auth"] == "Bearer tok"
    assert seen["body"] == {"name": "Ana"}


@pytest.mark.asyncio
async def test_query_token_auth():
    def handler(request: httpx.Request):
        assert request.url.params["api_token"] == "secret"
        assert request.url.params["limit"] == "1"
        return httpx.Response(200, json={"data": []})

    transport = make_transport(handler, AuthCredentials(AuthType.QUERY, token="secret", key_name="api_token"))
    assert await transport(VendorCall("GET", "/persons", params={"limit": 1})) == {"data": []}


@pytest.mark.asyncio
async def test_body_key_auth_merged_into_payload():
    def handler(request: httpx.Request):
        body = json.loads(request.content)
        assert body["app_key"] == "k"
        assert body["app_secret"] == "s"
        assert body["call"] == "ListarProdutos"
        return httpx.Response(200, json={"ok": True})

    creds = AuthCredentials(AuthType.BODY, token="k", secret="s", key_name="app_key", secret_name="app_secret")
    transport = make_transport(handler, creds)
    assert await transport(VendorCall("POST", "/geral/produtos/", body={"call": "ListarProdutos"})) == {"ok": True}


@pytest.mark.asyncio
async def test_404_is_none():
    transport = make_transport(lambda request: httpx.Response(404, json={"message": "nope"}))
    assert await transport(VendorCall("GET", "/contacts/1")) is None


@pytest.mark.asyncio
async def test_4xx_raises_with_vendor_message():
    transport = make_transport(
        lambda request: httpx.Response(422, json={"error": {"message": "email invalid"}})
    )
    with pytest.raises(UpstreamError) as info:
        await transport(VendorCall("POST", "/contacts", body={}))
    assert info.value.status_code == 422
    assert info.value.message == "email invalid"
    assert info.value.vendor == "acme"


@pytest.mark.asyncio
async def test_5xx_retried_then_succeeds():
    attempts = []

    def handler(request: httpx.Request):
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, json={"message": "busy"})
        return httpx.Response(200, json={"ok": True})

    transport = make_transport(handler)
    assert await transport(VendorCall("GET", "/ping")) == {"ok": True}
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_5xx_exhausts_retries():
    attempts = []

    def handler(request: httpx.Request):
        attempts.append(1)
        return httpx.Response(500, json={"faultstring": "ERROR: internal"})

    transport = make_transport(handler)
    with pytest.raises(UpstreamError, match="ERROR: internal"):
        await transport(VendorCall("GET", "/ping"))
    assert len(attempts) == HttpTransport.MAX_RETRIES + 1


@pytest.mark.asyncio
async def test_network_error_wrapped():
    def handler(request: httpx.Request):
        raise httpx.ConnectError("refused", request=request)

    transport = make_transport(handler)
    with pytest.raises(UpstreamError, match="refused"):
        await transport(VendorCall("GET", "/ping"))


@pytest.mark.asyncio
async def test_empty_body_is_empty_dict():
    transport = make_transport(lambda request: httpx.Response(204))
    assert await transport(VendorCall("DELETE", "/contacts/1")) == {}


def test_compact_drops_none_only():
    assert compact({"a": None, "b": 0, "c": "", "d": False}) == {"b": 0, "c": "", "d": False}

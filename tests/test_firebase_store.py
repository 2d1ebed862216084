"""Tests for the Firebase REST store using httpx.MockTransport."""

import json

import httpx
import pytest

from app.adapters.store.firebase import FirebaseKeyValueStore
from app.core.errors import StoreRejected, StoreUnavailable

BASE_URL = "https://chat-test.firebaseio.com"


def make_store(handler, **kwargs) -> FirebaseKeyValueStore:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FirebaseKeyValueStore(BASE_URL, client=client, **kwargs)


@pytest.mark.asyncio
async def test_get_builds_url_and_decodes_json() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json={"userName": "alice"})

    store = make_store(handler, auth_token="secret-token")

    assert await store.get("users/uid 1") == {"userName": "alice"}
    assert seen["url"] == f"{BASE_URL}/users/uid%201.json?auth=secret-token"


@pytest.mark.asyncio
async def test_get_missing_returns_none() -> None:
    store = make_store(lambda request: httpx.Response(200, content=b"null"))

    assert await store.get("users/nobody") is None


@pytest.mark.asyncio
async def test_put_sends_json_body() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=seen["body"])

    store = make_store(handler)
    await store.put("userIDByUsername", {"alice": "uid-1"})

    assert seen == {"method": "PUT", "body": {"alice": "uid-1"}}


@pytest.mark.asyncio
async def test_server_error_maps_to_store_unavailable() -> None:
    store = make_store(lambda request: httpx.Response(503, text="down"))

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.get("users/u1")

    assert exc_info.value.details["http_status"] == 503


@pytest.mark.asyncio
async def test_client_error_maps_to_store_rejected() -> None:
    store = make_store(lambda request: httpx.Response(401, json={"error": "Permission denied"}))

    with pytest.raises(StoreRejected) as exc_info:
        await store.put("users/u1", {"userName": "x"})

    assert exc_info.value.code == "store_rejected"


@pytest.mark.asyncio
async def test_transport_error_maps_to_store_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    store = make_store(handler)

    with pytest.raises(StoreUnavailable) as exc_info:
        await store.get("users/u1")

    assert exc_info.value.code == "store_unavailable"


@pytest.mark.asyncio
async def test_conditional_read_and_write() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            seen["etag_header"] = request.headers.get("X-Firebase-ETag")
            return httpx.Response(200, json={"alice": "uid-1"}, headers={"ETag": "v1"})
        seen["if_match"] = request.headers.get("if-match")
        return httpx.Response(200, json={})

    store = make_store(handler)

    document, etag = await store.get_with_etag("userIDByUsername")
    written = await store.put_if_match("userIDByUsername", {"bobby": "uid-1"}, etag)

    assert document == {"alice": "uid-1"}
    assert etag == "v1"
    assert written is True
    assert seen == {"etag_header": "true", "if_match": "v1"}


@pytest.mark.asyncio
async def test_put_if_match_returns_false_on_412() -> None:
    store = make_store(
        lambda request: httpx.Response(412, json={"error": "stale"}, headers={"ETag": "v2"})
    )

    assert await store.put_if_match("userIDByUsername", {}, "v1") is False


@pytest.mark.asyncio
async def test_missing_etag_is_rejected() -> None:
    store = make_store(lambda request: httpx.Response(200, json={}))

    with pytest.raises(StoreRejected) as exc_info:
        await store.get_with_etag("userIDByUsername")

    assert exc_info.value.code == "store_missing_etag"


def test_requires_base_url() -> None:
    with pytest.raises(ValueError):
        FirebaseKeyValueStore("")


@pytest.mark.asyncio
async def test_put_none_sends_json_null() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content"] = request.content
        return httpx.Response(200, content=b"null")

    store = make_store(handler)
    await store.put("userIDByUsername/alice", None)

    assert seen["content"] == b"null"


@pytest.mark.asyncio
async def test_aclose_leaves_injected_client_open() -> None:
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    store = FirebaseKeyValueStore(BASE_URL, client=client)

    await store.aclose()

    assert not client.is_closed
    await client.aclose()


@pytest.mark.asyncio
async def test_aclose_closes_owned_client() -> None:
    store = FirebaseKeyValueStore(BASE_URL)

    await store.aclose()

    assert store._client.is_closed


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"<html>Service maintenance</html>", b"", b"\xff\xfe"])
async def test_non_json_body_maps_to_store_rejected(body) -> None:
    store = make_store(lambda request: httpx.Response(200, content=body, headers={"ETag": "v1"}))

    with pytest.raises(StoreRejected) as exc_info:
        await store.get("users/u1")
    assert exc_info.value.code == "store_malformed_response"

    with pytest.raises(StoreRejected) as exc_info:
        await store.get_with_etag("userIDByUsername")
    assert exc_info.value.code == "store_malformed_response"

# backend/tests/test_subscriptions_client.py

from typing import List

import httpx
import pytest

from app.subscriptions.client import SupabaseClient
from app.subscriptions.config import SupabaseConfig
from app.subscriptions.store import StoreError

CONFIG = SupabaseConfig(url="https://proj.supabase.co", service_role_key="service-key")


def _client(handler) -> SupabaseClient:
    return SupabaseClient(CONFIG, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_resolve_user_ids_lowercases_name_tags() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"id": "u-1", "name_tag": "renan"}])

    result = await _client(handler).resolve_user_ids(["Renan", "FRIEND1"])

    assert result == {"u-1": "renan"}
    request = seen[0]
    assert request.url.path == "/rest/v1/users"
    assert request.url.params["name_tag"] == 'in.("renan","friend1")'
    assert request.url.params["select"] == "id,name_tag"
    assert request.headers["apikey"] == "service-key"
    assert request.headers["Authorization"] == "Bearer service-key"


@pytest.mark.asyncio
async def test_find_subscriptions_for_user_ids() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/push_subscriptions"
        assert request.url.params["user_id"] == 'in.("u-1")'
        return httpx.Response(
            200,
            json=[
                {
                    "id": 10,
                    "user_id": "u-1",
                    "endpoint": "https://fcm.googleapis.com/fcm/send/a",
                    "p256dh": "BKey",
                    "auth": "secret",
                }
            ],
        )

    subs = await _client(handler).find_subscriptions(["u-1"])

    assert len(subs) == 1
    assert subs[0].user_id == "u-1"
    assert subs[0].id == "10"
    assert subs[0].endpoint == "https://fcm.googleapis.com/fcm/send/a"
    assert subs[0].name_tag is None


@pytest.mark.asyncio
async def test_find_all_subscriptions_attaches_name_tag() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["select"] == "*,users!inner(name_tag)"
        return httpx.Response(
            200,
            json=[
                {
                    "id": 1,
                    "user_id": "u-1",
                    "endpoint": "https://fcm.googleapis.com/fcm/send/a",
                    "p256dh": "k",
                    "auth": "a",
                    "users": {"name_tag": "renan"},
                }
            ],
        )

    subs = await _client(handler).find_subscriptions()

    assert [s.display_name for s in subs] == ["renan"]


@pytest.mark.asyncio
async def test_find_all_subscriptions_missing_name_tag_is_integrity_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"id": 7, "user_id": "u-7", "endpoint": "x", "users": None}])

    with pytest.raises(StoreError, match="missing user name_tag"):
        await _client(handler).find_subscriptions()


@pytest.mark.asyncio
async def test_delete_subscription_filters_by_owner_and_endpoint() -> None:
    seen: List[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    await _client(handler).delete_subscription("u-1", "https://fcm.googleapis.com/fcm/send/a")

    request = seen[0]
    assert request.method == "DELETE"
    assert request.url.params["user_id"] == "eq.u-1"
    assert request.url.params["endpoint"] == "eq.https://fcm.googleapis.com/fcm/send/a"


@pytest.mark.asyncio
async def test_http_error_raises_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="db down")

    with pytest.raises(StoreError, match="500"):
        await _client(handler).find_subscriptions(["u-1"])


@pytest.mark.asyncio
async def test_transport_error_raises_store_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(StoreError):
        await _client(handler).resolve_user_ids(["renan"])


@pytest.mark.asyncio
async def test_empty_inputs_short_circuit_without_http() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not be called
        raise AssertionError("no request expected")

    client = _client(handler)

    assert await client.resolve_user_ids([]) == {}
    assert await client.find_subscriptions([]) == []

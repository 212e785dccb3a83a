# backend/tests/test_notifications_router.py

import asyncio

import httpx
from fastapi.testclient import TestClient

from app.main import create_app
from app.notifications.factory import build_notification_service, get_notification_service
from app.notifications.service import NotificationService
from app.subscriptions.config import SupabaseConfig, get_supabase_config
from app.subscriptions.store import StoreError
from app.webpush.config import get_webpush_settings
from app.webpush.dispatcher import DeliveryDispatcher
from app.webpush.vapid import generate_vapid_key_pair

from webpush_helpers import FakeStore, make_settings, make_subscription

APPLE_ENDPOINT = "https://web.push.apple.com/QGuz1ab2"
ORIGIN = {"Origin": "https://sugary.app"}


def create_test_client(store: FakeStore, handler=None) -> TestClient:
    key_pair = generate_vapid_key_pair()
    dispatcher = DeliveryDispatcher(
        settings=make_settings(key_pair),
        key_pair=key_pair,
        store=store,
        transport=httpx.MockTransport(handler or (lambda request: httpx.Response(201))),
    )
    service = NotificationService(store=store, directory=store, dispatcher=dispatcher)
    return TestClient(create_app(notification_service=service))


class FailingService:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def send(self, request, timeout=None):
        raise self.exc


def test_send_empty_body_uses_random_mode() -> None:
    subs = [make_subscription(f"u-{i}", name_tag=f"user{i}")[0] for i in range(3)]
    client = create_test_client(FakeStore(subs))

    resp = client.post("/notifications/send", json={})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["mode"] == "random"
    assert body["urgency"] == "normal"
    assert body["targetUsers"] == "all"
    assert body["summary"] == {
        "total": 3,
        "sent": 3,
        "expired": 0,
        "failed": 0,
        "errors": 0,
        "expiredUsers": [],
        "failedUsers": [],
        "errorUsers": [],
    }
    assert body["results"][0] == {
        "user": "user0",
        "userId": "u-0",
        "status": "sent",
        "platform": "Other",
        "messageType": "random",
    }


def test_send_without_body_is_accepted() -> None:
    client = create_test_client(FakeStore([make_subscription("u-1")[0]]))

    resp = client.post("/notifications/send")

    assert resp.status_code == 200
    assert resp.json()["summary"]["sent"] == 1


def test_send_custom_reports_restricted_client_error() -> None:
    ok_sub, _ = make_subscription("u-1", name_tag="renan")
    apple_sub, _ = make_subscription("u-2", endpoint=APPLE_ENDPOINT, name_tag="iosfan")
    client = create_test_client(FakeStore([ok_sub, apple_sub]))

    resp = client.post("/notifications/send", json={"title": "T", "body": "B"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["mode"] == "custom"
    assert body["urgency"] == "high"
    assert body["title"] == "T"
    assert body["summary"]["sent"] == 1
    assert body["summary"]["errors"] == 1
    assert body["summary"]["errorUsers"] == ["iosfan"]
    error = next(r for r in body["results"] if r["status"] == "error")
    assert "msg" in error


def test_send_unknown_users_returns_404_with_cors() -> None:
    client = create_test_client(FakeStore([make_subscription("u-1")[0]], users={"u-1": "renan"}))

    resp = client.post("/notifications/send", json={"users": ["ghost"]}, headers=ORIGIN)

    assert resp.status_code == 404
    assert resp.json() == {
        "error": "No users found with those name_tags",
        "targetUsers": ["ghost"],
    }
    assert resp.headers["access-control-allow-origin"] == "*"


def test_send_no_subscriptions_returns_404() -> None:
    client = create_test_client(FakeStore([]))

    resp = client.post("/notifications/send", json={})

    assert resp.status_code == 404
    assert resp.json() == {"error": "No subscriptions found", "targetUsers": "all"}


def test_store_failure_returns_500_with_cors() -> None:
    app = create_app()
    app.dependency_overrides[get_notification_service] = lambda: FailingService(StoreError("db down"))
    client = TestClient(app)

    resp = client.post("/notifications/send", json={}, headers=ORIGIN)

    assert resp.status_code == 500
    assert resp.json() == {"error": "db down"}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_unexpected_failure_returns_500() -> None:
    app = create_app()
    app.dependency_overrides[get_notification_service] = lambda: FailingService(RuntimeError("boom"))
    client = TestClient(app)

    resp = client.post("/notifications/send", json={})

    assert resp.status_code == 500
    assert resp.json() == {"error": "boom"}


def test_invalid_urgency_is_rejected() -> None:
    client = create_test_client(FakeStore([make_subscription("u-1")[0]]))

    resp = client.post("/notifications/send", json={"urgency": "asap"})

    assert resp.status_code == 422


def test_missing_vapid_configuration_returns_500_with_cors(monkeypatch) -> None:
    monkeypatch.delenv("VAPID_PUBLIC_KEY", raising=False)
    monkeypatch.delenv("VAPID_PRIVATE_KEY", raising=False)
    get_webpush_settings.cache_clear()
    get_supabase_config.cache_clear()
    client = TestClient(create_app())

    try:
        resp = client.post("/notifications/send", json={}, headers=ORIGIN)
    finally:
        get_webpush_settings.cache_clear()

    assert resp.status_code == 500
    assert "not configured" in resp.json()["error"]
    assert "detail" not in resp.json()
    assert resp.headers["access-control-allow-origin"] == "*"


def test_cors_preflight() -> None:
    client = TestClient(create_app())

    resp = client.options(
        "/notifications/send",
        headers={
            "Origin": "https://sugary.app",
            "Access-Control-Request-Method": "POST",
            "Access-Control-Request-Headers": "authorization, content-type",
        },
    )

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == "*"


def test_health() -> None:
    client = TestClient(create_app())

    resp = client.get("/health")

    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_dispatch_timeout_returns_500_with_cors() -> None:
    async def slow_push_service(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1)
        return httpx.Response(201)

    store = FakeStore([make_subscription("u-1")[0]])
    key_pair = generate_vapid_key_pair()
    dispatcher = DeliveryDispatcher(
        settings=make_settings(key_pair),
        key_pair=key_pair,
        store=store,
        transport=httpx.MockTransport(slow_push_service),
    )
    service = NotificationService(store=store, directory=store, dispatcher=dispatcher, timeout=0.05)
    client = TestClient(create_app(notification_service=service))

    resp = client.post("/notifications/send", json={}, headers=ORIGIN)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Dispatch did not finish within 0.05 seconds."}
    assert resp.headers["access-control-allow-origin"] == "*"


def test_configured_dispatch_timeout_applies_to_http_requests() -> None:
    async def slow_push_service(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(201)

    def supabase(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json=[
                {
                    "id": 1,
                    "user_id": "u-1",
                    "endpoint": "https://fcm.googleapis.com/fcm/send/a",
                    "p256dh": None,
                    "auth": None,
                    "users": {"name_tag": "renan"},
                }
            ],
        )

    service = build_notification_service(
        settings=make_settings(dispatch_timeout_seconds=1),
        supabase_config=SupabaseConfig(url="https://proj.supabase.co", service_role_key="service-key"),
        push_transport=httpx.MockTransport(slow_push_service),
        store_transport=httpx.MockTransport(supabase),
    )
    client = TestClient(create_app(notification_service=service))

    resp = client.post("/notifications/send", json={})

    assert resp.status_code == 500
    assert resp.json() == {"error": "Dispatch did not finish within 1 seconds."}

# backend/app/notifications/factory.py

"""
NotificationService の組み立て。

- 環境変数から VAPID 鍵・配信ポリシー・Supabase 接続設定を読み込む
- SupabaseClient をストア兼ユーザーディレクトリとして DeliveryDispatcher に注入する

生成したインスタンスはモジュールグローバルではなく、FastAPI の app.state に保持する。
"""

from __future__ import annotations

from typing import Optional

import httpx
from fastapi import HTTPException, Request, status

from app.subscriptions.client import SupabaseClient
from app.utils.config import EnvVarMissingError
from app.subscriptions.config import SupabaseConfig, get_supabase_config
from app.webpush.config import WebPushSettings, get_webpush_settings
from app.webpush.dispatcher import DeliveryDispatcher
from app.webpush.policy import ClientPolicy
from app.webpush.vapid import VapidKeyPair

from .service import NotificationService


def build_notification_service(
    settings: Optional[WebPushSettings] = None,
    supabase_config: Optional[SupabaseConfig] = None,
    *,
    push_transport: Optional[httpx.AsyncBaseTransport] = None,
    store_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> NotificationService:
    """
    設定値から NotificationService を生成する。

    :raises EnvVarMissingError: 必須の環境変数が未設定の場合。
    :raises ValueError: VAPID 鍵の形式が不正な場合。
    """
    settings = settings or get_webpush_settings()
    supabase = SupabaseClient(supabase_config or get_supabase_config(), transport=store_transport)

    key_pair = VapidKeyPair.from_base64url(
        settings.vapid_public_key,
        settings.vapid_private_key,
    )
    dispatcher = DeliveryDispatcher(
        settings=settings,
        key_pair=key_pair,
        store=supabase,
        policy=ClientPolicy.from_settings(settings),
        transport=push_transport,
    )
    return NotificationService(
        store=supabase,
        directory=supabase,
        dispatcher=dispatcher,
        timeout=settings.dispatch_timeout_seconds,
    )


def get_notification_service(request: Request) -> NotificationService:
    """
    FastAPI の依存関数。初回呼び出し時に生成し、以降は app.state のインスタンスを返す。
    """
    service = getattr(request.app.state, "notification_service", None)
    if service is None:
        try:
            service = build_notification_service()
        except (EnvVarMissingError, ValueError) as exc:
            # HTTPException にしておくと CORS ヘッダ付きでエラーが返る
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail={"error": f"Push notifications are not configured: {exc}"},
            ) from exc
        request.app.state.notification_service = service
    return service

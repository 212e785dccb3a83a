# backend/app/webpush/dispatcher.py

"""
Web Push 配信ディスパッチャ。

購読 1件ごとに独立したパイプラインを起動し、全パイプラインの完了を待ってから集計する。

パイプライン（購読 1件分）:
    クライアント分類 → 送信内容の決定 → VAPID トークン発行 → 暗号化 → POST → 結果判定

どのステップで失敗しても、その購読の DeliveryOutcome(error) になるだけで
他の購読の配信には影響しない。リトライは行わない。
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from typing import Callable, List, Optional, Sequence

import httpx

from app.subscriptions.store import StoreError, SubscriptionStore

from .aggregator import summarize
from .config import WebPushSettings
from .encryption import encrypt_payload
from .errors import NetworkError, ProtocolError, UnsupportedClientError, WebPushError
from .policy import ClientPolicy, ClientProfile
from .schemas import (
    DeliveryOutcome,
    DeliveryReport,
    DeliveryStatus,
    NotificationPlan,
    RequestMode,
    Subscription,
)
from .vapid import VapidKeyPair, issue_vapid_authorization

logger = logging.getLogger(__name__)

SENT_STATUS_CODES = frozenset({200, 201})
EXPIRED_STATUS_CODES = frozenset({404, 410})


class DeliveryDispatcher:
    """
    購読の列に対して通知を並行配信するサービス。

    VAPID 鍵ペア・ストア・クライアント分類テーブルは構築時に注入し、
    並行パイプライン間では読み取り専用として共有する。
    """

    def __init__(
        self,
        settings: WebPushSettings,
        key_pair: VapidKeyPair,
        store: SubscriptionStore,
        policy: Optional[ClientPolicy] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._settings = settings
        self._key_pair = key_pair
        self._store = store
        self._policy = policy or ClientPolicy.from_settings(settings)
        self._transport = transport
        self._clock = clock or time.time

    # ---- 公開 API -------------------------------------------------------

    async def dispatch(
        self,
        plan: NotificationPlan,
        targets: Sequence[Subscription],
    ) -> DeliveryReport:
        """
        全購読へ 1 回ずつ配信を試み、全件の結果が揃ってから集計して返す。
        """
        logger.info(
            "Dispatching %s notification to %d subscription(s).",
            plan.mode.value,
            len(targets),
        )

        limiter = (
            asyncio.Semaphore(self._settings.max_concurrency)
            if self._settings.max_concurrency
            else None
        )

        async with httpx.AsyncClient(
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
        ) as client:
            outcomes: List[DeliveryOutcome] = list(
                await asyncio.gather(
                    *(self._run_pipeline(client, plan, sub, limiter) for sub in targets)
                )
            )

        summary = summarize(outcomes)
        logger.info(
            "Dispatch finished: sent=%d expired=%d failed=%d errors=%d",
            summary.sent,
            summary.expired,
            summary.failed,
            summary.errors,
        )
        return DeliveryReport(outcomes=outcomes, summary=summary)

    # ---- パイプライン ---------------------------------------------------

    async def _run_pipeline(
        self,
        client: httpx.AsyncClient,
        plan: NotificationPlan,
        subscription: Subscription,
        limiter: Optional[asyncio.Semaphore],
    ) -> DeliveryOutcome:
        async with limiter or contextlib.nullcontext():
            try:
                return await self._deliver(client, plan, subscription)
            except ProtocolError as exc:
                logger.warning(
                    "Push service rejected notification for %s: %s",
                    subscription.display_name,
                    exc,
                )
                return DeliveryOutcome(
                    user=subscription.display_name,
                    user_id=subscription.user_id,
                    status=DeliveryStatus.FAILED,
                    code=exc.status_code,
                    error=exc.body,
                )
            except WebPushError as exc:
                return self._error(subscription, str(exc))
            except Exception as exc:  # noqa: BLE001 - 1件の失敗で他の配信を止めない
                logger.exception("Unexpected error while delivering to %s.", subscription.display_name)
                return self._error(subscription, str(exc) or exc.__class__.__name__)

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        plan: NotificationPlan,
        subscription: Subscription,
    ) -> DeliveryOutcome:
        profile = self._policy.classify(subscription.endpoint)
        payload = self._select_payload(plan, profile, subscription)

        authorization = issue_vapid_authorization(
            subscription.endpoint,
            self._key_pair,
            self._settings.vapid_subject,
            now=int(self._clock()),
        )

        body = b""
        if payload is not None:
            body = encrypt_payload(
                payload,
                subscription.public_key_bytes(),
                subscription.auth_secret_bytes(),
                record_size=profile.record_size,
            )

        response = await self._post(
            client,
            subscription.endpoint,
            self._build_headers(authorization, plan, body),
            body,
        )

        if response.status_code in SENT_STATUS_CODES:
            return DeliveryOutcome(
                user=subscription.display_name,
                user_id=subscription.user_id,
                status=DeliveryStatus.SENT,
                platform=profile.label,
                message_type=plan.message_type,
            )

        if response.status_code in EXPIRED_STATUS_CODES:
            await self._prune(subscription)
            return DeliveryOutcome(
                user=subscription.display_name,
                user_id=subscription.user_id,
                status=DeliveryStatus.EXPIRED,
                platform=profile.label,
            )

        raise ProtocolError(response.status_code, response.text)

    def _select_payload(
        self,
        plan: NotificationPlan,
        profile: ClientProfile,
        subscription: Subscription,
    ) -> Optional[str]:
        """
        モードとクライアント分類から暗号化する平文を決める。None は空ペイロード。
        """
        if plan.mode is RequestMode.CUSTOM:
            if profile.restricted:
                raise UnsupportedClientError(
                    f"{profile.label} does not support encrypted custom messages. "
                    f"User: {subscription.display_name}. "
                    "Use 'type' parameter for random messages only."
                )
            return _to_json(plan.custom_payload())

        if plan.mode is RequestMode.TYPED:
            if profile.restricted:
                logger.warning(
                    "[%s] Cannot send typed notification to %s. Sending random instead.",
                    profile.label,
                    subscription.display_name,
                )
                return None
            return _to_json(plan.typed_payload())

        return None

    def _build_headers(
        self,
        authorization: str,
        plan: NotificationPlan,
        body: bytes,
    ) -> dict:
        headers = {
            "Authorization": authorization,
            "TTL": str(self._settings.ttl_seconds),
            "Urgency": plan.urgency.value,
            "Content-Length": str(len(body)),
        }
        if body:
            headers["Content-Type"] = "application/octet-stream"
            headers["Content-Encoding"] = "aes128gcm"
        return headers

    async def _post(
        self,
        client: httpx.AsyncClient,
        endpoint: str,
        headers: dict,
        body: bytes,
    ) -> httpx.Response:
        try:
            return await client.post(endpoint, headers=headers, content=body)
        except httpx.RequestError as exc:  # 接続エラー・タイムアウトなど
            raise NetworkError(f"Failed to reach push service: {exc!r}") from exc

    async def _prune(self, subscription: Subscription) -> None:
        """期限切れ購読の削除。失敗しても結果は expired のまま（ログのみ）。"""
        logger.warning(
            "Push subscription expired for %s; removing it.",
            subscription.display_name,
        )
        try:
            await self._store.delete_subscription(subscription.user_id, subscription.endpoint)
        except StoreError:
            logger.exception(
                "Failed to delete expired subscription for %s.",
                subscription.display_name,
            )

    @staticmethod
    def _error(subscription: Subscription, message: str) -> DeliveryOutcome:
        return DeliveryOutcome(
            user=subscription.display_name,
            user_id=subscription.user_id,
            status=DeliveryStatus.ERROR,
            message=message,
        )


def _to_json(payload: dict) -> str:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)

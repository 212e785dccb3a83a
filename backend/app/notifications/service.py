# backend/app/notifications/service.py

"""
通知送信のサービス層。

責務:
- リクエストを NotificationPlan に解決する
- 送信対象の購読を解決する（name_tag 指定 or 全件）
- DeliveryDispatcher で並行配信し、レスポンスを組み立てる

購読・ユーザーの解決失敗（StoreError）は配信開始前にリクエスト全体を失敗させる。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import List, Optional

from app.subscriptions.store import (
    SubscriptionNotFoundError,
    SubscriptionStore,
    UserDirectory,
)
from app.webpush.dispatcher import DeliveryDispatcher
from app.webpush.schemas import Subscription

from .schemas import RANDOM_PLACEHOLDER, NotificationRequest, NotificationSendResponse

logger = logging.getLogger(__name__)


class DispatchTimeoutError(RuntimeError):
    """呼び出し側が指定したタイムアウト内に全配信が完了しなかった場合の例外。"""


class NotificationService:
    """
    通知送信ユースケースをまとめるサービス。

    store / directory / dispatcher はすべて構築時に注入する。
    timeout は send() で個別に指定しなかった場合の全配信の待ち時間の上限（秒）。
    """

    def __init__(
        self,
        store: SubscriptionStore,
        directory: UserDirectory,
        dispatcher: DeliveryDispatcher,
        timeout: Optional[float] = None,
    ) -> None:
        self._store = store
        self._directory = directory
        self._dispatcher = dispatcher
        self._timeout = timeout

    async def resolve_targets(self, request: NotificationRequest) -> List[Subscription]:
        """
        送信対象の購読一覧を返す。

        :raises SubscriptionNotFoundError: 対象ユーザー / 購読が 1件もない場合。
        :raises StoreError: ストアへのアクセスに失敗した場合。
        """
        if request.users:
            user_map = await self._directory.resolve_user_ids(request.users)
            if not user_map:
                raise SubscriptionNotFoundError("No users found with those name_tags")

            subscriptions = await self._store.find_subscriptions(list(user_map.keys()))
            # レスポンスを読みやすくするため name_tag を補う
            subscriptions = [
                replace(sub, name_tag=user_map.get(sub.user_id) or sub.name_tag)
                for sub in subscriptions
            ]
        else:
            subscriptions = await self._store.find_subscriptions(None)

        if not subscriptions:
            raise SubscriptionNotFoundError("No subscriptions found")

        return subscriptions

    async def send(
        self,
        request: NotificationRequest,
        timeout: Optional[float] = None,
    ) -> NotificationSendResponse:
        """
        通知を送信し、集計付きのレスポンスを返す。

        :param timeout: 全配信の完了を待つ上限秒数（None ならサービスの既定値）
        :raises DispatchTimeoutError: 上限までに全配信が完了しなかった場合。
        """
        if timeout is None:
            timeout = self._timeout

        plan = request.resolve()
        targets = await self.resolve_targets(request)

        logger.info(
            "Sending %s to %d subscription(s)",
            f'"{plan.title}"' if plan.is_custom else "random (SW)",
            len(targets),
        )

        try:
            report = await asyncio.wait_for(
                self._dispatcher.dispatch(plan, targets),
                timeout=timeout,
            )
        except asyncio.TimeoutError as exc:
            raise DispatchTimeoutError(
                f"Dispatch did not finish within {timeout} seconds."
            ) from exc

        return NotificationSendResponse(
            success=True,
            mode=plan.message_type,
            urgency=plan.urgency,
            title=request.title or RANDOM_PLACEHOLDER,
            body=request.body or RANDOM_PLACEHOLDER,
            target_users=request.users or "all",
            summary=report.summary,
            results=report.outcomes,
        )

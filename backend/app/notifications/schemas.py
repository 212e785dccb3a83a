# backend/app/notifications/schemas.py

"""
通知送信 API (/notifications/send) のリクエスト / レスポンススキーマ。

リクエストの全フィールドは任意で、空オブジェクト {} も有効（EMPTY モード）。
"""

from __future__ import annotations

from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.webpush.schemas import (
    DeliveryOutcome,
    DeliverySummary,
    NotificationPlan,
    NotificationType,
    NotificationUrgency,
    RequestMode,
)

# 受信側（Service Worker）に文面選択を任せる場合のレスポンス表記
RANDOM_PLACEHOLDER = "(random from SW)"


class NotificationRequest(BaseModel):
    """
    通知送信リクエスト。

    - title と body の両方あり → CUSTOM
    - type のみ → TYPED
    - それ以外 → EMPTY（空ペイロード）
    """

    title: Optional[str] = Field(None, description="通知タイトル（body とセットで CUSTOM）")
    body: Optional[str] = Field(None, description="通知本文（title とセットで CUSTOM）")
    users: Optional[List[str]] = Field(
        None,
        description="送信対象の name_tag 一覧。未指定なら全購読が対象。",
    )
    urgency: Optional[NotificationUrgency] = Field(
        None,
        description="Urgency ヘッダ。未指定なら CUSTOM は high、それ以外は normal。",
    )
    type: Optional[NotificationType] = Field(
        None,
        description="受信側が文面カテゴリを選ぶためのヒント",
    )

    @field_validator("users")
    @classmethod
    def _dedupe_users(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        """順序を保ったまま重複を除く。"""
        if value is None:
            return None
        return list(dict.fromkeys(value))

    @property
    def mode(self) -> RequestMode:
        if self.title and self.body:
            return RequestMode.CUSTOM
        if self.type is not None:
            return RequestMode.TYPED
        return RequestMode.EMPTY

    def resolve(self) -> NotificationPlan:
        """リクエストを一度だけ解決して、不変の NotificationPlan を返す。"""
        mode = self.mode
        default_urgency = (
            NotificationUrgency.HIGH if mode is RequestMode.CUSTOM else NotificationUrgency.NORMAL
        )
        return NotificationPlan(
            mode=mode,
            urgency=self.urgency or default_urgency,
            title=self.title if mode is RequestMode.CUSTOM else None,
            body=self.body if mode is RequestMode.CUSTOM else None,
            type=self.type,
        )


class NotificationSendResponse(BaseModel):
    """
    /notifications/send のレスポンスボディ。

    集計サマリ＋各購読の結果詳細を返す。
    """

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    mode: Literal["custom", "random"]
    urgency: NotificationUrgency
    title: str
    body: str
    target_users: Union[List[str], Literal["all"]] = Field("all", alias="targetUsers")
    summary: DeliverySummary
    results: List[DeliveryOutcome] = Field(default_factory=list)

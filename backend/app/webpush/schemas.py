# backend/app/webpush/schemas.py

"""
Web Push 配信コアで扱うデータ型。

- Subscription: 購読 1件分（ストアから読み出した値）
- NotificationPlan: リクエストを一度だけ解決した、不変の配信プラン
- DeliveryOutcome / DeliverySummary: 購読ごとの結果と集計
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .encoding import b64url_decode
from .errors import ValidationError


class NotificationUrgency(str, Enum):
    """Push サービスに渡す Urgency ヘッダ値。"""

    VERY_LOW = "very-low"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class NotificationType(str, Enum):
    """
    受信側（Service Worker）がメッセージ文面を選ぶためのヒント。

    random は受信側で全カテゴリから選ぶことを意味する。
    """

    UPDATE = "update"
    DAILY = "daily"
    WEEKLY = "weekly"
    EDUCATIONAL = "educational"
    RANDOM = "random"


class RequestMode(str, Enum):
    """
    リクエストの形態。

    - EMPTY: title/body/type なし → 空ペイロード、受信側が時刻から種別を推定
    - TYPED: type のみ → {"type"} を暗号化して送る
    - CUSTOM: title と body の両方あり → {"title", "body", "type"} を暗号化して送る
    """

    EMPTY = "empty"
    TYPED = "typed"
    CUSTOM = "custom"


@dataclass(frozen=True)
class NotificationPlan:
    """リクエストから一度だけ解決される配信プラン。モードは以後変化しない。"""

    mode: RequestMode
    urgency: NotificationUrgency
    title: Optional[str] = None
    body: Optional[str] = None
    type: Optional[NotificationType] = None

    @property
    def is_custom(self) -> bool:
        return self.mode is RequestMode.CUSTOM

    @property
    def message_type(self) -> str:
        """レスポンスでの表記。TYPED / EMPTY はどちらも受信側任せなので random。"""
        return "custom" if self.is_custom else "random"

    def custom_payload(self) -> Dict[str, Any]:
        return {
            "title": self.title,
            "body": self.body,
            "type": (self.type or NotificationType.RANDOM).value,
        }

    def typed_payload(self) -> Dict[str, Any]:
        return {"type": self.type.value if self.type else NotificationType.RANDOM.value}


@dataclass(frozen=True)
class Subscription:
    """
    購読 1件分。鍵は base64url 文字列のまま保持し、暗号化時にデコード・検証する。
    """

    endpoint: str
    p256dh: Optional[str]
    auth: Optional[str]
    user_id: str
    name_tag: Optional[str] = None
    id: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any], name_tag: Optional[str] = None) -> "Subscription":
        return cls(
            endpoint=row.get("endpoint") or "",
            p256dh=row.get("p256dh"),
            auth=row.get("auth"),
            user_id=str(row.get("user_id") or ""),
            name_tag=name_tag if name_tag is not None else row.get("name_tag"),
            id=str(row["id"]) if row.get("id") is not None else None,
        )

    @property
    def display_name(self) -> str:
        return self.name_tag or self.user_id

    def public_key_bytes(self) -> bytes:
        return self._decode_key(self.p256dh, "p256dh")

    def auth_secret_bytes(self) -> bytes:
        return self._decode_key(self.auth, "auth")

    def _decode_key(self, value: Optional[str], name: str) -> bytes:
        if not value:
            raise ValidationError(
                f"Missing encryption key ({name}) for user {self.display_name}."
            )
        try:
            return b64url_decode(value)
        except ValueError as exc:
            raise ValidationError(
                f"Encryption key ({name}) for user {self.display_name} is not valid base64url."
            ) from exc


class DeliveryStatus(str, Enum):
    SENT = "sent"
    EXPIRED = "expired"
    FAILED = "failed"
    ERROR = "error"


class DeliveryOutcome(BaseModel):
    """
    購読 1件分の配信結果。

    failed の場合は code/error に Push サービスのレスポンスを、
    error の場合は message に例外内容を入れる。
    """

    model_config = ConfigDict(populate_by_name=True)

    user: str = Field(..., description="name_tag（なければ user_id）")
    user_id: str = Field(..., alias="userId", description="購読の所有ユーザー ID")
    status: DeliveryStatus
    platform: Optional[str] = Field(None, description="クライアント分類ラベル（iOS Safari / Other）")
    message_type: Optional[str] = Field(None, alias="messageType")
    code: Optional[int] = Field(None, description="Push サービスの HTTP ステータス（failed 時）")
    error: Optional[str] = Field(None, description="Push サービスのレスポンス本文（failed 時）")
    message: Optional[str] = Field(None, alias="msg", description="例外メッセージ（error 時）")


class DeliverySummary(BaseModel):
    """配信結果の集計。"""

    model_config = ConfigDict(populate_by_name=True)

    total: int = Field(0, ge=0)
    sent: int = Field(0, ge=0)
    expired: int = Field(0, ge=0)
    failed: int = Field(0, ge=0)
    errors: int = Field(0, ge=0)
    expired_users: List[str] = Field(default_factory=list, alias="expiredUsers")
    failed_users: List[str] = Field(default_factory=list, alias="failedUsers")
    error_users: List[str] = Field(default_factory=list, alias="errorUsers")


@dataclass
class DeliveryReport:
    """Dispatcher の戻り値。全パイプライン完了後に一度だけ組み立てられる。"""

    outcomes: List[DeliveryOutcome] = field(default_factory=list)
    summary: DeliverySummary = field(default_factory=DeliverySummary)

# backend/app/subscriptions/store.py

"""
購読ストア / ユーザーディレクトリのインターフェース。

配信コアからは以下の操作だけを使う:
- find_subscriptions: ユーザー ID 指定（None なら全件）で購読を取得
- delete_subscription: 期限切れ購読 1行の削除
- resolve_user_ids: name_tag → user_id の解決
"""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Sequence

from app.webpush.schemas import Subscription


class StoreError(RuntimeError):
    """購読ストア / ユーザーディレクトリへのアクセス失敗。リクエスト全体を失敗させる。"""


class SubscriptionNotFoundError(StoreError):
    """対象となるユーザー・購読が見つからない場合の例外（404 にマッピングする）。"""


class SubscriptionStore(Protocol):
    async def find_subscriptions(
        self, user_ids: Optional[Sequence[str]] = None
    ) -> List[Subscription]:  # pragma: no cover - Protocol
        ...

    async def delete_subscription(
        self, user_id: str, endpoint: str
    ) -> None:  # pragma: no cover - Protocol
        ...


class UserDirectory(Protocol):
    async def resolve_user_ids(
        self, name_tags: Sequence[str]
    ) -> Dict[str, str]:  # pragma: no cover - Protocol
        ...

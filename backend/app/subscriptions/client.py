# backend/app/subscriptions/client.py

"""
Supabase (PostgREST) と通信する購読ストア / ユーザーディレクトリ実装。

- users テーブル: id, name_tag
- push_subscriptions テーブル: id, user_id, endpoint, p256dh, auth
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from app.webpush.schemas import Subscription

from .config import SupabaseConfig, get_supabase_config
from .store import StoreError

logger = logging.getLogger(__name__)

USERS_TABLE = "users"
SUBSCRIPTIONS_TABLE = "push_subscriptions"


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _in_filter(values: Sequence[str]) -> str:
    """PostgREST の in フィルタ文字列 in.("a","b") を組み立てる。"""
    return "in.(" + ",".join(_quote(v) for v in values) + ")"


class SupabaseClient:
    """
    Supabase REST API の薄いラッパークライアント。

    SubscriptionStore と UserDirectory の両方のインターフェースを満たす。
    """

    def __init__(
        self,
        config: Optional[SupabaseConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config or get_supabase_config()
        self._transport = transport

    def _build_headers(self) -> Dict[str, str]:
        key = self.config.service_role_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    def _raise_for_status(self, response: httpx.Response) -> None:
        if response.status_code >= 400:
            raise StoreError(
                f"Supabase API error: {response.status_code} {response.text}"
            )

    async def _request(
        self,
        method: str,
        table: str,
        params: Dict[str, str],
    ) -> httpx.Response:
        url = f"{self.config.rest_base_url}/{table}"
        try:
            async with httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    params=params,
                    headers=self._build_headers(),
                )
        except httpx.RequestError as exc:
            raise StoreError(f"Failed to call Supabase API: {exc}") from exc

        self._raise_for_status(response)
        return response

    async def _select(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
        response = await self._request("GET", table, params)
        try:
            rows = response.json()
        except ValueError as exc:
            raise StoreError("Unexpected Supabase response: body is not JSON.") from exc

        if not isinstance(rows, list):
            raise StoreError("Unexpected Supabase response format: rows is not a list.")
        return rows

    async def resolve_user_ids(self, name_tags: Sequence[str]) -> Dict[str, str]:
        """
        name_tag（大文字小文字を区別しない）から user_id を解決する。

        :return: {user_id: name_tag}。見つからなかった name_tag は含まれない。
        """
        lowered = [tag.lower() for tag in name_tags]
        if not lowered:
            return {}

        rows = await self._select(
            USERS_TABLE,
            {"select": "id,name_tag", "name_tag": _in_filter(lowered)},
        )
        return {str(row["id"]): row.get("name_tag") for row in rows if row.get("id") is not None}

    async def find_subscriptions(
        self, user_ids: Optional[Sequence[str]] = None
    ) -> List[Subscription]:
        """
        購読を取得する。

        - user_ids 指定時: そのユーザーの購読のみ（name_tag は呼び出し側で補う）
        - None の場合: 全購読を users テーブルと内部結合して name_tag 付きで返す
        """
        if user_ids is not None:
            if not user_ids:
                return []
            rows = await self._select(
                SUBSCRIPTIONS_TABLE,
                {"select": "*", "user_id": _in_filter(list(user_ids))},
            )
            return [Subscription.from_row(row) for row in rows]

        rows = await self._select(
            SUBSCRIPTIONS_TABLE,
            {"select": "*,users!inner(name_tag)"},
        )

        subscriptions: List[Subscription] = []
        for row in rows:
            owner = row.get("users") or {}
            name_tag = owner.get("name_tag") if isinstance(owner, dict) else None
            if not name_tag:
                raise StoreError(
                    f"Subscription {row.get('id')} is missing user name_tag. "
                    "Database integrity issue."
                )
            subscriptions.append(Subscription.from_row(row, name_tag=name_tag))
        return subscriptions

    async def delete_subscription(self, user_id: str, endpoint: str) -> None:
        """期限切れとなった購読 1行（所有者 + エンドポイント）を削除する。"""
        await self._request(
            "DELETE",
            SUBSCRIPTIONS_TABLE,
            {"user_id": f"eq.{user_id}", "endpoint": f"eq.{endpoint}"},
        )
        logger.info("Deleted expired push subscription for user %s.", user_id)

# backend/app/webpush/policy.py

"""
Push サービス（ベンダー）ごとのクライアント分類テーブル。

一部のベンダー（例: iOS Safari の web.push.apple.com）は暗号化されたカスタムペイロードを
正しく扱えないため、空ペイロードの wake ping のみ送る「制限付きクライアント」として扱う。
新しいベンダーの癖は Dispatcher を触らずにこのテーブルへ追加する。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Tuple
from urllib.parse import urlsplit

from .config import DEFAULT_RECORD_SIZE, REDUCED_RECORD_SIZE, WebPushSettings

DEFAULT_LABEL = "Other"

_KNOWN_LABELS = {
    "web.push.apple.com": "iOS Safari",
}


@dataclass(frozen=True)
class ClientRule:
    """エンドポイントのホスト部分文字列にマッチするルール。"""

    label: str
    host_pattern: str
    restricted: bool = False
    record_size: Optional[int] = None


@dataclass(frozen=True)
class ClientProfile:
    """classify() の結果。"""

    label: str
    restricted: bool
    record_size: int = DEFAULT_RECORD_SIZE


class ClientPolicy:
    """
    ClientRule のテーブル。先にマッチしたルールが優先される。

    どのルールにもマッチしない場合は "Other"（制限なし・レコードサイズ 4096）。
    """

    def __init__(self, rules: Iterable[ClientRule] = ()) -> None:
        self._rules: Tuple[ClientRule, ...] = tuple(rules)

    @property
    def rules(self) -> Tuple[ClientRule, ...]:
        return self._rules

    @classmethod
    def from_settings(cls, settings: WebPushSettings) -> "ClientPolicy":
        rules = [
            ClientRule(
                label=_KNOWN_LABELS.get(host, host),
                host_pattern=host,
                restricted=True,
            )
            for host in settings.restricted_hosts
        ]
        rules.extend(
            ClientRule(
                label=_KNOWN_LABELS.get(host, host),
                host_pattern=host,
                record_size=REDUCED_RECORD_SIZE,
            )
            for host in settings.reduced_record_size_hosts
        )
        return cls(rules)

    def classify(self, endpoint: str) -> ClientProfile:
        try:
            host = (urlsplit(endpoint).hostname or "").lower()
        except ValueError:
            host = ""

        for rule in self._rules:
            if host and rule.host_pattern.lower() in host:
                return ClientProfile(
                    label=rule.label,
                    restricted=rule.restricted,
                    record_size=rule.record_size or DEFAULT_RECORD_SIZE,
                )

        return ClientProfile(label=DEFAULT_LABEL, restricted=False)

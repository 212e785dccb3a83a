# backend/app/webpush/config.py

"""
Web Push 配信に必要な設定値をまとめるモジュール。
"""

from dataclasses import dataclass, field
from functools import lru_cache
from typing import Optional, Tuple

from app.utils.config import get_env, get_env_int, get_env_list

DEFAULT_TTL_SECONDS = 86400
DEFAULT_RECORD_SIZE = 4096
REDUCED_RECORD_SIZE = 3072


@dataclass(frozen=True)
class WebPushSettings:
    """VAPID 鍵・配信ポリシー用の設定値コンテナ。"""

    vapid_public_key: str
    vapid_private_key: str
    vapid_subject: str = "hello@sugary.app"
    ttl_seconds: int = DEFAULT_TTL_SECONDS
    request_timeout_seconds: int = 10
    max_concurrency: Optional[int] = None
    dispatch_timeout_seconds: Optional[int] = None
    restricted_hosts: Tuple[str, ...] = ("web.push.apple.com",)
    reduced_record_size_hosts: Tuple[str, ...] = field(default_factory=tuple)


@lru_cache()
def get_webpush_settings() -> WebPushSettings:
    """
    環境変数から Web Push 設定を読み込む。

    必須:
      - VAPID_PUBLIC_KEY  (base64url, 65 バイトの非圧縮点)
      - VAPID_PRIVATE_KEY (base64url, 32 バイトのスカラー)

    任意:
      - VAPID_SUBJECT                      (デフォルト: hello@sugary.app)
      - WEBPUSH_TTL_SECONDS                (デフォルト: 86400)
      - WEBPUSH_REQUEST_TIMEOUT_SECONDS    (デフォルト: 10)
      - WEBPUSH_MAX_CONCURRENCY            (未設定なら同時実行数の上限なし)
      - WEBPUSH_DISPATCH_TIMEOUT_SECONDS   (全配信の待ち時間の上限。未設定なら無制限)
      - WEBPUSH_RESTRICTED_HOSTS           (デフォルト: web.push.apple.com)
      - WEBPUSH_REDUCED_RECORD_SIZE_HOSTS  (レコードサイズ 3072 を使うホスト)
    """
    max_concurrency = get_env_int("WEBPUSH_MAX_CONCURRENCY", default=None)
    if max_concurrency is not None and max_concurrency <= 0:
        max_concurrency = None

    dispatch_timeout = get_env_int("WEBPUSH_DISPATCH_TIMEOUT_SECONDS", default=None)
    if dispatch_timeout is not None and dispatch_timeout <= 0:
        dispatch_timeout = None

    return WebPushSettings(
        vapid_public_key=get_env("VAPID_PUBLIC_KEY"),
        vapid_private_key=get_env("VAPID_PRIVATE_KEY"),
        vapid_subject=get_env("VAPID_SUBJECT", default="hello@sugary.app", required=False),
        ttl_seconds=get_env_int("WEBPUSH_TTL_SECONDS", default=DEFAULT_TTL_SECONDS),
        request_timeout_seconds=get_env_int("WEBPUSH_REQUEST_TIMEOUT_SECONDS", default=10),
        max_concurrency=max_concurrency,
        dispatch_timeout_seconds=dispatch_timeout,
        restricted_hosts=tuple(
            get_env_list("WEBPUSH_RESTRICTED_HOSTS", default="web.push.apple.com")
        ),
        reduced_record_size_hosts=tuple(get_env_list("WEBPUSH_REDUCED_RECORD_SIZE_HOSTS")),
    )

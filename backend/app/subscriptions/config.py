# backend/app/subscriptions/config.py

"""
Supabase（購読ストア）接続に必要な設定値をまとめるモジュール。
"""

from dataclasses import dataclass
from functools import lru_cache

from app.utils.config import get_env, get_env_int


@dataclass(frozen=True)
class SupabaseConfig:
    """Supabase REST API 用の設定値コンテナ。"""

    url: str
    service_role_key: str
    timeout_seconds: int = 10

    @property
    def rest_base_url(self) -> str:
        return f"{self.url.rstrip('/')}/rest/v1"


@lru_cache()
def get_supabase_config() -> SupabaseConfig:
    """
    環境変数から Supabase 設定を読み込む。

    必須:
      - SUPABASE_URL
      - SUPABASE_SERVICE_ROLE_KEY

    任意:
      - SUPABASE_TIMEOUT_SECONDS (デフォルト: 10)
    """
    return SupabaseConfig(
        url=get_env("SUPABASE_URL"),
        service_role_key=get_env("SUPABASE_SERVICE_ROLE_KEY"),
        timeout_seconds=get_env_int("SUPABASE_TIMEOUT_SECONDS", default=10),
    )

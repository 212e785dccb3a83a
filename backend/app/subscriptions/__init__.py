"""
購読ストア / ユーザーディレクトリ連携モジュール。

- config: Supabase 接続設定
- store: 配信コアが使うインターフェースと例外
- client: Supabase (PostgREST) 実装
"""

from .client import SupabaseClient  # noqa: F401
from .store import (  # noqa: F401
    StoreError,
    SubscriptionNotFoundError,
    SubscriptionStore,
    UserDirectory,
)

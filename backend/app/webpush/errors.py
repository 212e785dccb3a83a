# backend/app/webpush/errors.py

"""
Web Push 配信パイプラインの例外階層。

いずれも「購読 1件分」にスコープされる例外で、Dispatcher のパイプライン境界で
DeliveryOutcome に変換される（他の購読の配信には波及させない）。
"""

from __future__ import annotations

from typing import Optional


class WebPushError(Exception):
    """Web Push 配信全般の基底例外。"""


class ValidationError(WebPushError):
    """購読情報が不正な場合の例外（https でない endpoint, 鍵長の不一致など）。"""


class UnsupportedClientError(ValidationError):
    """制限付きクライアントに暗号化カスタムメッセージを送ろうとした場合の例外。"""


class CryptoError(WebPushError):
    """鍵のインポート・鍵導出・署名・暗号化の失敗。"""


class NetworkError(WebPushError):
    """Push エンドポイントへの接続エラー・タイムアウト。"""


class ProtocolError(WebPushError):
    """Push エンドポイントが想定外の HTTP ステータスを返した場合の例外。"""

    def __init__(self, status_code: int, body: Optional[str] = None) -> None:
        super().__init__(f"Push service error: status_code={status_code}")
        self.status_code = status_code
        self.body = body

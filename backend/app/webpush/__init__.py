"""
Web Push 配信コア。

- config: VAPID 鍵・TTL・同時実行数などの設定値
- vapid: VAPID (ES256 JWT) 認証ヘッダの発行
- encryption: aes128gcm ペイロード暗号化
- policy: Push サービスごとのクライアント分類テーブル
- dispatcher: 購読ごとの並行配信パイプライン
- aggregator: 配信結果の集計
"""

from .dispatcher import DeliveryDispatcher  # noqa: F401
from .schemas import (  # noqa: F401
    DeliveryOutcome,
    DeliveryReport,
    DeliveryStatus,
    DeliverySummary,
    NotificationPlan,
    NotificationType,
    NotificationUrgency,
    RequestMode,
    Subscription,
)
from .vapid import VapidKeyPair, generate_vapid_key_pair  # noqa: F401

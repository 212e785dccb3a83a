# backend/app/webpush/aggregator.py

"""配信結果の集計（全パイプライン完了後に一度だけ呼ばれる純粋関数）。"""

from __future__ import annotations

from typing import Dict, Iterable, List

from .schemas import DeliveryOutcome, DeliveryStatus, DeliverySummary


def summarize(outcomes: Iterable[DeliveryOutcome]) -> DeliverySummary:
    """
    DeliveryOutcome の列を種別ごとの件数と、sent 以外の種別ごとのユーザー一覧に畳み込む。
    """
    users: Dict[DeliveryStatus, List[str]] = {status: [] for status in DeliveryStatus}

    for outcome in outcomes:
        users[outcome.status].append(outcome.user)

    return DeliverySummary(
        total=sum(len(names) for names in users.values()),
        sent=len(users[DeliveryStatus.SENT]),
        expired=len(users[DeliveryStatus.EXPIRED]),
        failed=len(users[DeliveryStatus.FAILED]),
        errors=len(users[DeliveryStatus.ERROR]),
        expired_users=users[DeliveryStatus.EXPIRED],
        failed_users=users[DeliveryStatus.FAILED],
        error_users=users[DeliveryStatus.ERROR],
    )

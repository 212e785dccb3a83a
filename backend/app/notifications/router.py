# backend/app/notifications/router.py

"""
通知送信用の FastAPI ルーター定義。

- POST /notifications/send
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status

from app.subscriptions.store import StoreError, SubscriptionNotFoundError

from .factory import get_notification_service
from .schemas import NotificationRequest, NotificationSendResponse
from .service import DispatchTimeoutError, NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post(
    "/send",
    response_model=NotificationSendResponse,
    response_model_exclude_none=True,
    summary="購読者へ Web Push 通知を一斉送信する",
)
async def send_notification(
    body: Optional[NotificationRequest] = Body(None),
    service: NotificationService = Depends(get_notification_service),
) -> NotificationSendResponse:
    """
    購読者へ通知を送信し、購読ごとの結果と集計を返す。

    - ボディなし / {} → EMPTY モード（受信側が時刻から種別を推定）
    - 対象ユーザー・購読が見つからない → 404 Not Found
    - ストア障害・配信タイムアウトなどの想定外エラー → 500 Internal Server Error

    購読 1件ごとの失敗はレスポンスの results / summary に含まれ、ステータスは 200 のまま。
    """
    request = body or NotificationRequest()

    try:
        return await service.send(request)
    except SubscriptionNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": str(exc), "targetUsers": request.users or "all"},
        ) from exc
    except DispatchTimeoutError as exc:
        logger.error("Notification dispatch timed out: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": str(exc)},
        ) from exc
    except StoreError as exc:
        logger.error("Subscription store failure: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": str(exc)},
        ) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error while sending notifications.")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": str(exc) or "Internal server error while sending notifications."},
        ) from exc

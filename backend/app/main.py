# backend/app/main.py

"""
バックエンドアプリケーションのエントリーポイント。

主な責務:
- /notifications/send エンドポイントを公開する
- /health エンドポイントを公開する
- すべてのレスポンス（エラー含む）に CORS ヘッダを付与する
"""

from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.notifications.router import router as notifications_router
from app.notifications.service import NotificationService

CORS_ALLOW_HEADERS = ["authorization", "x-client-info", "apikey", "content-type"]


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    HTTPException を {"error": ..., ...} 形式のトップレベル JSON で返す。

    detail が dict の場合はそのまま本文にし、文字列の場合は error キーに入れる。
    """
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"error": exc.detail}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


def create_app(notification_service: Optional[NotificationService] = None) -> FastAPI:
    """
    FastAPI アプリケーションファクトリ。

    - 通知送信エンドポイント (/notifications/send)
    - ヘルスチェックエンドポイント (/health)

    :param notification_service: テストなどで差し込む NotificationService。
        None の場合は初回リクエスト時に環境変数から生成する。
    """
    app = FastAPI(title="Sugary Push Backend")

    if notification_service is not None:
        app.state.notification_service = notification_service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=CORS_ALLOW_HEADERS,
    )

    # ExceptionMiddleware で処理されるため、エラー応答にも CORS ヘッダが付く
    app.add_exception_handler(HTTPException, http_exception_handler)

    # ルーター登録
    app.include_router(notifications_router)

    @app.get("/health", tags=["health"])
    def health_check() -> dict:
        """
        簡易ヘルスチェックエンドポイント。
        モニタリングや動作確認用。
        """
        return {"status": "ok"}

    return app


# uvicorn 実行時のエントリーポイント
app = create_app()

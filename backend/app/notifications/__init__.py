# backend/app/notifications/__init__.py

"""
通知送信 API 用モジュール群。

構成イメージ:
- schemas: 通知送信リクエスト / レスポンスのスキーマ
- service: 送信対象の解決と配信・レスポンス組み立て
- factory: 設定値から NotificationService を生成
- router: POST /notifications/send
"""

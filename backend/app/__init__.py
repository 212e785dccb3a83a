# backend/app/__init__.py
"""
Sugary push notification backend application package.

This package contains:
- main: FastAPI application entrypoint
- webpush: VAPID auth, aes128gcm payload encryption and concurrent delivery
- subscriptions: push subscription store / user directory (Supabase)
- notifications: /notifications/send API
"""

# backend/trailbook/services/push_notification_service.py
"""
Web Push delivery for chat notifications.

Subscriptions are stored on the receiver's profile as the JSON object the
browser hands out (``endpoint`` plus ``keys.p256dh``/``keys.auth``).
"""

import json
import logging
from typing import Any, Dict, Optional

from pywebpush import WebPushException, webpush

from ..core.config import settings

logger = logging.getLogger(__name__)


class PushDeliveryError(RuntimeError):
    """Raised when the push service rejects or cannot accept a notification."""


class PushNotificationService:
    """Thin wrapper around ``pywebpush.webpush`` with VAPID settings applied."""

    def __init__(
        self,
        vapid_private_key: Optional[str] = None,
        vapid_claims_email: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
    ) -> None:
        if vapid_private_key is None and settings.vapid_private_key is not None:
            vapid_private_key = settings.vapid_private_key.get_secret_value()
        self.vapid_private_key = (vapid_private_key or "").strip()
        self.vapid_claims_email = vapid_claims_email or settings.vapid_claims_email
        self.ttl_seconds = ttl_seconds or settings.push_ttl_seconds
        self.logger = logging.getLogger(self.__class__.__name__)

    def is_configured(self) -> bool:
        return bool(self.vapid_private_key)

    @staticmethod
    def build_payload(title: str, body: str, data: Optional[Dict[str, Any]] = None) -> str:
        payload: Dict[str, Any] = {"title": title, "body": body, "data": data or None}
        return json.dumps({key: value for key, value in payload.items() if value is not None})

    def send(
        self,
        subscription: Dict[str, Any],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        Deliver one notification.

        Returns:
            True when delivered. False when push is not configured or the
            subscription has expired (the push service answered 404/410)

        Raises:
            PushDeliveryError: the push service failed to accept the notification
        """
        if not self.is_configured():
            self.logger.warning("Push notifications not configured; skipping send")
            return False

        try:
            webpush(
                subscription_info=subscription,
                data=self.build_payload(title, body, data),
                vapid_private_key=self.vapid_private_key,
                vapid_claims={"sub": self.vapid_claims_email},
                ttl=self.ttl_seconds,
            )
            return True
        except WebPushException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            if status_code in (404, 410):
                self.logger.info(
                    "Push subscription expired endpoint=%s", subscription.get("endpoint")
                )
                return False
            self.logger.error("Push send failed: %s", exc)
            raise PushDeliveryError(str(exc)) from exc

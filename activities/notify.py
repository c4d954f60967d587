"""Notification delivery activity.

Runs on the notification worker. Delivers one NotificationEvent through the
NotificationService; a failure to read the user directory raises so Temporal
retries the activity.
"""

import time
from typing import Optional

from temporalio import activity

from core.config import Settings
from core.notifications.events import NotificationEvent
from core.notifications.service import NotificationService
from core.notifications.telegram import TelegramClient
from core.observability.logging import (
    log_activity_complete,
    log_activity_error,
    log_activity_start,
    with_correlation,
)
from core.storage.reference import UserDirectory

_service: Optional[NotificationService] = None


def build_notification_service(settings: Settings) -> NotificationService:
    return NotificationService(
        users=UserDirectory(settings.db_path),
        sender=TelegramClient(settings.telegram_bot_token, settings.telegram_api_url),
        app_base_url=settings.app_base_url,
        coordination_department=settings.coordination_department,
    )


def set_notification_service(service: Optional[NotificationService]) -> None:
    """Install the service used by the activity (worker startup, tests)."""
    global _service
    _service = service


def get_notification_service() -> NotificationService:
    global _service
    if _service is None:
        _service = build_notification_service(Settings.from_env())
    return _service


@activity.defn
async def deliver_notification(event: dict) -> dict:
    """Deliver one serialized NotificationEvent; returns the delivery report."""
    notification = NotificationEvent.from_dict(event)
    attempt = activity.info().attempt
    started = time.monotonic()

    with with_correlation(order_id=notification.order_id, event_id=notification.event_id, operation="notify"):
        log_activity_start("deliver_notification", kind=notification.kind.value, attempt=attempt)
        try:
            report = await get_notification_service().deliver(notification)
        except Exception as e:
            log_activity_error("deliver_notification", str(e), attempt=attempt)
            raise
        log_activity_complete(
            "deliver_notification",
            duration_ms=round((time.monotonic() - started) * 1000, 1),
            sent=report.sent,
            failed=report.failed,
        )
    return report.to_dict()

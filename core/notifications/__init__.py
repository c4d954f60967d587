"""Order notifications: events, rendering, delivery and dispatch."""

from core.notifications.events import NotificationEvent, NotificationKind
from core.notifications.dispatcher import (
    NotificationDispatcher,
    InProcessNotificationDispatcher,
    TemporalNotificationDispatcher,
)
from core.notifications.service import NotificationService, DeliveryReport
from core.notifications.telegram import TelegramClient

__all__ = [
    "NotificationEvent",
    "NotificationKind",
    "NotificationDispatcher",
    "InProcessNotificationDispatcher",
    "TemporalNotificationDispatcher",
    "NotificationService",
    "DeliveryReport",
    "TelegramClient",
]

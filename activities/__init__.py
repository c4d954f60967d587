"""Activity definitions module."""

from activities.notify import deliver_notification

__all__ = ["deliver_notification"]

"""
Notification Service

Turns a NotificationEvent into chat messages: resolves recipients from the
user directory, renders the text and sends it through Telegram.

Per-recipient send failures are logged and counted, never raised. A failure
to read the user directory does raise, so a Temporal activity can retry it.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Protocol, Tuple

from core.errors import NotificationError
from core.notifications import messages
from core.notifications.events import NotificationEvent, NotificationKind
from core.notifications.messages import RenderedMessage
from core.observability.logging import get_logger, with_correlation
from core.storage.reference import UserDirectory

logger = get_logger(__name__)


class MessageSender(Protocol):
    async def send_message(self, chat_id: str, text: str, reply_markup: Optional[dict] = None) -> None:
        ...


@dataclass
class DeliveryReport:
    """How many messages went out for one event."""
    event_id: str
    kind: str
    sent: int = 0
    failed: int = 0
    recipients: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "kind": self.kind,
            "sent": self.sent,
            "failed": self.failed,
            "recipients": list(self.recipients),
        }


class NotificationService:
    """Delivers order notifications to staff.

    Args:
        users: Directory of registered staff users
        sender: Anything with an async send_message (TelegramClient in production)
        app_base_url: Base of the staff UI, used for deep links
        coordination_department: Department told about every update and split
    """

    def __init__(
        self,
        users: UserDirectory,
        sender: MessageSender,
        app_base_url: str,
        coordination_department: str,
    ):
        self.users = users
        self.sender = sender
        self.app_base_url = app_base_url.rstrip("/")
        self.coordination_department = coordination_department

    def order_url(self, order_id: str) -> str:
        return f"{self.app_base_url}/order/{order_id}"

    def response_url(self, order_id: str) -> str:
        return f"{self.app_base_url}/response/{order_id}"

    def _department_ids(self, department: str) -> List[str]:
        return [user.telegram_id for user in self.users.department_members(department)]

    def plan(self, event: NotificationEvent) -> List[Tuple[str, RenderedMessage]]:
        """Resolve (chat_id, message) pairs for an event."""
        order_url = self.order_url(event.order_id)

        if event.kind == NotificationKind.ORDER_UPDATED:
            message = messages.order_updated(event.order_id, order_url)
            return [(chat_id, message) for chat_id in self._department_ids(self.coordination_department)]

        if event.kind == NotificationKind.REVIEW_REQUESTED:
            message = messages.review_requested(
                event.order_id, order_url, self.response_url(event.order_id), event.department or ""
            )
            return [(chat_id, message) for chat_id in self._department_ids(event.department or "")]

        if event.kind == NotificationKind.SPLIT_CREATED:
            message = messages.split_created(
                event.order_id,
                event.new_order_id or "",
                event.new_order_number or "",
                self.order_url(event.new_order_id or event.order_id),
            )
            return [(chat_id, message) for chat_id in self._department_ids(self.coordination_department)]

        if event.kind == NotificationKind.RESPONSE_RECORDED:
            planned: List[Tuple[str, RenderedMessage]] = []
            if event.action == "revise" and event.updated_by:
                planned.append((
                    str(event.updated_by),
                    messages.revision_requested(event.order_id, event.department or "", event.remark, order_url),
                ))
            status = messages.response_status(event.order_id, event.department or "", event.action or "", order_url)
            for department in event.departments:
                planned.extend((chat_id, status) for chat_id in self._department_ids(department))
            return planned

        raise NotificationError(f"Unknown notification kind: {event.kind}")

    async def deliver(self, event: NotificationEvent) -> DeliveryReport:
        """Send every message for an event; returns counts."""
        report = DeliveryReport(event_id=event.event_id, kind=event.kind.value)

        with with_correlation(order_id=event.order_id, event_id=event.event_id, operation="notify"):
            planned = self.plan(event)
            if not planned:
                logger.info(f"No recipients for {event.kind.value}")
                return report

            for chat_id, message in planned:
                try:
                    await self.sender.send_message(chat_id, message.text, message.reply_markup)
                    report.sent += 1
                    report.recipients.append(chat_id)
                except NotificationError as e:
                    report.failed += 1
                    logger.warning(f"Failed to notify {chat_id}: {e}")

            logger.info(
                f"Delivered {event.kind.value}: {report.sent} sent, {report.failed} failed",
                extra_fields={"sent": report.sent, "failed": report.failed},
            )
        return report

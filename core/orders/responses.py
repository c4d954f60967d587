"""Department review responses (approve / revise)."""

from typing import Optional

from core.errors import NotificationError, OrderValidationError
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.events import NotificationEvent
from core.observability.logging import get_logger, with_correlation
from core.storage.workflow import OrderWorkflowStore

logger = get_logger(__name__)

RESPONSE_ACTIONS = ("approve", "revise")


class ResponseService:
    def __init__(self, workflow_store: OrderWorkflowStore, dispatcher: NotificationDispatcher):
        self.workflow_store = workflow_store
        self.dispatcher = dispatcher

    async def respond(
        self,
        order_id: str,
        department: Optional[str],
        action: Optional[str],
        remark: str = "",
        responded_by: Optional[str] = None,
    ) -> bool:
        """Record a response and queue the status notifications.

        Returns True when the notification was queued.
        """
        if not department or not action:
            raise OrderValidationError("Missing department or action")
        if action not in RESPONSE_ACTIONS:
            raise OrderValidationError(f"Unknown action {action!r}; expected approve or revise")

        order_id = str(order_id)
        responded_by = str(responded_by) if responded_by is not None else None

        with with_correlation(order_id=order_id, operation="respond", actor=responded_by):
            self.workflow_store.record_response(order_id, department, action, remark or "", responded_by)
            assignment = self.workflow_store.get_assignment(order_id)
            logger.info(f"{department} responded {action}")

            event = NotificationEvent.response_recorded(
                order_id,
                department,
                action,
                remark=remark or "",
                actor=responded_by,
                updated_by=assignment.updated_by if assignment else None,
                departments=assignment.selected_departments if assignment else [],
            )
            try:
                await self.dispatcher.dispatch(event)
            except NotificationError as e:
                logger.warning(f"Response notification not queued: {e}")
                return False
            return True

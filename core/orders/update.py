"""
Order Update Orchestrator

Applies a locally edited order to the ERP in a single pass:

1. Fetch the remote header and diff it; PATCH only changed fields
2. For every submitted line whose href is a line of this order, fetch, diff
   and PATCH that line; any other href is reported as a failed line
3. If any PATCH succeeded, queue notifications (coordination department and,
   when departments were selected, a review request per department)

Header and lines are not updated atomically. Each attempt, successful or not,
produces exactly one log entry, and a failed line does not stop the others.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from connectors.erp_base import ERPError, SalesOrderGateway
from core.errors import NotificationError, PersistenceError
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.events import NotificationEvent
from core.observability.logging import get_logger, with_correlation
from core.orders.diff import HEADER_FIELDS, LINE_FIELDS, check_numeric_fields, diff_header, diff_line
from core.orders.models import LineUpdateResult, UpdateResult
from core.storage.workflow import OrderWorkflowStore

logger = get_logger(__name__)


class OrderUpdateOrchestrator:
    """Drives the Diff Engine and the gateway for an order update."""

    def __init__(
        self,
        gateway: SalesOrderGateway,
        workflow_store: OrderWorkflowStore,
        dispatcher: NotificationDispatcher,
        coordination_department: str = "Sales Coordination",
    ):
        self.gateway = gateway
        self.workflow_store = workflow_store
        self.dispatcher = dispatcher
        self.coordination_department = coordination_department

    async def apply_order_update(
        self,
        order_id: str,
        local_header: Mapping[str, Any],
        local_lines: Sequence[Mapping[str, Any]] = (),
        selected_departments: Sequence[str] = (),
        actor: Optional[str] = None,
    ) -> UpdateResult:
        """Apply header and line edits.

        Raises:
            OrderValidationError: A numeric field is not a number (before any remote call)
            ERPNotFoundError: The order does not exist
            ERPRemoteError: The order header could not be fetched
        """
        order_id = str(order_id)
        actor = str(actor) if actor is not None else None

        with with_correlation(order_id=order_id, operation="update", actor=actor):
            check_numeric_fields(local_header, HEADER_FIELDS)
            for index, line in enumerate(local_lines, start=1):
                check_numeric_fields(line, LINE_FIELDS, label=f"line {index} ")

            remote = (await self.gateway.fetch_order(order_id)).unwrap()
            result = UpdateResult()

            header_changes = diff_header(remote, local_header)
            await self._apply_header(order_id, header_changes, result)

            for index, line in enumerate(local_lines, start=1):
                await self._apply_line(order_id, index, line, result)

            if result.header_updated or any(r.success for r in result.line_results):
                await self._notify(order_id, list(selected_departments), actor, result)

            return result

    async def _apply_header(self, order_id: str, changes: Dict[str, Any], result: UpdateResult) -> None:
        if not changes:
            result.logs.append("✅ No header changes detected")
            return

        try:
            outcome = await self.gateway.patch_order_header(order_id, changes)
        except ERPError as e:
            logger.error(f"Header update failed: {e}")
            result.logs.append(f"❌ Failed to update header: {e}")
            return

        if outcome.success:
            result.header_updated = True
            result.logs.append(f"✅ Updated header: HTTP {outcome.status}")
        else:
            result.logs.append(f"❌ Failed to update header: {outcome.message}")

    async def _apply_line(self, order_id: str, index: int, line: Mapping[str, Any], result: UpdateResult) -> None:
        href = line.get("href")
        if not href:
            return

        if not self.gateway.line_belongs_to(order_id, href):
            logger.warning(f"Line {index} href {href} is not a line of sales order {order_id}")
            result.logs.append(f"❌ [Line {index}] Failed: not a line of sales order {order_id}")
            result.line_results.append(LineUpdateResult(index, False))
            return

        try:
            remote_line = await self.gateway.fetch_order_line(href)
        except ERPError as e:
            logger.error(f"Line {index} fetch failed: {e}")
            result.logs.append(f"❌ [Line {index}] Failed: {e}")
            result.line_results.append(LineUpdateResult(index, False))
            return

        changes = diff_line(remote_line, line)
        if not changes:
            result.logs.append(f"✅ [Line {index}] No changes detected")
            return

        try:
            outcome = await self.gateway.patch_order_line(href, changes)
        except ERPError as e:
            logger.error(f"Line {index} update failed: {e}")
            result.logs.append(f"❌ [Line {index}] Failed: {e}")
            result.line_results.append(LineUpdateResult(index, False))
            return

        if outcome.success:
            result.logs.append(f"✅ [Line {index}] Updated: HTTP {outcome.status}")
        else:
            result.logs.append(f"❌ [Line {index}] Failed: {outcome.message}")
        result.line_results.append(LineUpdateResult(index, outcome.success))

    async def _notify(
        self,
        order_id: str,
        departments: List[str],
        actor: Optional[str],
        result: UpdateResult,
    ) -> None:
        """Queue notifications; failures become log entries, never errors."""
        await self._dispatch(
            NotificationEvent.order_updated(order_id, actor),
            f"✅ Notification queued for {self.coordination_department}",
            f"❌ Error notifying {self.coordination_department}",
            result,
        )

        if not departments:
            return

        try:
            self.workflow_store.save_assignment(order_id, actor, departments)
        except PersistenceError as e:
            logger.error(f"Could not save review assignment: {e}")
            result.logs.append(f"❌ Failed to save review assignment: {e}")

        for department in departments:
            await self._dispatch(
                NotificationEvent.review_requested(order_id, department, actor),
                f"✅ Review request queued for {department}",
                f"❌ Error notifying {department}",
                result,
            )

    async def _dispatch(self, event: NotificationEvent, ok: str, failed: str, result: UpdateResult) -> None:
        try:
            await self.dispatcher.dispatch(event)
            result.logs.append(ok)
        except NotificationError as e:
            logger.warning(f"{failed}: {e}")
            result.logs.append(f"{failed}: {e}")

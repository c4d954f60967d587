"""
Notification Workflow

One workflow per NotificationEvent. Delivery runs as an activity so a
transient failure (user directory locked, worker restart) is retried by
Temporal instead of being lost.
"""

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from activities.notify import deliver_notification


DELIVERY_RETRY_POLICY = RetryPolicy(
    initial_interval=timedelta(seconds=2),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=3,
)


@workflow.defn
class NotificationWorkflow:
    """Delivers a single serialized NotificationEvent."""

    @workflow.run
    async def run(self, event: dict) -> dict:
        workflow.logger.info(f"Notification {event.get('kind')} for order {event.get('order_id')}")
        return await workflow.execute_activity(
            deliver_notification,
            event,
            start_to_close_timeout=timedelta(seconds=60),
            retry_policy=DELIVERY_RETRY_POLICY,
        )

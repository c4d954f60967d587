"""Notification worker.

Polls the notify task queue and runs NotificationWorkflow and the
deliver_notification activity, so chat delivery never runs inside an API
request.

Run with --queue <name> to override NOTIFY_TASK_QUEUE.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from temporalio.worker import Worker

# Add repo root to path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from temporal_client import get_temporal_client
from core.config import Settings
from core.observability.logging import configure_logging, get_logger
from core.storage.db import init_db
from workflows.notification_workflow import NotificationWorkflow
from activities.notify import build_notification_service, deliver_notification, set_notification_service

logger = get_logger(__name__)


async def run_worker(settings: Settings, queue: str = None):
    """Start a worker on the notify task queue.

    Raises:
        Exception: If connection to Temporal fails
    """
    client = None
    task_queue = queue or settings.notify_task_queue

    init_db(settings.db_path)
    service = build_notification_service(settings)
    set_notification_service(service)

    try:
        client = await get_temporal_client()
        logger.info(f"Connected to Temporal namespace: {client.namespace}")

        worker = Worker(
            client,
            task_queue=task_queue,
            workflows=[NotificationWorkflow],
            activities=[deliver_notification],
        )
        logger.info(f"Worker running on queue '{task_queue}'... (Ctrl+C to stop)")
        await worker.run()

    except KeyboardInterrupt:
        logger.info("Worker interrupted by user")
    except Exception as e:
        logger.error(f"Worker error: {e}", exc_info=True)
        raise
    finally:
        await service.sender.close()
        logger.info("Telegram session closed")


def main():
    """Entry point for worker with CLI args."""
    settings = Settings.from_env()
    parser = argparse.ArgumentParser(description="Order notification Temporal worker")
    parser.add_argument(
        "--queue", "-q",
        default=settings.notify_task_queue,
        help=f"Task queue to poll (default: {settings.notify_task_queue})"
    )
    args = parser.parse_args()

    configure_logging(level=settings.log_level, json_format=settings.log_json)
    asyncio.run(run_worker(settings, queue=args.queue))


if __name__ == "__main__":
    main()

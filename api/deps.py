"""Service container shared by the API routes.

Built once by the application lifespan (or injected by tests) and stored on
app.state.services.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from fastapi import Request

from connectors.erp_base import GatewayConfig, SalesOrderGateway, create_gateway
from core.config import Settings
from core.notifications.dispatcher import (
    InProcessNotificationDispatcher,
    NotificationDispatcher,
    TemporalNotificationDispatcher,
)
from core.notifications.service import NotificationService
from core.notifications.telegram import TelegramClient
from core.observability.logging import get_logger
from core.orders.details import OrderDetailsService
from core.orders.responses import ResponseService
from core.orders.split import SplitEngine
from core.orders.update import OrderUpdateOrchestrator
from core.storage.db import init_db
from core.storage.lineage import SplitLineageStore
from core.storage.reference import ReferenceDataStore, UserDirectory
from core.storage.workflow import OrderWorkflowStore

logger = get_logger(__name__)


@dataclass
class OrderServices:
    settings: Settings
    gateway: SalesOrderGateway
    dispatcher: NotificationDispatcher
    updater: OrderUpdateOrchestrator
    splitter: SplitEngine
    responses: ResponseService
    details: OrderDetailsService
    closeables: List[Any] = field(default_factory=list)

    async def close(self) -> None:
        await self.dispatcher.stop()
        for resource in self.closeables:
            await resource.close()


def wire_services(
    settings: Settings,
    gateway: SalesOrderGateway,
    dispatcher: NotificationDispatcher,
) -> OrderServices:
    """Assemble the engines around a gateway and a dispatcher."""
    lineage = SplitLineageStore(settings.db_path)
    workflow_store = OrderWorkflowStore(settings.db_path)
    return OrderServices(
        settings=settings,
        gateway=gateway,
        dispatcher=dispatcher,
        updater=OrderUpdateOrchestrator(
            gateway, workflow_store, dispatcher, settings.coordination_department
        ),
        splitter=SplitEngine(gateway, lineage, dispatcher),
        responses=ResponseService(workflow_store, dispatcher),
        details=OrderDetailsService(gateway, ReferenceDataStore(settings.db_path), lineage),
    )


async def build_services(settings: Settings) -> OrderServices:
    """Production wiring: NetSuite gateway plus the configured notify backend.

    Raises:
        RuntimeError: If the NetSuite configuration is incomplete
    """
    errors = settings.validate()
    if errors:
        raise RuntimeError("Invalid configuration: " + "; ".join(errors))

    init_db(settings.db_path)

    gateway = create_gateway(GatewayConfig(
        connector_type="netsuite",
        base_url=settings.netsuite_base_url,
        timeout_seconds=settings.erp_timeout_seconds,
        line_fetch_concurrency=settings.erp_line_fetch_concurrency,
        credentials=settings.erp_credentials(),
    ))

    closeables: List[Any] = [gateway]
    if settings.notify_backend == "temporal":
        from temporal_client import get_temporal_client

        client = await get_temporal_client()
        dispatcher: NotificationDispatcher = TemporalNotificationDispatcher(client, settings.notify_task_queue)
    else:
        telegram = TelegramClient(settings.telegram_bot_token, settings.telegram_api_url)
        notifier = NotificationService(
            UserDirectory(settings.db_path),
            telegram,
            settings.app_base_url,
            settings.coordination_department,
        )
        dispatcher = InProcessNotificationDispatcher(notifier.deliver)
        closeables.append(telegram)

    services = wire_services(settings, gateway, dispatcher)
    services.closeables = closeables
    logger.info(f"Order services ready (notify backend: {settings.notify_backend})")
    return services


def get_services(request: Request) -> OrderServices:
    return request.app.state.services

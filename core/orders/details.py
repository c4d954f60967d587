"""
Order detail read models.

Assembles what the order pages show: the ERP record and its lines decorated
with reference lookups, the split history, and the split family.
"""

import asyncio
from typing import Any, Dict, List, Optional

from connectors.erp_base import LookupStatus, OrderLine, SalesOrder, SalesOrderGateway
from core.observability.logging import get_logger
from core.storage.lineage import SplitLineageStore
from core.storage.reference import ReferenceDataStore

logger = get_logger(__name__)


def dump_order(order: SalesOrder) -> Dict[str, Any]:
    return order.model_dump(mode="json", exclude_none=True)


def dump_lines(lines: List[OrderLine]) -> List[Dict[str, Any]]:
    return [line.model_dump(mode="json", exclude_none=True) for line in lines]


class OrderDetailsService:
    def __init__(
        self,
        gateway: SalesOrderGateway,
        reference: ReferenceDataStore,
        lineage: SplitLineageStore,
    ):
        self.gateway = gateway
        self.reference = reference
        self.lineage = lineage

    async def get_order(self, order_id: str) -> Dict[str, Any]:
        """Order page payload. Raises ERPNotFoundError for unknown orders."""
        order = (await self.gateway.fetch_order(str(order_id))).unwrap()
        lines = await self.gateway.fetch_order_lines(str(order_id))
        customer = self.reference.customer_info(order.customer_id)

        return {
            "so": dump_order(order),
            "items": dump_lines(lines),
            "venioSONumber": self.reference.venio_so_number(order_id),
            "customerName": customer["customerName"],
            "shippingAddresses": customer["shippingAddresses"],
            "conditions": self.reference.conditions(),
            "itemMap": self.reference.item_map(),
            "locations": self.reference.locations(),
        }

    def splits(self, order_id: str) -> List[Dict[str, Any]]:
        return [record.to_dict() for record in self.lineage.history_for(str(order_id))]

    def search(self, query: Optional[str]) -> List[Dict[str, Any]]:
        return self.reference.search_orders(query)

    def staff_orders(self, staff_code: str) -> List[Dict[str, Any]]:
        return self.reference.staff_orders(staff_code)

    async def family(self, order_id: str) -> Dict[str, Any]:
        """Split history plus every directly related order."""
        order_id = str(order_id)
        splits = self.splits(order_id)

        related: List[str] = []
        for split in splits:
            for candidate in (split["parent_order_id"], split["child_order_id"]):
                if candidate != order_id and candidate not in related:
                    related.append(candidate)

        fetched = await asyncio.gather(*(self._related_order(oid) for oid in related))
        return {
            "splits": splits,
            "relatedOrders": [entry for entry in fetched if entry is not None],
        }

    async def _related_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        lookup = await self.gateway.fetch_order(order_id)
        if lookup.status == LookupStatus.NOT_FOUND:
            logger.warning(f"Related order {order_id} not found in ERP; omitted from family")
            return None
        order = lookup.unwrap()
        lines = await self.gateway.fetch_order_lines(order_id)
        return {
            "orderId": order_id,
            "so": dump_order(order),
            "items": dump_lines(lines),
            "venioSONumber": self.reference.venio_so_number(order_id),
        }

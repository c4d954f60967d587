"""
Split Engine

Creates a new sales order from part of a parent order:

1. Validate the request, fetch the parent header and lines
2. Reject any item missing from the parent or requested beyond its quantity
3. Allocate a split order number (SOV + yymm + 3-digit counter)
4. Create the new order with inherited header fields, then its lines
5. Reduce each affected parent line, deleting lines that reach zero
6. Record the split in the lineage store and queue a notification

Steps 4 and 5 are not transactional. A remote failure part-way leaves the
ERP partially split and the error propagates to the caller.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from connectors.erp_base import OrderLine, RecordRef, SalesOrder, SalesOrderGateway
from core.errors import NotificationError, OrderValidationError, PersistenceError, SplitPersistenceError
from core.notifications.dispatcher import NotificationDispatcher
from core.notifications.events import NotificationEvent
from core.observability.logging import get_logger, with_correlation
from core.orders.diff import json_number, normalize_text, to_number
from core.orders.models import SplitItemRequest, SplitResult
from core.storage.lineage import DEFAULT_SPLIT_REASON, SplitLineageStore, SplitRecord

logger = get_logger(__name__)

SPLIT_PREFIX = "SOV"

Clock = Callable[[], datetime]


# =============================================================================
# Order numbers
# =============================================================================

def split_prefix(now: datetime) -> str:
    """SOV + 2-digit year + 2-digit month, e.g. SOV2405."""
    return f"{SPLIT_PREFIX}{now:%y%m}"


def format_order_number(prefix: str, counter: int) -> str:
    return f"{prefix}{counter:03d}"


def fallback_order_number(prefix: str, now: datetime) -> str:
    """Timestamp-derived number used when the sequence is unavailable."""
    return f"{prefix}{now:%d%H%M%S}{now.microsecond // 1000:03d}"


def allocate_order_number(store: SplitLineageStore, clock: Clock = datetime.now) -> str:
    now = clock()
    prefix = split_prefix(now)
    try:
        counter = store.sequence_next(prefix)
    except PersistenceError as e:
        number = fallback_order_number(prefix, now)
        logger.warning(f"Sequence unavailable for {prefix}, using {number}: {e}")
        return number
    return format_order_number(prefix, counter)


# =============================================================================
# Payloads
# =============================================================================

def _ref(value: Any) -> Optional[Dict[str, Any]]:
    ref = RecordRef.of(value)
    if ref is None or ref.id in (None, ""):
        return None
    return {"id": ref.id}


def build_split_header(parent: SalesOrder, parent_order_id: str, new_order_number: str) -> Dict[str, Any]:
    """Header of the new order: inherited fields plus split markers."""
    shipaddress = parent.shipaddresslist
    if isinstance(shipaddress, (dict, RecordRef)):
        shipaddress = _ref(shipaddress)

    header = {
        "entity": _ref(parent.entity),
        "tranDate": parent.tranDate,
        "location": _ref(parent.location),
        "shipaddresslist": shipaddress,
        "custbody_ar_req_inv_mac5": parent.custbody_ar_req_inv_mac5,
        "custbodyar_so_memo2": f"Split from SO {parent_order_id}",
        "custbody_ar_all_memo": f"{parent.custbody_ar_all_memo or ''} - Split Order",
        "custbody_ar_estimate_contrat1": parent.custbody_ar_estimate_contrat1,
        "otherRefNum": f"{parent.otherRefNum or ''}-SPLIT",
        "memo": f"Split from {parent_order_id} - {new_order_number}",
    }
    return {k: v for k, v in header.items() if v is not None}


def build_split_line(item: SplitItemRequest) -> Dict[str, Any]:
    """New-order line, copied from the request rather than the parent."""
    return {
        "item": {"id": str(item.item_id)},
        "quantity": json_number(item.quantity),
        "rate": json_number(to_number(item.rate, "rate")),
        "description": item.description,
        "inventorylocation": _ref(item.location),
        "custcol_ice_ld_discount": json_number(to_number(item.custcol_ice_ld_discount, "custcol_ice_ld_discount")),
        "inpt_units_11": item.inpt_units_11 if item.inpt_units_11 is not None else "",
    }


# =============================================================================
# Planning
# =============================================================================

def coerce_split_items(items: Sequence[Union[SplitItemRequest, Mapping[str, Any]]]) -> List[SplitItemRequest]:
    """Validate split items before anything touches the ERP."""
    if not items:
        raise OrderValidationError("No items selected for split")

    parsed: List[SplitItemRequest] = []
    for index, item in enumerate(items, start=1):
        if not isinstance(item, SplitItemRequest):
            try:
                item = SplitItemRequest.model_validate(item)
            except ValidationError as e:
                raise OrderValidationError(f"Invalid split item {index}: {e.errors()[0]['msg']}")
        if normalize_text(item.item_id) == "":
            raise OrderValidationError(f"Split item {index} has no item reference")
        if item.quantity is None or item.quantity <= 0:
            raise OrderValidationError(f"Split item {index} must have a positive quantity")
        to_number(item.rate, f"split item {index} rate")
        to_number(item.location, f"split item {index} location")
        to_number(item.custcol_ice_ld_discount, f"split item {index} custcol_ice_ld_discount")
        parsed.append(item)
    return parsed


def match_parent_line(item: SplitItemRequest, lines: Sequence[OrderLine]) -> Optional[int]:
    """Index of the parent line a split item draws from.

    Matches by href when the request carries one, else the first line with
    the same item id.
    """
    if item.href:
        for index, line in enumerate(lines):
            if line.href == item.href:
                return index
        return None

    wanted = normalize_text(item.item_id)
    for index, line in enumerate(lines):
        if normalize_text(line.item_id) == wanted:
            return index
    return None


def to_quantity(value: Any, field_name: str = "quantity") -> Decimal:
    """Quantities are summed and compared as decimals so 0.1 + 0.2 == 0.3."""
    return Decimal(str(to_number(value, field_name)))


def plan_parent_adjustments(
    parent_order_id: str,
    items: Sequence[SplitItemRequest],
    lines: Sequence[OrderLine],
) -> List[Tuple[int, OrderLine, Decimal]]:
    """(line index, parent line, remaining quantity) per affected parent line.

    Raises OrderValidationError when an item is not on the parent or the
    total requested from a line exceeds its quantity.
    """
    requested: Dict[int, Decimal] = {}
    for item in items:
        index = match_parent_line(item, lines)
        if index is None:
            raise OrderValidationError(f"Item {item.item_id} is not on sales order {parent_order_id}")
        requested[index] = requested.get(index, Decimal(0)) + to_quantity(item.quantity)

    plan = []
    for index in sorted(requested):
        line = lines[index]
        available = to_quantity(line.quantity)
        remaining = available - requested[index]
        if remaining < 0:
            raise OrderValidationError(
                f"Cannot split {json_number(requested[index])} of item {line.item_id}: "
                f"only {json_number(available)} on sales order {parent_order_id}"
            )
        plan.append((index, line, remaining))
    return plan


# =============================================================================
# Engine
# =============================================================================

class SplitEngine:
    """Splits line items off a parent order into a new order."""

    def __init__(
        self,
        gateway: SalesOrderGateway,
        lineage: SplitLineageStore,
        dispatcher: NotificationDispatcher,
        clock: Clock = datetime.now,
    ):
        self.gateway = gateway
        self.lineage = lineage
        self.dispatcher = dispatcher
        self.clock = clock

    async def create_split(
        self,
        parent_order_id: str,
        split_items: Sequence[Union[SplitItemRequest, Mapping[str, Any]]],
        actor: Optional[str] = None,
    ) -> SplitResult:
        """Create the split order.

        Raises:
            OrderValidationError: Bad request or over-split (no ERP mutation made)
            ERPNotFoundError: Parent order does not exist
            ERPRemoteError: A remote call failed (the ERP may be partially split)
            SplitPersistenceError: The split landed but could not be recorded
        """
        parent_order_id = str(parent_order_id)
        actor = str(actor) if actor is not None else None

        with with_correlation(order_id=parent_order_id, operation="split", actor=actor):
            items = coerce_split_items(split_items)
            for position, item in enumerate(items, start=1):
                if item.href and not self.gateway.line_belongs_to(parent_order_id, item.href):
                    raise OrderValidationError(
                        f"Split item {position} is not a line of sales order {parent_order_id}"
                    )

            parent = (await self.gateway.fetch_order(parent_order_id)).unwrap()
            parent_lines = await self.gateway.fetch_order_lines(parent_order_id)
            plan = plan_parent_adjustments(parent_order_id, items, parent_lines)

            new_order_number = allocate_order_number(self.lineage, self.clock)
            logs: List[str] = []

            new_order_id = await self.gateway.create_order(
                build_split_header(parent, parent_order_id, new_order_number)
            )
            logs.append(f"✅ Created sales order {new_order_id} ({new_order_number})")
            logger.info(f"Created split order {new_order_id} ({new_order_number}) from {parent_order_id}")

            for position, item in enumerate(items, start=1):
                try:
                    await self.gateway.create_order_line(new_order_id, build_split_line(item))
                except Exception:
                    logger.error(
                        f"Split {parent_order_id} -> {new_order_id} stopped after "
                        f"{position - 1} of {len(items)} new lines"
                    )
                    raise
                logs.append(f"✅ [Line {position}] Added item {item.item_id} x {json_number(item.quantity)}")

            for index, line, remaining in plan:
                if remaining > 0:
                    await self.gateway.patch_order_line(line.href, {"quantity": json_number(remaining)})
                    logs.append(f"✅ [Parent line {index + 1}] Quantity reduced to {json_number(remaining)}")
                else:
                    await self.gateway.delete_order_line(line.href)
                    logs.append(f"✅ [Parent line {index + 1}] Removed from parent order")

            try:
                self.lineage.record_split(SplitRecord(
                    parent_order_id=parent_order_id,
                    child_order_id=str(new_order_id),
                    split_reason=DEFAULT_SPLIT_REASON,
                    created_by=actor,
                ))
            except PersistenceError as e:
                logger.error(f"Split {parent_order_id} -> {new_order_id} landed but was not recorded: {e}")
                raise SplitPersistenceError(str(e), str(new_order_id), new_order_number) from e

            try:
                await self.dispatcher.dispatch(
                    NotificationEvent.split_created(parent_order_id, new_order_id, new_order_number, actor)
                )
                logs.append("✅ Split notification queued")
            except NotificationError as e:
                logger.warning(f"Split notification not queued: {e}")
                logs.append(f"❌ Error queueing split notification: {e}")

            return SplitResult(str(new_order_id), new_order_number, logs)

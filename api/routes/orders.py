"""Sales order endpoints.

Routes only translate HTTP to engine calls; error mapping lives in
api/server.py.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends

from api.deps import OrderServices, get_services
from core.observability.logging import with_correlation
from core.orders.models import (
    OrderUpdateRequest,
    ResponseRequest,
    SplitCreateRequest,
    SplitRequest,
)


router = APIRouter()


@router.get("/orders/search")
async def search_orders(
    q: Optional[str] = None,
    services: OrderServices = Depends(get_services),
) -> Dict[str, Any]:
    """Find orders by number, customer code or exact id (at least 2 characters)."""
    return {"results": services.details.search(q)}


@router.get("/orders/staff/{staff_code}")
async def get_staff_orders(staff_code: str, services: OrderServices = Depends(get_services)) -> Dict[str, Any]:
    """The 20 most recent orders of one salesperson."""
    return {"success": True, "orders": services.details.staff_orders(staff_code)}


@router.get("/order/{order_id}")
async def get_order(order_id: str, services: OrderServices = Depends(get_services)) -> Dict[str, Any]:
    """Order header, lines and reference lookups for the edit page."""
    with with_correlation(order_id=order_id):
        return await services.details.get_order(order_id)


@router.post("/order/{order_id}/update")
async def update_order(
    order_id: str,
    body: OrderUpdateRequest,
    services: OrderServices = Depends(get_services),
) -> Dict[str, Any]:
    """Apply header and line edits; only changed fields are sent to the ERP."""
    result = await services.updater.apply_order_update(
        order_id,
        body.header(),
        [line.submitted() for line in body.items],
        body.selectedDepartments,
        body.updatedBy,
    )
    return result.to_response()


@router.post("/order/split/create")
async def create_split_order(
    body: SplitCreateRequest,
    services: OrderServices = Depends(get_services),
) -> Dict[str, Any]:
    result = await services.splitter.create_split(str(body.orderId), body.splitItems, body.createdBy)
    return result.to_response()


@router.post("/order/{order_id}/split")
async def split_order(
    order_id: str,
    body: SplitRequest,
    services: OrderServices = Depends(get_services),
) -> Dict[str, Any]:
    """Move the requested lines to a new order."""
    result = await services.splitter.create_split(order_id, body.splitItems, body.createdBy)
    return result.to_response()


@router.get("/order/{order_id}/splits")
async def get_split_history(order_id: str, services: OrderServices = Depends(get_services)) -> Dict[str, Any]:
    return {"success": True, "splits": services.details.splits(order_id)}


@router.get("/order/{order_id}/family")
async def get_order_family(order_id: str, services: OrderServices = Depends(get_services)) -> Dict[str, Any]:
    """Split history plus every related parent/child order."""
    with with_correlation(order_id=order_id):
        family = await services.details.family(order_id)
    return {"success": True, **family}


@router.post("/order/{order_id}/respond")
async def respond_order(
    order_id: str,
    body: ResponseRequest,
    services: OrderServices = Depends(get_services),
) -> Dict[str, Any]:
    """Record a department's approve/revise response."""
    await services.responses.respond(order_id, body.department, body.action, body.remark, body.respondedBy)
    return {"success": True}

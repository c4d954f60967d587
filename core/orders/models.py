"""
Order request and result models.

Request bodies are Pydantic models so the API validates them before any
engine runs. Engine results are plain dataclasses with a `to_response()`
rendering the JSON shape the UI expects.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# The UI sends ids and numbers either as JSON numbers or as strings.
Scalar = Optional[Union[str, int, float]]


# =============================================================================
# Requests
# =============================================================================

class OrderLineEdit(BaseModel):
    """One edited line. Lines without an href are ignored by an update."""
    model_config = ConfigDict(extra="allow")

    href: Optional[str] = None
    item_id: Scalar = None
    quantity: Scalar = None
    rate: Scalar = None
    description: Optional[str] = None
    location: Scalar = None
    custcol_ice_ld_discount: Scalar = None
    inpt_units_11: Scalar = None

    def submitted(self) -> Dict[str, Any]:
        """Only the fields the caller actually sent."""
        return self.model_dump(exclude_unset=True)


class OrderUpdateRequest(BaseModel):
    """Body of POST /order/{id}/update."""
    model_config = ConfigDict(extra="allow")

    memo: Optional[str] = None
    otherrefnum: Scalar = None
    tranDate: Optional[str] = None
    location_id: Scalar = None
    custbody_ar_req_inv_mac5: Scalar = None
    shipaddresslist: Scalar = None
    custbodyar_so_memo2: Optional[str] = None
    custbody_ar_all_memo: Optional[str] = None
    custbody_ar_so_statusbill: Scalar = None
    custbody_ar_estimate_contrat1: Scalar = None
    items: List[OrderLineEdit] = Field(default_factory=list)
    selectedDepartments: List[str] = Field(default_factory=list)
    updatedBy: Scalar = None

    def header(self) -> Dict[str, Any]:
        """Submitted header fields, without items and workflow fields."""
        return self.model_dump(
            exclude_unset=True,
            exclude={"items", "selectedDepartments", "updatedBy"},
        )


class SplitItemRequest(BaseModel):
    """A line to move from the parent order to the new order."""
    model_config = ConfigDict(extra="allow")

    item_id: Union[str, int]
    quantity: float
    rate: Scalar = None
    description: Optional[str] = None
    location: Scalar = None
    custcol_ice_ld_discount: Scalar = None
    inpt_units_11: Scalar = None
    href: Optional[str] = None


class SplitRequest(BaseModel):
    """Body of POST /order/{id}/split."""
    splitItems: List[SplitItemRequest] = Field(default_factory=list)
    createdBy: Scalar = None


class SplitCreateRequest(SplitRequest):
    """Body of POST /order/split/create, which names the parent in the body."""
    orderId: Union[str, int]


class ResponseRequest(BaseModel):
    """Body of POST /order/{id}/respond."""
    department: Optional[str] = None
    action: Optional[str] = None
    remark: str = ""
    respondedBy: Scalar = None


# =============================================================================
# Results
# =============================================================================

@dataclass
class LineUpdateResult:
    """Outcome of one attempted line PATCH (1-based line number)."""
    line_num: int
    success: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"lineNum": self.line_num, "success": self.success}


@dataclass
class UpdateResult:
    """Outcome of an order update; logs hold one entry per attempt."""
    logs: List[str] = field(default_factory=list)
    header_updated: bool = False
    line_results: List[LineUpdateResult] = field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "logs": list(self.logs),
            "headerUpdated": self.header_updated,
            "itemsUpdated": [r.to_dict() for r in self.line_results],
        }


@dataclass
class SplitResult:
    new_order_id: str
    new_order_number: str
    logs: List[str] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"Split order {self.new_order_number} created successfully"

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "newOrderId": self.new_order_id,
            "newOrderNumber": self.new_order_number,
            "message": self.message,
            "logs": list(self.logs),
        }

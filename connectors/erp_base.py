"""Abstract Sales Order Gateway Interface.

This module defines the normalized sales-order records and the abstract
gateway that the order engines depend on. It is intentionally ERP-agnostic -
no NetSuite URLs or signing details here.

Key Design Principles:
- Engines and API routes depend ONLY on SalesOrderGateway
- Records keep the ERP's field names, because change-sets are sent back verbatim
- Remote failures surface as ERPError subclasses; the gateway never retries
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Errors
# =============================================================================

class ERPError(Exception):
    """Base exception for ERP gateway errors."""
    def __init__(self, message: str, status_code: int = 0, response_body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class ERPRemoteError(ERPError):
    """Non-2xx response, transport failure or timeout."""
    pass


class ERPNotFoundError(ERPError):
    """The requested order or line does not exist in the ERP."""
    def __init__(self, message: str, response_body: str = ""):
        super().__init__(message, 404, response_body)


# =============================================================================
# Normalized Records
# =============================================================================

class RecordRef(BaseModel):
    """Reference object as the ERP renders it: {"id": "18", "refName": "..."}."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    refName: Optional[str] = None

    @classmethod
    def of(cls, value: Any) -> Optional["RecordRef"]:
        """Coerce a bare id, a dict or a RecordRef into a RecordRef."""
        if value is None or value == "":
            return None
        if isinstance(value, RecordRef):
            return value
        if isinstance(value, dict):
            return cls.model_validate(value)
        return cls(id=str(value))


class OrderLine(BaseModel):
    """A single sales order line.

    `href` is not part of the ERP payload; the gateway attaches the line's
    self link so later PATCH/DELETE calls can address it directly.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    href: Optional[str] = None
    line: Optional[int] = None
    item: Optional[RecordRef] = None
    quantity: Optional[float] = None
    rate: Optional[float] = None
    description: Optional[str] = None
    inventorylocation: Optional[RecordRef] = None
    custcol_ice_ld_discount: Optional[float] = None
    inpt_units_11: Optional[str] = None

    @property
    def item_id(self) -> Optional[str]:
        return self.item.id if self.item else None


class SalesOrder(BaseModel):
    """Sales order header as returned by the ERP."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: Optional[str] = None
    tranId: Optional[str] = None
    memo: Optional[str] = None
    otherRefNum: Optional[str] = None
    tranDate: Optional[str] = None
    entity: Optional[RecordRef] = None
    location: Optional[RecordRef] = None
    shipaddresslist: Optional[Any] = None
    custbody_ar_req_inv_mac5: Optional[str] = None
    custbodyar_so_memo2: Optional[str] = None
    custbody_ar_all_memo: Optional[str] = None
    custbody_ar_so_statusbill: Optional[Any] = None
    custbody_ar_estimate_contrat1: Optional[Any] = None

    @property
    def customer_id(self) -> Optional[str]:
        return self.entity.id if self.entity else None


# =============================================================================
# Results
# =============================================================================

class LookupStatus(str, Enum):
    """Outcome of an order lookup."""
    FOUND = "FOUND"
    NOT_FOUND = "NOT_FOUND"
    ERROR = "ERROR"


@dataclass
class OrderLookup:
    """Tagged result of fetching an order: found, not found, or remote error."""
    status: LookupStatus
    order: Optional[SalesOrder] = None
    status_code: int = 0
    message: str = ""

    @classmethod
    def found(cls, order: SalesOrder) -> "OrderLookup":
        return cls(LookupStatus.FOUND, order=order, status_code=200)

    @classmethod
    def not_found(cls, message: str = "Sales order not found") -> "OrderLookup":
        return cls(LookupStatus.NOT_FOUND, status_code=404, message=message)

    @classmethod
    def error(cls, status_code: int, message: str) -> "OrderLookup":
        return cls(LookupStatus.ERROR, status_code=status_code, message=message)

    def unwrap(self) -> SalesOrder:
        """Return the order or raise the matching ERPError."""
        if self.status == LookupStatus.FOUND and self.order is not None:
            return self.order
        if self.status == LookupStatus.NOT_FOUND:
            raise ERPNotFoundError(self.message or "Sales order not found")
        raise ERPRemoteError(self.message, self.status_code)


@dataclass
class MutationResult:
    """Outcome of a PATCH against the ERP."""
    success: bool
    status: int
    message: str = ""


@dataclass
class GatewayConfig:
    """Configuration for a gateway implementation.

    Generic configuration that specific connectors read from.
    """
    connector_type: str                     # "netsuite"
    base_url: Optional[str] = None          # REST record endpoint root
    timeout_seconds: float = 30.0
    line_fetch_concurrency: int = 5
    credentials: Any = None                 # connector-specific credential value


# =============================================================================
# Abstract Gateway Interface
# =============================================================================

class SalesOrderGateway(ABC):
    """Typed sales-order operations against the system of record.

    Implementations:
    - connectors/netsuite/ns_connector.py
    """

    @abstractmethod
    async def fetch_order(self, order_id: str) -> OrderLookup:
        """Fetch an order header. Never raises for a missing order."""
        pass

    @abstractmethod
    async def fetch_order_lines(self, order_id: str) -> List[OrderLine]:
        """Fetch every line of an order with its href attached.

        Callers must match lines by item id or href, not by position.
        """
        pass

    @abstractmethod
    async def fetch_order_line(self, href: str) -> OrderLine:
        """Fetch a single line by its href."""
        pass

    @abstractmethod
    def line_belongs_to(self, order_id: str, href: str) -> bool:
        """True when href addresses a line of the given order.

        Line hrefs come from callers, so they are checked before any
        fetch or PATCH goes out.
        """
        pass

    @abstractmethod
    async def patch_order_header(self, order_id: str, changes: Dict[str, Any]) -> MutationResult:
        """PATCH only the supplied header fields."""
        pass

    @abstractmethod
    async def patch_order_line(self, href: str, changes: Dict[str, Any]) -> MutationResult:
        """PATCH only the supplied fields of one line."""
        pass

    @abstractmethod
    async def create_order(self, header: Dict[str, Any]) -> str:
        """Create an order and return its new id."""
        pass

    @abstractmethod
    async def create_order_line(self, order_id: str, line: Dict[str, Any]) -> None:
        """Append a line to an existing order."""
        pass

    @abstractmethod
    async def delete_order_line(self, href: str) -> None:
        """Remove a line from its order."""
        pass

    async def close(self) -> None:
        """Release any transport resources."""
        return None


# =============================================================================
# Gateway Factory
# =============================================================================

_gateway_registry: Dict[str, type] = {}


def register_gateway(connector_type: str):
    """Decorator to register a gateway implementation."""
    def decorator(cls):
        _gateway_registry[connector_type] = cls
        return cls
    return decorator


def create_gateway(config: GatewayConfig) -> SalesOrderGateway:
    """Create a gateway instance from configuration.

    Raises:
        ValueError: If connector_type is not registered
    """
    connector_type = config.connector_type.lower()

    if connector_type not in _gateway_registry:
        available = list(_gateway_registry.keys())
        raise ValueError(
            f"Unknown connector type: {connector_type}. "
            f"Available: {available}"
        )

    gateway_class = _gateway_registry[connector_type]
    return gateway_class(config)


def list_available_gateways() -> List[str]:
    """List all registered gateway types."""
    return list(_gateway_registry.keys())

"""ERP Connectors - sales order system-of-record integrations.

This package contains the abstract gateway interface and the concrete
NetSuite implementation.

Key Design Principle:
- Order engines and API routes depend ONLY on SalesOrderGateway
- Remote failures surface as ERPError subclasses, never as raw HTTP errors
- The gateway never retries; retry policy belongs to the caller

To add a new ERP:
1. Create a new folder (e.g., sap_b1/)
2. Implement SalesOrderGateway
3. Register using @register_gateway decorator
"""

from connectors.erp_base import (
    # Core interface
    SalesOrderGateway,
    GatewayConfig,

    # Records
    SalesOrder,
    OrderLine,
    RecordRef,

    # Results
    OrderLookup,
    LookupStatus,
    MutationResult,

    # Errors
    ERPError,
    ERPRemoteError,
    ERPNotFoundError,

    # Factory functions
    create_gateway,
    register_gateway,
    list_available_gateways,
)

# Importing the package registers the "netsuite" gateway.
import connectors.netsuite  # noqa: E402,F401

__all__ = [
    "SalesOrderGateway",
    "GatewayConfig",
    "SalesOrder",
    "OrderLine",
    "RecordRef",
    "OrderLookup",
    "LookupStatus",
    "MutationResult",
    "ERPError",
    "ERPRemoteError",
    "ERPNotFoundError",
    "create_gateway",
    "register_gateway",
    "list_available_gateways",
]

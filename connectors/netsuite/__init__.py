"""NetSuite Connector Package.

Implements the SalesOrderGateway interface for the NetSuite REST record API.
"""

from connectors.netsuite.ns_connector import NetSuiteGateway
from connectors.netsuite.ns_auth import (
    NetSuiteCredentials,
    RequestSigner,
    build_oauth_header,
)
from connectors.netsuite.ns_client import NSApiClient, NSApiConfig

__all__ = [
    # Gateway
    "NetSuiteGateway",
    # Token-based auth
    "NetSuiteCredentials",
    "RequestSigner",
    "build_oauth_header",
    # Transport
    "NSApiClient",
    "NSApiConfig",
]

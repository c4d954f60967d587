"""NetSuite Sales Order Gateway.

Implements the SalesOrderGateway interface over the NetSuite REST record API.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from connectors.erp_base import (
    ERPNotFoundError,
    ERPRemoteError,
    GatewayConfig,
    MutationResult,
    OrderLine,
    OrderLookup,
    SalesOrder,
    SalesOrderGateway,
    register_gateway,
)
from connectors.netsuite.ns_auth import NetSuiteCredentials, RequestSigner
from connectors.netsuite.ns_client import DEFAULT_BASE_URL, NSApiClient, NSApiConfig

logger = logging.getLogger(__name__)


def is_error_envelope(payload: Any) -> bool:
    """True for NetSuite's generic error body instead of a record.

    NetSuite answers some lookups with {"type": ..., "title": ..., "status": ...,
    "o:errorDetails": [...]} rather than a record.
    """
    if not isinstance(payload, dict):
        return True
    if "o:errorDetails" in payload:
        return True
    return "type" in payload and "id" not in payload


def order_id_from_location(location: Optional[str]) -> Optional[str]:
    """The created record id is the last path segment of the Location header."""
    if not location:
        return None
    tail = location.rstrip("/").rsplit("/", 1)[-1]
    return tail or None


@register_gateway("netsuite")
class NetSuiteGateway(SalesOrderGateway):
    """NetSuite gateway implementation.

    Required configuration:
    - credentials: NetSuiteCredentials
    - base_url: REST record endpoint, e.g.
      https://1234567-sb1.suitetalk.api.netsuite.com/services/rest/record/v1

    Optional configuration:
    - timeout_seconds: per-request timeout (default 30)
    - line_fetch_concurrency: parallel line detail fetches (default 5)
    """

    def __init__(self, config: GatewayConfig, client: Optional[NSApiClient] = None):
        if client is None:
            if not isinstance(config.credentials, NetSuiteCredentials):
                raise ValueError("NetSuiteGateway requires NetSuiteCredentials")
            client = NSApiClient(
                RequestSigner(config.credentials),
                NSApiConfig(
                    base_url=config.base_url or DEFAULT_BASE_URL,
                    timeout_seconds=config.timeout_seconds,
                ),
            )
        self.config = config
        self._client = client
        self._line_semaphore = asyncio.Semaphore(max(1, config.line_fetch_concurrency))

    def _url(self, *segments: Any) -> str:
        return self._client.config.record_url(*segments)

    async def close(self) -> None:
        await self._client.close()

    # =========================================================================
    # Reads
    # =========================================================================

    async def fetch_order(self, order_id: str) -> OrderLookup:
        """GET /salesOrder/{id} as a tagged result."""
        try:
            response = await self._client.request("GET", self._url("salesOrder", order_id))
        except ERPNotFoundError:
            return OrderLookup.not_found()
        except ERPRemoteError as e:
            return OrderLookup.error(e.status_code, str(e))

        if is_error_envelope(response.body):
            logger.info(f"Sales order {order_id} returned an error envelope; treating as not found")
            return OrderLookup.not_found()

        return OrderLookup.found(SalesOrder.model_validate(response.body))

    async def fetch_order_lines(self, order_id: str) -> List[OrderLine]:
        """GET the item collection, then GET every line's self link.

        Line detail requests run concurrently, bounded by the configured
        concurrency. Results come back in collection order but callers match
        them by href or item id.
        """
        response = await self._client.request("GET", self._url("salesOrder", order_id, "item"))
        body = response.body or {}

        hrefs: List[str] = []
        for entry in body.get("items", []):
            links = entry.get("links") or []
            href = links[0].get("href") if links else None
            if href:
                hrefs.append(href)

        lines = await asyncio.gather(*(self._fetch_line_bounded(href) for href in hrefs))
        logger.debug(f"Fetched {len(lines)} lines for sales order {order_id}")
        return list(lines)

    async def _fetch_line_bounded(self, href: str) -> OrderLine:
        async with self._line_semaphore:
            return await self.fetch_order_line(href)

    async def fetch_order_line(self, href: str) -> OrderLine:
        response = await self._client.request("GET", href)
        line = OrderLine.model_validate(response.body or {})
        line.href = href
        return line

    def line_belongs_to(self, order_id: str, href: str) -> bool:
        """Only <record root>/salesOrder/<order_id>/item/<line number> qualifies."""
        if not href:
            return False
        prefix = self._url("salesOrder", order_id, "item") + "/"
        href = str(href)
        return href.startswith(prefix) and href[len(prefix):].isdigit()

    # =========================================================================
    # Mutations
    # =========================================================================

    async def patch_order_header(self, order_id: str, changes: Dict[str, Any]) -> MutationResult:
        response = await self._client.request("PATCH", self._url("salesOrder", order_id), data=changes)
        logger.info(f"Patched sales order {order_id} fields {sorted(changes)}: HTTP {response.status}")
        return MutationResult(success=True, status=response.status)

    async def patch_order_line(self, href: str, changes: Dict[str, Any]) -> MutationResult:
        response = await self._client.request("PATCH", href, data=changes)
        logger.info(f"Patched line {href} fields {sorted(changes)}: HTTP {response.status}")
        return MutationResult(success=True, status=response.status)

    async def create_order(self, header: Dict[str, Any]) -> str:
        """POST /salesOrder; the new id comes from the Location header."""
        response = await self._client.request("POST", self._url("salesOrder"), data=header)
        location = response.headers.get("Location") or response.headers.get("location")
        new_id = order_id_from_location(location)
        if not new_id:
            raise ERPRemoteError(
                "NetSuite created the sales order but returned no Location header",
                response.status,
                response.text,
            )
        logger.info(f"Created sales order {new_id}")
        return new_id

    async def create_order_line(self, order_id: str, line: Dict[str, Any]) -> None:
        await self._client.request("POST", self._url("salesOrder", order_id, "item"), data=line)
        logger.info(f"Added line for item {line.get('item')} to sales order {order_id}")

    async def delete_order_line(self, href: str) -> None:
        await self._client.request("DELETE", href)
        logger.info(f"Deleted line {href}")

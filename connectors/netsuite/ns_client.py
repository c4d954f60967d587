"""NetSuite HTTP Client.

Low-level HTTP client for NetSuite REST record API calls.
Handles request signing, timeouts, and error mapping. It deliberately does
not retry: a failed call surfaces immediately and the caller decides.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import aiohttp

from connectors.erp_base import ERPNotFoundError, ERPRemoteError
from connectors.netsuite.ns_auth import RequestSigner

logger = logging.getLogger(__name__)


DEFAULT_BASE_URL = "https://ACCOUNT.suitetalk.api.netsuite.com/services/rest/record/v1"


@dataclass
class NSApiConfig:
    """Configuration for the NetSuite API client."""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = 30.0

    def record_url(self, *segments: Any) -> str:
        """Build a URL under the record endpoint, e.g. record_url("salesOrder", 42)."""
        path = "/".join(str(s).strip("/") for s in segments)
        return f"{self.base_url.rstrip('/')}/{path}"


@dataclass
class NSResponse:
    """Decoded HTTP response."""
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    text: str = ""


class NSApiClient:
    """HTTP client for the NetSuite REST record API.

    Provides:
    - Signed requests (fresh Authorization header per call)
    - Bounded per-request timeout
    - Mapping of non-2xx responses to ERPError subclasses

    Usage:
        client = NSApiClient(signer, NSApiConfig(base_url=...))
        response = await client.request("GET", client.config.record_url("salesOrder", 42))
        await client.close()
    """

    def __init__(
        self,
        signer: RequestSigner,
        config: NSApiConfig,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.signer = signer
        self.config = config
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_headers(self, url: str, method: str) -> Dict[str, str]:
        return {
            "Authorization": self.signer.authorization(url, method),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    async def request(
        self,
        method: str,
        url: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> NSResponse:
        """Make a signed API request.

        Args:
            method: HTTP method
            url: Absolute URL (record endpoint or a line href)
            data: JSON body

        Returns:
            NSResponse for any 2xx status

        Raises:
            ERPNotFoundError: 404 from the ERP
            ERPRemoteError: Any other non-2xx, transport error or timeout
        """
        session = await self._get_session()
        method = method.upper()
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)

        try:
            async with session.request(
                method,
                url,
                headers=self._get_headers(url, method),
                json=data,
                timeout=timeout,
            ) as response:
                response_text = await response.text()
                headers = {k: v for k, v in response.headers.items()}

                if response.status == 404:
                    raise ERPNotFoundError(f"Resource not found: {url}", response_text)

                if response.status >= 300:
                    raise ERPRemoteError(
                        f"NetSuite {method} failed with HTTP {response.status}: {_error_detail(response_text)}",
                        response.status,
                        response_text,
                    )

                body = None
                if response_text:
                    try:
                        body = json.loads(response_text)
                    except ValueError:
                        body = None

                return NSResponse(
                    status=response.status,
                    headers=headers,
                    body=body,
                    text=response_text,
                )

        except asyncio.TimeoutError:
            logger.warning(f"{method} {url} timed out after {self.config.timeout_seconds}s")
            raise ERPRemoteError(
                f"NetSuite {method} timed out after {self.config.timeout_seconds}s"
            )
        except aiohttp.ClientError as e:
            logger.warning(f"{method} {url} failed: {type(e).__name__}: {e}")
            raise ERPRemoteError(f"NetSuite {method} failed: {e}")


def _error_detail(response_text: str) -> str:
    """Pull the human-readable detail out of a NetSuite error envelope."""
    try:
        payload = json.loads(response_text)
    except (TypeError, ValueError):
        return response_text[:200]

    if isinstance(payload, dict):
        details = payload.get("o:errorDetails") or []
        if details and isinstance(details[0], dict) and details[0].get("detail"):
            return details[0]["detail"]
        if payload.get("title"):
            return payload["title"]
    return response_text[:200]

"""
n8n REST API Client for MCP Server

Server-scoped client: one instance talks to one configured n8n server.
Requests never raise for HTTP or network errors; the outcome is returned
as an ApiResult so tools can report it as text.
"""
import time
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from log_config import get_logger
from server_registry import ServerProfile

logger = get_logger("api")


@dataclass
class ApiResult:
    """Outcome of one n8n API call. status 0 means no response was received."""

    ok: bool
    status: int
    data: Any
    elapsed_ms: int = 0

    @property
    def network_failure(self) -> bool:
        return self.status == 0


class N8nClient:
    """Client for the n8n public API (/api/v1)"""

    def __init__(
        self,
        server: ServerProfile,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 30.0
    ):
        """
        Initialize API client for one server.

        Args:
            server: Server profile holding the URL and API key
            transport: Optional httpx transport (used by tests)
            timeout: Request timeout in seconds
        """
        self.server = server
        self.transport = transport
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def base_url(self) -> str:
        return f"{self.server.url.rstrip('/')}/api/v1"

    def _get_client(self) -> httpx.AsyncClient:
        """Lazy initialization of HTTP client"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "X-N8N-API-KEY": self.server.api_key,
                    "Content-Type": "application/json",
                    "Accept": "application/json"
                },
                transport=self.transport,
                timeout=self.timeout
            )
        return self._client

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict[str, Any]] = None,
        json_data: Optional[Any] = None
    ) -> ApiResult:
        """Make API request"""
        client = self._get_client()
        if method.upper() == "GET":
            json_data = None

        logger.debug("%s %s%s params=%s", method, self.base_url, endpoint, params)
        start = time.perf_counter()
        try:
            response = await client.request(
                method=method,
                url=endpoint,
                params=params,
                json=json_data
            )
        except httpx.HTTPError as e:
            logger.warning("%s %s%s failed: %s", method, self.base_url, endpoint, e)
            return ApiResult(ok=False, status=0, data={"error": str(e) or type(e).__name__})
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        if not response.is_success:
            logger.warning("%s %s%s returned %s", method, self.base_url, endpoint, response.status_code)
            return ApiResult(
                ok=False,
                status=response.status_code,
                data={"error": response.text},
                elapsed_ms=elapsed_ms
            )

        try:
            data = response.json()
        except ValueError:
            data = {}
        return ApiResult(ok=True, status=response.status_code, data=data, elapsed_ms=elapsed_ms)

    async def close(self):
        """Close client"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "N8nClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

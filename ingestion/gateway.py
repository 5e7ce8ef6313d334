"""
Client for the authenticated gateway in front of the upstream API.

The gateway exposes two operations:
- POST /call   forwards one upstream request
- GET  /schema returns the compact endpoint catalog

Both require the shared secret, sent in the ``x-proxy-secret`` header
(body fallback available for deployments that strip custom headers).
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from core.config import settings
from core.exceptions import SchemaDiscoveryError
from ingestion.fetcher import RetryingFetcher
from schemas.catalog import Catalog

logger = logging.getLogger(__name__)

SECRET_HEADER = "x-proxy-secret"


class GatewayClient:
    """
    Async gateway client.

    Usage:
        async with GatewayClient() as gateway:
            catalog = await gateway.schema()
            rows = await gateway.call("/api/items/list", body={"DateFrom": "1900-01-01"})
    """

    def __init__(
        self,
        base_url: str = None,
        secret: str = None,
        fetcher: Optional[RetryingFetcher] = None,
        client: Optional[httpx.AsyncClient] = None,
        send_secret_in_body: bool = False,
        timeout: float = None
    ):
        self.base_url = (base_url or settings.PROXY_BASE).rstrip("/")
        self.secret = secret or settings.PROXY_SECRET
        self.send_secret_in_body = send_secret_in_body
        if fetcher is not None:
            self._owns_client = False
            self.client = fetcher.client
            self.fetcher = fetcher
        else:
            self._owns_client = client is None
            self.client = client or httpx.AsyncClient(
                timeout=timeout or settings.REQUEST_TIMEOUT_SECONDS
            )
            self.fetcher = RetryingFetcher(self.client)

    async def __aenter__(self) -> "GatewayClient":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        if self._owns_client:
            await self.client.aclose()

    @property
    def _headers(self) -> Dict[str, str]:
        return {SECRET_HEADER: self.secret, "content-type": "application/json"}

    async def call(
        self,
        path: str,
        method: str = "POST",
        query: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
        auto_page: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Forward one upstream request through the gateway and return its JSON body."""
        payload: Dict[str, Any] = {
            "path": path,
            "method": method,
            "query": {k: str(v) for k, v in (query or {}).items()},
            "headers": headers or {},
        }
        if body is not None:
            payload["body"] = body
        if auto_page:
            payload["autoPage"] = auto_page
        if self.send_secret_in_body:
            payload["secret"] = self.secret

        return await self.fetcher.fetch(
            "POST",
            f"{self.base_url}/call",
            headers=self._headers,
            json_body=payload
        )

    async def schema(self) -> Catalog:
        """Load and validate the endpoint catalog."""
        try:
            raw = await self.fetcher.fetch(
                "GET",
                f"{self.base_url}/schema",
                headers=self._headers
            )
            catalog = Catalog.model_validate(raw or {})
        except ValidationError as e:
            raise SchemaDiscoveryError(
                "Gateway schema catalog is malformed",
                context={"url": f"{self.base_url}/schema"},
                original_exception=e
            )

        logger.info(
            f"Loaded schema catalog version {catalog.version} "
            f"({len(catalog.resources)} operations)"
        )
        return catalog

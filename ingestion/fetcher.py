"""
Retrying HTTP fetcher with exponential backoff and rate-limit handling.

One logical call is attempted up to ``max_retries`` times:
- HTTP 429 sleeps exactly the server-provided Retry-After, no backoff growth
- HTTP 401/403 is raised immediately as AuthenticationError
- other non-2xx statuses and transport errors back off exponentially
"""

import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    GatewayError,
    NetworkError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]


def parse_body(response: httpx.Response) -> Any:
    """Decode a JSON body; empty bodies become None, non-JSON text is wrapped."""
    text = response.text
    if not text or not text.strip():
        return None
    try:
        return json.loads(text)
    except ValueError:
        return {"raw": text}


class RetryingFetcher:
    """
    Perform HTTP calls with bounded retries.

    Attributes:
        max_retries: Maximum number of attempts (default: 5)
        backoff: Base delay in seconds, doubled per attempt (default: 2.0)
        sleep: Awaitable used for every pause, injectable for tests
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = None,
        backoff: float = None,
        sleep: Sleep = asyncio.sleep
    ):
        self.client = client
        self.max_retries = max_retries or settings.MAX_RETRIES
        self.backoff = settings.RETRY_BACKOFF_SECONDS if backoff is None else backoff
        self.sleep = sleep

    def _retry_after(self, response: httpx.Response) -> float:
        value = response.headers.get("Retry-After")
        try:
            return max(float(value), 0.0)
        except (TypeError, ValueError):
            return self.backoff

    async def fetch(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        json_body: Any = None,
        params: Optional[Dict[str, Any]] = None
    ) -> Any:
        """
        Perform one logical call and return the decoded JSON body.

        Raises:
            AuthenticationError: On 401/403, without retrying
            RateLimitError: If the final attempt is still rate limited
            NetworkError: If the final attempt fails at the transport level
            GatewayError: If the final attempt returns another non-2xx status
        """
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries):
            is_last = attempt == self.max_retries - 1
            context = {"url": url, "method": method, "retry_count": attempt + 1}

            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} to {url}")
                response = await self.client.request(
                    method,
                    url,
                    headers=headers,
                    json=json_body,
                    params=params
                )
            except httpx.TransportError as e:
                last_exception = e
                if is_last:
                    raise NetworkError(
                        f"Transport error after {self.max_retries} attempts",
                        context=context,
                        original_exception=e
                    )
                delay = self.backoff * (2 ** attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} failed -> {type(e).__name__}: {e}. "
                    f"Waiting {delay}s"
                )
                await self.sleep(delay)
                continue

            status = response.status_code
            context["status_code"] = status

            if status in (401, 403):
                raise AuthenticationError(
                    f"Authorization failed for {url}",
                    context=context,
                    status_code=status,
                    upstream=parse_body(response)
                )

            if status == 429:
                retry_after = self._retry_after(response)
                if is_last:
                    raise RateLimitError(
                        f"Rate limit still in effect after {self.max_retries} attempts",
                        context=context,
                        retry_after=retry_after
                    )
                logger.warning(f"Rate limited. Waiting {retry_after}s...")
                await self.sleep(retry_after)
                continue

            if status < 200 or status >= 300:
                context["response_body"] = response.text[:500]
                last_exception = GatewayError(f"{status}: {response.text[:200]}", context=dict(context))
                if is_last:
                    raise GatewayError(
                        f"Gateway returned {status} after {self.max_retries} attempts",
                        context=context,
                        original_exception=last_exception
                    )
                delay = self.backoff * (2 ** attempt)
                logger.warning(
                    f"Retry {attempt + 1}/{self.max_retries} failed -> HTTP {status}. Waiting {delay}s"
                )
                await self.sleep(delay)
                continue

            return parse_body(response)

        # Only reachable with max_retries < 1
        raise GatewayError(
            "Max retries exceeded",
            context={"url": url, "method": method},
            original_exception=last_exception
        )

import asyncio
import logging
from typing import Optional
from urllib.parse import urlparse

import httpx

from gambo.config import settings

logger = logging.getLogger("gambo.http_client")

# Retryable HTTP status codes
_RETRYABLE_STATUSES = {429, 500, 502, 503, 504}


def _parse_retry_after(response: httpx.Response) -> Optional[float]:
    """Extract wait time from Retry-After or X-RateLimit-Retry-After headers."""
    for header in ("retry-after", "x-ratelimit-retry-after"):
        value = response.headers.get(header)
        if value is None:
            continue
        try:
            return float(value)
        except (ValueError, TypeError):
            continue
    return None


def safe_url(url: str) -> str:
    """Strip query params (may contain API tokens) for safe logging."""
    parsed = urlparse(str(url))
    return f"{parsed.scheme}://{parsed.netloc}{parsed.path}"


class ResilientClient:
    """httpx.AsyncClient wrapper with optional retry and exponential backoff.

    Settlement passes run with ``max_retries=0``: a failed provider is simply
    picked up again on the next scheduled pass.
    """

    def __init__(
        self,
        name: str,
        timeout: float | None = None,
        max_retries: int | None = None,
        base_delay: float | None = None,
    ):
        self._client = httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.PROVIDER_TIMEOUT_SECONDS,
        )
        self._name = name
        self._max_retries = max(0, max_retries if max_retries is not None else settings.PROVIDER_MAX_RETRIES)
        self._base_delay = base_delay if base_delay is not None else settings.PROVIDER_BASE_DELAY_SECONDS

    async def request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request, retrying transient failures up to max_retries."""
        last_exc: Optional[Exception] = None
        last_resp: Optional[httpx.Response] = None

        for attempt in range(self._max_retries + 1):
            try:
                resp = await self._client.request(method, url, **kwargs)

                if resp.status_code not in _RETRYABLE_STATUSES:
                    return resp

                last_resp = resp
                logger.warning(
                    "[%s] HTTP %d on %s %s (attempt %d/%d)",
                    self._name, resp.status_code, method, safe_url(url),
                    attempt + 1, self._max_retries + 1,
                )

                if attempt < self._max_retries:
                    delay = _parse_retry_after(resp)
                    if delay is None:
                        delay = self._base_delay * (2 ** attempt)
                    await asyncio.sleep(min(delay, 60.0))

            except (httpx.TimeoutException, httpx.ConnectError, httpx.RemoteProtocolError) as exc:
                last_exc = exc
                logger.warning(
                    "[%s] Network error on %s %s (attempt %d/%d): %s",
                    self._name, method, safe_url(url),
                    attempt + 1, self._max_retries + 1, exc,
                )
                if attempt < self._max_retries:
                    await asyncio.sleep(self._base_delay * (2 ** attempt))

        if last_resp is not None:
            return last_resp
        raise last_exc  # type: ignore[misc]

    async def get(self, url: str, **kwargs) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

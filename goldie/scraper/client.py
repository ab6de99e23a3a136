"""Goldie — Async HTTP Client.

Rate-limited, retrying async HTTP client for the NBKR gold price page.
Built on httpx.AsyncClient with:
  - Exponential-ish backoff retry (429, 5xx, timeout, connection errors)
  - Rate limiting via AsyncRateLimiter
  - Request counting for session telemetry
"""

from __future__ import annotations

import asyncio
from datetime import date
from typing import Optional

import httpx

from goldie.config import ScraperConfig
from goldie.utils.logger import get_logger
from goldie.utils.rate_limiter import AsyncRateLimiter

logger = get_logger(__name__)

# ── Browser-like headers common to all requests ──────────
_COMMON_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "ru,en;q=0.9",
    "Connection": "keep-alive",
}


def build_period_params(begin: date, end: date) -> dict[str, str]:
    """Query parameters selecting the [begin, end] publication window."""
    return {
        "begin_day": f"{begin.day:02d}",
        "begin_month": f"{begin.month:02d}",
        "begin_year": str(begin.year),
        "end_day": f"{end.day:02d}",
        "end_month": f"{end.month:02d}",
        "end_year": str(end.year),
    }


class NbkrClient:
    """Async HTTP client for nbkr.kg with retry and rate limiting.

    Attributes:
        config: Scraper configuration from the YAML config.
        total_requests: Running count of successful requests this session.
    """

    def __init__(
        self,
        config: ScraperConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """Initialize the client from a ScraperConfig.

        Args:
            config: ScraperConfig instance loaded from settings.yaml.
            transport: Optional httpx transport (tests pass a MockTransport).
        """
        self.config = config
        self.total_requests: int = 0
        self._transport = transport
        self._rate_limiter = AsyncRateLimiter(
            max_calls=1,
            period_seconds=config.request_delay_seconds,
        )
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={**_COMMON_HEADERS, "User-Agent": self.config.user_agent},
                follow_redirects=True,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    async def get_prices_page(self, begin: date, end: date) -> Optional[str]:
        """Fetch the price table page for a publication window.

        Args:
            begin: First day of the window (inclusive).
            end: Last day of the window (inclusive).

        Returns:
            Raw HTML string, or None if the request failed after all retries.
        """
        logger.info("Fetching NBKR prices %s … %s", begin, end)
        response = await self._request(
            self.config.prices_url,
            params=build_period_params(begin, end),
        )
        if response is None:
            return None
        return response.text

    async def _request(
        self,
        url: str,
        params: Optional[dict[str, str]] = None,
    ) -> Optional[httpx.Response]:
        """Execute a GET with rate limiting and retry logic.

        Retry strategy:
          - 429 Too Many Requests: wait Retry-After (default 30s) then retry
          - 5xx Server Error: wait 5s × attempt then retry
          - Timeout: wait 3s × attempt then retry
          - Connection Error: wait 10s then retry

        Args:
            url: Request URL. Existing query parameters are kept and
                 params are merged in.
            params: Optional query parameters.

        Returns:
            The httpx Response, or None if all retries exhausted.
        """
        client = await self._get_client()
        max_retries = self.config.max_retries

        for attempt in range(1, max_retries + 1):
            await self._rate_limiter.acquire()

            try:
                resp = await client.get(url, params=params)

                if resp.status_code == 429:
                    retry_after = int(resp.headers.get("Retry-After", 30))
                    logger.warning(
                        "Rate limited (429) on attempt %d/%d. Waiting %ds...",
                        attempt, max_retries, retry_after,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(retry_after)
                    continue

                if resp.status_code >= 500:
                    wait = 5 * attempt
                    logger.warning(
                        "Server error %d on attempt %d/%d. Waiting %ds...",
                        resp.status_code, attempt, max_retries, wait,
                    )
                    if attempt < max_retries:
                        await asyncio.sleep(wait)
                    continue

                resp.raise_for_status()
                self.total_requests += 1
                return resp

            except httpx.TimeoutException:
                wait = 3 * attempt
                logger.warning(
                    "Timeout on attempt %d/%d. Waiting %ds...",
                    attempt, max_retries, wait,
                )
                if attempt < max_retries:
                    await asyncio.sleep(wait)

            except httpx.ConnectError:
                logger.warning(
                    "Connection error on attempt %d/%d. Waiting 10s...",
                    attempt, max_retries,
                )
                if attempt < max_retries:
                    await asyncio.sleep(10)

            except httpx.HTTPStatusError as e:
                logger.error("HTTP error %d for %s: %s", e.response.status_code, url, e)
                return None

            except httpx.HTTPError as e:
                logger.warning("HTTP error on attempt %d/%d: %s", attempt, max_retries, e)
                if attempt < max_retries:
                    await asyncio.sleep(3 * attempt)

        logger.error("All %d attempts failed for %s", max_retries, url)
        return None

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("HTTP client closed (total requests: %d)", self.total_requests)

    async def __aenter__(self) -> "NbkrClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

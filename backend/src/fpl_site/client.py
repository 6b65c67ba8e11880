"""
Fantasy site client with rate limiting, retry logic, and error handling.

Fetches the rendered HTML pages (team histories, fixture lists, fixture
details) and the per-player elements JSON. No parsing beyond turning the
body into a BeautifulSoup document or a dict happens here.
"""

import asyncio
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx
from asyncio_throttle import Throttler
from bs4 import BeautifulSoup

from config import Config

logger = logging.getLogger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
HTML_ACCEPT = "text/html,application/xhtml+xml;q=0.9,*/*;q=0.8"
JSON_ACCEPT = "application/json"

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class FPLSiteError(Exception):
    """Base exception for fantasy site fetch failures."""
    pass


class FPLSiteRateLimitError(FPLSiteError):
    """Raised when rate limit is exceeded."""
    pass


class FPLSiteNonRetryableError(FPLSiteError):
    """Raised for non-retryable errors (4xx except 429)."""
    pass


def parse_html(markup: str) -> BeautifulSoup:
    """
    Parse a page.

    Class attributes stay raw strings: roster slots carry a JSON payload in
    their class attribute and splitting it on whitespace would mangle it.
    """
    return BeautifulSoup(markup, "html.parser", multi_valued_attributes=None)


class FPLSiteClient:
    """Client for the fantasy site's HTML pages and JSON endpoint."""

    def __init__(self, config: Config):
        self.config = config
        self.base_url = config.fpl_site_base_url
        self.max_retries = config.max_retries
        self.retry_backoff_base = config.retry_backoff_base
        self.max_retry_delay = config.max_retry_delay

        self.throttler = Throttler(
            rate_limit=config.max_requests_per_minute,
            period=60.0
        )
        self.min_interval = config.min_request_interval
        self.last_request_time = 0.0

        self.client = httpx.AsyncClient(
            timeout=config.request_timeout,
            follow_redirects=True,
            headers={
                "User-Agent": USER_AGENT,
                "Accept-Language": "en-US,en;q=0.9",
                "Referer": self.base_url.rstrip("/") + "/",
            }
        )

    async def _wait_for_rate_limit(self):
        """Wait to respect rate limiting."""
        await self.throttler.acquire()

        time_since_last = time.time() - self.last_request_time
        if time_since_last < self.min_interval:
            wait_time = self.min_interval - time_since_last
            # Jitter (±25%)
            jitter = wait_time * 0.25 * (random.random() * 2 - 1)
            await asyncio.sleep(wait_time + jitter)

        self.last_request_time = time.time()

    def _backoff(self, attempt: int) -> float:
        backoff = min(
            self.retry_backoff_base * (2 ** attempt),
            self.max_retry_delay
        )
        return backoff + backoff * 0.25 * (random.random() * 2 - 1)

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    async def _request_with_retry(self, path: str, accept: str) -> httpx.Response:
        """
        GET a page with retry logic.

        Args:
            path: Site path (or absolute URL)
            accept: Accept header for the request

        Returns:
            httpx.Response object

        Raises:
            FPLSiteRateLimitError: If still rate limited after retries
            FPLSiteNonRetryableError: If non-retryable error
            FPLSiteError: For other errors after retries exhausted
        """
        url = self._url(path)
        last_exception: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                await self._wait_for_rate_limit()
                response = await self.client.get(url, headers={"Accept": accept})
            except httpx.TimeoutException as e:
                last_exception = e
                reason = "Timeout"
            except httpx.NetworkError as e:
                last_exception = e
                reason = "Network error"
            else:
                if response.is_success:
                    return response

                status_code = response.status_code

                if status_code == 429:
                    retry_after = int(response.headers.get("Retry-After", 60))
                    logger.warning("Rate limited by fantasy site", extra={
                        "url": url,
                        "retry_after": retry_after,
                        "attempt": attempt + 1
                    })
                    if attempt < self.max_retries:
                        await asyncio.sleep(retry_after)
                        continue
                    raise FPLSiteRateLimitError(
                        f"Rate limited after {self.max_retries} retries: {url}"
                    )

                if status_code not in RETRYABLE_STATUS_CODES:
                    error_text = response.text[:500]
                    logger.error("Non-retryable error from fantasy site", extra={
                        "url": url,
                        "status_code": status_code,
                    })
                    raise FPLSiteNonRetryableError(
                        f"Non-retryable error {status_code} for {url}: {error_text}"
                    )

                if attempt >= self.max_retries:
                    raise FPLSiteError(
                        f"Request failed after {self.max_retries} retries: "
                        f"{status_code} for {url}"
                    )
                reason = f"HTTP {status_code}"

            if attempt >= self.max_retries:
                raise FPLSiteError(
                    f"{reason} after {self.max_retries} retries: {url}"
                ) from last_exception

            wait_time = self._backoff(attempt)
            logger.warning("Fetch failed, retrying", extra={
                "url": url,
                "reason": reason,
                "attempt": attempt + 1,
                "wait_time": wait_time,
            })
            await asyncio.sleep(wait_time)

        raise FPLSiteError(f"Request failed: {url}") from last_exception

    async def get_html(self, path: str) -> BeautifulSoup:
        """
        Fetch and parse an HTML page.

        Args:
            path: Site path, e.g. "/fixtures/3/"

        Returns:
            Parsed document
        """
        response = await self._request_with_retry(path, HTML_ACCEPT)
        if not response.text:
            raise FPLSiteError(f"Empty page: {path}")
        return parse_html(response.text)

    async def get_json(self, path: str) -> Dict[str, Any]:
        """
        Fetch a JSON endpoint.

        Args:
            path: Site path

        Returns:
            Decoded JSON object
        """
        response = await self._request_with_retry(path, JSON_ACCEPT)
        try:
            data = response.json()
        except ValueError as e:
            logger.error("JSON parse failed", extra={
                "url": str(response.url),
                "status_code": response.status_code,
                "content_type": response.headers.get("content-type", "unknown"),
                "response_preview": response.text[:200],
            })
            raise FPLSiteError(f"Failed to parse JSON from {path}: {e}") from e
        if not isinstance(data, dict):
            raise FPLSiteError(f"Expected a JSON object from {path}, got {type(data).__name__}")
        return data

    async def get_entry_event_history(self, team_id: int, week: int) -> BeautifulSoup:
        """Team page for one round: penalty summary and the fifteen pitch slots."""
        return await self.get_html(f"/entry/{team_id}/event-history/{week}/")

    async def get_fixtures_page(self, week: int) -> BeautifulSoup:
        """Fixture list for a round."""
        return await self.get_html(f"/fixtures/{week}/")

    async def get_fixture_page(self, fixture_id: int) -> BeautifulSoup:
        """Per-player detail table for one fixture."""
        return await self.get_html(f"/fixture/{fixture_id}/")

    async def get_element(self, player_id: int) -> Dict[str, Any]:
        """
        Get player detail (name, club, shirt, position, event points and explain).

        Args:
            player_id: FPL player ID

        Returns:
            Player detail dictionary
        """
        data = await self.get_json(f"/web/api/elements/{player_id}/")

        logger.debug("Fetched element", extra={
            "player_id": player_id,
            "event_points": data.get("event_points"),
        })

        return data

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()

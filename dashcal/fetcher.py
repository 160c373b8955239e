"""HTTP client for downloading published iCalendar feeds."""

import asyncio
import logging
import random
import time
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import httpx

from . import __version__
from .exceptions import (
    FeedFetchError,
    FeedForbiddenError,
    FeedHTTPError,
    FeedNetworkError,
    FeedNotFoundError,
    FeedTimeoutError,
    FeedUnauthorizedError,
    InvalidFeedError,
    InvalidFeedURLError,
)

logger = logging.getLogger(__name__)

ACCEPT_HEADER = "text/calendar, text/plain, */*"
NO_CACHE_HEADERS = {"Cache-Control": "no-cache, no-store", "Pragma": "no-cache"}
CACHE_BUST_PARAM = "_t"

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 30.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3


def validate_feed_url(url: str) -> str:
    """Return the URL stripped of whitespace if it is an absolute http(s) URL.

    Raises:
        InvalidFeedURLError: For any other value
    """
    candidate = (url or "").strip()
    parsed = urlparse(candidate)
    if parsed.scheme not in ("http", "https"):
        raise InvalidFeedURLError(f"Invalid calendar URL scheme: {parsed.scheme or 'missing'}")
    if not parsed.hostname:
        raise InvalidFeedURLError("Invalid calendar URL: missing hostname")
    return candidate


def validate_feed_body(content: str) -> str:
    """Reject bodies that cannot be calendar data before they reach the parser.

    Raises:
        InvalidFeedError: If the body is empty or lacks calendar markers
    """
    if not content or not content.strip():
        raise InvalidFeedError("Calendar feed returned an empty response")
    if "BEGIN:VCALENDAR" not in content and "BEGIN:VEVENT" not in content:
        raise InvalidFeedError("Response does not contain iCalendar data")
    return content


class FeedFetcher:
    """Async HTTP client for iCalendar feeds.

    The fetcher owns its httpx client unless one is injected, in which case
    the caller remains responsible for closing it.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        request_timeout: float = 30.0,
        max_retries: int = 2,
        retry_backoff_factor: float = 1.5,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Optional externally managed HTTP client
            request_timeout: Read timeout in seconds
            max_retries: Retries for transient network failures
            retry_backoff_factor: Base of the exponential backoff
            clock: Epoch-seconds source for cache-busting parameters
        """
        self.client = client
        self._owns_client = client is None
        self.request_timeout = request_timeout
        self.max_retries = max_retries
        self.retry_backoff_factor = retry_backoff_factor
        self._clock = clock

    async def __aenter__(self) -> "FeedFetcher":
        self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.close()

    def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is None or self.client.is_closed:
            timeout = httpx.Timeout(connect=10.0, read=self.request_timeout, write=10.0, pool=30.0)
            self.client = httpx.AsyncClient(
                timeout=timeout,
                follow_redirects=True,
                headers={"User-Agent": f"dashcal/{__version__}"},
            )
            self._owns_client = True
        return self.client

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client and not self.client.is_closed:
            await self.client.aclose()
            logger.debug("Closed HTTP client")
        if self._owns_client:
            self.client = None

    async def fetch(self, url: str, *, bypass_cache: bool = False) -> str:
        """Download feed text.

        Args:
            url: Feed URL
            bypass_cache: Add a cache-busting query parameter and no-cache
                headers so intermediaries serve a fresh copy

        Returns:
            Response body, verified to look like iCalendar data

        Raises:
            InvalidFeedURLError: Before any I/O when the URL is malformed
            FeedNotFoundError: HTTP 404
            FeedForbiddenError: HTTP 403
            FeedUnauthorizedError: HTTP 401
            FeedHTTPError: Any other non-success status
            FeedTimeoutError: The request timed out after all retries
            FeedNetworkError: Connection failure after all retries
            InvalidFeedError: Empty or non-calendar body
        """
        url = validate_feed_url(url)
        headers = {"Accept": ACCEPT_HEADER}
        params: Optional[dict[str, str]] = None
        if bypass_cache:
            headers.update(NO_CACHE_HEADERS)
            params = {CACHE_BUST_PARAM: str(int(self._clock() * 1000))}

        try:
            response = await self._make_request_with_retry(url, headers, params)
        except httpx.HTTPStatusError as e:
            raise self._status_error(e.response) from e
        except httpx.TimeoutException as e:
            raise FeedTimeoutError(f"Request timeout after {self.request_timeout}s") from e
        except httpx.TransportError as e:
            raise FeedNetworkError(f"Network error: {e}") from e

        content = validate_feed_body(response.text)
        logger.debug("Fetched calendar feed (%d bytes)", len(content))
        return content

    def _status_error(self, response: httpx.Response) -> FeedFetchError:
        status = response.status_code
        logger.warning("Calendar feed request failed with HTTP %d", status)
        if status == 404:
            return FeedNotFoundError(
                "Calendar not found. Check that the calendar URL is correct.", status
            )
        if status == 403:
            return FeedForbiddenError(
                "Access to the calendar was denied. Make sure the calendar is public.", status
            )
        if status == 401:
            return FeedUnauthorizedError(
                "The calendar requires authentication. Use a public calendar URL.", status
            )
        return FeedHTTPError(
            f"Failed to fetch calendar: {status} {response.reason_phrase}",
            status,
            response.reason_phrase,
        )

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(self.retry_backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311
        return base_backoff + jitter

    async def _make_request_with_retry(
        self, url: str, headers: dict[str, str], params: Optional[dict[str, str]]
    ) -> httpx.Response:
        client = self._ensure_client()
        attempt = 0

        while True:
            try:
                response = await client.get(url, headers=headers, params=params)
                # HTTP errors are not retried
                response.raise_for_status()
                logger.debug("Fetched %s (attempt %d)", url, attempt + 1)
                return response

            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= self.max_retries:
                    logger.error("All %d attempts failed for %s: %s", attempt + 1, url, e)
                    raise
                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Request failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1

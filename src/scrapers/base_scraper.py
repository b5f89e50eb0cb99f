from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

import httpx
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from src.config.settings import AppSettings, settings
from src.models.enums import DataSource

# Define common HTTP status codes that warrant a retry
RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/128.0.0.0 Safari/537.36"
)

T = TypeVar("T")


class ScraperError(Exception):
    """Custom exception for scraper-related errors."""

    pass


class AuthenticationError(ScraperError):
    """Exception raised for authentication failures (401, 403)."""

    pass


class RateLimitError(ScraperError):
    """Exception raised for rate limit errors (429)."""

    pass


class SourceHTTPError(ScraperError):
    """Non-2xx response; keeps status and body so callers can tell it from an empty result."""

    def __init__(self, status_code: int, body: str = "", url: str = ""):
        super().__init__(f"HTTP {status_code} for {url}: {body[:200]}")
        self.status_code = status_code
        self.body = body
        self.url = url


class NavigationError(ScraperError):
    """Headless browser failed to load a page (navigation error or timeout)."""

    pass


class FetchCancelledError(ScraperError):
    """Raised when a caller cancels a running fetch loop."""

    pass


@dataclass(frozen=True)
class RetryPolicy:
    """Single retry policy shared by the API client and the HTML scraper."""

    max_attempts: int = 4
    min_wait: float = 1.0
    max_wait: float = 10.0
    multiplier: float = 1.0

    @classmethod
    def from_settings(cls, app_settings: AppSettings) -> "RetryPolicy":
        return cls(
            max_attempts=app_settings.retry_max_attempts,
            min_wait=app_settings.retry_min_wait_seconds,
            max_wait=app_settings.retry_max_wait_seconds,
        )

    @staticmethod
    def is_retryable(exc: BaseException) -> bool:
        if isinstance(exc, SourceHTTPError):
            return exc.status_code in RETRYABLE_STATUS_CODES
        return isinstance(exc, (httpx.RequestError, RateLimitError, NavigationError))

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            f"Attempt {retry_state.attempt_number} failed ({exc!r}), retrying..."
        )

    def retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.multiplier, min=self.min_wait, max=self.max_wait
            ),
            retry=retry_if_exception(self.is_retryable),
            before_sleep=self._log_retry,
            reraise=True,  # Reraise the last exception after max attempts
        )

    async def call(self, func: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        return await self.retrying()(func, *args, **kwargs)


class BaseScraper(ABC):
    """Abstract base class for the team data sources."""

    source: DataSource

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": DEFAULT_USER_AGENT},
        )
        self.retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    @abstractmethod
    async def fetch_raw_matches(self) -> List[Any]:
        """Fetch the raw match records of this source, ready for normalization."""
        pass

    async def _make_request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Makes an asynchronous HTTP request with the retry policy applied."""
        try:
            return await self.retry_policy.call(
                self._send, method, url, headers=headers, params=params
            )
        except httpx.RequestError as e:
            logger.error(
                f"Max retries exceeded for {self.source.value} request to {url}: {e!r}"
            )
            raise ScraperError(
                f"Failed request to {url} after {self.retry_policy.max_attempts} attempts"
            ) from e

    async def _send(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        logger.debug(f"Making request", method=method, url=url, params=params)
        response = await self.client.request(
            method, url, headers=headers, params=params
        )

        if response.status_code in {401, 403}:
            logger.warning(
                f"Authentication error ({response.status_code}) for {self.source.value} at {url}. Check API keys."
            )
            raise AuthenticationError(
                f"Authentication failed ({response.status_code}) for {self.source.value}"
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            logger.warning(
                f"Rate limit hit (429) for {self.source.value} at {url}. Retry-After: {retry_after}"
            )
            raise RateLimitError(f"Rate limited by {self.source.value}")

        if response.is_error:
            logger.error(
                f"HTTP error during request for {self.source.value}: {response.status_code} at {url}"
            )
            raise SourceHTTPError(response.status_code, response.text, url)

        logger.debug(f"Request successful: {response.status_code} for {url}")
        return response

    async def close(self):
        """Closes the underlying HTTP client."""
        await self.client.aclose()
        logger.info(f"Closed HTTP client for {self.source.value}")

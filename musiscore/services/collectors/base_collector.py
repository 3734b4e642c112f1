"""
MUSISCORE - Base Collector Framework

HTTP plumbing shared by the external metrics collectors: a pooled httpx
client, a sliding-window rate limiter and a retry loop with exponential
backoff that honors Retry-After on 429.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[Any]]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class MetricsProviderError(Exception):
    """Base error for provider calls."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderAuthError(MetricsProviderError):
    """Credentials rejected or token endpoint unreachable. Aborts the run."""


class PermanentProviderError(MetricsProviderError):
    """A 4xx other than 429. Not retried."""


class TransientProviderError(MetricsProviderError):
    """429, 5xx or transport failure that outlived every retry."""


# =============================================================================
# RATE LIMITING & RETRY
# =============================================================================

@dataclass
class RateLimiter:
    """Sliding window request budget."""

    max_requests: int
    window_seconds: int
    requests: List[float] = field(default_factory=list)

    def can_request(self) -> bool:
        self._cleanup()
        return len(self.requests) < self.max_requests

    def add_request(self) -> None:
        self.requests.append(time.time())

    def wait_time(self) -> float:
        """Seconds until the oldest request leaves the window."""
        self._cleanup()
        if len(self.requests) < self.max_requests:
            return 0.0
        oldest = min(self.requests)
        return max(0.0, oldest + self.window_seconds - time.time())

    def _cleanup(self) -> None:
        cutoff = time.time() - self.window_seconds
        self.requests = [r for r in self.requests if r > cutoff]


def _default_retryable(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


@dataclass
class RetryPolicy:
    """
    Exponential backoff.

    Attempt n (0-based) waits base_delay * multiplier ** n, capped at
    max_delay. A unit of work gets at most max_attempts requests.
    """

    max_attempts: int = 3
    base_delay: float = 0.5
    multiplier: float = 2.0
    max_delay: float = 60.0
    retryable: Callable[[int], bool] = _default_retryable

    @classmethod
    def from_settings(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=config.SPOTIFY_MAX_ATTEMPTS,
            base_delay=config.SPOTIFY_BACKOFF_BASE,
            multiplier=config.SPOTIFY_BACKOFF_MULTIPLIER,
            max_delay=config.SPOTIFY_BACKOFF_MAX,
        )

    def get_delay(self, attempt: int) -> float:
        delay = self.base_delay * (self.multiplier ** attempt)
        return min(delay, self.max_delay)

    def is_retryable(self, status_code: int) -> bool:
        return self.retryable(status_code)


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Retry-After in seconds, or None when absent or not a number."""
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        return None


# =============================================================================
# BASE COLLECTOR
# =============================================================================

class BaseCollector:
    """
    Base class for HTTP collectors.

    Provides:
    - HTTP client with connection pooling
    - Rate limiting
    - Retry logic with exponential backoff
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        rate_limit: int = 100,
        rate_window: int = 60,
        timeout: float = 30.0,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Optional[SleepFunc] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.rate_limiter = RateLimiter(rate_limit, rate_window)
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self._sleep = sleep or asyncio.sleep
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _get_headers(self) -> Dict[str, str]:
        """Request headers. Override in subclasses for auth."""
        return {"Accept": "application/json"}

    async def _wait_for_budget(self) -> None:
        # Concurrent callers can wake together; re-check until a slot is free.
        while True:
            wait_time = self.rate_limiter.wait_time()
            if wait_time <= 0:
                return
            logger.debug(f"[{self.name}] Rate limit: waiting {wait_time:.2f}s")
            await self._sleep(wait_time)

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        auth: Optional[httpx.Auth] = None,
    ) -> Any:
        """
        Make HTTP request with rate limiting and retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Path relative to base_url, or an absolute URL
            params: Query parameters
            data: Form body
            headers: Replaces the default headers
            auth: httpx auth for this request

        Returns:
            Parsed JSON response

        Raises:
            ProviderAuthError: 401 from the provider
            PermanentProviderError: Any other non-retryable status
            TransientProviderError: Retries exhausted
        """
        client = await self.get_client()
        policy = self.retry_policy
        last_error: Optional[str] = None

        for attempt in range(policy.max_attempts):
            await self._wait_for_budget()
            self.rate_limiter.add_request()
            delay: Optional[float] = None

            try:
                response = await client.request(
                    method=method,
                    url=endpoint,
                    params=params,
                    data=data,
                    headers=headers or self._get_headers(),
                    auth=auth,
                )
            except (httpx.TransportError, httpx.TimeoutException) as e:
                last_error = f"transport error: {e}"
                logger.warning(f"[{self.name}] Connection error on {endpoint}: {e}")
            else:
                status = response.status_code
                if status < 400:
                    return response.json()

                last_error = f"HTTP {status}"
                if status == 401:
                    raise ProviderAuthError(f"[{self.name}] Unauthorized on {endpoint}", status)
                if not policy.is_retryable(status):
                    logger.error(f"[{self.name}] HTTP {status} on {endpoint}, not retrying")
                    raise PermanentProviderError(f"[{self.name}] HTTP {status} on {endpoint}", status)

                if status == 429:
                    delay = parse_retry_after(response.headers.get("Retry-After"))
                    logger.warning(f"[{self.name}] Rate limited on {endpoint}")
                else:
                    logger.warning(f"[{self.name}] HTTP {status} on {endpoint}")

            if attempt + 1 < policy.max_attempts:
                if delay is None:
                    delay = policy.get_delay(attempt)
                logger.info(f"[{self.name}] Retry {attempt + 1}/{policy.max_attempts - 1} in {delay:.1f}s")
                await self._sleep(delay)

        raise TransientProviderError(f"[{self.name}] All retries failed for {endpoint}: {last_error}")

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make GET request."""
        return await self._make_request("GET", endpoint, params=params)

"""
HTTP infrastructure layer with timeout and optional retry logic.

Provides:
- RetryConfig: Exponential backoff configuration
- HTTPClient: Async HTTP client that maps failures onto HTTPClientError /
  UpstreamUnavailable

The Helix client layers authentication on top of this; it never sees a
raw httpx exception.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Exponential backoff configuration for HTTP retries.

    Formula: min(max_backoff, base_delay * 2^attempt) * (1 + random(0, jitter_factor))

    ``max_retries=0`` disables retries entirely, which is the default for
    the relay: a transient failure skips the subscription for one cycle
    and the next cycle naturally tries again.
    """

    max_retries: int = 0
    max_backoff_seconds: float = 30.0
    base_delay: float = 1.0
    jitter_factor: float = 0.1

    def calculate_backoff(self, attempt: int) -> float:
        """
        Calculate backoff duration for a given retry attempt.

        Args:
            attempt: The retry attempt number (0-indexed)

        Returns:
            Backoff duration in seconds with jitter applied
        """
        delay = min(self.base_delay * (2**attempt), self.max_backoff_seconds)
        return delay + delay * self.jitter_factor * random.random()

    def is_retryable_status(self, status_code: int) -> bool:
        """429 and the transient 5xx family are retryable."""
        return status_code in {429, 500, 502, 503, 504}

    def is_retryable_exception(self, exc: Exception) -> bool:
        """Transport-level failures (timeouts, refused connections, resets)."""
        return isinstance(exc, httpx.TransportError)


class HTTPClientError(Exception):
    """Upstream answered with a non-retryable error status."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class UpstreamUnavailable(HTTPClientError):
    """Network failure, timeout, rate limit or 5xx after all retries."""


class HTTPClient:
    """
    Async HTTP client with per-request timeout and retry on transient errors.

    Example:
        async with HTTPClient(RetryConfig(max_retries=2), timeout=10.0) as client:
            response = await client.get(
                "https://api.twitch.tv/helix/users",
                params={"login": "somestreamer"},
                headers={"Client-ID": "...", "Authorization": "Bearer ..."},
            )
    """

    def __init__(
        self,
        retry_config: RetryConfig | None = None,
        timeout: float = 10.0,
    ):
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self) -> "HTTPClient":
        """Enter async context manager, create client."""
        self._client = httpx.AsyncClient(timeout=self.timeout)
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Exit async context manager, close client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Perform GET request with retry logic.

        Raises:
            HTTPClientError: On non-retryable status codes (including 401)
            UpstreamUnavailable: On transient failures once retries are exhausted
        """
        return await self._request_with_retry("GET", url, params=params, headers=headers)

    async def post(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        """Perform POST request with retry logic. Raises like ``get``."""
        return await self._request_with_retry(
            "POST", url, params=params, headers=headers, json_body=json_body
        )

    async def _request_with_retry(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPClient must be used as async context manager")

        max_retries = self.retry_config.max_retries

        for attempt in range(max_retries + 1):
            try:
                response = await self._client.request(
                    method,
                    url,
                    params=params or None,
                    headers=headers or None,
                    json=json_body,
                )
            except httpx.TransportError as e:
                if attempt < max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        "Retryable error %s for %s, attempt %d/%d, backing off %.2fs",
                        type(e).__name__, url, attempt + 1, max_retries + 1, backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise UpstreamUnavailable(
                    f"{method} {url} failed after {attempt + 1} attempts: {e!r}"
                ) from e

            if self.retry_config.is_retryable_status(response.status_code):
                if attempt < max_retries:
                    backoff = self.retry_config.calculate_backoff(attempt)
                    logger.warning(
                        "Retryable status %d from %s, attempt %d/%d, backing off %.2fs",
                        response.status_code, url, attempt + 1, max_retries + 1, backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                raise UpstreamUnavailable(
                    f"{method} {url} failed with status {response.status_code} "
                    f"after {attempt + 1} attempts",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            if response.status_code >= 400:
                raise HTTPClientError(
                    f"{method} {url} failed with status {response.status_code}",
                    status_code=response.status_code,
                    response_body=response.text,
                )

            return response

        # Unreachable: the last iteration always returns or raises
        raise UpstreamUnavailable(f"{method} {url} exhausted retries")

"""App access token management for the Helix API.

The relay authenticates with the OAuth client-credentials grant. One
token is shared by every request the process makes, so refreshes are
single-flight: concurrent callers that find the token missing, expired
or rejected wait on one in-progress refresh instead of each requesting
their own (Twitch rate-limits the token endpoint).
"""

import asyncio
import logging
import time
from dataclasses import dataclass

from clip_relay.observability.metrics import MetricsCollector
from clip_relay.twitch.http_client import HTTPClient, HTTPClientError, UpstreamUnavailable

logger = logging.getLogger(__name__)


class CredentialError(Exception):
    """The upstream refused to issue or honour an access token."""


@dataclass
class AccessToken:
    """A bearer token and the monotonic time after which it must not be used."""

    value: str
    expires_at: float | None = None

    def is_expired(self, now: float | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now if now is not None else time.monotonic()) >= self.expires_at


class TokenManager:
    """
    Owns the single shared access-token slot.

    ``ensure_token()`` returns a usable token, acquiring one if needed.
    ``invalidate(token)`` is called by a request that got a 401; it only
    clears the slot if it still holds that exact token, so N concurrent
    rejections of the same token lead to exactly one refresh.
    """

    def __init__(
        self,
        http: HTTPClient,
        client_id: str,
        client_secret: str,
        token_url: str = "https://id.twitch.tv/oauth2/token",
        expiry_margin_seconds: int = 60,
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._http = http
        self._client_id = client_id
        self._client_secret = client_secret
        self._token_url = token_url
        self._expiry_margin = expiry_margin_seconds
        self._metrics = metrics

        self._token: AccessToken | None = None
        self._refresh: asyncio.Task[str] | None = None
        self._refresh_count = 0

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def refresh_count(self) -> int:
        """Number of token requests sent to the upstream so far."""
        return self._refresh_count

    @property
    def current_token(self) -> str | None:
        return self._token.value if self._token else None

    async def ensure_token(self) -> str:
        """
        Return a valid access token, refreshing at most once per stale slot.

        Callers that arrive while a refresh is in flight await that same
        refresh and receive its token or its exception.

        Raises:
            CredentialError: The token endpoint rejected the client credentials.
            UpstreamUnavailable: The token endpoint could not be reached.
        """
        token = self._token
        if token is not None and not token.is_expired():
            return token.value

        if self._refresh is None:
            self._refresh = asyncio.create_task(self._refresh_token())
        # A cancelled caller must not cancel the refresh the others await
        return await asyncio.shield(self._refresh)

    async def invalidate(self, rejected: str) -> bool:
        """
        Drop the cached token if it is the one that was rejected.

        Returns:
            True if the slot was cleared, False if it had already moved on.
        """
        if self._token is not None and self._token.value == rejected:
            logger.warning("Access token rejected by upstream, invalidating")
            self._token = None
            return True
        return False

    async def _refresh_token(self) -> str:
        try:
            self._token = await self._request_token()
            return self._token.value
        finally:
            self._refresh = None

    async def _request_token(self) -> AccessToken:
        self._refresh_count += 1
        params = {
            "client_id": self._client_id,
            "client_secret": self._client_secret,
            "grant_type": "client_credentials",
        }

        try:
            response = await self._http.post(self._token_url, params=params)
        except UpstreamUnavailable:
            self._record(False)
            raise
        except HTTPClientError as e:
            self._record(False)
            raise CredentialError(
                f"Token request rejected with status {e.status_code}"
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            self._record(False)
            raise CredentialError("Token endpoint returned a non-JSON body") from e

        value = data.get("access_token") if isinstance(data, dict) else None
        if not value:
            self._record(False)
            raise CredentialError("Token endpoint response has no access_token")

        expires_at = None
        expires_in = data.get("expires_in")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            expires_at = time.monotonic() + max(0.0, expires_in - self._expiry_margin)

        self._record(True)
        logger.info("Acquired app access token (expires_in=%s)", expires_in)
        return AccessToken(value=str(value), expires_at=expires_at)

    def _record(self, success: bool) -> None:
        if self._metrics is not None:
            self._metrics.record_token_refresh(success)

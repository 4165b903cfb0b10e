"""Authenticated access to Helix endpoints.

Every request carries the ``Client-ID`` header and the shared bearer
token. A 401 invalidates the token, triggers one (shared) refresh and
retries the request exactly once; a second 401 is a CredentialError.
"""

import logging
import time
from typing import Any

from clip_relay.observability.metrics import MetricsCollector
from clip_relay.twitch.auth import CredentialError, TokenManager
from clip_relay.twitch.http_client import HTTPClient, HTTPClientError

logger = logging.getLogger(__name__)


class HelixClient:
    """Thin JSON GET wrapper over the Helix REST API."""

    def __init__(
        self,
        http: HTTPClient,
        tokens: TokenManager,
        api_base: str = "https://api.twitch.tv/helix",
        metrics: MetricsCollector | None = None,
    ) -> None:
        self._http = http
        self._tokens = tokens
        self._api_base = api_base.rstrip("/")
        self._metrics = metrics

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Client-ID": self._tokens.client_id,
            "Authorization": f"Bearer {token}",
        }

    async def get(self, endpoint: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        GET ``{api_base}/{endpoint}`` and return the decoded JSON body.

        Raises:
            CredentialError: Rejected again after a token refresh.
            UpstreamUnavailable: Transport failure, 429 or 5xx.
            HTTPClientError: Any other error status.
        """
        url = f"{self._api_base}/{endpoint.lstrip('/')}"
        token = await self._tokens.ensure_token()
        start = time.monotonic()

        try:
            response = await self._http.get(url, params=params, headers=self._headers(token))
        except HTTPClientError as e:
            if e.status_code != 401:
                raise
            await self._tokens.invalidate(token)
            token = await self._tokens.ensure_token()
            logger.info("Retrying %s with refreshed token", endpoint)
            try:
                response = await self._http.get(
                    url, params=params, headers=self._headers(token)
                )
            except HTTPClientError as retry_error:
                if retry_error.status_code == 401:
                    raise CredentialError(
                        f"{endpoint} rejected a freshly issued token"
                    ) from retry_error
                raise

        if self._metrics is not None:
            self._metrics.record_upstream_latency(endpoint, time.monotonic() - start)

        return response.json()

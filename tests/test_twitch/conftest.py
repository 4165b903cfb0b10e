"""Shared fixtures for Twitch integration tests."""

from unittest.mock import AsyncMock

import httpx
import pytest

from clip_relay.twitch.config import TwitchConfig

TOKEN_URL = "https://id.twitch.tv/oauth2/token"
API_BASE = "https://api.twitch.tv/helix"


def token_response(value: str = "token-1", expires_in: int | None = 5000000) -> httpx.Response:
    body = {"access_token": value, "token_type": "bearer"}
    if expires_in is not None:
        body["expires_in"] = expires_in
    return httpx.Response(200, json=body)


@pytest.fixture
def twitch_config() -> TwitchConfig:
    return TwitchConfig(
        client_id="client-abc",
        client_secret="secret-xyz",
        page_size=20,
        max_pages=3,
        user_cache_ttl_seconds=3600,
    )


@pytest.fixture
def mock_http() -> AsyncMock:
    """Mock HTTPClient whose token POST hands out token-1, token-2, ..."""
    http = AsyncMock()
    issued = {"n": 0}

    async def _post(url, params=None, headers=None, json_body=None):
        issued["n"] += 1
        return token_response(f"token-{issued['n']}")

    http.post = AsyncMock(side_effect=_post)
    http.get = AsyncMock()
    return http

"""Fixtures for relay service tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from clip_relay.services.config import RelayConfig
from clip_relay.services.relay_service import ClipRelayService


@pytest.fixture
def store() -> AsyncMock:
    """SubscriptionStore double that accepts every write."""
    s = AsyncMock()
    s.list_active = AsyncMock(return_value=[])
    s.advance_watermark = AsyncMock(return_value=True)
    s.record_clip = AsyncMock(return_value=True)
    return s


@pytest.fixture
def fetcher() -> AsyncMock:
    f = AsyncMock()
    f.fetch = AsyncMock(return_value=[])
    return f


@pytest.fixture
def dispatcher() -> AsyncMock:
    """Dispatcher double that accepts every delivery."""
    d = AsyncMock()
    d.deliver = AsyncMock(return_value=True)
    return d


@pytest.fixture
def metrics() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_service(store, fetcher, dispatcher, metrics):
    """Build a ClipRelayService around the doubles with an optional config."""

    def _make(**config_overrides) -> ClipRelayService:
        return ClipRelayService(
            store,
            fetcher,
            dispatcher,
            config=RelayConfig(**config_overrides),
            metrics=metrics,
        )

    return _make

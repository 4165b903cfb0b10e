"""Tests for ClipFetcher resolution, filtering, ordering and paging."""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from clip_relay.twitch.clips import (
    ClipFetcher,
    UnknownBroadcaster,
    format_rfc3339,
    normalize_handle,
)
from clip_relay.twitch.config import TwitchConfig
from clip_relay.twitch.http_client import UpstreamUnavailable
from clip_relay.twitch.schemas import EPOCH


def _helix(users: list[dict], clip_pages: list[dict]) -> AsyncMock:
    """Mock HelixClient answering /users with ``users`` and /clips page by page."""
    helix = AsyncMock()
    pages = iter(clip_pages)

    async def get(endpoint, params=None):
        if endpoint == "users":
            return {"data": users}
        return next(pages)

    helix.get.side_effect = get
    return helix


def _clip_calls(helix: AsyncMock) -> list[dict]:
    return [c.kwargs["params"] for c in helix.get.call_args_list if c.args[0] == "clips"]


USER = [{"id": "141981764", "login": "twitchdev"}]


class TestHelpers:
    """Tests for module-level helpers."""

    def test_format_rfc3339_uses_utc_z(self):
        value = datetime(2026, 3, 14, 19, 30, tzinfo=timezone(timedelta(hours=1)))
        assert format_rfc3339(value) == "2026-03-14T18:30:00Z"

    def test_normalize_handle(self):
        assert normalize_handle("  @TwitchDev ") == "twitchdev"


class TestResolveBroadcaster:
    """Tests for handle -> id resolution."""

    @pytest.mark.asyncio
    async def test_returns_id(self, twitch_config):
        helix = _helix(USER, [])
        fetcher = ClipFetcher(helix, twitch_config)

        assert await fetcher.resolve_broadcaster("TwitchDev") == "141981764"
        helix.get.assert_awaited_once_with("users", params={"login": "twitchdev"})

    @pytest.mark.asyncio
    async def test_unknown_handle_raises(self, twitch_config):
        fetcher = ClipFetcher(_helix([], []), twitch_config)

        with pytest.raises(UnknownBroadcaster) as exc_info:
            await fetcher.resolve_broadcaster("ghostuser")

        assert exc_info.value.handle == "ghostuser"

    @pytest.mark.asyncio
    async def test_lookups_are_cached(self, twitch_config):
        helix = _helix(USER, [])
        fetcher = ClipFetcher(helix, twitch_config)

        await fetcher.resolve_broadcaster("twitchdev")
        await fetcher.resolve_broadcaster("TWITCHDEV")

        assert helix.get.await_count == 1

    @pytest.mark.asyncio
    async def test_cache_disabled_with_zero_ttl(self):
        helix = _helix(USER, [])
        fetcher = ClipFetcher(helix, TwitchConfig(user_cache_ttl_seconds=0))

        await fetcher.resolve_broadcaster("twitchdev")
        await fetcher.resolve_broadcaster("twitchdev")

        assert helix.get.await_count == 2


class TestQueryStart:
    """Tests for the started_at lower bound."""

    NOW = datetime(2026, 3, 20, 12, 0, tzinfo=timezone.utc)

    def test_unset_watermark_uses_lookback(self, twitch_config):
        fetcher = ClipFetcher(AsyncMock(), twitch_config)

        assert fetcher.query_start(None, now=self.NOW) == self.NOW - timedelta(hours=24)
        assert fetcher.query_start(EPOCH, now=self.NOW) == self.NOW - timedelta(hours=24)

    def test_recent_watermark_used_as_is(self, twitch_config):
        fetcher = ClipFetcher(AsyncMock(), twitch_config)
        since = self.NOW - timedelta(hours=3)

        assert fetcher.query_start(since, now=self.NOW) == since

    def test_stale_watermark_is_capped(self, twitch_config):
        fetcher = ClipFetcher(AsyncMock(), twitch_config)
        since = self.NOW - timedelta(days=30)

        assert fetcher.query_start(since, now=self.NOW) == self.NOW - timedelta(hours=168)


class TestFetch:
    """Tests for incremental clip listing."""

    @pytest.mark.asyncio
    async def test_unsorted_upstream_is_returned_oldest_first(
        self, twitch_config, helix_clip, base_time
    ):
        t1, t2, t3 = (base_time + timedelta(minutes=m) for m in (1, 2, 3))
        page = {
            "data": [helix_clip("c1", t1), helix_clip("c3", t3), helix_clip("c2", t2)],
            "pagination": {},
        }
        fetcher = ClipFetcher(_helix(USER, [page]), twitch_config)

        clips = await fetcher.fetch("twitchdev", EPOCH)

        assert [c.id for c in clips] == ["c1", "c2", "c3"]
        assert [c.created_at for c in clips] == [t1, t2, t3]

    @pytest.mark.asyncio
    async def test_unknown_broadcaster_yields_empty(self, twitch_config):
        helix = _helix([], [])
        fetcher = ClipFetcher(helix, twitch_config)

        clips = await fetcher.fetch("ghostuser", EPOCH)

        assert clips == []
        assert _clip_calls(helix) == []

    @pytest.mark.asyncio
    async def test_empty_upstream_yields_empty(self, twitch_config):
        fetcher = ClipFetcher(_helix(USER, [{"data": [], "pagination": {}}]), twitch_config)

        assert await fetcher.fetch("twitchdev", EPOCH) == []

    @pytest.mark.asyncio
    async def test_clips_at_or_before_watermark_are_dropped(
        self, twitch_config, helix_clip, base_time
    ):
        page = {
            "data": [
                helix_clip("older", base_time - timedelta(minutes=5)),
                helix_clip("boundary", base_time),
                helix_clip("newer", base_time + timedelta(seconds=1)),
            ],
        }
        fetcher = ClipFetcher(_helix(USER, [page]), twitch_config)

        clips = await fetcher.fetch("twitchdev", base_time)

        assert [c.id for c in clips] == ["newer"]

    @pytest.mark.asyncio
    async def test_request_parameters(self, twitch_config):
        helix = _helix(USER, [{"data": []}])
        fetcher = ClipFetcher(helix, twitch_config)

        await fetcher.fetch("twitchdev", EPOCH)

        params = _clip_calls(helix)[0]
        assert params["broadcaster_id"] == "141981764"
        assert params["first"] == 20
        assert params["started_at"].endswith("Z")
        assert "after" not in params

    @pytest.mark.asyncio
    async def test_follows_pagination_and_dedupes(self, twitch_config, helix_clip, base_time):
        pages = [
            {
                "data": [helix_clip("a", base_time + timedelta(minutes=3))],
                "pagination": {"cursor": "page2"},
            },
            {
                "data": [
                    helix_clip("a", base_time + timedelta(minutes=3)),
                    helix_clip("b", base_time + timedelta(minutes=1)),
                ],
                "pagination": {},
            },
        ]
        helix = _helix(USER, pages)
        fetcher = ClipFetcher(helix, twitch_config)

        clips = await fetcher.fetch("twitchdev", EPOCH)

        assert [c.id for c in clips] == ["b", "a"]
        calls = _clip_calls(helix)
        assert len(calls) == 2
        assert calls[1]["after"] == "page2"

    @pytest.mark.asyncio
    async def test_stops_after_max_pages(self, helix_clip, base_time):
        pages = [
            {
                "data": [helix_clip(f"c{i}", base_time + timedelta(minutes=i))],
                "pagination": {"cursor": f"cursor{i}"},
            }
            for i in range(5)
        ]
        helix = _helix(USER, pages)
        fetcher = ClipFetcher(helix, TwitchConfig(max_pages=2))

        clips = await fetcher.fetch("twitchdev", EPOCH)

        assert [c.id for c in clips] == ["c0", "c1"]
        assert len(_clip_calls(helix)) == 2

    @pytest.mark.asyncio
    async def test_truncated_paging_holds_back_newer_clips(self, helix_clip, base_time):
        """Clips newer than the oldest one on the last fetched page wait for a later cycle."""
        pages = [
            {
                "data": [
                    helix_clip("popular", base_time + timedelta(minutes=50)),
                    helix_clip("early", base_time + timedelta(minutes=10)),
                ],
                "pagination": {"cursor": "page2"},
            },
            {
                "data": [helix_clip("middle", base_time + timedelta(minutes=30))],
                "pagination": {"cursor": "page3"},
            },
            {"data": [helix_clip("unseen", base_time + timedelta(minutes=20))]},
        ]
        helix = _helix(USER, pages)
        fetcher = ClipFetcher(helix, TwitchConfig(max_pages=2))

        clips = await fetcher.fetch("twitchdev", EPOCH)

        assert [c.id for c in clips] == ["early", "middle"]
        assert len(_clip_calls(helix)) == 2

    @pytest.mark.asyncio
    async def test_malformed_clip_is_skipped(self, twitch_config, helix_clip, base_time):
        page = {
            "data": [
                {"id": "broken", "title": "no url or timestamp"},
                helix_clip("good", base_time),
            ],
        }
        fetcher = ClipFetcher(_helix(USER, [page]), twitch_config)

        clips = await fetcher.fetch("twitchdev", EPOCH)

        assert [c.id for c in clips] == ["good"]

    @pytest.mark.asyncio
    async def test_upstream_failure_propagates(self, twitch_config):
        helix = AsyncMock()
        helix.get.side_effect = UpstreamUnavailable("down", status_code=503)
        fetcher = ClipFetcher(helix, twitch_config)

        with pytest.raises(UpstreamUnavailable):
            await fetcher.fetch("twitchdev", EPOCH)

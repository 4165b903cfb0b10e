"""Incremental clip retrieval for one broadcaster.

``ClipFetcher.fetch(handle, since)`` answers "which clips are newer than
this watermark", oldest first. The ordering is what the relay relies on
to deliver in sequence and to advance the watermark over a prefix.
"""

import logging
import time
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from clip_relay.twitch.client import HelixClient
from clip_relay.twitch.config import TwitchConfig
from clip_relay.twitch.schemas import EPOCH, ClipCandidate

logger = logging.getLogger(__name__)


class UnknownBroadcaster(Exception):
    """The upstream has no user with the given handle."""

    def __init__(self, handle: str) -> None:
        super().__init__(f"No Twitch user named {handle!r}")
        self.handle = handle


def format_rfc3339(value: datetime) -> str:
    """Helix expects RFC3339 timestamps in UTC with a trailing Z."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def normalize_handle(handle: str) -> str:
    """Twitch logins are case-insensitive; the API wants lower case."""
    return handle.strip().lstrip("@").lower()


class ClipFetcher:
    """Resolves broadcaster handles and lists their clips since a watermark."""

    def __init__(self, helix: HelixClient, config: TwitchConfig | None = None) -> None:
        self._helix = helix
        self._config = config or TwitchConfig()

        # handle -> (broadcaster_id, cached_at)
        self._user_cache: dict[str, tuple[str, float]] = {}

    async def resolve_broadcaster(self, handle: str) -> str:
        """
        Map a handle to the stable Helix user id.

        Raises:
            UnknownBroadcaster: The lookup returned no user.
        """
        login = normalize_handle(handle)
        ttl = self._config.user_cache_ttl_seconds
        cached = self._user_cache.get(login)
        if cached is not None and (time.monotonic() - cached[1]) < ttl:
            return cached[0]

        body = await self._helix.get("users", params={"login": login})
        users = body.get("data") or []
        if not users or not users[0].get("id"):
            raise UnknownBroadcaster(login)

        broadcaster_id = str(users[0]["id"])
        if ttl > 0:
            self._user_cache[login] = (broadcaster_id, time.monotonic())
        return broadcaster_id

    def query_start(self, since: datetime | None, now: datetime | None = None) -> datetime:
        """
        Lower bound sent to the upstream as ``started_at``.

        An unset watermark looks back ``lookback_hours``; a set one is used
        as-is but never reaches further back than ``max_lookback_hours``.
        """
        now = now or datetime.now(timezone.utc)
        if since is None or since <= EPOCH:
            return now - timedelta(hours=self._config.lookback_hours)
        floor = now - timedelta(hours=self._config.max_lookback_hours)
        return max(since, floor)

    async def fetch(
        self,
        broadcaster_handle: str,
        since: datetime | None = None,
    ) -> list[ClipCandidate]:
        """
        Clips created strictly after ``since``, sorted oldest first.

        An unknown handle or an empty upstream answer both yield ``[]``.
        Transport and credential errors propagate to the caller.
        """
        try:
            broadcaster_id = await self.resolve_broadcaster(broadcaster_handle)
        except UnknownBroadcaster:
            logger.info("Broadcaster %r not found, no clips this cycle", broadcaster_handle)
            return []

        watermark = since or EPOCH
        params = {
            "broadcaster_id": broadcaster_id,
            "first": self._config.page_size,
            "started_at": format_rfc3339(self.query_start(since)),
        }

        candidates: dict[str, ClipCandidate] = {}
        cutoff: datetime | None = None
        for page in range(self._config.max_pages):
            body = await self._helix.get("clips", params=params)
            page_clips: list[ClipCandidate] = []

            for raw in body.get("data") or []:
                try:
                    clip = ClipCandidate.from_helix(raw)
                except ValidationError as e:
                    logger.warning(
                        "Skipping malformed clip for %s: %s",
                        broadcaster_handle, e.errors()[0].get("msg"),
                    )
                    continue
                # Upstream filtering is inclusive and subject to clock skew
                if clip.created_at > watermark:
                    candidates[clip.id] = clip
                    page_clips.append(clip)

            cursor = (body.get("pagination") or {}).get("cursor")
            if not cursor:
                break
            if page == self._config.max_pages - 1:
                # Pages are ordered by views, so unseen clips can be older
                # than ones already fetched. Hold back everything newer than
                # the oldest clip on the last page for a later cycle.
                if page_clips:
                    cutoff = min(c.created_at for c in page_clips)
                logger.warning(
                    "Stopped paging clips for %s after %d pages; lower-view "
                    "clips may be missed, holding back clips after %s",
                    broadcaster_handle, self._config.max_pages,
                    cutoff.isoformat() if cutoff else "none",
                )
                break
            params = {**params, "after": cursor}

        clips = list(candidates.values())
        if cutoff is not None:
            clips = [c for c in clips if c.created_at <= cutoff]
        return sorted(clips, key=lambda c: c.sort_key)

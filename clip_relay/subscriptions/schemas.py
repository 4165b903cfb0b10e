"""Data models for subscriptions and delivered-clip history."""

from dataclasses import dataclass
from datetime import datetime

from clip_relay.twitch.schemas import EPOCH, ClipCandidate


@dataclass
class Subscription:
    """A broadcaster watched on behalf of one Discord channel.

    The watermark (``watermark_clip_id``, ``watermark_created_at``) marks
    the newest clip already delivered; only clips strictly newer than
    ``watermark_created_at`` are candidates for delivery.
    """

    id: int
    broadcaster_handle: str
    destination_id: str
    watermark_clip_id: str | None = None
    watermark_created_at: datetime = EPOCH
    active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def has_watermark(self) -> bool:
        return self.watermark_clip_id is not None and self.watermark_created_at > EPOCH


@dataclass
class ClipRecord:
    """One row of the append-only clip history, unique by ``clip_id``."""

    clip_id: str
    broadcaster_handle: str
    title: str
    url: str
    thumbnail_url: str
    created_at: datetime
    creator_id: str = ""
    creator_name: str = ""
    recorded_at: datetime | None = None

    @classmethod
    def from_candidate(cls, clip: ClipCandidate, broadcaster_handle: str) -> "ClipRecord":
        return cls(
            clip_id=clip.id,
            broadcaster_handle=broadcaster_handle,
            title=clip.title,
            url=clip.url,
            thumbnail_url=clip.thumbnail_url,
            created_at=clip.created_at,
            creator_id=clip.creator_id,
            creator_name=clip.creator_name,
        )

"""
Typed view of Helix clip objects.

Validation happens here, at the deserialization boundary: everything
downstream of ClipFetcher can rely on ``created_at`` being a timezone
aware datetime and on ``id`` being non-empty.
"""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ClipCandidate(BaseModel):
    """A clip returned by the upstream that may still need delivering."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(..., min_length=1, description="Helix clip id (slug)")
    url: str = Field(..., min_length=1)
    title: str = ""
    thumbnail_url: str = ""
    created_at: datetime
    creator_id: str = ""
    creator_name: str = ""
    broadcaster_id: str = ""
    broadcaster_name: str = ""

    @field_validator("created_at")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Treat naive timestamps as UTC and normalise aware ones to UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @classmethod
    def from_helix(cls, raw: dict[str, Any]) -> "ClipCandidate":
        """Build from one element of a Helix ``/clips`` ``data`` array."""
        return cls.model_validate(raw)

    @property
    def sort_key(self) -> tuple[datetime, str]:
        """Oldest first; the id breaks ties between same-second clips."""
        return (self.created_at, self.id)

"""Render a clip into a Discord message payload.

Pure functions: no I/O, so the exact message shape is easy to test.
"""

from datetime import datetime, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from clip_relay.twitch.schemas import ClipCandidate


def format_local_timestamp(
    value: datetime,
    zone: tzinfo,
    date_format: str = "%d.%m.%Y",
    time_format: str = "%H:%M",
) -> tuple[str, str]:
    """Return ``(date, time)`` strings for ``value`` shown in ``zone``."""
    local = value.astimezone(zone)
    return local.strftime(date_format), local.strftime(time_format)


def build_notification(
    clip: ClipCandidate,
    broadcaster_handle: str = "",
    display_timezone: str = "Europe/Berlin",
    date_format: str = "%d.%m.%Y",
    time_format: str = "%H:%M",
) -> dict[str, Any]:
    """
    Build the message body for ``POST /channels/{id}/messages``.

    The plain-text lead line names the broadcaster; the embed carries the
    clip title (linked), the thumbnail, the broadcaster as author and a
    footer crediting the clip creator with the local creation time.
    """
    broadcaster = clip.broadcaster_name or broadcaster_handle
    date, time = format_local_timestamp(
        clip.created_at, ZoneInfo(display_timezone), date_format, time_format
    )

    embed: dict[str, Any] = {
        "title": clip.title or clip.id,
        "url": clip.url,
        "author": {"name": broadcaster},
        "footer": {"text": f"🎥 Clipped by {clip.creator_name or 'unknown'} on {date} at {time}"},
        "timestamp": clip.created_at.isoformat(),
    }
    if clip.thumbnail_url:
        embed["image"] = {"url": clip.thumbnail_url}

    return {
        "content": f"🎬 New clip from **{broadcaster}**",
        "embeds": [embed],
    }

"""Shared fixtures for subscription store tests."""

from datetime import datetime, timezone

import pytest

from clip_relay.subscriptions.schemas import ClipRecord


@pytest.fixture
def sample_row() -> dict:
    """A dict mimicking an asyncpg Record for a subscription."""
    return {
        "id": 7,
        "broadcaster_handle": "twitchdev",
        "destination_id": "998877665544332211",
        "watermark_clip_id": "AwkwardHelplessSalamander",
        "watermark_created_at": datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc),
        "active": True,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2026, 3, 14, 18, 5, tzinfo=timezone.utc),
    }


@pytest.fixture
def sample_record() -> ClipRecord:
    return ClipRecord(
        clip_id="AwkwardHelplessSalamander",
        broadcaster_handle="twitchdev",
        title="Nice play",
        url="https://clips.twitch.tv/AwkwardHelplessSalamander",
        thumbnail_url="https://clips-media-assets2.twitch.tv/x-preview-480x272.jpg",
        created_at=datetime(2026, 3, 14, 18, 0, tzinfo=timezone.utc),
        creator_id="12826",
        creator_name="Twitch",
    )

"""Tests for ClipCandidate validation."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from clip_relay.twitch.schemas import ClipCandidate


class TestClipCandidate:
    """Tests for deserializing Helix clip objects."""

    def test_from_helix_parses_fields(self, helix_clip, base_time):
        clip = ClipCandidate.from_helix(helix_clip("AwkwardHelplessSalamanderSwiftRage", base_time))

        assert clip.id == "AwkwardHelplessSalamanderSwiftRage"
        assert clip.created_at == base_time
        assert clip.creator_name == "Twitch"
        assert clip.broadcaster_name == "TwitchDev"
        assert clip.thumbnail_url.endswith("-preview-480x272.jpg")

    def test_naive_timestamp_is_utc(self):
        clip = ClipCandidate(id="x", url="u", created_at=datetime(2026, 1, 1, 12, 0))

        assert clip.created_at.tzinfo == timezone.utc

    def test_offset_timestamp_normalised_to_utc(self):
        clip = ClipCandidate(
            id="x",
            url="u",
            created_at=datetime(2026, 1, 1, 13, 0, tzinfo=timezone(timedelta(hours=1))),
        )

        assert clip.created_at == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
        assert clip.created_at.utcoffset() == timedelta(0)

    def test_missing_id_rejected(self, helix_clip, base_time):
        with pytest.raises(ValidationError):
            ClipCandidate.from_helix(helix_clip("", base_time))

    def test_missing_created_at_rejected(self):
        with pytest.raises(ValidationError):
            ClipCandidate.from_helix({"id": "x", "url": "u"})

    def test_sort_key_breaks_ties_by_id(self, make_clip):
        a = make_clip("b-clip", minutes=1)
        b = make_clip("a-clip", minutes=1)

        assert sorted([a, b], key=lambda c: c.sort_key) == [b, a]

"""Database repository for subscriptions and the clip history.

The poll cycle only ever reads active subscriptions, moves a watermark
forward and appends to the history. The remaining operations exist for
the CLI that manages subscriptions.
"""

import logging
from datetime import datetime

import asyncpg

from clip_relay.storage.database import Database
from clip_relay.subscriptions.schemas import EPOCH, ClipRecord, Subscription

logger = logging.getLogger(__name__)


class PersistenceFailure(Exception):
    """A write to the subscription store did not commit."""


_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS subscriptions (
    id                   BIGSERIAL PRIMARY KEY,
    broadcaster_handle   TEXT NOT NULL,
    destination_id       TEXT NOT NULL,
    watermark_clip_id    TEXT,
    watermark_created_at TIMESTAMPTZ NOT NULL DEFAULT TIMESTAMPTZ '1970-01-01 00:00:00+00',
    active               BOOLEAN NOT NULL DEFAULT TRUE,
    created_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at           TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    UNIQUE (broadcaster_handle, destination_id)
);

CREATE INDEX IF NOT EXISTS idx_subscriptions_active
    ON subscriptions(id) WHERE active = TRUE;

CREATE TABLE IF NOT EXISTS clips (
    clip_id            TEXT PRIMARY KEY,
    broadcaster_handle TEXT NOT NULL,
    title              TEXT NOT NULL DEFAULT '',
    url                TEXT NOT NULL,
    thumbnail_url      TEXT NOT NULL DEFAULT '',
    created_at         TIMESTAMPTZ NOT NULL,
    creator_id         TEXT NOT NULL DEFAULT '',
    creator_name       TEXT NOT NULL DEFAULT '',
    recorded_at        TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_clips_broadcaster_created
    ON clips(broadcaster_handle, created_at DESC);
"""

_ADVANCE_WATERMARK_SQL = """
UPDATE subscriptions
SET watermark_clip_id = $2,
    watermark_created_at = $3,
    updated_at = NOW()
WHERE id = $1 AND watermark_created_at <= $3
"""

_RECORD_CLIP_SQL = """
INSERT INTO clips (
    clip_id, broadcaster_handle, title, url, thumbnail_url,
    created_at, creator_id, creator_name
)
VALUES ($1, $2, $3, $4, $5, $6, $7, $8)
ON CONFLICT (clip_id) DO NOTHING
"""

_ADD_SUBSCRIPTION_SQL = """
INSERT INTO subscriptions (broadcaster_handle, destination_id)
VALUES ($1, $2)
ON CONFLICT (broadcaster_handle, destination_id) DO UPDATE SET
    active = TRUE,
    updated_at = NOW()
RETURNING *
"""


def _record_to_subscription(record) -> Subscription:
    """Convert an asyncpg Record to a Subscription dataclass."""
    return Subscription(
        id=record["id"],
        broadcaster_handle=record["broadcaster_handle"],
        destination_id=record["destination_id"],
        watermark_clip_id=record["watermark_clip_id"],
        watermark_created_at=record["watermark_created_at"] or EPOCH,
        active=record["active"],
        created_at=record["created_at"],
        updated_at=record["updated_at"],
    )


def _rows_affected(status: str) -> int:
    """Parse the row count out of a status string like ``UPDATE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except (ValueError, AttributeError):
        return 0


class SubscriptionStore:
    """Reads subscriptions and persists watermark advances and clip history."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create the subscriptions and clips tables (idempotent)."""
        await self._db.execute(_CREATE_TABLES_SQL)
        logger.info("Subscription tables ensured")

    async def list_active(self) -> list[Subscription]:
        """All subscriptions the poll cycle should process, in id order."""
        rows = await self._db.fetch(
            "SELECT * FROM subscriptions WHERE active = TRUE ORDER BY id"
        )
        return [_record_to_subscription(r) for r in rows]

    async def advance_watermark(
        self,
        subscription_id: int,
        clip_id: str,
        created_at: datetime,
    ) -> bool:
        """
        Move a subscription's watermark forward to ``(clip_id, created_at)``.

        The UPDATE is conditional on the stored watermark not being newer,
        so the watermark never moves backwards even if called with stale
        data.

        Returns:
            True if the row moved, False if the stored watermark was newer
            or the subscription no longer exists.

        Raises:
            PersistenceFailure: The write did not commit.
        """
        try:
            status = await self._db.execute(
                _ADVANCE_WATERMARK_SQL, subscription_id, clip_id, created_at
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(
                f"Could not advance watermark of subscription {subscription_id}: {e}"
            ) from e

        moved = _rows_affected(status) > 0
        if not moved:
            logger.warning(
                "Watermark of subscription %d not advanced to %s (already newer or missing)",
                subscription_id, clip_id,
            )
        return moved

    async def record_clip(self, clip: ClipRecord) -> bool:
        """
        Insert a clip into the history unless its id is already present.

        Returns:
            True if a new row was written.

        Raises:
            PersistenceFailure: The write did not commit.
        """
        try:
            status = await self._db.execute(
                _RECORD_CLIP_SQL,
                clip.clip_id,
                clip.broadcaster_handle,
                clip.title,
                clip.url,
                clip.thumbnail_url,
                clip.created_at,
                clip.creator_id,
                clip.creator_name,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise PersistenceFailure(f"Could not record clip {clip.clip_id}: {e}") from e
        return _rows_affected(status) > 0

    # ── Subscription management ─────────────────────────────────

    async def add_subscription(
        self, broadcaster_handle: str, destination_id: str
    ) -> Subscription:
        """Create a subscription, or reactivate it if it already exists."""
        row = await self._db.fetchrow(
            _ADD_SUBSCRIPTION_SQL, broadcaster_handle, destination_id
        )
        return _record_to_subscription(row)

    async def deactivate(self, broadcaster_handle: str, destination_id: str) -> bool:
        """Soft-deactivate a subscription. Returns True if a row was updated."""
        status = await self._db.execute(
            """
            UPDATE subscriptions SET active = FALSE, updated_at = NOW()
            WHERE broadcaster_handle = $1 AND destination_id = $2 AND active = TRUE
            """,
            broadcaster_handle, destination_id,
        )
        return _rows_affected(status) > 0

    async def get(self, subscription_id: int) -> Subscription | None:
        """Fetch a single subscription by id."""
        row = await self._db.fetchrow(
            "SELECT * FROM subscriptions WHERE id = $1", subscription_id
        )
        return _record_to_subscription(row) if row else None

    async def list_all(self) -> list[Subscription]:
        """Every subscription, active or not."""
        rows = await self._db.fetch(
            "SELECT * FROM subscriptions ORDER BY broadcaster_handle, destination_id"
        )
        return [_record_to_subscription(r) for r in rows]

    async def count_clips(self, broadcaster_handle: str | None = None) -> int:
        """Number of clips in the history, optionally for one broadcaster."""
        if broadcaster_handle is None:
            return await self._db.fetchval("SELECT COUNT(*) FROM clips") or 0
        return await self._db.fetchval(
            "SELECT COUNT(*) FROM clips WHERE broadcaster_handle = $1",
            broadcaster_handle,
        ) or 0

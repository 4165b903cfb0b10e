"""Storage layer - PostgreSQL connection management."""

from clip_relay.storage.database import Database

__all__ = ["Database"]

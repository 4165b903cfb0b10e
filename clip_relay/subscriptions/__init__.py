"""Subscriptions: watched broadcasters, their watermarks and clip history."""

from clip_relay.subscriptions.repository import PersistenceFailure, SubscriptionStore
from clip_relay.subscriptions.schemas import EPOCH, ClipRecord, Subscription

__all__ = [
    "EPOCH",
    "ClipRecord",
    "PersistenceFailure",
    "Subscription",
    "SubscriptionStore",
]

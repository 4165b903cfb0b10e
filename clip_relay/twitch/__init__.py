"""Twitch Helix integration: credentials, HTTP and clip retrieval.

Components:
- TwitchConfig: ``TWITCH_*`` settings
- HTTPClient / RetryConfig: timeout-bounded transport
- TokenManager: single-flight app access token
- HelixClient: authenticated GET with one 401 retry
- ClipFetcher: handle resolution and ordered incremental clip listing
- ClipCandidate: validated clip record
"""

from clip_relay.twitch.auth import CredentialError, TokenManager
from clip_relay.twitch.client import HelixClient
from clip_relay.twitch.clips import ClipFetcher, UnknownBroadcaster
from clip_relay.twitch.config import TwitchConfig
from clip_relay.twitch.http_client import (
    HTTPClient,
    HTTPClientError,
    RetryConfig,
    UpstreamUnavailable,
)
from clip_relay.twitch.schemas import ClipCandidate

__all__ = [
    "ClipCandidate",
    "ClipFetcher",
    "CredentialError",
    "HTTPClient",
    "HTTPClientError",
    "HelixClient",
    "RetryConfig",
    "TokenManager",
    "TwitchConfig",
    "UnknownBroadcaster",
    "UpstreamUnavailable",
]

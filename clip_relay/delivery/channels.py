"""Notification channel implementations for clip delivery.

A channel pushes an already-rendered payload to one destination and
raises DeliveryFailure when it cannot. Whether a failure is worth
retrying is decided here, where the transport status is known.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Discord answers these for deleted channels, revoked permissions or a bad token
_PERMANENT_STATUSES = frozenset({400, 401, 403, 404})


class DeliveryFailure(Exception):
    """A notification could not be written to its destination."""

    def __init__(
        self,
        message: str,
        destination_id: str,
        status_code: int | None = None,
        retryable: bool = False,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message)
        self.destination_id = destination_id
        self.status_code = status_code
        self.retryable = retryable
        self.retry_after = retry_after


class NotificationChannel(ABC):
    """Abstract base for notification delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this channel (e.g. 'discord')."""

    @abstractmethod
    async def send(self, destination_id: str, payload: dict[str, Any]) -> None:
        """Deliver a payload to a destination.

        Raises:
            DeliveryFailure: The destination did not accept the message.
        """


class DiscordChannel(NotificationChannel):
    """Posts messages to Discord text channels through the REST API.

    Only the bot token is needed; no gateway session is opened. Creates a
    short-lived ``httpx.AsyncClient`` per call.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://discord.com/api/v10",
        timeout: float = 10.0,
    ) -> None:
        self._token = token
        self._api_base = api_base.rstrip("/")
        self._timeout = timeout

    @property
    def name(self) -> str:
        return "discord"

    async def send(self, destination_id: str, payload: dict[str, Any]) -> None:
        url = f"{self._api_base}/channels/{destination_id}/messages"
        headers = {"Authorization": f"Bot {self._token}"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(url, json=payload, headers=headers)
        except httpx.TransportError as e:
            raise DeliveryFailure(
                f"Discord unreachable for channel {destination_id}: {e!r}",
                destination_id=destination_id,
                retryable=True,
            ) from e

        if resp.is_success:
            return

        retry_after = None
        if resp.status_code == 429:
            try:
                retry_after = float(resp.json().get("retry_after"))
            except (ValueError, TypeError, AttributeError):
                retry_after = None

        raise DeliveryFailure(
            f"Discord returned {resp.status_code} for channel {destination_id}",
            destination_id=destination_id,
            status_code=resp.status_code,
            retryable=resp.status_code not in _PERMANENT_STATUSES,
            retry_after=retry_after,
        )

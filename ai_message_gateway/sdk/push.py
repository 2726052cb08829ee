"""
Push-delivery transports.

A transport receives an opaque device token and a title/body pair with a
small metadata map. Failures are raised per recipient; the dispatcher
decides what a failure means for the batch.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import httpx
from rich.console import Console


class DeliveryError(Exception):
    """Raised when a notification could not be handed to the push service."""


@dataclass(frozen=True)
class PushNotification:
    """Notification content for one recipient."""
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


class PushTransport(Protocol):
    """Sends one notification to one device token."""

    def send(self, token: str, notification: PushNotification) -> None:
        """Deliver a notification or raise."""
        ...


class HttpPushTransport:
    """Posts notifications as JSON to a push relay endpoint."""

    def __init__(
        self,
        endpoint: str,
        timeout_seconds: float = 5.0,
        client: Optional[httpx.Client] = None,
    ):
        if not endpoint:
            raise ValueError("endpoint is required and cannot be empty")
        self.endpoint = endpoint
        self.client = client or httpx.Client(timeout=timeout_seconds)

    def send(self, token: str, notification: PushNotification) -> None:
        """POST the notification; any transport error or non-2xx status raises."""
        body = {
            "token": token,
            "notification": {"title": notification.title, "body": notification.body},
            "data": notification.data,
            "apns": {"payload": {"aps": {"sound": "default", "badge": 1}}},
        }
        try:
            response = self.client.post(self.endpoint, json=body)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise DeliveryError(f"Push delivery failed: {e}") from e

    def close(self) -> None:
        """Release the underlying HTTP connections."""
        self.client.close()


class ConsolePushTransport:
    """Prints notifications instead of sending them; for local runs."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def send(self, token: str, notification: PushNotification) -> None:
        """Render the notification to the console."""
        self.console.print(
            f"[bold]{notification.title}[/] → [cyan]{token}[/]: {notification.body}"
        )

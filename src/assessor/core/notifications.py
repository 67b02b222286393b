"""Notification delivery for finished analyses.

Delivery is best-effort: callers catch and report failures, they never
change an analysis record because a notification could not be sent.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

import httpx
from rich.console import Console

console = Console()


@runtime_checkable
class Notifier(Protocol):
    async def notify(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> None: ...


class NullNotifier:
    async def notify(self, user_id, type, title, message, link=None) -> None:
        return None


class ConsoleNotifier:
    """Prints notifications to the console."""

    async def notify(self, user_id, type, title, message, link=None) -> None:
        console.print(f"  [cyan]NOTIFY[/cyan] {user_id}: {title}")
        console.print(f"         {message}")
        if link:
            console.print(f"         [dim]{link}[/dim]")


class WebhookNotifier:
    """POSTs notifications as JSON to a webhook endpoint."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout_seconds
        self._transport = transport

    async def notify(self, user_id, type, title, message, link=None) -> None:
        payload = {
            "user_id": user_id,
            "type": type,
            "title": title,
            "message": message,
            "link": link,
        }
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()


def get_notifier(config: dict) -> Notifier:
    """Factory function to create the configured notifier."""
    notify_config = config.get("notifications", {})
    provider = notify_config.get("provider", "console")

    if provider == "console":
        return ConsoleNotifier()
    elif provider == "webhook":
        url = notify_config.get("webhook_url")
        if not url:
            raise ValueError("notifications.webhook_url is required for the webhook provider")
        return WebhookNotifier(url, timeout_seconds=notify_config.get("timeout_seconds", 5))
    elif provider in ("none", "", None):
        return NullNotifier()
    else:
        raise ValueError(f"Unknown notification provider: {provider}")

"""Creator notifications.

Delivery is fire-and-forget: a failing channel is logged and never blocks a
lifecycle transition.
"""

from __future__ import annotations

import json
import logging
import os
import urllib.request
from abc import ABC, abstractmethod

from pydantic import BaseModel

logger = logging.getLogger(__name__)


class NotificationChannel(ABC):
    """Outbound channel for messages to creators."""

    @abstractmethod
    def notify(self, creator_id: str, message: str) -> None:
        """Deliver ``message`` to ``creator_id``. May raise on failure."""


class LoggingNotificationChannel(NotificationChannel):
    """Write notifications to the log only."""

    def notify(self, creator_id: str, message: str) -> None:
        logger.info("Notify %s: %s", creator_id, message)


class RecordingNotificationChannel(NotificationChannel):
    """Keep notifications in memory, in delivery order."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str]] = []

    def notify(self, creator_id: str, message: str) -> None:
        self.sent.append((creator_id, message))

    def messages_for(self, creator_id: str) -> list[str]:
        return [m for c, m in self.sent if c == creator_id]


class SlackWebhookConfig(BaseModel):
    """Configuration for Slack incoming-webhook notifications."""

    webhook_url: str = ""
    timeout: float = 5.0

    @property
    def is_configured(self) -> bool:
        return bool(self.webhook_url)

    @classmethod
    def from_env(cls) -> SlackWebhookConfig:
        return cls(webhook_url=os.environ.get("CREATORFLOW_SLACK_WEBHOOK", ""))


class SlackWebhookChannel(NotificationChannel):
    """Post notifications to a Slack incoming webhook."""

    def __init__(self, config: SlackWebhookConfig) -> None:
        self.config = config

    def notify(self, creator_id: str, message: str) -> None:
        body = json.dumps({"text": f"[{creator_id}] {message}"}).encode("utf-8")
        req = urllib.request.Request(
            self.config.webhook_url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
            resp.read()


def send_notification(channel: NotificationChannel | None, creator_id: str, message: str) -> bool:
    """Deliver a notification, logging instead of raising on failure.

    Returns:
        True if the channel accepted the message.
    """
    if channel is None:
        return False
    try:
        channel.notify(creator_id, message)
    except Exception as exc:
        logger.warning("Notification to %s failed: %s", creator_id, exc)
        return False
    return True

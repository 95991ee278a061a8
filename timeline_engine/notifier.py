"""Notification sinks.

Delivery itself (push, desktop, in-app) is handled elsewhere; the engine only
hands over a composed :class:`Notification`.
"""

from __future__ import annotations

import logging
from typing import Protocol

from timeline_engine.schema import Notification

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def deliver(self, notification: Notification) -> None: ...


class LoggingNotifier:
    """Writes notifications to the log instead of delivering them."""

    def deliver(self, notification: Notification) -> None:
        logger.info(f"[{notification.tag}] {notification.title} - {notification.body}")


class MemoryNotifier:
    """Keeps delivered notifications in a list."""

    def __init__(self):
        self.delivered: list[Notification] = []

    def deliver(self, notification: Notification) -> None:
        self.delivered.append(notification)

    def clear(self) -> None:
        self.delivered.clear()

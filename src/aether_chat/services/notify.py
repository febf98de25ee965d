"""Notification collaborator used to surface turn errors to the user."""

from __future__ import annotations

from abc import ABC, abstractmethod

from aether_chat.log import get_logger

logger = get_logger(__name__)


class Notifier(ABC):
    """Shows a categorized, human-readable error to the user."""

    @abstractmethod
    async def notify_error(self, category: str, message: str) -> None:
        ...


class LogNotifier(Notifier):
    """Notifier that only records notifications in the log."""

    async def notify_error(self, category: str, message: str) -> None:
        logger.warning("user_notified", category=category, message=message)

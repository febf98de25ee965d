"""Bounded conversation context passed to the model backend."""

from __future__ import annotations

from dataclasses import dataclass

from aether_chat.core.models import ConversationMessage
from aether_chat.core.types import Role

CONTEXT_WINDOW = 10


@dataclass(frozen=True, slots=True)
class HistoryWindow:
    """Immutable ordered message history.

    The full sequence is kept for display; ``window()`` is what the model sees.
    """

    messages: tuple[ConversationMessage, ...] = ()
    limit: int = CONTEXT_WINDOW

    @classmethod
    def seeded(cls, greeting: str, timestamp: int) -> HistoryWindow:
        """A fresh history holding only the bot's greeting."""
        return cls((ConversationMessage(role=Role.MODEL, text=greeting, timestamp=timestamp),))

    def append(self, message: ConversationMessage) -> HistoryWindow:
        return HistoryWindow(self.messages + (message,), self.limit)

    def replace_last(self, message: ConversationMessage) -> HistoryWindow:
        if not self.messages:
            raise IndexError("replace_last on empty history")
        return HistoryWindow(self.messages[:-1] + (message,), self.limit)

    def window(self) -> list[ConversationMessage]:
        """At most ``limit`` most recent messages, oldest first."""
        return list(self.messages[-self.limit:])

    @property
    def last(self) -> ConversationMessage | None:
        return self.messages[-1] if self.messages else None

    def __len__(self) -> int:
        return len(self.messages)

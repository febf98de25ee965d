"""Conversation message and stream chunk models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from aether_chat.core.types import Role


@dataclass(frozen=True, slots=True)
class ConversationMessage:
    role: Role
    text: str
    timestamp: int  # milliseconds, strictly increasing within a session
    action_invoked: Optional[str] = None
    streaming: bool = False


@dataclass(frozen=True, slots=True)
class FunctionCall:
    name: str
    args: dict[str, Any] = field(default_factory=dict)

    @property
    def action_id(self) -> Optional[str]:
        value = self.args.get("action_id")
        return str(value) if value else None


@dataclass(frozen=True, slots=True)
class StreamChunk:
    """One incremental piece of a model response.

    A chunk carries a text delta, a single function call, or both.
    """

    text_delta: str = ""
    function_call: Optional[FunctionCall] = None

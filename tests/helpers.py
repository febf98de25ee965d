"""Test doubles shared across test modules."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, Sequence

from aether_chat.ai.client import ModelStreamClient
from aether_chat.config import BotConfig
from aether_chat.core.models import ConversationMessage, FunctionCall, StreamChunk
from aether_chat.services.notify import Notifier
from aether_chat.services.plans import PlanService


def text(delta: str) -> StreamChunk:
    return StreamChunk(text_delta=delta)


def call(action_id: str | None, name: str = "trigger_action") -> StreamChunk:
    args = {"action_id": action_id} if action_id is not None else {}
    return StreamChunk(function_call=FunctionCall(name=name, args=args))


class ScriptedStreamClient(ModelStreamClient):
    """Yields a fixed chunk script, optionally blocking or failing part-way."""

    def __init__(
        self,
        chunks: Sequence[StreamChunk] = (),
        error: Exception | None = None,
        block_after: int | None = None,
    ):
        self.chunks = list(chunks)
        self.error = error
        self.block_after = block_after
        self.release = asyncio.Event()
        self.calls: list[tuple[str, list[ConversationMessage], str]] = []
        self.opened = 0
        self.closed = 0

    async def stream_chat(
        self,
        bot: BotConfig,
        history: Sequence[ConversationMessage],
        text: str,
    ) -> AsyncIterator[StreamChunk]:
        self.calls.append((bot.id, list(history), text))
        self.opened += 1
        try:
            for i, chunk in enumerate(self.chunks):
                if self.block_after is not None and i == self.block_after:
                    await self.release.wait()
                yield chunk
                await asyncio.sleep(0)
            if self.error is not None:
                raise self.error
        finally:
            self.closed += 1


class RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.notifications: list[tuple[str, str]] = []

    async def notify_error(self, category: str, message: str) -> None:
        self.notifications.append((category, message))


class FailingPlanService(PlanService):
    async def can_use_departments(self) -> bool:
        raise RuntimeError("billing API unavailable")


async def wait_for(predicate, attempts: int = 100) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")

"""Consume one turn's chunk stream and dispatch text and action updates in order."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Sequence

from aether_chat.ai.actions import ActionDescriptor, ActionResolver
from aether_chat.ai.client import ModelStreamClient
from aether_chat.ai.conversation import TRIGGER_ACTION_TOOL
from aether_chat.config import BotConfig
from aether_chat.core.models import ConversationMessage
from aether_chat.errors import AetherError, BackendError
from aether_chat.log import get_logger

logger = get_logger(__name__)


class TurnSink(ABC):
    """Receives a turn's updates in arrival order."""

    @abstractmethod
    def on_text(self, delta: str) -> None:
        ...

    @abstractmethod
    def on_action(self, descriptor: ActionDescriptor) -> None:
        ...


@dataclass(slots=True)
class TurnResult:
    text: str = ""
    action: Optional[ActionDescriptor] = None
    chunks: int = 0
    ignored_chunks: int = 0


class StreamConsumer:
    """Runs the model stream for a single turn.

    The first function call wins: once one is seen, every later chunk of the
    turn (text or another call) is dropped.
    """

    def __init__(self, client: ModelStreamClient):
        self._client = client

    async def consume(
        self,
        bot: BotConfig,
        history: Sequence[ConversationMessage],
        text: str,
        sink: TurnSink,
    ) -> TurnResult:
        resolver = ActionResolver.for_bot(bot)
        result = TurnResult()
        call_observed = False

        stream = self._client.stream_chat(bot, history, text)
        try:
            async for chunk in stream:
                result.chunks += 1
                if call_observed:
                    result.ignored_chunks += 1
                    continue

                call = chunk.function_call
                if call is not None:
                    call_observed = True
                    if call.name != TRIGGER_ACTION_TOOL:
                        logger.warning("unexpected_function_call", name=call.name, bot_id=bot.id)
                    result.action = resolver.resolve(call.action_id)
                    sink.on_action(result.action)
                    continue

                if chunk.text_delta:
                    result.text += chunk.text_delta
                    sink.on_text(chunk.text_delta)
        except AetherError:
            raise
        except Exception as e:
            raise BackendError(str(e)) from e
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if result.ignored_chunks:
            logger.debug("chunks_ignored_after_call", count=result.ignored_chunks, bot_id=bot.id)
        return result

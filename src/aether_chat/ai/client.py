"""Model streaming collaborator: abstract interface and the Anthropic API backend."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Sequence

import anthropic

from aether_chat.ai.conversation import build_messages, build_system_instruction, build_tools
from aether_chat.config import AnthropicConfig, BotConfig
from aether_chat.core.models import ConversationMessage, FunctionCall, StreamChunk
from aether_chat.errors import AuthenticationError, BackendError, ConfigurationError
from aether_chat.log import get_logger

logger = get_logger(__name__)


class ModelStreamClient(ABC):
    """Produces one ordered chunk sequence per turn.

    End of the iterator is the only completion signal. Implementations raise
    errors from ``aether_chat.errors`` where they can classify them.
    """

    @abstractmethod
    def stream_chat(
        self,
        bot: BotConfig,
        history: Sequence[ConversationMessage],
        text: str,
    ) -> AsyncIterator[StreamChunk]:
        ...

    async def close(self) -> None:
        """Release transport resources. Default is a no-op."""


class AnthropicStreamClient(ModelStreamClient):
    """Anthropic Messages API backend using the official SDK's streaming helper."""

    def __init__(self, config: AnthropicConfig):
        if not config.api_key:
            raise ConfigurationError(
                "Anthropic API key not configured",
                user_message="Please configure your API keys before chatting.",
            )
        self._client = anthropic.AsyncAnthropic(
            api_key=config.api_key,
            base_url=config.base_url,
            max_retries=config.max_retries,
            timeout=config.timeout,
        )

    async def stream_chat(
        self,
        bot: BotConfig,
        history: Sequence[ConversationMessage],
        text: str,
    ) -> AsyncIterator[StreamChunk]:
        kwargs: dict[str, Any] = {
            "model": bot.model,
            "max_tokens": bot.max_tokens,
            "system": build_system_instruction(bot),
            "messages": build_messages(history, text),
            "temperature": bot.temperature,
        }
        tools = build_tools(bot)
        if tools:
            kwargs["tools"] = tools

        logger.debug("api_stream_request", model=bot.model, message_count=len(kwargs["messages"]))
        try:
            async with self._client.messages.stream(**kwargs) as stream:
                async for event in stream:
                    if event.type == "text":
                        yield StreamChunk(text_delta=event.text)
                    elif event.type == "content_block_stop" and event.content_block.type == "tool_use":
                        block = event.content_block
                        yield StreamChunk(
                            function_call=FunctionCall(name=block.name, args=dict(block.input or {}))
                        )
        except (anthropic.AuthenticationError, anthropic.PermissionDeniedError) as e:
            raise AuthenticationError(str(e)) from e
        except anthropic.APIError as e:
            raise BackendError(str(e)) from e

    async def close(self) -> None:
        await self._client.close()

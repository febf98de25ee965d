"""Chat session coordinator and the per-visitor session registry."""

from __future__ import annotations

import asyncio
import time
from typing import Callable

from aether_chat.ai.actions import ActionDescriptor
from aether_chat.ai.stream import StreamConsumer, TurnSink
from aether_chat.config import BotConfig
from aether_chat.core import state as transitions
from aether_chat.core.models import ConversationMessage
from aether_chat.core.state import SessionState
from aether_chat.errors import AetherError, BackendError
from aether_chat.log import get_logger
from aether_chat.services.notify import Notifier

logger = get_logger(__name__)

Clock = Callable[[], int]


def _now_ms() -> int:
    return int(time.time() * 1000)


class _SessionSink(TurnSink):
    """Routes a turn's updates into the session, tagged with the turn id."""

    def __init__(self, session: ChatSession, turn_id: int):
        self._session = session
        self._turn_id = turn_id

    def on_text(self, delta: str) -> None:
        self._session._state = transitions.apply_text(self._session._state, self._turn_id, delta)

    def on_action(self, descriptor: ActionDescriptor) -> None:
        self._session._state = transitions.apply_action(
            self._session._state,
            self._turn_id,
            descriptor.display_message,
            descriptor.action_id,
        )


class ChatSession:
    """Owns one visitor's SessionState and runs at most one turn at a time.

    All changes to the state go through the pure functions in
    ``core.state``; this class only schedules them.
    """

    def __init__(
        self,
        bot: BotConfig,
        consumer: StreamConsumer,
        notifier: Notifier,
        clock: Clock | None = None,
        session_id: str | None = None,
    ):
        self._consumer = consumer
        self._notifier = notifier
        self._clock = clock or _now_ms
        self._state = transitions.new_session(bot, self._clock(), session_id)
        self._task: asyncio.Task[ConversationMessage] | None = None
        logger.info("session_created", session_id=self._state.session_id, bot_id=bot.id)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def bot(self) -> BotConfig:
        return self._state.bot

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return self._state.history.messages

    @property
    def is_streaming(self) -> bool:
        return self._state.in_flight

    def submit(self, text: str) -> asyncio.Task[ConversationMessage] | None:
        """Start a turn in the background.

        Returns None, without touching the state, for blank input or while
        another turn is still open.
        """
        text = text.strip()
        if not text:
            return None
        if self._state.in_flight:
            logger.info("turn_rejected", session_id=self.session_id, reason="turn_in_flight")
            return None

        context = self._state.history.window()
        self._state = transitions.begin_turn(self._state, text, self._clock())
        turn_id = self._state.turn.turn_id
        self._task = asyncio.create_task(
            self._run_turn(turn_id, context, text),
            name=f"turn-{self.session_id}-{turn_id}",
        )
        return self._task

    async def send(self, text: str) -> ConversationMessage | None:
        """Run a full turn and return the finalized model message."""
        task = self.submit(text)
        if task is None:
            return None
        return await task

    async def _run_turn(
        self,
        turn_id: int,
        context: list[ConversationMessage],
        text: str,
    ) -> ConversationMessage:
        bot = self._state.bot
        log = logger.bind(session_id=self.session_id, bot_id=bot.id, turn_id=turn_id)
        log.info("turn_started", context_size=len(context))

        try:
            result = await self._consumer.consume(bot, context, text, _SessionSink(self, turn_id))
        except asyncio.CancelledError:
            self._state = transitions.cancel_turn(self._state, turn_id)
            log.info("turn_cancelled")
            raise
        except AetherError as e:
            self._state = transitions.fail_turn(self._state, turn_id)
            log.warning("turn_failed", category=e.category, error=e.detail)
            await self._notify(e.category, e.user_message)
        except Exception as e:
            self._state = transitions.fail_turn(self._state, turn_id)
            log.error("turn_failed", category=BackendError.category, error=str(e))
            await self._notify(BackendError.category, BackendError.user_message)
        else:
            self._state = transitions.finalize_turn(self._state, turn_id)
            log.info(
                "turn_completed",
                chunks=result.chunks,
                action_id=result.action.action_id if result.action else None,
            )
        finally:
            if self._task is asyncio.current_task():
                self._task = None

        return self._state.history.last

    async def _notify(self, category: str, message: str) -> None:
        try:
            await self._notifier.notify_error(category, message)
        except Exception as e:
            logger.error("notify_failed", session_id=self.session_id, error=str(e))

    async def cancel(self) -> None:
        """Cancel the open turn, if any, keeping its partial text. Never raises."""
        task = self._task
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait({task})
        self._task = None
        # A task cancelled before its first step never ran its own cleanup
        if self._state.in_flight:
            self._state = transitions.cancel_turn(self._state, self._state.turn.turn_id)

    async def switch_bot(self, bot: BotConfig) -> None:
        """Tear down the current turn and rebind the session to ``bot``."""
        previous = self._state
        await self.cancel()
        self._state = transitions.switch_bot(self._state, bot, self._clock())
        logger.info(
            "session_rebound",
            previous_session_id=previous.session_id,
            session_id=self.session_id,
            previous_bot_id=previous.bot.id,
            bot_id=bot.id,
        )

    async def clear(self) -> None:
        """Start over with the same bot."""
        await self.switch_bot(self._state.bot)

    async def close(self) -> None:
        await self.cancel()
        logger.info("session_closed", session_id=self.session_id)


SessionFactory = Callable[[BotConfig], ChatSession]


class SessionManager:
    """Manages chat sessions per (integration_id, visitor_id) pair."""

    def __init__(self, factory: SessionFactory):
        self._factory = factory
        self._active_sessions: dict[tuple[str, str], ChatSession] = {}

    def get(self, integration_id: str, visitor_id: str) -> ChatSession | None:
        return self._active_sessions.get((integration_id, visitor_id))

    def open(self, integration_id: str, visitor_id: str, bot: BotConfig) -> ChatSession:
        """Get the visitor's session or create one bound to ``bot``."""
        key = (integration_id, visitor_id)
        if key not in self._active_sessions:
            self._active_sessions[key] = self._factory(bot)
        return self._active_sessions[key]

    async def close(self, integration_id: str, visitor_id: str) -> None:
        session = self._active_sessions.pop((integration_id, visitor_id), None)
        if session is not None:
            await session.close()

    async def close_all(self) -> None:
        sessions = list(self._active_sessions.values())
        self._active_sessions.clear()
        for session in sessions:
            await session.close()

    def __len__(self) -> int:
        return len(self._active_sessions)

"""Per-session chat state and the pure transitions that advance it.

A ``SessionState`` is never mutated. Each transition takes the current state
and returns the next one, so the coordinator in ``core.session`` only has to
swap references. Transitions addressed to a turn that is no longer the active
one return the state unchanged; that is how late chunks from a cancelled
stream are dropped.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from typing import Optional

from aether_chat.config import BotConfig
from aether_chat.core.history import HistoryWindow
from aether_chat.core.models import ConversationMessage
from aether_chat.core.types import Role

FALLBACK_MESSAGE = "I'm having trouble connecting right now. Please try again."


class TurnInProgress(RuntimeError):
    """A turn was started while another one is still open."""


@dataclass(frozen=True, slots=True)
class TurnState:
    turn_id: int
    call_observed: bool = False


@dataclass(frozen=True, slots=True)
class SessionState:
    session_id: str
    bot: BotConfig
    history: HistoryWindow
    turn: Optional[TurnState] = None
    next_turn_id: int = 1

    @property
    def in_flight(self) -> bool:
        return self.turn is not None

    def is_active_turn(self, turn_id: int) -> bool:
        return self.turn is not None and self.turn.turn_id == turn_id


def _new_session_id() -> str:
    return uuid.uuid4().hex[:12]


def _next_timestamp(state: SessionState, now: int) -> int:
    last = state.history.last
    if last is None:
        return now
    return max(now, last.timestamp + 1)


def new_session(bot: BotConfig, now: int, session_id: str | None = None) -> SessionState:
    """Start a session bound to ``bot`` with its greeting as the only message."""
    return SessionState(
        session_id=session_id or _new_session_id(),
        bot=bot,
        history=HistoryWindow.seeded(bot.greeting, now),
    )


def switch_bot(state: SessionState, bot: BotConfig, now: int) -> SessionState:
    """Rebind to another bot. Any open turn and its placeholder are discarded."""
    return new_session(bot, max(now, _next_timestamp(state, now)))


def begin_turn(state: SessionState, text: str, now: int) -> SessionState:
    """Append the user message and a streaming model placeholder."""
    if state.in_flight:
        raise TurnInProgress(f"turn {state.turn.turn_id} still open")

    user_ts = _next_timestamp(state, now)
    history = state.history.append(ConversationMessage(role=Role.USER, text=text, timestamp=user_ts))
    history = history.append(
        ConversationMessage(role=Role.MODEL, text="", timestamp=user_ts + 1, streaming=True)
    )
    return replace(
        state,
        history=history,
        turn=TurnState(turn_id=state.next_turn_id),
        next_turn_id=state.next_turn_id + 1,
    )


def apply_text(state: SessionState, turn_id: int, delta: str) -> SessionState:
    if not state.is_active_turn(turn_id) or state.turn.call_observed or not delta:
        return state
    placeholder = state.history.last
    return replace(
        state,
        history=state.history.replace_last(replace(placeholder, text=placeholder.text + delta)),
    )


def apply_action(
    state: SessionState,
    turn_id: int,
    display_message: str,
    action_id: str | None,
) -> SessionState:
    """Replace the placeholder text with the action's display message."""
    if not state.is_active_turn(turn_id) or state.turn.call_observed:
        return state
    placeholder = state.history.last
    return replace(
        state,
        history=state.history.replace_last(
            replace(placeholder, text=display_message, action_invoked=action_id)
        ),
        turn=replace(state.turn, call_observed=True),
    )


def finalize_turn(state: SessionState, turn_id: int) -> SessionState:
    """Close the turn keeping whatever text arrived; an empty reply gets the fallback."""
    if not state.is_active_turn(turn_id):
        return state
    placeholder = state.history.last
    return replace(
        state,
        history=state.history.replace_last(
            replace(placeholder, text=placeholder.text or FALLBACK_MESSAGE, streaming=False)
        ),
        turn=None,
    )


def fail_turn(state: SessionState, turn_id: int) -> SessionState:
    """Close the turn after an error; the placeholder becomes the fallback message."""
    if not state.is_active_turn(turn_id):
        return state
    placeholder = state.history.last
    return replace(
        state,
        history=state.history.replace_last(
            replace(placeholder, text=FALLBACK_MESSAGE, action_invoked=None, streaming=False)
        ),
        turn=None,
    )


# Cancellation keeps the partial text, same as a normal finish.
cancel_turn = finalize_turn

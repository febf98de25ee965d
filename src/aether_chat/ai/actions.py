"""Map a model's trigger_action call onto a configured bot action."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from aether_chat.config import ActionConfig, BotConfig
from aether_chat.log import get_logger

logger = get_logger(__name__)

GENERIC_ACTION_MESSAGE = "I've triggered the requested action for you."


@dataclass(frozen=True, slots=True)
class ActionDescriptor:
    """What the chat surface shows for a triggered action.

    ``action`` is None when the id did not match any configured action; the
    raw id is still kept so the UI can look it up again at render time.
    """

    display_message: str
    action_id: Optional[str]
    action: Optional[ActionConfig] = None


class ActionResolver:
    """Resolves action ids against one bot's ordered action list."""

    def __init__(self, actions: Sequence[ActionConfig]):
        self._actions: dict[str, ActionConfig] = {}
        for action in actions:
            self._actions.setdefault(action.id, action)

    @classmethod
    def for_bot(cls, bot: BotConfig) -> ActionResolver:
        return cls(bot.actions)

    def resolve(self, action_id: Optional[str]) -> ActionDescriptor:
        """Never raises. Unknown or missing ids get the generic message."""
        if not action_id:
            logger.warning("action_call_without_id")
            return ActionDescriptor(display_message=GENERIC_ACTION_MESSAGE, action_id=None)

        action = self._actions.get(action_id)
        if action is None:
            logger.warning("action_unresolved", action_id=action_id, known=list(self._actions))
            return ActionDescriptor(display_message=GENERIC_ACTION_MESSAGE, action_id=action_id)

        logger.info("action_resolved", action_id=action_id, action_type=action.type.value)
        return ActionDescriptor(
            display_message=action.trigger_message or GENERIC_ACTION_MESSAGE,
            action_id=action_id,
            action=action,
        )

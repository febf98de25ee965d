"""Convert a bot and its conversation window into Anthropic API request parts."""

from __future__ import annotations

from typing import Any, Sequence

from aether_chat.config import BotConfig
from aether_chat.core.models import ConversationMessage
from aether_chat.core.types import Role

TRIGGER_ACTION_TOOL = "trigger_action"

_SYSTEM_TEMPLATE = """\
You are {name}. {instruction}

Here is your core knowledge base/training data:
---
{knowledge}
---
{actions_note}
If the answer is not in the knowledge base, use your general knowledge but mention you are not \
explicitly trained on that specific detail if it seems obscure.
Keep responses concise and helpful."""

_ACTIONS_NOTE = """
You have access to interactive UI tools/actions.
If a user's request is best served by triggering a UI action (like showing a button, opening a \
link, or handing off to a human), invoke the "trigger_action" function with the appropriate action_id.
Do not mention the internal action_id to the user, just trigger it naturally.
"""


def build_system_instruction(bot: BotConfig) -> str:
    """Build the system prompt from the bot's persona, instructions and knowledge base."""
    return _SYSTEM_TEMPLATE.format(
        name=bot.name,
        instruction=bot.system_instruction,
        knowledge=bot.knowledge_base,
        actions_note=_ACTIONS_NOTE if bot.actions else "",
    )


def build_tools(bot: BotConfig) -> list[dict[str, Any]]:
    """A single generic trigger_action tool covering all of the bot's actions.

    Returns an empty list when the bot has no actions.
    """
    if not bot.actions:
        return []

    available = ", ".join(
        f"{a.id} (Use when: {a.description or a.label})" for a in bot.actions
    )
    return [
        {
            "name": TRIGGER_ACTION_TOOL,
            "description": "Triggers a UI action, button, or redirect for the user.",
            "input_schema": {
                "type": "object",
                "properties": {
                    "action_id": {
                        "type": "string",
                        "description": f"The ID of the action to trigger. Available IDs: {available}",
                        "enum": [a.id for a in bot.actions],
                    }
                },
                "required": ["action_id"],
            },
        }
    ]


def build_messages(history: Sequence[ConversationMessage], new_text: str) -> list[dict[str, Any]]:
    """Convert the context window plus the new user text into Messages API format.

    The API expects the first message to come from the user and roles to
    alternate, so leading model messages (the greeting) are dropped and
    consecutive messages of the same role are merged.
    """
    messages: list[dict[str, Any]] = []

    for record in [*history, ConversationMessage(role=Role.USER, text=new_text, timestamp=0)]:
        if record.streaming or not record.text:
            continue
        role = "user" if record.role == Role.USER else "assistant"
        if not messages and role == "assistant":
            continue
        if messages and messages[-1]["role"] == role:
            messages[-1]["content"] += "\n\n" + record.text
        else:
            messages.append({"role": role, "content": record.text})

    return messages

"""Prompt builder for character replies."""

import re
from typing import Any

from ..store.models import Character, Message

PERSONA_TOKEN = "{{user}}"

STYLE_DIRECTIVE = """

[How you write]
Write like you are texting: short, casual and natural, one or two sentences.
Do not use bullet points, numbered lists or formal language.
Stay in character and react to what {user_role} said before asking anything."""

_TRAILING_HASHES = re.compile(r"#+$")


def build_identity(character: Character) -> str:
    """Who the character is: its instructions, else its name and description."""
    if character.instructions:
        return character.instructions
    if character.description:
        return f"You are {character.name}. {character.description}"
    return f"You are {character.name}."


def build_system_prompt(character: Character, user_role: str, memory_block: str = "") -> str:
    """Build the system prompt from identity, memory and the style directive.

    Args:
        character: The character replying.
        user_role: Name the user goes by (persona name or user name).
        memory_block: Formatted facts section, may be empty.

    Returns:
        Complete system prompt string.
    """
    return (
        build_identity(character)
        + memory_block
        + STYLE_DIRECTIVE.format(user_role=user_role or "the user")
    )


def select_history(messages: list[Message]) -> list[Message]:
    """Pick the messages to send as conversation history.

    ``messages`` must already stop before the message being answered.
    Unresolved placeholders are skipped, and a trailing character message
    is dropped so the history always ends on the user's turn.
    """
    history = [m for m in messages if not m.is_pending]
    if history and history[-1].from_character:
        history.pop()
    return history


def to_provider_messages(
    system_prompt: str, history: list[Message], user_role: str
) -> list[dict[str, Any]]:
    """Map stored messages to chat-completion messages."""
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}]
    for message in history:
        messages.append(
            {
                "role": "assistant" if message.from_character else "user",
                "content": message.text.replace(PERSONA_TOKEN, user_role),
            }
        )
    return messages


def clean_reply(text: str, user_role: str) -> str:
    """Normalize a raw model reply before storing it."""
    text = text.replace(PERSONA_TOKEN, user_role)
    text = _TRAILING_HASHES.sub("", text)
    return text.strip()

"""Memory manager for orchestrating fact extraction, storage and formatting."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .models import Fact
from .store import FactStore

if TYPE_CHECKING:
    from ..store.conversations import ConversationStore
    from .extractor import FactExtractor

logger = logging.getLogger(__name__)

EXTRACTION_WINDOW = 6
MIN_MESSAGES = 2
MIN_USER_TEXT = 10
MIN_FACT_LENGTH = 5
MAX_FACT_LENGTH = 200


class MemoryManager:
    """Orchestrates memory operations: loading, formatting, and extraction.

    This is the main interface for the memory system, coordinating
    between the fact store, the conversation store and the extractor.
    """

    def __init__(
        self,
        store: FactStore,
        conversations: ConversationStore,
        extractor: FactExtractor | None = None,
    ) -> None:
        """Initialize the manager.

        Args:
            store: The FactStore for persistence.
            conversations: Source of the recent chat messages.
            extractor: Optional FactExtractor for automatic extraction.
        """
        self.store = store
        self.conversations = conversations
        self.extractor = extractor

    def load_facts(self, user_id: str, character_id: str) -> list[Fact]:
        """Load every fact for a user-character pair."""
        return self.store.get_facts(user_id, character_id)

    def format_for_prompt(self, facts: list[Fact], user_role: str) -> str:
        """Format facts as a section for the system prompt.

        Args:
            facts: Facts to include.
            user_role: How the user is referred to (persona or user name).

        Returns:
            The memory section, or an empty string when there is nothing to say.
        """
        if facts:
            lines = [f"- {fact.fact}" for fact in facts]
        elif user_role and user_role != "You":
            lines = [f"- Their name is {user_role}."]
        else:
            return ""

        content = "\n".join(lines)
        return f"\n\n[What you know about {user_role}]\n{content}"

    async def extract_for_chat(
        self, user_id: str, character_id: str, chat_id: str
    ) -> list[Fact]:
        """Extract and save new facts from the latest messages of a chat.

        Runs as background work after a reply. Failures are logged and
        never propagate.

        Returns:
            The facts that were inserted.
        """
        if not self.extractor:
            return []

        try:
            return await self._extract(user_id, character_id, chat_id)
        except Exception:
            logger.exception(
                "Fact extraction failed for user=%s character=%s chat=%s",
                user_id,
                character_id,
                chat_id,
            )
            return []

    async def _extract(self, user_id: str, character_id: str, chat_id: str) -> list[Fact]:
        assert self.extractor is not None

        messages = self.conversations.recent_messages(chat_id, EXTRACTION_WINDOW)
        if len(messages) < MIN_MESSAGES:
            return []

        user_text = "\n".join(m.text for m in messages if not m.from_character)
        if len(user_text.strip()) < MIN_USER_TEXT:
            return []

        existing = self.store.get_facts(user_id, character_id)
        known = [fact.fact for fact in existing]
        candidates = await self.extractor.extract(user_text, known)

        seen = {fact.lower() for fact in known}
        inserted: list[Fact] = []
        for candidate in candidates:
            text = candidate.fact.strip()
            if not MIN_FACT_LENGTH < len(text) < MAX_FACT_LENGTH:
                continue
            if text.lower() in seen:
                continue
            seen.add(text.lower())
            inserted.append(
                self.store.insert_fact(user_id, character_id, text, candidate.category)
            )

        if inserted:
            logger.info(
                "Stored %d new facts for user=%s character=%s",
                len(inserted),
                user_id,
                character_id,
            )
        return inserted

"""Tests for MemoryManager."""

from unittest.mock import AsyncMock, Mock

import pytest

from chatforge.memory import Fact, FactCandidate, FactStore, MemoryManager
from chatforge.store import Chat, ConversationStore, Database


@pytest.fixture
def fact_store(db: Database) -> FactStore:
    return FactStore(db)


@pytest.fixture
def extractor() -> Mock:
    extractor = Mock()
    extractor.extract = AsyncMock(return_value=[])
    return extractor


@pytest.fixture
def manager(fact_store: FactStore, conversations: ConversationStore, extractor: Mock) -> MemoryManager:
    return MemoryManager(fact_store, conversations, extractor)


def add_exchange(conversations: ConversationStore, chat: Chat, user_text: str) -> None:
    conversations.add_user_message(chat.id, user_text)
    conversations.add_character_message(chat.id, chat.character_id, "oh nice, tell me more")


class TestFormatForPrompt:
    """Tests for the memory section of the system prompt."""

    def test_lists_facts(self, manager: MemoryManager):
        facts = [
            Fact("u1", "c1", "Has a dog named Buster"),
            Fact("u1", "c1", "Works as a nurse"),
        ]

        section = manager.format_for_prompt(facts, "Sam")

        assert section == (
            "\n\n[What you know about Sam]\n- Has a dog named Buster\n- Works as a nurse"
        )

    def test_no_facts_falls_back_to_name(self, manager: MemoryManager):
        """With no facts the character at least knows the user's name."""
        section = manager.format_for_prompt([], "Sam")

        assert section == "\n\n[What you know about Sam]\n- Their name is Sam."

    def test_no_facts_anonymous_user(self, manager: MemoryManager):
        assert manager.format_for_prompt([], "You") == ""
        assert manager.format_for_prompt([], "") == ""


class TestExtractForChat:
    """Tests for background fact extraction."""

    @pytest.mark.asyncio
    async def test_dedup_against_existing(
        self,
        manager: MemoryManager,
        fact_store: FactStore,
        conversations: ConversationStore,
        chat: Chat,
        extractor: Mock,
    ):
        """A candidate matching an existing fact case-insensitively is not inserted."""
        fact_store.insert_fact(chat.user_id, chat.character_id, "User has a dog named Buster")
        add_exchange(conversations, chat, "my dog Buster chewed my shoes again")
        extractor.extract.return_value = [FactCandidate("user has a dog named buster")]

        inserted = await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id)

        assert inserted == []
        assert len(fact_store.get_facts(chat.user_id, chat.character_id)) == 1

    @pytest.mark.asyncio
    async def test_dedup_within_batch(
        self,
        manager: MemoryManager,
        fact_store: FactStore,
        conversations: ConversationStore,
        chat: Chat,
        extractor: Mock,
    ):
        add_exchange(conversations, chat, "I love jazz, seriously I LOVE jazz")
        extractor.extract.return_value = [
            FactCandidate("Loves jazz", "music"),
            FactCandidate("LOVES JAZZ"),
        ]

        inserted = await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id)

        assert [f.fact for f in inserted] == ["Loves jazz"]
        assert inserted[0].category == "music"

    @pytest.mark.asyncio
    async def test_length_bounds(
        self,
        manager: MemoryManager,
        conversations: ConversationStore,
        chat: Chat,
        extractor: Mock,
    ):
        """Facts must be longer than 5 and shorter than 200 characters."""
        add_exchange(conversations, chat, "some things about me you should know")
        extractor.extract.return_value = [
            FactCandidate("abc"),
            FactCandidate("Likes"),
            FactCandidate("  Is tall  "),
            FactCandidate("x" * 200),
        ]

        inserted = await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id)

        assert [f.fact for f in inserted] == ["Is tall"]

    @pytest.mark.asyncio
    async def test_passes_user_text_and_known_facts(
        self,
        manager: MemoryManager,
        fact_store: FactStore,
        conversations: ConversationStore,
        chat: Chat,
        extractor: Mock,
    ):
        """Only user-authored text from the recent window is sent."""
        fact_store.insert_fact(chat.user_id, chat.character_id, "Likes tea")
        add_exchange(conversations, chat, "I just moved to Porto")

        await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id)

        user_text, known = extractor.extract.call_args.args
        assert user_text == "I just moved to Porto"
        assert known == ["Likes tea"]

    @pytest.mark.asyncio
    async def test_too_few_messages(
        self, manager: MemoryManager, conversations: ConversationStore, chat: Chat, extractor: Mock
    ):
        conversations.add_user_message(chat.id, "I have a dog named Buster")

        assert await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id) == []
        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_too_little_user_text(
        self, manager: MemoryManager, conversations: ConversationStore, chat: Chat, extractor: Mock
    ):
        add_exchange(conversations, chat, "  hi   ")

        assert await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id) == []
        extractor.extract.assert_not_called()

    @pytest.mark.asyncio
    async def test_errors_are_swallowed(
        self, manager: MemoryManager, conversations: ConversationStore, chat: Chat, extractor: Mock
    ):
        """Extraction failures never propagate."""
        add_exchange(conversations, chat, "I have a dog named Buster")
        extractor.extract.side_effect = RuntimeError("model exploded")

        assert await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id) == []

    @pytest.mark.asyncio
    async def test_without_extractor(
        self, fact_store: FactStore, conversations: ConversationStore, chat: Chat
    ):
        manager = MemoryManager(fact_store, conversations)
        assert await manager.extract_for_chat(chat.user_id, chat.character_id, chat.id) == []

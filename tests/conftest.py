"""Shared fixtures: a temporary database seeded with one user, character and chat."""

from pathlib import Path

import pytest

from chatforge.ledger import CreditLedger
from chatforge.store import Character, Chat, ConversationStore, Database, User


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Create a Database with a temporary file."""
    db = Database(tmp_path / "test.db")
    db.init_db()
    yield db
    db.close()


@pytest.fixture
def conversations(db: Database) -> ConversationStore:
    return ConversationStore(db)


@pytest.fixture
def ledger(db: Database) -> CreditLedger:
    return CreditLedger(db)


@pytest.fixture
def user(conversations: ConversationStore) -> User:
    """A user named Sam with 10 crystals."""
    return conversations.add_user(User(id="u1", name="Sam", crystals=10))


@pytest.fixture
def character(conversations: ConversationStore) -> Character:
    return conversations.add_character(
        Character(
            id="c1",
            creator_id="creator",
            name="Mia",
            description="A barista who loves hiking.",
            image_prompt_instructions="miastyle, young woman, short dark hair",
            model="llama-3.3-70b-versatile",
        )
    )


@pytest.fixture
def chat(conversations: ConversationStore, user: User, character: Character) -> Chat:
    return conversations.add_chat(Chat(id="chat1", user_id=user.id, character_id=character.id))

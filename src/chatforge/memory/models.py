"""Data models for the memory system."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Fact:
    """A fact a character remembers about a user.

    Facts are scoped to one (user, character) pair; characters do not share
    what they know.

    Attributes:
        user_id: The user the fact is about.
        character_id: The character that learned it.
        fact: The fact as a short third-person sentence.
        category: Optional label (e.g. 'pet', 'job').
        id: Database ID, None for new facts.
        created_at: ISO timestamp when created.
    """

    user_id: str
    character_id: str
    fact: str
    category: str | None = None
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class FactCandidate:
    """A fact proposed by the extractor, not yet deduplicated or stored."""

    fact: str
    category: str | None = None

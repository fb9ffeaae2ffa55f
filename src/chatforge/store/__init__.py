"""SQLite-backed stores for conversations, media and blobs."""

from .blobs import BlobStore
from .conversations import ConversationStore
from .database import Database
from .media import CharacterMediaGroup, MediaStore
from .models import Character, Chat, Media, Message, Persona, User

__all__ = [
    "BlobStore",
    "Character",
    "CharacterMediaGroup",
    "Chat",
    "ConversationStore",
    "Database",
    "Media",
    "MediaStore",
    "Message",
    "Persona",
    "User",
]

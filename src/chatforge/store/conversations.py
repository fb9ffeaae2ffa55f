"""Users, characters, chats and messages."""

import sqlite3

from .database import Database
from .models import Character, Chat, Message, Persona, User

_UNSET = object()


class ConversationStore:
    """CRUD access to the conversation tables.

    Messages use the placeholder protocol: the pipelines insert an empty
    message up front and patch it once the result is known.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    # Users, personas, characters, chats

    def add_user(self, user: User) -> User:
        conn = self.db.connection
        conn.execute(
            """
            INSERT INTO users (id, name, crystals, subscription_tier, language_tag,
                               auto_translate, primary_persona_id)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                user.id,
                user.name,
                user.crystals,
                user.subscription_tier,
                user.language_tag,
                int(user.auto_translate),
                user.primary_persona_id,
            ),
        )
        conn.commit()
        return user

    def get_user(self, user_id: str) -> User | None:
        row = self.db.connection.execute(
            "SELECT * FROM users WHERE id = ?", (user_id,)
        ).fetchone()
        if row is None:
            return None
        return User(
            id=row["id"],
            name=row["name"],
            crystals=row["crystals"],
            subscription_tier=row["subscription_tier"],
            language_tag=row["language_tag"],
            auto_translate=bool(row["auto_translate"]),
            primary_persona_id=row["primary_persona_id"],
        )

    def add_persona(self, persona: Persona) -> Persona:
        conn = self.db.connection
        conn.execute(
            "INSERT INTO personas (id, user_id, name, description) VALUES (?, ?, ?, ?)",
            (persona.id, persona.user_id, persona.name, persona.description),
        )
        conn.commit()
        return persona

    def get_persona(self, persona_id: str) -> Persona | None:
        row = self.db.connection.execute(
            "SELECT * FROM personas WHERE id = ?", (persona_id,)
        ).fetchone()
        if row is None:
            return None
        return Persona(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            description=row["description"],
        )

    def add_character(self, character: Character) -> Character:
        conn = self.db.connection
        conn.execute(
            """
            INSERT INTO characters (id, creator_id, name, description, instructions,
                                    image_prompt_instructions, model, visibility,
                                    is_archived, is_blacklisted)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                character.id,
                character.creator_id,
                character.name,
                character.description,
                character.instructions,
                character.image_prompt_instructions,
                character.model,
                character.visibility,
                int(character.is_archived),
                int(character.is_blacklisted),
            ),
        )
        conn.commit()
        return character

    def get_character(self, character_id: str) -> Character | None:
        row = self.db.connection.execute(
            "SELECT * FROM characters WHERE id = ?", (character_id,)
        ).fetchone()
        if row is None:
            return None
        return Character(
            id=row["id"],
            creator_id=row["creator_id"],
            name=row["name"],
            description=row["description"],
            instructions=row["instructions"],
            image_prompt_instructions=row["image_prompt_instructions"],
            model=row["model"],
            visibility=row["visibility"],
            is_archived=bool(row["is_archived"]),
            is_blacklisted=bool(row["is_blacklisted"]),
        )

    def add_chat(self, chat: Chat) -> Chat:
        conn = self.db.connection
        conn.execute(
            "INSERT INTO chats (id, user_id, character_id) VALUES (?, ?, ?)",
            (chat.id, chat.user_id, chat.character_id),
        )
        conn.commit()
        return chat

    def get_chat(self, chat_id: str) -> Chat | None:
        row = self.db.connection.execute(
            "SELECT * FROM chats WHERE id = ?", (chat_id,)
        ).fetchone()
        if row is None:
            return None
        return Chat(id=row["id"], user_id=row["user_id"], character_id=row["character_id"])

    # Messages

    def add_user_message(self, chat_id: str, text: str) -> Message:
        """Insert a message authored by the user."""
        return self._insert_message(chat_id, None, text)

    def add_character_message(self, chat_id: str, character_id: str, text: str) -> Message:
        """Insert a finished message authored by a character."""
        return self._insert_message(chat_id, character_id, text)

    def insert_placeholder(self, chat_id: str, character_id: str) -> Message:
        """Insert an empty character message to be filled in later."""
        return self._insert_message(chat_id, character_id, "")

    def get_message(self, message_id: int) -> Message | None:
        row = self.db.connection.execute(
            "SELECT * FROM messages WHERE id = ?", (message_id,)
        ).fetchone()
        return self._row_to_message(row) if row is not None else None

    def patch_message(
        self,
        message_id: int,
        *,
        text: str | None = None,
        image_url: object = _UNSET,
        translation: object = _UNSET,
    ) -> Message:
        """Update the given fields of a message.

        Raises:
            LookupError: If the message does not exist.
        """
        assignments: list[str] = []
        params: list[object] = []
        if text is not None:
            assignments.append("text = ?")
            params.append(text)
        if image_url is not _UNSET:
            assignments.append("image_url = ?")
            params.append(image_url)
        if translation is not _UNSET:
            assignments.append("translation = ?")
            params.append(translation)

        conn = self.db.connection
        if assignments:
            params.append(message_id)
            conn.execute(
                f"UPDATE messages SET {', '.join(assignments)} WHERE id = ?",
                params,
            )
            conn.commit()

        message = self.get_message(message_id)
        if message is None:
            raise LookupError(f"Message {message_id} not found")
        return message

    def recent_messages(
        self,
        chat_id: str,
        take: int,
        before_id: int | None = None,
    ) -> list[Message]:
        """Return the last ``take`` messages of a chat, oldest first.

        Args:
            chat_id: The chat to read.
            take: Maximum number of messages.
            before_id: Only include messages inserted before this one.
        """
        if before_id is None:
            cursor = self.db.connection.execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY id DESC LIMIT ?",
                (chat_id, take),
            )
        else:
            cursor = self.db.connection.execute(
                "SELECT * FROM messages WHERE chat_id = ? AND id < ? ORDER BY id DESC LIMIT ?",
                (chat_id, before_id, take),
            )
        rows = cursor.fetchall()
        return [self._row_to_message(row) for row in reversed(rows)]

    def _insert_message(self, chat_id: str, character_id: str | None, text: str) -> Message:
        conn = self.db.connection
        cursor = conn.execute(
            """
            INSERT INTO messages (chat_id, character_id, text)
            VALUES (?, ?, ?)
            RETURNING *
            """,
            (chat_id, character_id, text),
        )
        row = cursor.fetchone()
        conn.commit()
        return self._row_to_message(row)

    def _row_to_message(self, row: sqlite3.Row) -> Message:
        return Message(
            id=row["id"],
            chat_id=row["chat_id"],
            character_id=row["character_id"],
            text=row["text"],
            image_url=row["image_url"],
            translation=row["translation"],
            created_at=row["created_at"],
        )

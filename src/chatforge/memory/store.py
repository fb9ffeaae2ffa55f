"""SQLite storage for remembered facts."""

import sqlite3

from ..store.database import Database
from .models import Fact


class FactStore:
    """Persistent storage for facts, keyed by (user, character)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def get_facts(self, user_id: str, character_id: str) -> list[Fact]:
        """Get all facts for a user-character pair, oldest first."""
        cursor = self.db.connection.execute(
            """
            SELECT * FROM facts
            WHERE user_id = ? AND character_id = ?
            ORDER BY id
            """,
            (user_id, character_id),
        )
        return [self._row_to_fact(row) for row in cursor.fetchall()]

    def insert_fact(
        self,
        user_id: str,
        character_id: str,
        fact: str,
        category: str | None = None,
    ) -> Fact:
        """Insert a fact and return it with its assigned id."""
        conn = self.db.connection
        cursor = conn.execute(
            """
            INSERT INTO facts (user_id, character_id, fact, category)
            VALUES (?, ?, ?, ?)
            RETURNING *
            """,
            (user_id, character_id, fact, category),
        )
        row = cursor.fetchone()
        conn.commit()
        return self._row_to_fact(row)

    def delete_fact(self, fact_id: int, user_id: str) -> bool:
        """Delete one of a user's facts.

        Returns:
            True if a fact was deleted, False if it did not exist or
            belongs to another user.
        """
        conn = self.db.connection
        cursor = conn.execute(
            "DELETE FROM facts WHERE id = ? AND user_id = ?", (fact_id, user_id)
        )
        conn.commit()
        return cursor.rowcount > 0

    def clear(self, user_id: str, character_id: str) -> int:
        """Forget everything a character knows about a user.

        Returns:
            Number of facts deleted.
        """
        conn = self.db.connection
        cursor = conn.execute(
            "DELETE FROM facts WHERE user_id = ? AND character_id = ?",
            (user_id, character_id),
        )
        conn.commit()
        return cursor.rowcount

    def _row_to_fact(self, row: sqlite3.Row) -> Fact:
        """Convert a database row to a Fact."""
        return Fact(
            id=row["id"],
            user_id=row["user_id"],
            character_id=row["character_id"],
            fact=row["fact"],
            category=row["category"],
            created_at=row["created_at"],
        )

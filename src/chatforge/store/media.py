"""Per-user collection of generated media."""

import sqlite3
from dataclasses import dataclass, field

from .blobs import BlobStore
from .database import Database
from .models import Media

SORT_ORDERS = ("newest", "oldest", "az", "za")


@dataclass
class CharacterMediaGroup:
    """Media generated with one character, as shown in a collection."""

    character_id: str
    character_name: str
    media: list[Media] = field(default_factory=list)


class MediaStore:
    """Stores generated media keyed by (user, character)."""

    def __init__(self, db: Database, blobs: BlobStore | None = None) -> None:
        self.db = db
        self.blobs = blobs

    def save_media(
        self,
        user_id: str,
        character_id: str,
        media_url: str,
        *,
        storage_id: str | None = None,
        media_type: str = "image",
        prompt: str | None = None,
    ) -> Media:
        """Record a generated media item."""
        if media_type not in ("image", "video"):
            raise ValueError(f"Unsupported media type: {media_type}")

        conn = self.db.connection
        cursor = conn.execute(
            """
            INSERT INTO media (user_id, character_id, media_url, storage_id, media_type, prompt)
            VALUES (?, ?, ?, ?, ?, ?)
            RETURNING *
            """,
            (user_id, character_id, media_url, storage_id, media_type, prompt),
        )
        row = cursor.fetchone()
        conn.commit()
        return self._row_to_media(row)

    def list_for_character(
        self, user_id: str, character_id: str, media_type: str = "image"
    ) -> list[Media]:
        """Media a user generated with one character, newest first."""
        cursor = self.db.connection.execute(
            """
            SELECT * FROM media
            WHERE user_id = ? AND character_id = ? AND media_type = ?
            ORDER BY id DESC
            """,
            (user_id, character_id, media_type),
        )
        return [self._row_to_media(row) for row in cursor.fetchall()]

    def list_collection(self, user_id: str, sort_by: str = "newest") -> list[CharacterMediaGroup]:
        """All of a user's media grouped by character.

        Args:
            user_id: Owner of the collection.
            sort_by: 'newest' or 'oldest' order media and groups by time;
                'az' or 'za' order groups by character name.
        """
        if sort_by not in SORT_ORDERS:
            raise ValueError(f"sort_by must be one of {SORT_ORDERS}, got {sort_by!r}")

        cursor = self.db.connection.execute(
            """
            SELECT media.*, COALESCE(characters.name, 'Unknown') AS character_name
            FROM media
            LEFT JOIN characters ON characters.id = media.character_id
            WHERE media.user_id = ?
            ORDER BY media.id
            """,
            (user_id,),
        )

        groups: dict[str, CharacterMediaGroup] = {}
        for row in cursor.fetchall():
            group = groups.get(row["character_id"])
            if group is None:
                group = CharacterMediaGroup(
                    character_id=row["character_id"],
                    character_name=row["character_name"],
                )
                groups[row["character_id"]] = group
            group.media.append(self._row_to_media(row))

        result = list(groups.values())
        newest_first = sort_by != "oldest"
        for group in result:
            group.media.sort(key=lambda m: m.id, reverse=newest_first)

        if sort_by == "az":
            result.sort(key=lambda g: g.character_name.lower())
        elif sort_by == "za":
            result.sort(key=lambda g: g.character_name.lower(), reverse=True)
        elif sort_by == "newest":
            result.sort(key=lambda g: max(m.id for m in g.media), reverse=True)
        else:
            result.sort(key=lambda g: min(m.id for m in g.media))
        return result

    def delete_media(self, media_id: int, user_id: str) -> None:
        """Delete a media item owned by ``user_id``.

        Raises:
            LookupError: If the item does not exist or belongs to someone else.
        """
        conn = self.db.connection
        row = conn.execute("SELECT * FROM media WHERE id = ?", (media_id,)).fetchone()
        if row is None or row["user_id"] != user_id:
            raise LookupError("Media not found or unauthorized")

        conn.execute("DELETE FROM media WHERE id = ?", (media_id,))
        conn.commit()
        if row["storage_id"] and self.blobs is not None:
            self.blobs.delete(row["storage_id"])

    def _row_to_media(self, row: sqlite3.Row) -> Media:
        media_url = row["media_url"]
        # Prefer the live storage URL when the blob is still present
        if row["storage_id"] and self.blobs is not None:
            media_url = self.blobs.get_url(row["storage_id"]) or media_url
        return Media(
            id=row["id"],
            user_id=row["user_id"],
            character_id=row["character_id"],
            media_url=media_url,
            storage_id=row["storage_id"],
            media_type=row["media_type"],
            prompt=row["prompt"],
            created_at=row["created_at"],
        )

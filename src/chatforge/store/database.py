"""SQLite connection and schema shared by all stores."""

import sqlite3
from pathlib import Path

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id                  TEXT PRIMARY KEY,
    name                TEXT NOT NULL DEFAULT '',
    crystals            INTEGER NOT NULL DEFAULT 0 CHECK (crystals >= 0),
    subscription_tier   TEXT NOT NULL DEFAULT 'free',
    language_tag        TEXT,
    auto_translate      INTEGER NOT NULL DEFAULT 1,
    primary_persona_id  TEXT
);

CREATE TABLE IF NOT EXISTS personas (
    id          TEXT PRIMARY KEY,
    user_id     TEXT NOT NULL,
    name        TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS characters (
    id                          TEXT PRIMARY KEY,
    creator_id                  TEXT NOT NULL,
    name                        TEXT NOT NULL,
    description                 TEXT NOT NULL DEFAULT '',
    instructions                TEXT NOT NULL DEFAULT '',
    image_prompt_instructions   TEXT NOT NULL DEFAULT '',
    model                       TEXT,
    visibility                  TEXT NOT NULL DEFAULT 'public',
    is_archived                 INTEGER NOT NULL DEFAULT 0,
    is_blacklisted              INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS chats (
    id           TEXT PRIMARY KEY,
    user_id      TEXT NOT NULL,
    character_id TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    chat_id      TEXT NOT NULL,
    character_id TEXT,
    text         TEXT NOT NULL DEFAULT '',
    image_url    TEXT,
    translation  TEXT,
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_messages_chat ON messages(chat_id, id);

CREATE TABLE IF NOT EXISTS facts (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT NOT NULL,
    character_id TEXT NOT NULL,
    fact         TEXT NOT NULL,
    category     TEXT,
    created_at   TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_facts_pair ON facts(user_id, character_id);

CREATE TABLE IF NOT EXISTS charges (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id        TEXT NOT NULL,
    amount         INTEGER NOT NULL CHECK (amount >= 0),
    balance_before INTEGER NOT NULL DEFAULT 0,
    operation      TEXT NOT NULL,
    status         TEXT NOT NULL DEFAULT 'PENDING',
    created_at     REAL NOT NULL,
    resolved_at    REAL
);
CREATE INDEX IF NOT EXISTS idx_charges_status ON charges(status, created_at);

CREATE TABLE IF NOT EXISTS media (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id      TEXT NOT NULL,
    character_id TEXT NOT NULL,
    media_url    TEXT NOT NULL,
    storage_id   TEXT,
    media_type   TEXT NOT NULL DEFAULT 'image',
    prompt       TEXT,
    created_at   TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_media_pair ON media(user_id, character_id);
"""


class Database:
    """Lazily opened SQLite connection with the application schema.

    All stores share one connection. Statements that must be atomic run
    inside ``with db.connection:`` so SQLite commits or rolls them back
    together.
    """

    def __init__(self, db_path: Path | str) -> None:
        """Initialize with a database path.

        Args:
            db_path: Path to the SQLite file, or ":memory:".
        """
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def connection(self) -> sqlite3.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(self.db_path)
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def init_db(self) -> None:
        """Create all tables if they don't exist."""
        conn = self.connection
        conn.executescript(SCHEMA)
        conn.commit()

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

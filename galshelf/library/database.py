"""
SQLite library store.

Holds library entries, play sessions, user settings and the tag
translation cache. sqlite3 is blocking, so every public method is a
coroutine that runs its statement in a worker thread; a lock serializes
access to the single connection.
"""

import asyncio
import json
import logging
import sqlite3
import threading
import uuid
from dataclasses import fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from galshelf.library.models import EntryForm, LibraryEntry, PlaySession, TagTranslation

logger = logging.getLogger(__name__)


class DatabaseError(Exception):
    """Library store operation failed."""
    pass


ENTRY_COLUMNS = [f.name for f in fields(LibraryEntry)]
FORM_COLUMNS = [f.name for f in fields(EntryForm)]
JSON_COLUMNS = ("screenshots", "tags")

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS games (
        id TEXT PRIMARY KEY,
        title TEXT NOT NULL DEFAULT '',
        title_original TEXT NOT NULL DEFAULT '',
        vndb_id TEXT NOT NULL DEFAULT '',
        developer TEXT NOT NULL DEFAULT '',
        release_date TEXT NOT NULL DEFAULT '',
        exe_path TEXT NOT NULL DEFAULT '',
        install_path TEXT NOT NULL DEFAULT '',
        save_path TEXT NOT NULL DEFAULT '',
        cover_path TEXT NOT NULL DEFAULT '',
        screenshots TEXT NOT NULL DEFAULT '[]',
        tags TEXT NOT NULL DEFAULT '[]',
        play_status TEXT NOT NULL DEFAULT 'unplayed',
        rating INTEGER NOT NULL DEFAULT 0,
        vndb_rating INTEGER NOT NULL DEFAULT 0,
        vndb_votecount INTEGER NOT NULL DEFAULT 0,
        length_minutes INTEGER NOT NULL DEFAULT 0,
        notes TEXT NOT NULL DEFAULT '',
        engine TEXT NOT NULL DEFAULT '',
        total_playtime INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL DEFAULT (datetime('now')),
        updated_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS play_sessions (
        id TEXT PRIMARY KEY,
        game_id TEXT NOT NULL,
        start_time TEXT NOT NULL,
        end_time TEXT,
        duration INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (game_id) REFERENCES games(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS settings (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL DEFAULT ''
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tag_translations (
        source TEXT PRIMARY KEY,
        translated TEXT NOT NULL DEFAULT ''
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_play_sessions_game ON play_sessions(game_id)",
]

# Columns added after the first release; older databases are upgraded on open
MIGRATED_COLUMNS = {
    "vndb_id": "TEXT NOT NULL DEFAULT ''",
    "screenshots": "TEXT NOT NULL DEFAULT '[]'",
    "vndb_rating": "INTEGER NOT NULL DEFAULT 0",
    "vndb_votecount": "INTEGER NOT NULL DEFAULT 0",
    "length_minutes": "INTEGER NOT NULL DEFAULT 0",
}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds')


def _row_to_entry(row: sqlite3.Row) -> LibraryEntry:
    data = {key: row[key] for key in row.keys() if key in ENTRY_COLUMNS}
    for key in JSON_COLUMNS:
        data[key] = json.loads(data.get(key) or "[]")
    return LibraryEntry(**data)


def _encode(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS:
        return json.dumps(list(value or []), ensure_ascii=False)
    return value


class LibraryDatabase:
    """
    Persistent library store.

    Example:
        db = LibraryDatabase(Path('galshelf.db'))
        entry = await db.add_entry(EntryForm(title='Clannad'))
        await db.add_play_session(entry.id, start, end, 3600)
    """

    def __init__(self, db_path: Union[Path, str]):
        """
        Open (or create) the database and bring its schema up to date.

        Args:
            db_path: Database file path, or ':memory:'

        Raises:
            DatabaseError: If the file cannot be opened or migrated
        """
        self.db_path = str(db_path)
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        try:
            self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self.connection.row_factory = sqlite3.Row
            self.connection.execute("PRAGMA foreign_keys = ON")
            self._ensure_schema()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to open library database {self.db_path}: {e}")

        logger.debug(f"Library database ready: {self.db_path}")

    def _ensure_schema(self) -> None:
        with self.connection:
            for statement in SCHEMA:
                self.connection.execute(statement)

            columns = {
                row["name"] for row in self.connection.execute("PRAGMA table_info(games)")
            }
            for column, definition in MIGRATED_COLUMNS.items():
                if column not in columns:
                    logger.info(f"Migrating library database: adding column games.{column}")
                    self.connection.execute(f"ALTER TABLE games ADD COLUMN {column} {definition}")

    def close(self) -> None:
        with self._lock:
            self.connection.close()

    async def _run(self, func, *args):
        """Run a blocking store function in a worker thread."""
        def locked():
            with self._lock:
                try:
                    return func(*args)
                except sqlite3.Error as e:
                    raise DatabaseError(f"{func.__name__.lstrip('_')} failed: {e}")

        return await asyncio.to_thread(locked)

    # Entries

    def _get_entry(self, entry_id: str) -> Optional[LibraryEntry]:
        row = self.connection.execute("SELECT * FROM games WHERE id = ?", (entry_id,)).fetchone()
        return _row_to_entry(row) if row else None

    def _insert_entry(self, form: EntryForm, now: str) -> str:
        entry_id = str(uuid.uuid4())
        values = [_encode(column, getattr(form, column)) for column in FORM_COLUMNS]
        columns = ["id"] + FORM_COLUMNS + ["total_playtime", "created_at", "updated_at"]
        placeholders = ", ".join("?" for _ in columns)
        self.connection.execute(
            f"INSERT INTO games ({', '.join(columns)}) VALUES ({placeholders})",
            [entry_id] + values + [0, now, now],
        )
        return entry_id

    def _add_entries(self, forms: List[EntryForm]) -> List[LibraryEntry]:
        now = _now()
        with self.connection:
            ids = [self._insert_entry(form, now) for form in forms]
        return [self._get_entry(entry_id) for entry_id in ids]

    async def add_entry(self, form: EntryForm) -> LibraryEntry:
        """
        Validate and insert one entry.

        Raises:
            EntryValidationError: If the form is invalid (nothing is written)
            DatabaseError: On storage failure
        """
        form.validate()
        entries = await self._run(self._add_entries, [form])
        logger.info(f"Added library entry: {entries[0].title} ({entries[0].id})")
        return entries[0]

    async def add_entries(self, forms: Sequence[EntryForm]) -> List[LibraryEntry]:
        """
        Validate and insert a batch of entries in one transaction.

        Every form is validated before anything is written; a storage
        failure rolls back the whole batch.

        Returns:
            Created entries, in input order
        """
        forms = list(forms)
        for form in forms:
            form.validate()
        if not forms:
            return []

        entries = await self._run(self._add_entries, forms)
        logger.info(f"Added {len(entries)} library entries")
        return entries

    async def get_entry(self, entry_id: str) -> Optional[LibraryEntry]:
        return await self._run(self._get_entry, entry_id)

    def _get_all_entries(self) -> List[LibraryEntry]:
        rows = self.connection.execute("SELECT * FROM games ORDER BY created_at DESC").fetchall()
        return [_row_to_entry(row) for row in rows]

    async def get_all_entries(self) -> List[LibraryEntry]:
        """All entries, newest first."""
        return await self._run(self._get_all_entries)

    def _update_entry(self, entry_id: str, changes: Dict[str, Any]) -> Optional[LibraryEntry]:
        columns = list(changes)
        assignments = [f"{column} = ?" for column in columns] + ["updated_at = ?"]
        values = [_encode(column, changes[column]) for column in columns] + [_now(), entry_id]
        with self.connection:
            self.connection.execute(
                f"UPDATE games SET {', '.join(assignments)} WHERE id = ?",
                values,
            )
        return self._get_entry(entry_id)

    async def update_entry(self, entry_id: str, changes: Dict[str, Any]) -> Optional[LibraryEntry]:
        """
        Apply a partial update to an entry.

        Only editable form fields may be changed. The merged result is
        validated before writing and ``updated_at`` is refreshed.

        Args:
            entry_id: Entry id
            changes: Field name to new value; None values are ignored

        Returns:
            Updated entry, or None if the id does not exist

        Raises:
            EntryValidationError: If the merged entry is invalid
            DatabaseError: On unknown fields or storage failure
        """
        changes = {key: value for key, value in changes.items() if value is not None}
        unknown = [key for key in changes if key not in FORM_COLUMNS]
        if unknown:
            raise DatabaseError(f"Cannot update unknown or read-only fields: {', '.join(unknown)}")

        current = await self.get_entry(entry_id)
        if current is None:
            return None

        merged = {column: getattr(current, column) for column in FORM_COLUMNS}
        merged.update(changes)
        EntryForm(**merged).validate()

        return await self._run(self._update_entry, entry_id, changes)

    def _delete_entry(self, entry_id: str) -> bool:
        with self.connection:
            cursor = self.connection.execute("DELETE FROM games WHERE id = ?", (entry_id,))
        return cursor.rowcount > 0

    async def delete_entry(self, entry_id: str) -> bool:
        """Delete an entry and its play sessions. Returns False if not found."""
        deleted = await self._run(self._delete_entry, entry_id)
        if deleted:
            logger.info(f"Deleted library entry {entry_id}")
        return deleted

    def _search_entries(self, query: str) -> List[LibraryEntry]:
        escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
        pattern = f"%{escaped}%"
        rows = self.connection.execute(
            """
            SELECT * FROM games
            WHERE title LIKE ? ESCAPE '\\' OR title_original LIKE ? ESCAPE '\\'
                OR developer LIKE ? ESCAPE '\\' OR notes LIKE ? ESCAPE '\\'
                OR tags LIKE ? ESCAPE '\\'
            ORDER BY title
            """,
            (pattern,) * 5,
        ).fetchall()
        return [_row_to_entry(row) for row in rows]

    async def search_entries(self, query: str) -> List[LibraryEntry]:
        """Substring search over titles, developer, notes and tags."""
        return await self._run(self._search_entries, query)

    # Play sessions

    def _add_play_session(
        self,
        game_id: str,
        start_time: str,
        end_time: Optional[str],
        duration: int
    ) -> PlaySession:
        session = PlaySession(
            id=str(uuid.uuid4()),
            game_id=game_id,
            start_time=start_time,
            end_time=end_time,
            duration=duration,
        )
        with self.connection:
            self.connection.execute(
                "INSERT INTO play_sessions (id, game_id, start_time, end_time, duration) "
                "VALUES (?, ?, ?, ?, ?)",
                (session.id, game_id, start_time, end_time, duration),
            )
            self.connection.execute(
                "UPDATE games SET total_playtime = total_playtime + ?, updated_at = ? WHERE id = ?",
                (duration, _now(), game_id),
            )
        return session

    async def add_play_session(
        self,
        game_id: str,
        start_time: str,
        end_time: Optional[str],
        duration: int
    ) -> PlaySession:
        """
        Record a play session and add its duration to the entry's playtime.

        Both writes happen in one transaction.

        Raises:
            DatabaseError: If the entry does not exist or the write fails
        """
        if duration < 0:
            raise DatabaseError(f"Session duration must not be negative: {duration}")

        session = await self._run(self._add_play_session, game_id, start_time, end_time, duration)
        logger.debug(f"Recorded {duration}s play session for {game_id}")
        return session

    def _get_play_sessions(self, game_id: str) -> List[PlaySession]:
        rows = self.connection.execute(
            "SELECT * FROM play_sessions WHERE game_id = ? ORDER BY start_time",
            (game_id,),
        ).fetchall()
        return [PlaySession(**dict(row)) for row in rows]

    async def get_play_sessions(self, game_id: str) -> List[PlaySession]:
        return await self._run(self._get_play_sessions, game_id)

    # Settings

    def _get_setting(self, key: str) -> str:
        row = self.connection.execute("SELECT value FROM settings WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else ""

    async def get_setting(self, key: str) -> str:
        """Setting value, or an empty string if unset."""
        return await self._run(self._get_setting, key)

    def _set_setting(self, key: str, value: str) -> None:
        with self.connection:
            self.connection.execute(
                "INSERT INTO settings (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, value),
            )

    async def set_setting(self, key: str, value: str) -> None:
        await self._run(self._set_setting, key, value)

    # Tag translations

    def _get_tag_translations(self, sources: List[str]) -> Dict[str, str]:
        if not sources:
            return {}
        placeholders = ", ".join("?" for _ in sources)
        rows = self.connection.execute(
            f"SELECT source, translated FROM tag_translations WHERE source IN ({placeholders})",
            sources,
        ).fetchall()
        return {row["source"]: row["translated"] for row in rows}

    async def get_tag_translation(self, source: str) -> Optional[str]:
        """Cached translation for one tag, or None."""
        found = await self._run(self._get_tag_translations, [source])
        return found.get(source)

    async def get_tag_translations(self, sources: Iterable[str]) -> Dict[str, str]:
        """Cached translations for the given tags (hits only)."""
        return await self._run(self._get_tag_translations, list(dict.fromkeys(sources)))

    def _set_tag_translations(self, pairs: List[Tuple[str, str]]) -> None:
        with self.connection:
            self.connection.executemany(
                "INSERT INTO tag_translations (source, translated) VALUES (?, ?) "
                "ON CONFLICT(source) DO UPDATE SET translated = excluded.translated",
                pairs,
            )

    async def set_tag_translation(self, source: str, translated: str) -> None:
        await self._run(self._set_tag_translations, [(source, translated)])

    async def set_tag_translations(self, pairs: Iterable[Tuple[str, str]]) -> None:
        """Upsert many translations; the last pair for a key wins."""
        pairs = list(pairs)
        if pairs:
            await self._run(self._set_tag_translations, pairs)

    def _get_all_tag_translations(self) -> List[TagTranslation]:
        rows = self.connection.execute(
            "SELECT source, translated FROM tag_translations ORDER BY source"
        ).fetchall()
        return [TagTranslation(source=row["source"], translated=row["translated"]) for row in rows]

    async def get_all_tag_translations(self) -> List[TagTranslation]:
        return await self._run(self._get_all_tag_translations)

    def _delete_tag_translation(self, source: str) -> None:
        with self.connection:
            self.connection.execute("DELETE FROM tag_translations WHERE source = ?", (source,))

    async def delete_tag_translation(self, source: str) -> None:
        await self._run(self._delete_tag_translation, source)

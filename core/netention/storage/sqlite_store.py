"""
SQLite-backed Note Store.

One row per Note: ``notes(id TEXT PRIMARY KEY, data TEXT)`` holding the
JSON document. Every call opens a short-lived connection in a worker
thread so the event loop never blocks on disk.
"""

import asyncio
import contextlib
import logging
import sqlite3
from pathlib import Path

from netention.runtime.event_bus import EventBus
from netention.schemas.note import Note
from netention.storage.backend import NoteStore

logger = logging.getLogger(__name__)


class SQLiteNoteStore(NoteStore):
    """Durable Note Store on a single SQLite file."""

    def __init__(self, db_path: str | Path = "notes.db", event_bus: EventBus | None = None):
        super().__init__(event_bus)
        self.db_path = Path(db_path)

    @contextlib.contextmanager
    def _connect(self):
        """Commit on success, roll back on error, always close."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA busy_timeout=5000")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    async def initialize(self) -> None:
        def _init():
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connect() as conn:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.execute("CREATE TABLE IF NOT EXISTS notes (id TEXT PRIMARY KEY, data TEXT)")

        await asyncio.to_thread(_init)
        logger.info(f"SQLite note store initialized at {self.db_path}")

    async def _write(self, note: Note) -> None:
        payload = note.model_dump_json()

        def _insert():
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO notes (id, data) VALUES (?, ?)",
                    (note.id, payload),
                )

        await asyncio.to_thread(_insert)

    async def _read(self, note_id: str) -> Note | None:
        def _select():
            with self._connect() as conn:
                return conn.execute("SELECT data FROM notes WHERE id = ?", (note_id,)).fetchone()

        row = await asyncio.to_thread(_select)
        if row is None:
            return None
        return Note.model_validate_json(row[0])

    async def _read_all(self) -> list[Note]:
        def _select_all():
            with self._connect() as conn:
                return conn.execute("SELECT data FROM notes ORDER BY rowid").fetchall()

        rows = await asyncio.to_thread(_select_all)
        return [Note.model_validate_json(row[0]) for row in rows]

"""Note Store backends."""

from pathlib import Path

from netention.runtime.event_bus import EventBus
from netention.storage.backend import InMemoryNoteStore, NoteStore
from netention.storage.file_store import FileNoteStore
from netention.storage.sqlite_store import SQLiteNoteStore

STORE_KINDS = ("memory", "sqlite", "file")


def create_store(
    kind: str = "memory",
    path: str | Path | None = None,
    event_bus: EventBus | None = None,
) -> NoteStore:
    """Build a store backend by name."""
    if kind == "memory":
        return InMemoryNoteStore(event_bus)
    if kind == "sqlite":
        return SQLiteNoteStore(path or "notes.db", event_bus)
    if kind == "file":
        return FileNoteStore(path or "notes", event_bus)
    raise ValueError(f"Unknown store kind '{kind}' (expected one of {', '.join(STORE_KINDS)})")


__all__ = [
    "STORE_KINDS",
    "FileNoteStore",
    "InMemoryNoteStore",
    "NoteStore",
    "SQLiteNoteStore",
    "create_store",
]

"""
Note Store - keyed persistence of Notes.

Backends implement the raw read/write hooks; the base class owns the
contract every caller relies on:

- ``save`` upserts, and only after the write is durable publishes a
  NOTE_CHANGED event carrying the id
- ``load`` returns a private copy or raises NotFoundError
- ``list`` returns a snapshot of every Note

Mutating a loaded Note never changes the store until it is saved back.
"""

import logging
from abc import ABC, abstractmethod

from netention.errors import NotFoundError
from netention.runtime.event_bus import EventBus
from netention.schemas.note import Note

logger = logging.getLogger(__name__)


class NoteStore(ABC):
    """Base class for all Note persistence backends."""

    def __init__(self, event_bus: EventBus | None = None):
        self._event_bus = event_bus

    def attach(self, event_bus: EventBus) -> None:
        """Route change notifications to ``event_bus``."""
        self._event_bus = event_bus

    async def initialize(self) -> None:
        """Prepare the backend. No-op unless overridden."""

    def validate_id(self, note_id: str) -> None:
        """Reject ids this backend cannot store. No-op unless overridden."""

    async def save(self, note: Note) -> None:
        await self._write(note)
        logger.debug(f"Saved {note.id}")
        if self._event_bus is not None:
            await self._event_bus.emit_note_changed(note.id)

    async def load(self, note_id: str) -> Note:
        note = await self._read(note_id)
        if note is None:
            raise NotFoundError("note", note_id)
        return note

    async def get(self, note_id: str) -> Note | None:
        """Like ``load`` but returns None for a missing id."""
        return await self._read(note_id)

    async def exists(self, note_id: str) -> bool:
        return await self._read(note_id) is not None

    async def close(self) -> None:
        """Release backend resources. No-op unless overridden."""

    @abstractmethod
    async def _write(self, note: Note) -> None: ...

    @abstractmethod
    async def _read(self, note_id: str) -> Note | None: ...

    @abstractmethod
    async def _read_all(self) -> list[Note]: ...

    # Keep last: shadows the builtin ``list`` for annotations below it
    async def list(self) -> list[Note]:
        return await self._read_all()


class InMemoryNoteStore(NoteStore):
    """Arena of Notes keyed by id. Stores and hands out deep copies."""

    def __init__(self, event_bus: EventBus | None = None):
        super().__init__(event_bus)
        self._notes: dict[str, Note] = {}

    async def _write(self, note: Note) -> None:
        self._notes[note.id] = note.model_copy(deep=True)

    async def _read(self, note_id: str) -> Note | None:
        note = self._notes.get(note_id)
        return note.model_copy(deep=True) if note is not None else None

    async def _read_all(self) -> list[Note]:
        return [note.model_copy(deep=True) for note in self._notes.values()]

    def __len__(self) -> int:
        return len(self._notes)

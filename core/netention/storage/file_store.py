"""
File Store - one JSON document per Note.

Layout:
  {base_path}/notes/{note_id}.json

Writes go through a temp file + rename for crash safety; blocking I/O runs
in a worker thread.
"""

import asyncio
import logging
from pathlib import Path

from netention.errors import ValidationError
from netention.runtime.event_bus import EventBus
from netention.schemas.note import Note
from netention.storage.backend import NoteStore
from netention.utils.io import atomic_write

logger = logging.getLogger(__name__)

_DANGEROUS_CHARS = frozenset({"<", ">", "|", "&", "$", "`", "'", '"', ":", "*", "?"})


def validate_note_id(note_id: str) -> None:
    """
    Reject ids that cannot safely become file names.

    Raises:
        ValidationError: If the id contains path traversal or dangerous patterns
    """
    if not note_id or note_id.strip() == "":
        raise ValidationError("Note id cannot be empty")
    if "/" in note_id or "\\" in note_id:
        raise ValidationError(f"Invalid note id: path separators not allowed in '{note_id}'")
    if ".." in note_id or note_id.startswith("."):
        raise ValidationError(f"Invalid note id: path traversal detected in '{note_id}'")
    if "\x00" in note_id:
        raise ValidationError("Invalid note id: null bytes not allowed")
    if any(char in note_id for char in _DANGEROUS_CHARS):
        raise ValidationError(f"Invalid note id: contains dangerous characters in '{note_id}'")


class FileNoteStore(NoteStore):
    """Durable Note Store on a directory of JSON files."""

    def __init__(self, base_path: str | Path, event_bus: EventBus | None = None):
        super().__init__(event_bus)
        self.base_path = Path(base_path)
        self.notes_dir = self.base_path / "notes"

    def validate_id(self, note_id: str) -> None:
        validate_note_id(note_id)

    def get_note_path(self, note_id: str) -> Path:
        self.validate_id(note_id)
        return self.notes_dir / f"{note_id}.json"

    async def initialize(self) -> None:
        await asyncio.to_thread(self.notes_dir.mkdir, parents=True, exist_ok=True)
        logger.info(f"File note store initialized at {self.notes_dir}")

    async def _write(self, note: Note) -> None:
        path = self.get_note_path(note.id)
        payload = note.model_dump_json(indent=2)

        def _write():
            with atomic_write(path) as f:
                f.write(payload)

        await asyncio.to_thread(_write)

    async def _read(self, note_id: str) -> Note | None:
        path = self.get_note_path(note_id)

        def _read():
            if not path.exists():
                return None
            return Note.model_validate_json(path.read_text(encoding="utf-8"))

        return await asyncio.to_thread(_read)

    async def _read_all(self) -> list[Note]:
        def _read_all():
            if not self.notes_dir.exists():
                return []
            return [
                Note.model_validate_json(path.read_text(encoding="utf-8"))
                for path in sorted(self.notes_dir.glob("*.json"))
            ]

        return await asyncio.to_thread(_read_all)

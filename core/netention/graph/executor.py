"""
Note Executor - Runs one attempt of a Note's logic.

An attempt:
1. Loads the Note and the Control Note
2. Checks the eligibility gate (pause flag, status, self-spawn guard)
3. Invokes each capability of the Note's logic in order, folding the
   returned status and content into the Note and logging memory entries
4. Persists the Note

Any exception escapes the attempt untouched; the retry controller decides
what happens next.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from netention.runner.builtin_tools import DEFAULT_CONTROL_ID, is_self_spawning
from netention.runner.tool_registry import ToolRegistry
from netention.runtime.event_bus import EventBus
from netention.runtime.note_locks import KeyedLocks
from netention.schemas.note import Note, NoteStatus, make_memory_note
from netention.storage.backend import NoteStore

logger = logging.getLogger(__name__)


@dataclass
class AttemptResult:
    """Outcome of one attempt (or of a whole supervised run)."""

    note_id: str
    executed: bool
    status: NoteStatus | None = None
    skipped_reason: str | None = None
    capabilities: list[str] = field(default_factory=list)
    attempts: int = 0
    error: str | None = None

    @property
    def skipped(self) -> bool:
        return not self.executed


class Executor:
    """
    Interprets Note logic against the capability registry.

    Example:
        executor = Executor(store=store, registry=registry, write_locks=KeyedLocks())
        result = await executor.run("root", auto=False)
    """

    def __init__(
        self,
        store: NoteStore,
        registry: ToolRegistry,
        write_locks: KeyedLocks,
        event_bus: EventBus | None = None,
        control_id: str = DEFAULT_CONTROL_ID,
    ):
        self._store = store
        self._registry = registry
        self._write_locks = write_locks
        self._event_bus = event_bus
        self._control_id = control_id

    async def is_paused(self) -> bool:
        control = await self._store.get(self._control_id)
        if control is None or not isinstance(control.content, dict):
            return False
        return bool(control.content.get("paused", False))

    def plan(self, note: Note) -> list[tuple[str, dict[str, Any]]]:
        """The (capability, input) calls an attempt on ``note`` would make."""
        if note.logic.is_sequential:
            return [(step.capability, step.input) for step in note.logic.steps]
        name = note.capability_name
        if name:
            return [(name, note.logic.input or {})]
        return []

    async def check_gate(self, note: Note, auto: bool) -> str | None:
        """Return why ``note`` may not run right now, or None if it may."""
        if await self.is_paused():
            return "paused"
        if note.status != NoteStatus.RUNNING:
            return f"status is {note.status}"
        if auto and is_self_spawning(note):
            return "self-spawning note"
        return None

    async def run(self, note_id: str, auto: bool = True, attempt: int = 1) -> AttemptResult:
        """
        Execute one attempt.

        Args:
            note_id: Note to run
            auto: True when triggered by a change notification rather than
                an explicit request
            attempt: Attempt number, for events and logs

        Raises:
            NetentionError: Any capability resolution, validation or execution failure
        """
        note = await self._store.get(note_id)
        if note is None:
            logger.debug(f"Skipping {note_id}: note no longer exists")
            return AttemptResult(note_id=note_id, executed=False, skipped_reason="missing")

        reason = await self.check_gate(note, auto)
        if reason is not None:
            logger.debug(f"Skipping {note_id}: {reason}")
            return AttemptResult(
                note_id=note_id, executed=False, status=note.status, skipped_reason=reason
            )

        calls = self.plan(note)
        if not calls:
            return AttemptResult(
                note_id=note_id, executed=False, status=note.status, skipped_reason="no logic"
            )

        logger.info(f"Running {note_id}")
        if self._event_bus is not None:
            await self._event_bus.emit_note_started(note_id, attempt)

        status = note.status
        content_delta: dict[str, Any] = {}
        invoked: list[str] = []
        for capability, step_input in calls:
            logger.info(f"{note_id} executing {capability}")
            result = await self._registry.invoke(capability, step_input)
            invoked.append(capability)
            status = NoteStatus(result.status)
            content_delta.update(result.content)
            if result.memory:
                await self.append_memory(note_id, result.memory)

        await self._commit(note_id, status, content_delta)

        if self._event_bus is not None:
            await self._event_bus.emit_note_completed(note_id, status.value, invoked)
        return AttemptResult(
            note_id=note_id,
            executed=True,
            status=status,
            capabilities=invoked,
            attempts=attempt,
        )

    async def _commit(
        self, note_id: str, status: NoteStatus, content_delta: dict[str, Any]
    ) -> None:
        # Reload so edges or memory added while the attempt ran are kept
        async with self._write_locks.hold(note_id):
            note = await self._store.load(note_id)
            note.state.status = status
            if isinstance(note.content, dict):
                note.content = {**note.content, **content_delta}
            await self._store.save(note)

    async def append_memory(
        self, owner_id: str, entry: str, status: NoteStatus | None = None
    ) -> str:
        """
        Log ``entry`` as a Memory Note and append it to the owner's memory.

        If ``status`` is given the owner's status is set in the same write.
        """
        memory = make_memory_note(owner_id, entry)
        await self._store.save(memory)

        async with self._write_locks.hold(owner_id):
            owner = await self._store.get(owner_id)
            if owner is None:
                logger.warning(f"Memory {memory.id} has no owner: {owner_id} not found")
                return memory.id
            owner.memory.append(memory.id)
            if status is not None:
                owner.state.status = status
            await self._store.save(owner)
        return memory.id

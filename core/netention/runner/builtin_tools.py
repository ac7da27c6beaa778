"""
Built-in capabilities the engine cannot run without (spawn, control), plus
placeholder stand-ins for generation capabilities that live outside the
engine.
"""

import logging
from collections.abc import Callable
from typing import Any

import pydantic

from netention.errors import ValidationError
from netention.graph.builder import GraphBuilder
from netention.runner.tool_registry import Capability, CapabilityInput, ToolRegistry, ToolResult
from netention.runtime.event_bus import EventBus
from netention.runtime.note_locks import KeyedLocks
from netention.schemas.note import ROOT_ID, Note, NoteState, NoteStatus
from netention.schemas.requests import ControlCommand, SpawnRequest
from netention.storage.backend import NoteStore

logger = logging.getLogger(__name__)

SPAWN_CAPABILITY = "spawn"
CONTROL_CAPABILITY = "control"
DEFAULT_CONTROL_ID = "ui-status"


def is_self_spawning(note: Note) -> bool:
    """A Note that itself names the spawn capability is never auto-executed."""
    return note.capability_name == SPAWN_CAPABILITY


class SpawnTool(Capability):
    """Creates (or upserts) a Note, links it to its parent and enqueues it."""

    name = SPAWN_CAPABILITY
    description = "Creates a new Note in the system"
    input_model = SpawnRequest

    def __init__(
        self,
        store: NoteStore,
        write_locks: KeyedLocks,
        graph_builder: GraphBuilder,
        enqueue: Callable[[str], Any] | None = None,
        event_bus: EventBus | None = None,
    ):
        self._store = store
        self._write_locks = write_locks
        self._graph_builder = graph_builder
        self._enqueue = enqueue
        self._event_bus = event_bus

    async def spawn(self, request: SpawnRequest) -> Note:
        try:
            note = request.to_note(self._graph_builder.root_id)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid spawn request: {e}",
                errors=e.errors(include_url=False, include_context=False),
            ) from e
        self._store.validate_id(note.id)

        # The parent lists the child before the child's save can trigger a run
        parent_id = await self._graph_builder.link(note)

        async with self._write_locks.hold(note.id):
            existing = await self._store.get(note.id)
            if existing is not None:
                # Upsert in place: structure and log survive a re-spawn
                note.graph = existing.graph
                note.memory = existing.memory
                note.ts = existing.ts
            await self._store.save(note)

        logger.info(f"Spawned {note.id} (parent={parent_id})")
        if self._event_bus is not None:
            await self._event_bus.emit_note_spawned(note.id, parent_id)

        if is_self_spawning(note):
            logger.debug(f"{note.id} names the spawn capability, not enqueuing")
        elif self._enqueue is not None:
            self._enqueue(note.id)
        return note

    async def call(self, args: SpawnRequest) -> ToolResult:
        note = await self.spawn(args)
        return ToolResult(
            status="done",
            content={"last_spawned": note.id},
            memory=f"Spawned {note.id}",
        )


class ControlTool(Capability):
    """Flips the global pause gate held by the Control Note."""

    name = CONTROL_CAPABILITY
    description = "Pauses or resumes execution of all Notes"

    input_model = ControlCommand

    def __init__(
        self,
        store: NoteStore,
        write_locks: KeyedLocks,
        control_id: str = DEFAULT_CONTROL_ID,
        event_bus: EventBus | None = None,
        root_id: str = ROOT_ID,
    ):
        self._store = store
        self._write_locks = write_locks
        self._control_id = control_id
        self._root_id = root_id
        self._event_bus = event_bus

    def _new_control_note(self) -> Note:
        return Note(
            id=self._control_id,
            content={"type": "control", "desc": "Execution Status", "paused": False},
            state=NoteState(status=NoteStatus.DONE, priority=90),
            context=[self._root_id],
        )

    async def apply(self, command: str) -> Note:
        paused = command == "pause"
        async with self._write_locks.hold(self._control_id):
            note = await self._store.get(self._control_id) or self._new_control_note()
            if not isinstance(note.content, dict):
                note.content = {}
            note.content["paused"] = paused
            await self._store.save(note)

        logger.info(f"Execution {'PAUSED' if paused else 'RUNNING'}")
        if self._event_bus is not None:
            if paused:
                await self._event_bus.emit_execution_paused(self._control_id)
            else:
                await self._event_bus.emit_execution_resumed(self._control_id)
        return note

    async def call(self, args: ControlCommand) -> ToolResult:
        await self.apply(args.command)
        return ToolResult(status="done", memory=args.desc or f"Execution {args.command}d")


class CodeGenTool(Capability):
    """Placeholder for an external code-generation capability."""

    name = "code_gen"
    description = "Placeholder for code generation"

    class Input(CapabilityInput):
        prompt: str | None = None

    input_model = Input

    async def call(self, args: Input) -> ToolResult:
        return ToolResult(status="done", memory="Code generation placeholder")


class ReflectTool(Capability):
    """Placeholder for an external self-analysis capability."""

    name = "reflect"
    description = "Placeholder for self-analysis"

    class Input(CapabilityInput):
        target: str | None = None

    input_model = Input

    async def call(self, args: Input) -> ToolResult:
        return ToolResult(status="done", memory="Reflection placeholder")


def register_builtin_tools(
    registry: ToolRegistry,
    store: NoteStore,
    write_locks: KeyedLocks,
    graph_builder: GraphBuilder,
    enqueue: Callable[[str], Any] | None = None,
    event_bus: EventBus | None = None,
    control_id: str = DEFAULT_CONTROL_ID,
) -> tuple[SpawnTool, ControlTool]:
    """Register spawn, control and the placeholder capabilities."""
    spawn = SpawnTool(store, write_locks, graph_builder, enqueue, event_bus)
    control = ControlTool(store, write_locks, control_id, event_bus, graph_builder.root_id)
    registry.register(spawn)
    registry.register(control)
    registry.register(CodeGenTool())
    registry.register(ReflectTool())
    return spawn, control

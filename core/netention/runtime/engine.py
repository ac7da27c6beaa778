"""
Note Engine - Top-level orchestrator.

Wires the store, event bus, capability registry, executor, retry
controller and scheduler together, and exposes the operations external
actors use: spawn, control, explicit run, bootstrap and snapshot export.
"""

import asyncio
import logging
from typing import Any

from netention.config import EngineConfig
from netention.graph.builder import GraphBuilder
from netention.graph.executor import AttemptResult, Executor
from netention.graph.retry import RetryController, SleepFn
from netention.graph.snapshot import build_snapshot
from netention.runner.builtin_tools import register_builtin_tools
from netention.runner.tool_registry import ToolRegistry
from netention.runtime.event_bus import EventBus
from netention.runtime.note_locks import KeyedLocks
from netention.runtime.scheduler import Scheduler
from netention.schemas.note import Note
from netention.schemas.requests import ControlCommand, Snapshot, SpawnRequest
from netention.seed import build_seed
from netention.storage import NoteStore, create_store

logger = logging.getLogger(__name__)


class NoteEngine:
    """
    Change-driven execution engine for Notes.

    Example:
        engine = NoteEngine()
        await engine.start()

        await engine.bootstrap()          # seed root, run to quiescence
        await engine.spawn({"content": {"type": "task", "desc": "hello"}})
        await engine.control("pause")

        snapshot = await engine.snapshot()
        await engine.stop()
    """

    def __init__(
        self,
        store: NoteStore | None = None,
        config: EngineConfig | None = None,
        registry: ToolRegistry | None = None,
        event_bus: EventBus | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self.config = config or EngineConfig()
        self.event_bus = event_bus or EventBus()
        self.store = store or create_store(self.config.store, self.config.store_path)
        self.store.attach(self.event_bus)
        self.registry = registry or ToolRegistry()

        self.run_locks = KeyedLocks("run")
        self.write_locks = KeyedLocks("write")

        self.graph_builder = GraphBuilder(self.store, self.write_locks, self.config.root_id)
        self.executor = Executor(
            store=self.store,
            registry=self.registry,
            write_locks=self.write_locks,
            event_bus=self.event_bus,
            control_id=self.config.control_note_id,
        )
        self.retry = RetryController(
            executor=self.executor,
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            event_bus=self.event_bus,
            sleep=sleep,
        )
        self.scheduler = Scheduler(
            runner=self.retry.run,
            max_concurrent=self.config.max_concurrent,
            event_bus=self.event_bus,
            run_locks=self.run_locks,
        )
        self.spawn_tool, self.control_tool = register_builtin_tools(
            self.registry,
            store=self.store,
            write_locks=self.write_locks,
            graph_builder=self.graph_builder,
            enqueue=self.scheduler.submit,
            event_bus=self.event_bus,
            control_id=self.config.control_note_id,
        )
        self._started = False

    @property
    def is_running(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        await self.store.initialize()
        self.scheduler.start()
        self._started = True
        logger.info("Note engine started")

    async def stop(self) -> None:
        """Stop scheduling new runs and drain in-flight ones."""
        if not self._started:
            return
        await self.scheduler.stop()
        await self.store.close()
        self._started = False
        logger.info("Note engine stopped")

    async def __aenter__(self) -> "NoteEngine":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # === OPERATIONS ===

    async def spawn(self, request: SpawnRequest | dict[str, Any]) -> Note:
        """
        Create (or upsert) a Note and link it into its parent.

        Raises:
            ValidationError: The request does not fit the spawn shape
        """
        if not isinstance(request, SpawnRequest):
            request = self.registry.validate(self.spawn_tool.name, request)
        return await self.spawn_tool.spawn(request)

    async def control(self, command: ControlCommand | dict[str, Any] | str) -> Note:
        """Apply a pause/resume command to the Control Note."""
        if isinstance(command, str):
            command = {"command": command}
        if not isinstance(command, ControlCommand):
            command = self.registry.validate(self.control_tool.name, command)
        return await self.control_tool.apply(command.command)

    async def run(self, note_id: str) -> AttemptResult:
        """
        Explicitly run a Note under retry supervision.

        Unlike change-triggered runs this also executes self-spawning
        Notes. Waits for any in-flight run of the same id first.
        """
        async with self.run_locks.hold(note_id):
            return await self.retry.run(note_id, auto=False)

    async def bootstrap(self, seed: Note | None = None, wait: bool = True) -> Note:
        """
        Save the seed root (its change notification runs it).

        Re-seeding a persistent store keeps the existing root's edges and log.
        """
        seed = seed or build_seed(self.config.root_id)
        async with self.write_locks.hold(seed.id):
            existing = await self.store.get(seed.id)
            if existing is not None:
                seed.graph = existing.graph
                seed.memory = existing.memory
            await self.store.save(seed)
        if wait:
            await self.wait_idle()
        return seed

    async def wait_idle(self) -> None:
        await self.scheduler.wait_idle()

    # === QUERIES ===

    async def get(self, note_id: str) -> Note:
        return await self.store.load(note_id)

    async def is_paused(self) -> bool:
        return await self.executor.is_paused()

    async def snapshot(self) -> Snapshot:
        return build_snapshot(await self.store.list())

    async def memory_log(self, note_id: str) -> list[str]:
        """Log entries of a Note, oldest first. Missing entries are skipped."""
        note = await self.store.load(note_id)
        entries = []
        for memory_id in note.memory:
            memory = await self.store.get(memory_id)
            if memory is not None and isinstance(memory.content, str):
                entries.append(memory.content)
        return entries

    def get_stats(self) -> dict:
        return {
            "scheduler": self.scheduler.get_stats(),
            "events": self.event_bus.get_stats(),
            "capabilities": self.registry.names(),
        }

    # Keep last: shadows the builtin ``list`` for annotations below it
    async def list(self) -> list[Note]:
        return await self.store.list()

"""
Scheduler - turns change notifications into bounded, serialized runs.

Each NOTE_CHANGED event becomes one task. A task first waits for the
Note's run lock (so two runs of one id never overlap), then for one of
``max_concurrent`` slots, then calls the runner. There is no priority
reordering and no deduplication: a stale trigger simply re-checks the
Note and finds nothing to do.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from netention.runtime.event_bus import EventBus, EventType, NoteEvent
from netention.runtime.note_locks import KeyedLocks

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT = 10

Runner = Callable[[str], Awaitable[Any]]


class Scheduler:
    """
    Bounded task pool fed by the event bus.

    Example:
        scheduler = Scheduler(runner=retry.run, max_concurrent=10, event_bus=bus)
        scheduler.start()
        ...
        await scheduler.wait_idle()
        await scheduler.stop()
    """

    def __init__(
        self,
        runner: Runner,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        event_bus: EventBus | None = None,
        run_locks: KeyedLocks | None = None,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._runner = runner
        self.max_concurrent = max_concurrent
        self._event_bus = event_bus
        self._run_locks = run_locks or KeyedLocks("run")
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: set[asyncio.Task] = set()
        self._subscription: str | None = None

        self.active = 0
        self.peak_active = 0
        self.submitted = 0
        self.completed = 0
        self.errors = 0

    @property
    def is_running(self) -> bool:
        return self._subscription is not None

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def start(self) -> None:
        if self._subscription is not None or self._event_bus is None:
            return
        self._subscription = self._event_bus.subscribe(
            event_types=[EventType.NOTE_CHANGED],
            handler=self._on_change,
        )
        logger.info(f"Scheduler started (max_concurrent={self.max_concurrent})")

    async def stop(self) -> None:
        """Stop listening, then let in-flight work finish."""
        if self._subscription is not None and self._event_bus is not None:
            self._event_bus.unsubscribe(self._subscription)
        self._subscription = None
        await self.wait_idle()
        logger.info("Scheduler stopped")

    async def _on_change(self, event: NoteEvent) -> None:
        self.submit(event.note_id)

    def submit(self, note_id: str) -> asyncio.Task:
        """Queue a run of ``note_id``. Never blocks."""
        task = asyncio.create_task(self._admit(note_id), name=f"note:{note_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self.submitted += 1
        return task

    async def _admit(self, note_id: str) -> None:
        async with self._run_locks.hold(note_id):
            async with self._semaphore:
                self.active += 1
                self.peak_active = max(self.peak_active, self.active)
                try:
                    await self._runner(note_id)
                except Exception:
                    self.errors += 1
                    logger.exception(f"Run of {note_id} crashed")
                finally:
                    self.active -= 1
                    self.completed += 1

    async def wait_idle(self) -> None:
        """Wait until no task is pending, including ones submitted meanwhile."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def get_stats(self) -> dict:
        return {
            "max_concurrent": self.max_concurrent,
            "active": self.active,
            "peak_active": self.peak_active,
            "pending": self.pending,
            "submitted": self.submitted,
            "completed": self.completed,
            "errors": self.errors,
        }

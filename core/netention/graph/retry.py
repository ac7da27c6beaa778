"""
Retry Controller - supervises attempts with bounded retries and linear backoff.

Every failure is logged on the Note as ``"Error: <message>"`` and followed
by a non-blocking wait of ``attempt * base_delay``. When the attempts run
out the Note is marked failed with a final ``"max retries reached"``
entry. Nothing is re-raised: failures are observable only through the
Note's status and memory.

Callers are responsible for per-id serialization (see Scheduler and
NoteEngine.run).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from netention.errors import RetryExhaustedError
from netention.graph.executor import AttemptResult, Executor
from netention.observability import trace_scope
from netention.runtime.event_bus import EventBus
from netention.schemas.note import NoteStatus

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
BASE_DELAY = 1.0
EXHAUSTED_ENTRY = "max retries reached"

SleepFn = Callable[[float], Awaitable[None]]


class RetryController:
    """Wraps Executor.run with up to ``max_retries`` attempts."""

    def __init__(
        self,
        executor: Executor,
        max_retries: int = MAX_RETRIES,
        base_delay: float = BASE_DELAY,
        event_bus: EventBus | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self._executor = executor
        self.max_retries = max_retries
        self.base_delay = base_delay
        self._event_bus = event_bus
        self._sleep = sleep

    def backoff(self, attempt: int) -> float:
        return attempt * self.base_delay

    async def run(self, note_id: str, auto: bool = True) -> AttemptResult:
        with trace_scope(note_id=note_id):
            last_error: Exception | None = None

            for attempt in range(1, self.max_retries + 1):
                with trace_scope(attempt=attempt):
                    try:
                        result = await self._executor.run(note_id, auto=auto, attempt=attempt)
                        result.attempts = attempt
                        return result
                    except Exception as e:
                        last_error = e
                        delay = self.backoff(attempt)
                        logger.warning(
                            f"Attempt {attempt}/{self.max_retries} of {note_id} failed: {e}"
                        )
                        await self._executor.append_memory(note_id, f"Error: {e}")
                        if self._event_bus is not None:
                            await self._event_bus.emit_note_retry(
                                note_id, attempt, self.max_retries, str(e), delay
                            )
                        await self._sleep(delay)

            exhausted = RetryExhaustedError(note_id, self.max_retries, last_error)
            logger.error(str(exhausted))
            await self._executor.append_memory(note_id, EXHAUSTED_ENTRY, status=NoteStatus.FAILED)
            if self._event_bus is not None:
                await self._event_bus.emit_note_failed(note_id, str(last_error), self.max_retries)

            return AttemptResult(
                note_id=note_id,
                executed=True,
                status=NoteStatus.FAILED,
                attempts=self.max_retries,
                error=str(exhausted),
            )

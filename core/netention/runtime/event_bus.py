"""
Event Bus - Pub/sub event system for Note lifecycle notifications.

The Note Store publishes a NOTE_CHANGED event after every durable write;
the Scheduler subscribes to those. Everything else on the bus (attempt
started/completed, retries, pause/resume) is observational.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events that can be published."""

    # Store
    NOTE_CHANGED = "note_changed"

    # Attempt lifecycle
    NOTE_STARTED = "note_started"
    NOTE_COMPLETED = "note_completed"
    NOTE_RETRY = "note_retry"
    NOTE_FAILED = "note_failed"

    # Graph growth
    NOTE_SPAWNED = "note_spawned"

    # Global gate
    EXECUTION_PAUSED = "execution_paused"
    EXECUTION_RESUMED = "execution_resumed"


@dataclass
class NoteEvent:
    """An event about a single Note."""

    type: EventType
    note_id: str
    data: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def kind(self) -> str:
        """Short kind name (``"change"`` for store writes)."""
        if self.type == EventType.NOTE_CHANGED:
            return "change"
        return self.type.value

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "type": self.type.value,
            "note_id": self.note_id,
            "data": self.data,
            "timestamp": self.timestamp.isoformat(),
        }


# Type for event handlers
EventHandler = Callable[[NoteEvent], Awaitable[None]]


@dataclass
class Subscription:
    """A subscription to events."""

    id: str
    event_types: set[EventType]
    handler: EventHandler
    filter_note: str | None = None  # Only receive events about this note


class EventBus:
    """
    Pub/sub event bus.

    Features:
    - Async event handling
    - Type-based subscriptions
    - Per-note filtering
    - Event history for debugging

    Example:
        bus = EventBus()

        async def on_change(event: NoteEvent):
            print(f"{event.note_id} changed")

        bus.subscribe(event_types=[EventType.NOTE_CHANGED], handler=on_change)

        await bus.emit_note_changed("root")
    """

    def __init__(
        self,
        max_history: int = 1000,
        max_concurrent_handlers: int = 10,
    ):
        """
        Initialize event bus.

        Args:
            max_history: Maximum events to keep in history
            max_concurrent_handlers: Maximum concurrent handler executions
        """
        self._subscriptions: dict[str, Subscription] = {}
        self._event_history: list[NoteEvent] = []
        self._max_history = max_history
        self._semaphore = asyncio.Semaphore(max_concurrent_handlers)
        self._subscription_counter = 0
        self._lock = asyncio.Lock()

    def subscribe(
        self,
        event_types: list[EventType],
        handler: EventHandler,
        filter_note: str | None = None,
    ) -> str:
        """
        Subscribe to events.

        Args:
            event_types: Types of events to receive
            handler: Async function to call when event occurs
            filter_note: Only receive events about this note

        Returns:
            Subscription ID (use to unsubscribe)
        """
        self._subscription_counter += 1
        sub_id = f"sub_{self._subscription_counter}"

        self._subscriptions[sub_id] = Subscription(
            id=sub_id,
            event_types=set(event_types),
            handler=handler,
            filter_note=filter_note,
        )
        logger.debug(f"Subscription {sub_id} registered for {event_types}")

        return sub_id

    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns True if it existed."""
        if subscription_id in self._subscriptions:
            del self._subscriptions[subscription_id]
            logger.debug(f"Subscription {subscription_id} removed")
            return True
        return False

    async def publish(self, event: NoteEvent) -> None:
        """Publish an event to all matching subscribers."""
        async with self._lock:
            self._event_history.append(event)
            if len(self._event_history) > self._max_history:
                self._event_history = self._event_history[-self._max_history :]

        matching_handlers = [
            sub.handler for sub in self._subscriptions.values() if self._matches(sub, event)
        ]

        if matching_handlers:
            await self._execute_handlers(event, matching_handlers)

    def _matches(self, subscription: Subscription, event: NoteEvent) -> bool:
        if event.type not in subscription.event_types:
            return False
        if subscription.filter_note and subscription.filter_note != event.note_id:
            return False
        return True

    async def _execute_handlers(
        self,
        event: NoteEvent,
        handlers: list[EventHandler],
    ) -> None:
        """Execute handlers concurrently with rate limiting."""

        async def run_handler(handler: EventHandler) -> None:
            async with self._semaphore:
                try:
                    await handler(event)
                except Exception as e:
                    logger.error(f"Handler error for {event.type}: {e}")

        await asyncio.gather(*[run_handler(h) for h in handlers], return_exceptions=True)

    # === CONVENIENCE PUBLISHERS ===

    async def emit_note_changed(self, note_id: str) -> None:
        """Emit the change notification that drives scheduling."""
        await self.publish(NoteEvent(type=EventType.NOTE_CHANGED, note_id=note_id))

    async def emit_note_started(self, note_id: str, attempt: int) -> None:
        await self.publish(
            NoteEvent(type=EventType.NOTE_STARTED, note_id=note_id, data={"attempt": attempt})
        )

    async def emit_note_completed(
        self,
        note_id: str,
        status: str,
        capabilities: list[str] | None = None,
    ) -> None:
        await self.publish(
            NoteEvent(
                type=EventType.NOTE_COMPLETED,
                note_id=note_id,
                data={"status": status, "capabilities": capabilities or []},
            )
        )

    async def emit_note_retry(
        self,
        note_id: str,
        attempt: int,
        max_retries: int,
        error: str,
        delay: float,
    ) -> None:
        await self.publish(
            NoteEvent(
                type=EventType.NOTE_RETRY,
                note_id=note_id,
                data={
                    "attempt": attempt,
                    "max_retries": max_retries,
                    "error": error,
                    "delay": delay,
                },
            )
        )

    async def emit_note_failed(self, note_id: str, error: str, attempts: int) -> None:
        await self.publish(
            NoteEvent(
                type=EventType.NOTE_FAILED,
                note_id=note_id,
                data={"error": error, "attempts": attempts},
            )
        )

    async def emit_note_spawned(self, note_id: str, parent_id: str | None) -> None:
        await self.publish(
            NoteEvent(type=EventType.NOTE_SPAWNED, note_id=note_id, data={"parent": parent_id})
        )

    async def emit_execution_paused(self, control_id: str) -> None:
        await self.publish(NoteEvent(type=EventType.EXECUTION_PAUSED, note_id=control_id))

    async def emit_execution_resumed(self, control_id: str) -> None:
        await self.publish(NoteEvent(type=EventType.EXECUTION_RESUMED, note_id=control_id))

    # === QUERY OPERATIONS ===

    def get_history(
        self,
        event_type: EventType | None = None,
        note_id: str | None = None,
        limit: int = 100,
    ) -> list[NoteEvent]:
        """
        Get event history with optional filtering.

        Returns:
            List of matching events (most recent first)
        """
        events = self._event_history[::-1]

        if event_type:
            events = [e for e in events if e.type == event_type]
        if note_id:
            events = [e for e in events if e.note_id == note_id]

        return events[:limit]

    def get_stats(self) -> dict:
        """Get event bus statistics."""
        type_counts: dict[str, int] = {}
        for event in self._event_history:
            type_counts[event.type.value] = type_counts.get(event.type.value, 0) + 1

        return {
            "total_events": len(self._event_history),
            "subscriptions": len(self._subscriptions),
            "events_by_type": type_counts,
        }

    # === WAITING OPERATIONS ===

    async def wait_for(
        self,
        event_type: EventType,
        note_id: str | None = None,
        timeout: float | None = None,
    ) -> NoteEvent | None:
        """
        Wait for a specific event to occur.

        Returns:
            The event if received, None if timeout
        """
        result: NoteEvent | None = None
        event_received = asyncio.Event()

        async def handler(event: NoteEvent) -> None:
            nonlocal result
            result = event
            event_received.set()

        sub_id = self.subscribe(event_types=[event_type], handler=handler, filter_note=note_id)

        try:
            if timeout:
                try:
                    await asyncio.wait_for(event_received.wait(), timeout=timeout)
                except TimeoutError:
                    return None
            else:
                await event_received.wait()

            return result
        finally:
            self.unsubscribe(sub_id)

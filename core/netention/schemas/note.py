"""
Note Schema - The universal entity of the engine.

A Note combines data (content), behavior (logic) and state. Every other
entity in the system (memory log entries, the control gate, tool
descriptors) is a Note with a particular content shape.
"""

import threading
import time
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import AliasChoices, BaseModel, Field

ROOT_ID = "root"
CONTAINS = "contains"

_stamp_lock = threading.Lock()
_last_stamp = 0


def next_timestamp_ms() -> int:
    """Millisecond timestamp, strictly increasing within this process."""
    global _last_stamp
    with _stamp_lock:
        stamp = int(time.time() * 1000)
        if stamp <= _last_stamp:
            stamp = _last_stamp + 1
        _last_stamp = stamp
        return stamp


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


class NoteStatus(StrEnum):
    """Lifecycle status of a Note."""

    PENDING = "pending"  # Not eligible to auto-run until someone flips it
    RUNNING = "running"  # Eligible; the next change notification executes it
    DONE = "done"
    FAILED = "failed"


class NoteState(BaseModel):
    status: NoteStatus = NoteStatus.RUNNING
    priority: int = 50
    entropy: float = 0.0


class GraphEdge(BaseModel):
    """Outgoing, typed edge. The target may not exist (yet)."""

    target: str
    relation: str = Field(default=CONTAINS, validation_alias=AliasChoices("relation", "rel"))


class Resources(BaseModel):
    tokens: int = 100
    cycles: int = 100


class LogicStep(BaseModel):
    """One capability invocation in a sequential plan."""

    capability: str = Field(validation_alias=AliasChoices("capability", "tool"))
    input: dict[str, Any] = Field(default_factory=dict)


class NoteLogic(BaseModel):
    """
    Execution plan.

    Either ``{"type": "sequential", "steps": [...]}`` or the single-capability
    form where ``content.name`` picks the capability and ``input`` is its
    argument.
    """

    type: str | None = None
    steps: list[LogicStep] = Field(default_factory=list)
    input: dict[str, Any] | None = None

    model_config = {"extra": "allow"}

    @property
    def is_sequential(self) -> bool:
        return self.type == "sequential" or bool(self.steps)


class Note(BaseModel):
    """A self-describing unit of work."""

    id: str
    content: dict[str, Any] | str = Field(default_factory=dict)
    state: NoteState = Field(default_factory=NoteState)
    graph: list[GraphEdge] = Field(default_factory=list)
    memory: list[str] = Field(default_factory=list)
    context: list[str] = Field(default_factory=lambda: [ROOT_ID])
    resources: Resources = Field(default_factory=Resources)
    logic: NoteLogic = Field(default_factory=NoteLogic)
    ts: str = Field(default_factory=utc_now_iso)

    @property
    def status(self) -> NoteStatus:
        return self.state.status

    @property
    def parent_id(self) -> str:
        return self.context[0] if self.context else ROOT_ID

    @property
    def capability_name(self) -> str | None:
        if isinstance(self.content, dict):
            name = self.content.get("name")
            return name if isinstance(name, str) and name else None
        return None

    @property
    def is_memory(self) -> bool:
        return isinstance(self.content, str)

    def has_edge_to(self, target: str) -> bool:
        return any(edge.target == target for edge in self.graph)


def make_memory_note(owner_id: str, entry: str) -> Note:
    """Build an immutable log entry owned by ``owner_id``."""
    stamp = next_timestamp_ms()
    return Note(
        id=f"{owner_id}-{stamp}",
        content=entry,
        state=NoteState(status=NoteStatus.DONE, priority=0),
        context=[owner_id],
        resources=Resources(tokens=0, cycles=0),
    )

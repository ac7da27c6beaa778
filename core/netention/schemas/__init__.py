"""Pydantic models for Notes and the shapes exchanged with callers."""

from netention.schemas.note import (
    CONTAINS,
    ROOT_ID,
    GraphEdge,
    LogicStep,
    Note,
    NoteLogic,
    NoteState,
    NoteStatus,
    Resources,
    make_memory_note,
    next_timestamp_ms,
)
from netention.schemas.requests import (
    ControlCommand,
    Snapshot,
    SnapshotEdge,
    SnapshotNode,
    SpawnRequest,
)

__all__ = [
    "CONTAINS",
    "ROOT_ID",
    "ControlCommand",
    "GraphEdge",
    "LogicStep",
    "Note",
    "NoteLogic",
    "NoteState",
    "NoteStatus",
    "Resources",
    "Snapshot",
    "SnapshotEdge",
    "SnapshotNode",
    "SpawnRequest",
    "make_memory_note",
    "next_timestamp_ms",
]

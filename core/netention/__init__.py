"""
Netention - change-driven execution engine for Notes.

A Note bundles content, behavior and state. Saving a Note publishes a
change; the scheduler reacts by executing it under a global concurrency
bound, and capabilities such as ``spawn`` grow the graph from within.
"""

from netention.config import EngineConfig
from netention.errors import (
    ExecutionError,
    NetentionError,
    NotFoundError,
    RetryExhaustedError,
    ValidationError,
)
from netention.runtime.engine import NoteEngine
from netention.schemas import Note, NoteStatus, Snapshot, SpawnRequest

__version__ = "0.1.0"

__all__ = [
    "EngineConfig",
    "ExecutionError",
    "NetentionError",
    "Note",
    "NoteEngine",
    "NoteStatus",
    "NotFoundError",
    "RetryExhaustedError",
    "Snapshot",
    "SpawnRequest",
    "ValidationError",
]

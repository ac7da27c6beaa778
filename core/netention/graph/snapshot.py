"""Flatten the store into nodes + edges for external visualizers."""

from netention.schemas.note import Note
from netention.schemas.requests import Snapshot, SnapshotEdge, SnapshotNode


def snapshot_node(note: Note) -> SnapshotNode:
    if isinstance(note.content, dict):
        desc = note.content.get("desc")
        label = desc if isinstance(desc, str) else None
        note_type = note.content.get("type")
    else:
        label = note.content
        note_type = "memory"
    return SnapshotNode(
        id=note.id,
        label=label,
        status=note.state.status.value,
        priority=note.state.priority,
        type=note_type if isinstance(note_type, str) else None,
        context=list(note.context),
        ts=note.ts,
    )


def build_snapshot(notes: list[Note]) -> Snapshot:
    """Edges may point at ids that are not (yet) in ``notes``."""
    return Snapshot(
        nodes=[snapshot_node(note) for note in notes],
        edges=[
            SnapshotEdge(source=note.id, target=edge.target)
            for note in notes
            for edge in note.graph
        ],
    )

"""
Request and export shapes exchanged with callers outside the engine.

Spawn requests arrive from the spawn capability, the HTTP API and the CLI.
Older callers (and the bootstrap seed) nest ``id``, ``state``, ``context``,
``logic`` and ``resources`` inside ``content``; top-level fields win.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from netention.schemas.note import (
    ROOT_ID,
    Note,
    NoteLogic,
    NoteState,
    Resources,
    next_timestamp_ms,
)


class _NestedFields(BaseModel):
    """Same field types as SpawnRequest, for the copies nested in ``content``."""

    model_config = ConfigDict(extra="ignore", strict=True)

    id: str | None = None
    state: dict[str, Any] | None = None
    context: list[str] | None = None
    resources: dict[str, Any] | None = None
    logic: dict[str, Any] | None = None


class SpawnRequest(BaseModel):
    """Shape accepted by the spawn capability."""

    model_config = ConfigDict(extra="forbid", strict=True)

    id: str | None = None
    content: dict[str, Any] = Field(default_factory=dict)
    state: dict[str, Any] | None = None
    context: list[str] | None = None
    resources: dict[str, Any] | None = None
    logic: dict[str, Any] | None = None

    def nested_fields(self) -> _NestedFields:
        """
        Validate the fields nested in ``content``.

        Raises:
            pydantic.ValidationError: A nested field has the wrong type
        """
        return _NestedFields.model_validate(self.content)

    def _pick(self, key: str, nested: _NestedFields) -> Any:
        value = getattr(self, key)
        if value is None:
            value = getattr(nested, key)
        return value

    def resolve_id(self, nested: _NestedFields | None = None) -> str:
        explicit = self._pick("id", nested or self.nested_fields())
        if explicit:
            return explicit
        note_type = self.content.get("type") or "tool"
        return f"{note_type}-{next_timestamp_ms()}"

    def to_note(self, root_id: str = ROOT_ID) -> Note:
        """Materialize the request as a brand-new Note (no graph, no memory)."""
        nested = self.nested_fields()
        state = self._pick("state", nested)
        context = self._pick("context", nested)
        resources = self._pick("resources", nested)
        logic = self._pick("logic", nested)
        return Note(
            id=self.resolve_id(nested),
            content=dict(self.content),
            state=NoteState.model_validate(state) if state else NoteState(),
            context=list(context) if context else [root_id],
            resources=Resources.model_validate(resources) if resources else Resources(),
            logic=NoteLogic.model_validate(logic) if logic else NoteLogic(),
        )


class ControlCommand(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    command: Literal["pause", "resume"]
    desc: str | None = None


class SnapshotNode(BaseModel):
    id: str
    label: str | None = None
    status: str
    priority: int
    type: str | None = None
    context: list[str] = Field(default_factory=list)
    ts: str


class SnapshotEdge(BaseModel):
    source: str
    target: str


class Snapshot(BaseModel):
    """Read-only export of the whole store for visualizers."""

    nodes: list[SnapshotNode] = Field(default_factory=list)
    edges: list[SnapshotEdge] = Field(default_factory=list)

"""Bootstrap root Note."""

from netention.schemas.note import LogicStep, Note, NoteLogic, NoteState, NoteStatus, Resources


def _tool_step(name: str, desc: str, status: NoteStatus = NoteStatus.RUNNING) -> LogicStep:
    return LogicStep(
        capability="spawn",
        input={
            "content": {"type": "tool", "name": name, "desc": desc},
            "state": {"status": status.value},
        },
    )


def build_seed(root_id: str = "root") -> Note:
    """
    The root system Note. Running it spawns one tool Note per built-in
    capability. The spawn tool Note is never auto-executed and the control
    tool Note is parked as pending, since it needs a command to run.
    """
    return Note(
        id=root_id,
        content={
            "type": "system",
            "desc": "Netention: Self-evolving knowledge fabric",
            "config": {"maxMemory": 50, "tickRate": 10, "tokenBudget": 5000, "defaultPriority": 50},
            "metamodel": {
                "note": {"id": "string", "content": "any", "graph": "array"},
                "rules": ["spawn", "prune"],
            },
        },
        state=NoteState(status=NoteStatus.RUNNING, priority=100),
        context=[],
        resources=Resources(tokens=5000, cycles=10000),
        logic=NoteLogic(
            type="sequential",
            steps=[
                _tool_step("spawn", "Create Note"),
                _tool_step("code_gen", "Generate code"),
                _tool_step("reflect", "Self-analyze"),
                _tool_step("control", "Control execution", NoteStatus.PENDING),
            ],
        ),
    )

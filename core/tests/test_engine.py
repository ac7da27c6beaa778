"""End-to-end tests for the Note engine: seed, spawn, pause, retry, bounds."""

import asyncio
from pathlib import Path

import pytest

from netention import EngineConfig, NoteEngine, NoteStatus, ValidationError
from netention.errors import NotFoundError
from netention.graph.retry import EXHAUSTED_ENTRY
from netention.runtime.event_bus import EventType
from netention.schemas import LogicStep, Note, NoteLogic

# === HELPER FUNCTIONS ===


async def _no_sleep(delay: float) -> None:
    return None


def _engine(**config) -> NoteEngine:
    return NoteEngine(config=EngineConfig(**config), sleep=_no_sleep)


def _three_child_root() -> Note:
    return Note(
        id="root",
        content={"type": "system", "desc": "test root"},
        context=[],
        logic=NoteLogic(
            type="sequential",
            steps=[
                LogicStep(
                    capability="spawn",
                    input={"id": f"child-{i}", "content": {"type": "task"}},
                )
                for i in range(3)
            ],
        ),
    )


def _contains_edges(note: Note, target: str | None = None) -> list:
    return [
        e for e in note.graph if e.relation == "contains" and (target is None or e.target == target)
    ]


# === SEEDING ===


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_root_spawning_three_children(self):
        async with _engine() as engine:
            await engine.bootstrap(_three_child_root())

            notes = [n for n in await engine.list() if not n.is_memory]
            assert sorted(n.id for n in notes) == ["child-0", "child-1", "child-2", "root"]

            root = await engine.get("root")
            assert [e.target for e in _contains_edges(root)] == ["child-0", "child-1", "child-2"]
            assert root.status == NoteStatus.DONE
            assert root.content["last_spawned"] == "child-2"
            assert await engine.memory_log("root") == [
                "Spawned child-0",
                "Spawned child-1",
                "Spawned child-2",
            ]

    @pytest.mark.asyncio
    async def test_default_seed(self):
        async with _engine() as engine:
            await engine.bootstrap()

            root = await engine.get("root")
            assert root.status == NoteStatus.DONE
            assert len(_contains_edges(root)) == 4

            tools = {
                child.content["name"]: child
                for child in [await engine.get(e.target) for e in root.graph]
            }
            assert set(tools) == {"spawn", "code_gen", "reflect", "control"}
            # The spawn tool Note is never auto-run, the control Note is parked
            assert tools["spawn"].status == NoteStatus.RUNNING
            assert tools["spawn"].memory == []
            assert tools["control"].status == NoteStatus.PENDING
            assert tools["code_gen"].status == NoteStatus.DONE
            assert tools["reflect"].status == NoteStatus.DONE

    @pytest.mark.asyncio
    async def test_every_status_is_valid(self):
        async with _engine() as engine:
            await engine.bootstrap()
            for note in await engine.list():
                assert note.status in set(NoteStatus)

    @pytest.mark.asyncio
    async def test_reseeding_keeps_edges(self):
        async with _engine() as engine:
            await engine.bootstrap(_three_child_root())
            await engine.bootstrap(_three_child_root())

            root = await engine.get("root")
            assert len(_contains_edges(root)) == 3
            assert len(root.memory) == 6


# === SPAWN ===


class TestSpawn:
    @pytest.mark.asyncio
    async def test_spawn_twice_keeps_one_edge(self):
        async with _engine() as engine:
            await engine.bootstrap(Note(id="root", context=[]))

            await engine.spawn({"id": "x", "content": {"type": "task", "desc": "one"}})
            await engine.spawn({"id": "x", "content": {"type": "task", "desc": "two"}})
            await engine.wait_idle()

            root = await engine.get("root")
            assert len(_contains_edges(root, "x")) == 1
            assert (await engine.get("x")).content["desc"] == "two"

    @pytest.mark.asyncio
    async def test_upsert_preserves_graph_and_memory(self):
        async with _engine() as engine:
            engine.registry.register_function(lambda: {"memory": "ran"}, name="note_it")
            await engine.spawn(
                {
                    "id": "x",
                    "content": {"type": "tool", "name": "note_it"},
                    "context": [],
                }
            )
            await engine.wait_idle()
            before = await engine.get("x")
            assert len(before.memory) == 1

            await engine.spawn({"id": "x", "content": {"type": "task"}, "context": []})
            await engine.wait_idle()

            after = await engine.get("x")
            assert after.memory == before.memory
            assert after.ts == before.ts
            assert after.content == {"type": "task"}

    @pytest.mark.asyncio
    async def test_missing_parent_falls_back_to_root(self):
        async with _engine() as engine:
            await engine.bootstrap(Note(id="root", context=[]))

            await engine.spawn({"id": "orphan", "content": {"type": "task"}, "context": ["ghost"]})

            assert _contains_edges(await engine.get("root"), "orphan")

    @pytest.mark.asyncio
    async def test_generated_ids_are_distinct(self):
        async with _engine() as engine:
            notes = [await engine.spawn({"content": {"type": "task"}}) for _ in range(5)]
            assert len({n.id for n in notes}) == 5
            assert all(n.id.startswith("task-") for n in notes)

    @pytest.mark.asyncio
    async def test_invalid_request(self):
        async with _engine() as engine:
            with pytest.raises(ValidationError):
                await engine.spawn({"content": "not an object"})
            with pytest.raises(ValidationError):
                await engine.spawn({"content": {}, "unexpected": True})

    @pytest.mark.asyncio
    async def test_nested_fields_are_not_coerced(self):
        async with _engine() as engine:
            with pytest.raises(ValidationError):
                await engine.spawn({"content": {"type": "task", "context": "root"}})
            with pytest.raises(ValidationError):
                await engine.spawn({"content": {"type": "task", "id": 7}})
            assert await engine.list() == []

    @pytest.mark.asyncio
    async def test_parent_lists_child_before_child_runs(self):
        seen = []

        async with _engine() as engine:

            async def check():
                root = await engine.get("root")
                seen.append(root.has_edge_to("kid"))

            engine.registry.register_function(check)
            await engine.bootstrap(Note(id="root", context=[]))

            await engine.spawn({"id": "kid", "content": {"type": "tool", "name": "check"}})
            await engine.wait_idle()

            assert (await engine.get("kid")).status == NoteStatus.DONE

        assert seen == [True]

    @pytest.mark.asyncio
    async def test_configured_root_is_default_parent(self):
        async with _engine(root_id="top") as engine:
            await engine.bootstrap(Note(id="top", context=[]))

            note = await engine.spawn({"id": "x", "content": {"type": "task"}})
            control = await engine.control("pause")

            assert note.context == ["top"]
            assert control.context == ["top"]
            assert _contains_edges(await engine.get("top"), "x")

    @pytest.mark.asyncio
    async def test_unsafe_id_on_file_store(self, tmp_path: Path):
        async with _engine(store="file", store_path=str(tmp_path)) as engine:
            await engine.bootstrap(Note(id="root", context=[]))

            with pytest.raises(ValidationError, match="path separators"):
                await engine.spawn({"id": "../x", "content": {"type": "task"}})

            assert not (await engine.get("root")).has_edge_to("../x")

    @pytest.mark.asyncio
    async def test_spawned_event(self):
        async with _engine() as engine:
            await engine.spawn({"id": "x", "content": {"type": "task"}})
            events = engine.event_bus.get_history(EventType.NOTE_SPAWNED)
            assert events[0].note_id == "x"


class TestSelfSpawnGuard:
    @pytest.mark.asyncio
    async def test_not_auto_run(self):
        async with _engine() as engine:
            await engine.spawn({"id": "s", "content": {"type": "tool", "name": "spawn"}})
            await engine.wait_idle()

            note = await engine.get("s")
            assert note.status == NoteStatus.RUNNING
            assert note.memory == []
            assert engine.event_bus.get_history(EventType.NOTE_STARTED, note_id="s") == []

    @pytest.mark.asyncio
    async def test_explicit_run_executes(self):
        async with _engine() as engine:
            await engine.spawn(
                {
                    "id": "s",
                    "content": {"type": "tool", "name": "spawn"},
                    "logic": {"input": {"id": "made-by-s", "content": {"type": "task"}}},
                }
            )

            result = await engine.run("s")
            await engine.wait_idle()

            assert result.executed
            assert (await engine.get("s")).status == NoteStatus.DONE
            assert await engine.memory_log("s") == ["Spawned made-by-s"]
            assert await engine.store.exists("made-by-s")


# === CONTROL ===


class TestPauseGate:
    @pytest.mark.asyncio
    async def test_pause_blocks_then_resume_proceeds(self):
        calls = []

        async with _engine() as engine:
            engine.registry.register_function(lambda: calls.append(1), name="work")

            await engine.control("pause")
            assert await engine.is_paused()

            request = {"id": "w", "content": {"type": "tool", "name": "work"}, "context": []}
            await engine.spawn(request)
            await engine.wait_idle()

            assert calls == []
            assert (await engine.get("w")).status == NoteStatus.RUNNING

            await engine.control({"command": "resume"})
            assert calls == []

            # The next change proceeds
            await engine.spawn(request)
            await engine.wait_idle()

            assert calls == [1]
            assert (await engine.get("w")).status == NoteStatus.DONE

    @pytest.mark.asyncio
    async def test_control_note_created_lazily(self):
        async with _engine() as engine:
            with pytest.raises(NotFoundError):
                await engine.get("ui-status")

            await engine.control("pause")

            control = await engine.get("ui-status")
            assert control.content["paused"] is True
            assert control.status == NoteStatus.DONE
            assert engine.event_bus.get_history(EventType.EXECUTION_PAUSED)

    @pytest.mark.asyncio
    async def test_invalid_command(self):
        async with _engine() as engine:
            with pytest.raises(ValidationError):
                await engine.control("stop")

    @pytest.mark.asyncio
    async def test_control_capability_as_step(self):
        async with _engine() as engine:
            await engine.bootstrap(
                Note(
                    id="root",
                    context=[],
                    logic=NoteLogic(
                        steps=[LogicStep(capability="control", input={"command": "pause"})]
                    ),
                )
            )

            assert await engine.is_paused()
            assert await engine.memory_log("root") == ["Execution paused"]


# === FAILURES ===


class TestRetryThroughEngine:
    @pytest.mark.asyncio
    async def test_failing_note_ends_failed(self):
        delays = []

        async def record(delay: float) -> None:
            delays.append(delay)

        def explode():
            raise RuntimeError("nope")

        engine = NoteEngine(config=EngineConfig(retry_base_delay=0.25), sleep=record)
        async with engine:
            engine.registry.register_function(explode)
            await engine.spawn({"id": "f", "content": {"type": "tool", "name": "explode"}})
            await engine.wait_idle()

            note = await engine.get("f")
            assert note.status == NoteStatus.FAILED
            assert await engine.memory_log("f") == [
                "Error: explode: nope",
                "Error: explode: nope",
                "Error: explode: nope",
                EXHAUSTED_ENTRY,
            ]
            assert delays == [0.25, 0.5, 0.75]

    @pytest.mark.asyncio
    async def test_failure_does_not_block_siblings(self):
        def explode():
            raise RuntimeError("nope")

        async with _engine() as engine:
            engine.registry.register_function(explode)
            engine.registry.register_function(lambda: None, name="fine")

            await engine.spawn({"id": "bad", "content": {"type": "tool", "name": "explode"}})
            await engine.spawn({"id": "good", "content": {"type": "tool", "name": "fine"}})
            await engine.wait_idle()

            assert (await engine.get("bad")).status == NoteStatus.FAILED
            assert (await engine.get("good")).status == NoteStatus.DONE


# === BOUNDS ===


class TestConcurrencyBound:
    @pytest.mark.asyncio
    async def test_burst_respects_limit(self):
        limit = 2
        active = 0
        peak = 0

        async def slow():
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        async with _engine(max_concurrent=limit) as engine:
            engine.registry.register_function(slow)
            for i in range(limit + 5):
                await engine.spawn({"id": f"s{i}", "content": {"type": "tool", "name": "slow"}})
            await engine.wait_idle()

            assert peak <= limit
            assert engine.get_stats()["scheduler"]["peak_active"] <= limit
            for i in range(limit + 5):
                assert (await engine.get(f"s{i}")).status == NoteStatus.DONE


class TestContinuousNote:
    @pytest.mark.asyncio
    async def test_running_result_rearms(self):
        ticks = []

        def tick():
            ticks.append(1)
            return {"status": "running" if len(ticks) < 3 else "done"}

        async with _engine() as engine:
            engine.registry.register_function(tick)
            await engine.spawn({"id": "t", "content": {"type": "tool", "name": "tick"}})
            await engine.wait_idle()

            assert len(ticks) == 3
            assert (await engine.get("t")).status == NoteStatus.DONE


# === EXPORT / PERSISTENCE ===


class TestSnapshot:
    @pytest.mark.asyncio
    async def test_nodes_and_edges(self):
        async with _engine() as engine:
            await engine.bootstrap(_three_child_root())

            snapshot = await engine.snapshot()
            nodes = {node.id: node for node in snapshot.nodes}

            assert nodes["root"].label == "test root"
            assert nodes["root"].status == "done"
            assert nodes["child-0"].context == ["root"]
            memory_nodes = [n for n in snapshot.nodes if n.type == "memory"]
            assert sorted(n.label for n in memory_nodes) == [
                "Spawned child-0",
                "Spawned child-1",
                "Spawned child-2",
            ]
            assert {(e.source, e.target) for e in snapshot.edges} == {
                ("root", "child-0"),
                ("root", "child-1"),
                ("root", "child-2"),
            }


class TestDurableStore:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["sqlite", "file"])
    async def test_state_survives_restart(self, tmp_path: Path, kind: str):
        path = str(tmp_path / ("notes.db" if kind == "sqlite" else "notes"))

        async with _engine(store=kind, store_path=path) as engine:
            await engine.bootstrap(_three_child_root())
            expected = {note.id: note for note in await engine.list()}

        async with _engine(store=kind, store_path=path) as engine:
            restored = {note.id: note for note in await engine.list()}

        assert restored == expected

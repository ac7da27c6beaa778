"""
Command-line interface for Netention.

Usage:
    netention run                       seed the root Note and run to quiescence
    netention run --json                same, print the snapshot as JSON
    netention serve --port 8000         run the engine behind the HTTP API
    netention spawn --content '{"type": "task", "desc": "hello"}'
    netention control pause
    netention snapshot --store sqlite --path notes.db

The in-memory store lives for one command only; use --store sqlite or
--store file to carry Notes between invocations.
"""

import argparse
import asyncio
import json
import sys

from rich.console import Console
from rich.tree import Tree

from netention.config import EngineConfig
from netention.errors import NetentionError
from netention.observability import configure_logging
from netention.runtime.engine import NoteEngine
from netention.schemas.note import Note, NoteStatus
from netention.storage import STORE_KINDS

console = Console()

_STATUS_STYLE = {
    NoteStatus.PENDING: "yellow",
    NoteStatus.RUNNING: "cyan",
    NoteStatus.DONE: "green",
    NoteStatus.FAILED: "red",
}


def _load_config(args: argparse.Namespace) -> EngineConfig:
    return EngineConfig.load(
        store=args.store,
        store_path=args.path,
        max_concurrent=args.max_concurrent,
        log_level=args.log_level,
        api_host=getattr(args, "host", None),
        api_port=getattr(args, "port", None),
    )


def _label(note: Note) -> str:
    style = _STATUS_STYLE.get(note.status, "white")
    if isinstance(note.content, dict):
        kind = note.content.get("type", "?")
        desc = note.content.get("desc", "")
    else:
        kind, desc = "memory", note.content
    label = f"[bold]{note.id}[/bold] [dim]({kind})[/dim] [{style}]{note.status.value}[/{style}]"
    if desc:
        label += f" {desc}"
    if note.memory:
        label += f" [dim]- {len(note.memory)} log entries[/dim]"
    return label


def build_tree(notes: list[Note], root_id: str) -> Tree:
    """Render the containment graph below ``root_id``; memory Notes are folded into counts."""
    by_id = {note.id: note for note in notes}
    root = by_id.get(root_id)
    if root is None:
        return Tree(f"[red]{root_id} (missing)[/red]")

    tree = Tree(_label(root))
    seen = {root_id}

    def _walk(note: Note, branch: Tree) -> None:
        for edge in note.graph:
            child = by_id.get(edge.target)
            if child is None:
                branch.add(f"[dim]{edge.target} (missing)[/dim]")
                continue
            if child.id in seen:
                continue
            seen.add(child.id)
            _walk(child, branch.add(_label(child)))

    _walk(root, tree)
    return tree


async def _print_state(engine: NoteEngine, as_json: bool) -> None:
    if as_json:
        snapshot = await engine.snapshot()
        print(snapshot.model_dump_json(indent=2))
    else:
        console.print(build_tree(await engine.list(), engine.config.root_id))


# === COMMANDS ===


async def _run(config: EngineConfig, as_json: bool) -> int:
    async with NoteEngine(config=config) as engine:
        await engine.bootstrap()
        await _print_state(engine, as_json)
    return 0


async def _serve(config: EngineConfig, seed: bool) -> int:
    from netention.runtime.api_server import NoteServer, NoteServerConfig

    async with NoteEngine(config=config) as engine:
        if seed and not await engine.store.exists(config.root_id):
            await engine.bootstrap(wait=False)
        server = NoteServer(engine, NoteServerConfig(host=config.api_host, port=config.api_port))
        await server.start()
        console.print(f"[green]Serving on http://{config.api_host}:{server.port}[/green]")
        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()
    return 0


async def _spawn(config: EngineConfig, payload: dict, as_json: bool) -> int:
    async with NoteEngine(config=config) as engine:
        note = await engine.spawn(payload)
        await engine.wait_idle()
        note = await engine.get(note.id)
        if as_json:
            print(note.model_dump_json(indent=2))
        else:
            console.print(_label(note))
            for entry in await engine.memory_log(note.id):
                console.print(f"  [dim]{entry}[/dim]")
    return 0


async def _control(config: EngineConfig, command: str) -> int:
    async with NoteEngine(config=config) as engine:
        await engine.control(command)
        paused = await engine.is_paused()
    console.print(f"Execution {'[yellow]PAUSED' if paused else '[green]RUNNING'}[/]")
    return 0


async def _snapshot(config: EngineConfig, as_json: bool) -> int:
    async with NoteEngine(config=config) as engine:
        await _print_state(engine, as_json)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    return asyncio.run(_run(_load_config(args), args.json))


def cmd_serve(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(_serve(_load_config(args), not args.no_seed))
    except KeyboardInterrupt:
        return 0


def cmd_spawn(args: argparse.Namespace) -> int:
    try:
        payload = json.loads(args.content)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: --content is not valid JSON: {e}[/red]")
        return 2
    if not isinstance(payload, dict):
        console.print("[red]Error: --content must be a JSON object[/red]")
        return 2
    request = {"content": payload}
    if args.id:
        request["id"] = args.id
    return asyncio.run(_spawn(_load_config(args), request, args.json))


def cmd_control(args: argparse.Namespace) -> int:
    return asyncio.run(_control(_load_config(args), args.command_name))


def cmd_snapshot(args: argparse.Namespace) -> int:
    return asyncio.run(_snapshot(_load_config(args), args.json))


def register_commands(subparsers: argparse._SubParsersAction) -> None:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--store", choices=STORE_KINDS, default=None, help="Note store backend")
    common.add_argument("--path", default=None, help="Database file or directory for the store")
    common.add_argument("--max-concurrent", type=int, default=None, help="Concurrent run slots")
    common.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, ...)")

    run_parser = subparsers.add_parser("run", parents=[common], help="Seed the root Note and run")
    run_parser.add_argument("--json", action="store_true", help="Print the snapshot as JSON")
    run_parser.set_defaults(func=cmd_run)

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Serve the HTTP API")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--no-seed", action="store_true", help="Do not bootstrap the root")
    serve_parser.set_defaults(func=cmd_serve)

    spawn_parser = subparsers.add_parser("spawn", parents=[common], help="Spawn a Note")
    spawn_parser.add_argument("--content", required=True, help="Note content as a JSON object")
    spawn_parser.add_argument("--id", default=None, help="Explicit Note id")
    spawn_parser.add_argument("--json", action="store_true", help="Print the Note as JSON")
    spawn_parser.set_defaults(func=cmd_spawn)

    control_parser = subparsers.add_parser("control", parents=[common], help="Pause or resume")
    control_parser.add_argument("command_name", choices=["pause", "resume"], metavar="pause|resume")
    control_parser.set_defaults(func=cmd_control)

    snapshot_parser = subparsers.add_parser("snapshot", parents=[common], help="Show the store")
    snapshot_parser.add_argument("--json", action="store_true", help="Print as JSON")
    snapshot_parser.set_defaults(func=cmd_snapshot)


def main():
    parser = argparse.ArgumentParser(
        prog="netention",
        description="Netention - change-driven execution engine for Notes",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    register_commands(subparsers)

    args = parser.parse_args()

    config = _load_config(args)
    configure_logging(config.log_level, config.log_format)

    try:
        sys.exit(args.func(args))
    except NetentionError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()

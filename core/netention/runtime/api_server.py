"""
Note API Server - Thin HTTP surface over a running NoteEngine.

Uses aiohttp for a lightweight embedded server that runs within the
engine's asyncio loop. Handlers only translate HTTP to engine operations;
spawned Notes run asynchronously, so POST /notes answers 202.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any

from aiohttp import web

from netention.errors import NotFoundError, ValidationError
from netention.runtime.engine import NoteEngine

logger = logging.getLogger(__name__)


@dataclass
class NoteServerConfig:
    """Configuration for the Note HTTP server."""

    host: str = "127.0.0.1"
    port: int = 8000


def _error(message: str, status: int, **extra: Any) -> web.Response:
    return web.json_response({"error": message, **extra}, status=status)


class NoteServer:
    """
    Embedded HTTP server exposing spawn, control and read-only views.

    Routes:
        GET  /notes           every Note in the store
        GET  /notes/{id}      one Note
        GET  /snapshot        nodes + edges export
        POST /notes           spawn (202, the Note runs in the background)
        POST /control         {"command": "pause" | "resume"}

    Lifecycle:
        server = NoteServer(engine, NoteServerConfig(port=0))
        await server.start()
        # ... server running ...
        await server.stop()
    """

    def __init__(self, engine: NoteEngine, config: NoteServerConfig | None = None):
        self._engine = engine
        self._config = config or NoteServerConfig()
        self._app: web.Application | None = None
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/notes", self._list_notes)
        app.router.add_get("/notes/{note_id}", self._get_note)
        app.router.add_get("/snapshot", self._snapshot)
        app.router.add_post("/notes", self._spawn)
        app.router.add_post("/control", self._control)
        return app

    async def start(self) -> None:
        """Start the HTTP server."""
        self._app = self.build_app()
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await self._site.start()
        logger.info(f"Note server started on {self._config.host}:{self.port}")

    async def stop(self) -> None:
        """Stop the HTTP server gracefully."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
            self._app = None
            self._site = None
            logger.info("Note server stopped")

    @property
    def is_running(self) -> bool:
        return self._site is not None

    @property
    def port(self) -> int | None:
        """Return the actual listening port (useful when configured with port=0)."""
        if self._site and self._site._server and self._site._server.sockets:
            return self._site._server.sockets[0].getsockname()[1]
        return None

    # === HANDLERS ===

    async def _read_json(self, request: web.Request) -> Any:
        body = await request.read()
        if not body:
            return {}
        return json.loads(body)

    async def _list_notes(self, request: web.Request) -> web.Response:
        notes = await self._engine.list()
        return web.json_response([note.model_dump(mode="json") for note in notes])

    async def _get_note(self, request: web.Request) -> web.Response:
        note_id = request.match_info["note_id"]
        try:
            note = await self._engine.get(note_id)
        except NotFoundError as e:
            return _error(str(e), status=404)
        except ValidationError as e:
            return _error(str(e), status=400)
        return web.json_response(note.model_dump(mode="json"))

    async def _snapshot(self, request: web.Request) -> web.Response:
        snapshot = await self._engine.snapshot()
        return web.json_response(snapshot.model_dump(mode="json"))

    async def _spawn(self, request: web.Request) -> web.Response:
        try:
            payload = await self._read_json(request)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error("Request body is not valid JSON", status=400)
        if not isinstance(payload, dict):
            return _error("Spawn request must be a JSON object", status=400)

        try:
            note = await self._engine.spawn(payload)
        except ValidationError as e:
            return _error(str(e), status=400, details=e.errors)
        return web.json_response(note.model_dump(mode="json"), status=202)

    async def _control(self, request: web.Request) -> web.Response:
        try:
            payload = await self._read_json(request)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error("Request body is not valid JSON", status=400)
        if not isinstance(payload, dict):
            return _error("Control command must be a JSON object", status=400)

        try:
            note = await self._engine.control(payload)
        except ValidationError as e:
            return _error(str(e), status=400, details=e.errors)
        return web.json_response(note.model_dump(mode="json"))

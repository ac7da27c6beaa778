"""Parent/child linkage performed when a Note is spawned."""

import logging

from netention.runtime.note_locks import KeyedLocks
from netention.schemas.note import CONTAINS, ROOT_ID, GraphEdge, Note
from netention.storage.backend import NoteStore

logger = logging.getLogger(__name__)


class GraphBuilder:
    """
    Records a ``contains`` edge from a spawned Note's parent to the Note.

    The parent is ``context[0]``; when it does not exist the Note is hung
    under the root instead. Linking is idempotent: the edge is only added
    when the parent has no edge to that target yet.
    """

    def __init__(self, store: NoteStore, write_locks: KeyedLocks, root_id: str = ROOT_ID):
        self._store = store
        self._write_locks = write_locks
        self._root_id = root_id

    @property
    def root_id(self) -> str:
        return self._root_id

    async def resolve_parent(self, note: Note) -> str | None:
        parent_id = note.context[0] if note.context else self._root_id
        if parent_id == note.id:
            return None
        if await self._store.exists(parent_id):
            return parent_id
        if self._root_id not in (parent_id, note.id) and await self._store.exists(self._root_id):
            logger.warning(
                f"Parent {parent_id} of {note.id} not found, linking under {self._root_id}"
            )
            return self._root_id
        return None

    async def link(self, note: Note) -> str | None:
        """
        Link ``note`` into its parent. Returns the parent id, or None if
        there was nothing to link into.
        """
        parent_id = await self.resolve_parent(note)
        if parent_id is None:
            logger.debug(f"No parent available for {note.id}, skipping link")
            return None

        async with self._write_locks.hold(parent_id):
            parent = await self._store.load(parent_id)
            if parent.has_edge_to(note.id):
                return parent_id
            parent.graph.append(GraphEdge(target=note.id, relation=CONTAINS))
            await self._store.save(parent)

        logger.debug(f"Linked {parent_id} -[{CONTAINS}]-> {note.id}")
        return parent_id

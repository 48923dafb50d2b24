"""Hierarchy construction from a flat entry list.

Entries are stored in an arena keyed by id; parent/child links are id lists,
never object references, so a malformed snapshot cannot create a reference
cycle in memory.

Construction rules:

* **Duplicates** -- the last entry seen for an id wins.
* **Orphans** -- an entry whose parent id is not in the snapshot is placed
  under the synthetic trash collection instead of being dropped.
* **Cycles** -- an entry whose parent chain does not reach the root or trash
  within ``len(entries)`` hops is excluded and listed in ``excluded``.
* **Ordering** -- children are ordered by ``(name.casefold(), id)``.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone

from ..errors import NotFound
from .models import ROOT_ID, TRASH_ID, Entry, EntryKind

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

ROOT_ENTRY = Entry(
    id=ROOT_ID,
    parent_id=ROOT_ID,
    kind=EntryKind.COLLECTION,
    name="/",
    last_modified=_EPOCH,
)
TRASH_ENTRY = Entry(
    id=TRASH_ID,
    parent_id=ROOT_ID,
    kind=EntryKind.COLLECTION,
    name="trash",
    last_modified=_EPOCH,
)


def _sort_key(entry: Entry) -> tuple[str, str]:
    return (entry.name.casefold(), entry.id)


class Hierarchy:
    """An immutable rooted tree of entries.

    Use ``build_tree()`` rather than constructing this directly.

    Args:
        root_hash: Root hash of the snapshot the tree was built from.
        nodes: Arena of entries by id, including the synthetic root/trash.
        parents: Effective parent id of every non-root node.
        children: Child ids per collection id, in traversal order.
        excluded: Ids dropped because their parent chain never terminates.
    """

    def __init__(
        self,
        root_hash: str,
        nodes: dict[str, Entry],
        parents: dict[str, str],
        children: dict[str, list[str]],
        excluded: list[str],
    ) -> None:
        self.root_hash = root_hash
        self._nodes = nodes
        self._parents = parents
        self._children = children
        self.excluded = excluded

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Hierarchy):
            return NotImplemented
        return (
            self.root_hash == other.root_hash
            and self._nodes == other._nodes
            and self._children == other._children
        )

    def __len__(self) -> int:
        """Number of real entries in the tree (synthetic nodes excluded)."""
        return len(self._nodes) - 2

    def __contains__(self, entry_id: object) -> bool:
        return entry_id in self._nodes

    @property
    def root(self) -> Entry:
        return self._nodes[ROOT_ID]

    @property
    def trash(self) -> Entry:
        return self._nodes[TRASH_ID]

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def get(self, entry_id: str) -> Entry:
        """Return the entry with *entry_id*.

        Raises:
            NotFound: If the id is not in the tree.
        """
        try:
            return self._nodes[entry_id]
        except KeyError:
            raise NotFound(f"No entry with id {entry_id!r}") from None

    def children(self, entry_id: str) -> list[Entry]:
        """Children of *entry_id* in traversal order (empty for documents)."""
        return [self._nodes[c] for c in self._children.get(entry_id, [])]

    def parent(self, entry_id: str) -> Entry | None:
        """Return the parent entry, or ``None`` for the root."""
        entry = self.get(entry_id)
        if entry.id == ROOT_ID:
            return None
        return self._nodes[self._parents[entry.id]]

    def name_path(self, entry_id: str) -> list[str]:
        """Names from the root (exclusive) down to *entry_id*."""
        names: list[str] = []
        entry = self.get(entry_id)
        while entry.id != ROOT_ID:
            names.append(entry.name)
            entry = self._nodes[self._parents[entry.id]]
        names.reverse()
        return names

    def path_of(self, entry_id: str) -> str:
        """Slash-separated absolute path of *entry_id*."""
        return "/" + "/".join(self.name_path(entry_id))

    def resolve(self, path: str) -> Entry:
        """Resolve a slash-separated name path to an entry.

        ``/`` and the empty string resolve to the root.  When siblings
        share a name, the first in traversal order is returned.

        Raises:
            NotFound: If any component does not resolve.
        """
        current = self.root
        for part in (p for p in path.split("/") if p):
            if part == ".":
                continue
            if part == "..":
                current = self.parent(current.id) or current
                continue
            for child in self.children(current.id):
                if child.name == part:
                    current = child
                    break
            else:
                raise NotFound(f"Path not found: {path}")
        return current

    def list_dir(self, path: str = "/") -> list[Entry]:
        """List a collection: sub-collections first, then documents, each by name.

        Raises:
            NotFound: If *path* does not resolve to a collection.
        """
        entry = self.resolve(path)
        if not entry.is_collection:
            raise NotFound(f"Not a directory: {path}")
        return sorted(
            self.children(entry.id),
            key=lambda e: (not e.is_collection, e.name.casefold(), e.id),
        )

    def walk(self, entry_id: str = ROOT_ID) -> Iterator[Entry]:
        """Yield *entry_id* and all its descendants depth-first, pre-order."""
        stack = [entry_id]
        while stack:
            current = self._nodes[stack.pop()]
            yield current
            stack.extend(reversed(self._children.get(current.id, [])))

    def documents(self) -> list[Entry]:
        """All document entries reachable from the root."""
        return [e for e in self.walk() if not e.is_collection]


def _reaches_root(
    entry_id: str,
    parents: dict[str, str],
    limit: int,
    known_good: set[str],
) -> bool:
    """Follow parent links; True if root or trash is reached within *limit* hops."""
    seen: list[str] = []
    current = entry_id
    for _ in range(limit + 1):
        if current in known_good:
            known_good.update(seen)
            return True
        seen.append(current)
        parent = parents[current]
        if parent in (ROOT_ID, TRASH_ID):
            known_good.update(seen)
            return True
        current = parent
    return False


def build_tree(
    entries: Iterable[Entry], root_hash: str = ""
) -> Hierarchy:
    """Build a ``Hierarchy`` from a flat list of entries.

    Args:
        entries: Entries of one snapshot, in any order.
        root_hash: Root hash recorded on the resulting hierarchy.

    Returns:
        The hierarchy.  Entries in parent cycles are listed in
        ``Hierarchy.excluded`` rather than raising.
    """

    # Pass 1: index by id (last seen wins)
    index: dict[str, Entry] = {}
    excluded: list[str] = []
    for entry in entries:
        if entry.id in (ROOT_ID, TRASH_ID):
            logger.warning(
                "Entry %r reuses a reserved id, excluding it", entry.id
            )
            excluded.append(entry.id)
            continue
        if entry.id in index:
            logger.debug("Duplicate entry id %s, keeping last", entry.id)
        index[entry.id] = entry

    # Effective parent of every entry; unknown parents and document
    # parents both send the entry to trash
    parents: dict[str, str] = {TRASH_ID: ROOT_ID}
    for entry_id, entry in index.items():
        parent = entry.parent_id
        if parent in (ROOT_ID, TRASH_ID):
            pass
        elif parent not in index or not index[parent].is_collection:
            logger.debug(
                "Entry %s has no usable parent %r, moving to trash",
                entry_id,
                parent,
            )
            parent = TRASH_ID
        parents[entry_id] = parent

    known_good: set[str] = set()
    cyclic: list[str] = []
    limit = len(index)
    for entry_id in index:
        if not _reaches_root(entry_id, parents, limit, known_good):
            cyclic.append(entry_id)
    if cyclic:
        logger.warning(
            "Excluded %d entries whose parent chain loops: %s",
            len(cyclic),
            ", ".join(sorted(cyclic)),
        )
        excluded.extend(cyclic)

    nodes: dict[str, Entry] = {ROOT_ID: ROOT_ENTRY, TRASH_ID: TRASH_ENTRY}
    for entry_id, entry in index.items():
        if entry_id in known_good:
            nodes[entry_id] = entry

    # Pass 2: link children to parents
    children: dict[str, list[str]] = {ROOT_ID: [], TRASH_ID: []}
    for entry_id in nodes:
        if entry_id == ROOT_ID:
            continue
        children.setdefault(parents[entry_id], []).append(entry_id)

    for child_ids in children.values():
        child_ids.sort(key=lambda c: _sort_key(nodes[c]))

    return Hierarchy(
        root_hash=root_hash,
        nodes=nodes,
        parents={k: v for k, v in parents.items() if k in nodes},
        children=children,
        excluded=excluded,
    )

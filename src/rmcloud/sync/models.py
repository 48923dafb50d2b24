"""Pydantic models for the storage snapshot and the tree cache.

Defines the core data contracts used across sync and export:

- ``EntryKind``: Document or collection.
- ``Entry``: One node of the store's hierarchy.
- ``IndexEntry``: One decoded line of an index blob.
- ``RootPointer``: The hash identifying the whole store state.
- ``ManifestItem`` / ``ContentManifest``: The blobs composing a document.
- ``SyncStatus``: Synchronizer lifecycle states.
- ``CacheRecord``: The persisted snapshot.

All models are frozen (immutable).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import BaseModel

ROOT_ID = ""
TRASH_ID = "trash"

CACHE_FORMAT = "rmcloud-tree-cache"
CACHE_VERSION = 1


class EntryKind(str, Enum):
    """Kind of a hierarchy node."""

    DOCUMENT = "document"
    COLLECTION = "collection"


class Entry(BaseModel):
    """A document or collection in one snapshot of the store.

    Attributes:
        id: Entry id, unique within a snapshot.
        parent_id: Parent id; ``""`` for top level, ``"trash"`` for trashed.
        kind: Document or collection.
        name: Display name.
        hash: Hash of the entry's own index blob.
        last_modified: Last client-side modification time (UTC).
        version: Metadata version counter.
        pinned: Whether the entry is starred.
    """

    id: str
    parent_id: str = ROOT_ID
    kind: EntryKind = EntryKind.DOCUMENT
    name: str
    hash: str = ""
    last_modified: datetime
    version: int = 0
    pinned: bool = False

    model_config = {"frozen": True}

    @property
    def is_collection(self) -> bool:
        return self.kind == EntryKind.COLLECTION


class IndexEntry(BaseModel):
    """One ``hash:type:id:subfiles:size`` line of an index blob."""

    hash: str
    type_id: str
    id: str
    subfiles: int = 0
    size: int = 0

    model_config = {"frozen": True}


class RootPointer(BaseModel):
    """Current global state of the store."""

    hash: str
    generation: int = 0

    model_config = {"frozen": True}


class ManifestItem(BaseModel):
    """One blob of a document."""

    filename: str
    blob_hash: str
    size: int = 0

    model_config = {"frozen": True}


class ContentManifest(BaseModel):
    """Every blob composing one document, in index order."""

    doc_id: str
    items: list[ManifestItem] = []

    model_config = {"frozen": True}

    @property
    def filenames(self) -> list[str]:
        return [item.filename for item in self.items]


class SyncStatus(str, Enum):
    """Lifecycle of a ``RootSynchronizer``."""

    UNSYNCED = "unsynced"
    CHECKING = "checking"
    FRESH = "fresh"
    REBUILDING = "rebuilding"
    READY = "ready"


class CacheRecord(BaseModel):
    """The persisted snapshot: root hash plus the entry list it decoded to.

    The hierarchy is rebuilt from ``entries`` on load, which yields the same
    tree because tree construction is deterministic.
    """

    format: Literal["rmcloud-tree-cache"] = CACHE_FORMAT
    version: Literal[1] = CACHE_VERSION
    root_hash: str
    fetched_at: datetime
    entries: list[Entry] = []

    model_config = {"frozen": True}

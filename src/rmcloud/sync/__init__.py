"""Local mirror of the remote document hierarchy.

Architecture
------------
The remote store is content-addressed: a single root hash identifies the
whole state, so comparing it with the cached value is enough to decide
whether anything changed.

Modules:

- ``models``  -- ``Entry``, ``EntryKind``, ``RootPointer``,
  ``ContentManifest``, ``CacheRecord``, ``SyncStatus``: data contracts.
- ``index``   -- decoders for index blobs and metadata JSON.
- ``tree``    -- ``build_tree`` / ``Hierarchy``: arena tree with trash
  branch and cycle exclusion.
- ``cache``   -- ``CacheStore``: atomic JSON snapshot file.
- ``engine``  -- ``RootSynchronizer``: cache-hit or rebuild.

Usage example
-------------
::

    from rmcloud.core.client import StorageClient
    from rmcloud.sync import CacheStore, RootSynchronizer

    synchronizer = RootSynchronizer(
        client=StorageClient(config),
        cache_store=CacheStore(config.cache_path),
    )
    hierarchy = await synchronizer.sync()
    for entry in hierarchy.list_dir("/Notes"):
        print(entry.name)
"""

from .models import (
    CacheRecord,
    ContentManifest,
    Entry,
    EntryKind,
    ManifestItem,
    RootPointer,
    SyncStatus,
)
from .cache import CacheStore
from .tree import Hierarchy, build_tree
from .engine import RootSynchronizer

__all__ = [
    "CacheRecord",
    "CacheStore",
    "ContentManifest",
    "Entry",
    "EntryKind",
    "Hierarchy",
    "ManifestItem",
    "RootPointer",
    "RootSynchronizer",
    "SyncStatus",
    "build_tree",
]

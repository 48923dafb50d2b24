"""Root synchronizer: keeps the local hierarchy in step with the remote store.

The ``RootSynchronizer`` compares the remote root hash with the cached one:

1. Loads the cached snapshot once per session.
2. Fetches the current root pointer.
3. On a match, returns the cached hierarchy without touching any blob.
4. Otherwise fetches the root index blob, then fans out over every index
   entry to fetch its own index and metadata blobs concurrently.
5. Builds a new hierarchy, persists the snapshot atomically, and swaps it in.

Error handling is per-entry: an entry whose metadata cannot be fetched or
decoded is skipped and reported in ``warnings``.  Only a failure to fetch the
root pointer or the root index blob aborts the attempt, and then the previous
snapshot stays in place on disk and in memory.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ..core.async_utils import gather_limited, run_sync, run_sync_limited
from ..errors import PartialSyncWarning, RmCloudError
from .cache import CacheStore
from .index import (
    find_metadata_item,
    parse_index,
    parse_manifest,
    parse_metadata,
)
from .models import CacheRecord, Entry, IndexEntry, SyncStatus
from .tree import Hierarchy, build_tree

if TYPE_CHECKING:
    from ..core.client import StorageClient

logger = logging.getLogger(__name__)


class RootSynchronizer:
    """Own the session's hierarchy and refresh it from the remote store.

    Args:
        client: Storage client used for root pointer and blob reads.
        cache_store: Store for the persisted snapshot.
    """

    def __init__(
        self,
        client: StorageClient,
        cache_store: CacheStore,
    ) -> None:
        self.client = client
        self.cache_store = cache_store
        self.status = SyncStatus.UNSYNCED
        self.warnings: list[PartialSyncWarning] = []

        self._record: CacheRecord | None = None
        self._hierarchy: Hierarchy | None = None
        self._cache_loaded = False

    @property
    def hierarchy(self) -> Hierarchy | None:
        """Hierarchy from the last successful sync, or ``None``."""
        if self.status != SyncStatus.READY:
            return None
        return self._hierarchy

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    async def sync(self) -> Hierarchy:
        """Bring the hierarchy up to date with the remote root.

        Returns:
            The current hierarchy; its ``root_hash`` equals the remote root
            pointer.

        Raises:
            TransientNetworkError: If the root pointer or root index blob
                could not be fetched.
            RemoteRequestError: If the server rejected those requests.
        """
        previous = self.status
        self.status = SyncStatus.CHECKING
        self.warnings = []
        try:
            await self._ensure_cache_loaded()
            pointer = await run_sync_limited(self.client.get_root_pointer)

            if (
                self._record is not None
                and self._hierarchy is not None
                and self._record.root_hash == pointer.hash
            ):
                self.status = SyncStatus.FRESH
                logger.debug(
                    "Root hash %s unchanged, using cached tree", pointer.hash
                )
                self.status = SyncStatus.READY
                return self._hierarchy

            self.status = SyncStatus.REBUILDING
            logger.info("Root hash changed to %s, rebuilding tree", pointer.hash)
            hierarchy = await self._rebuild(pointer.hash)
        except BaseException:
            # Previous snapshot (if any) stays valid
            self.status = (
                SyncStatus.READY
                if previous == SyncStatus.READY
                else SyncStatus.UNSYNCED
            )
            raise

        self.status = SyncStatus.READY
        return hierarchy

    async def _ensure_cache_loaded(self) -> None:
        if self._cache_loaded:
            return
        record = await run_sync(self.cache_store.load)
        self._cache_loaded = True
        if record is None:
            return
        self._record = record
        self._hierarchy = build_tree(record.entries, root_hash=record.root_hash)
        logger.debug(
            "Loaded tree cache: root %s, %d entries",
            record.root_hash,
            len(record.entries),
        )

    # ------------------------------------------------------------------
    # Rebuild
    # ------------------------------------------------------------------

    async def _rebuild(self, root_hash: str) -> Hierarchy:
        """Fetch the full snapshot for *root_hash* and replace the cache."""
        index_blob = await run_sync_limited(self.client.get_blob, root_hash)
        try:
            index = parse_index(index_blob)
        except UnicodeDecodeError as exc:
            raise RmCloudError(
                f"Root index {root_hash} is not valid text: {exc}"
            ) from exc
        logger.debug("Root index lists %d entries", len(index))

        resolved = await gather_limited(
            [self._resolve_entry(item) for item in index]
        )
        entries = [entry for entry in resolved if entry is not None]

        if self.warnings:
            logger.warning(
                "Partial sync: skipped %d of %d entries",
                len(self.warnings),
                len(index),
            )

        hierarchy = build_tree(entries, root_hash=root_hash)
        record = CacheRecord(
            root_hash=root_hash,
            fetched_at=datetime.now(timezone.utc),
            entries=entries,
        )
        try:
            await run_sync(self.cache_store.save, record)
        except OSError as exc:
            # The in-memory tree is still correct for this session
            logger.error(
                "Failed to write tree cache %s: %s",
                self.cache_store.path,
                exc,
            )

        self._record = record
        self._hierarchy = hierarchy
        logger.info(
            "Synced %d entries at root %s", len(hierarchy), root_hash
        )
        return hierarchy

    async def _resolve_entry(self, item: IndexEntry) -> Entry | None:
        """Fetch and decode the metadata of one index entry.

        Returns ``None`` for deleted entries and for entries that had to be
        skipped; skips are recorded in ``warnings``.
        """
        try:
            entry_index = await run_sync_limited(
                self.client.get_blob, item.hash
            )
            manifest = parse_manifest(item.id, entry_index)
            meta_item = find_metadata_item(manifest)
            if meta_item is None:
                raise ValueError("index has no .metadata item")
            meta_blob = await run_sync_limited(
                self.client.get_blob, meta_item.blob_hash
            )
            return parse_metadata(item.id, item.hash, meta_blob)
        except (RmCloudError, ValueError) as exc:
            logger.warning("Skipping entry %s: %s", item.id, exc)
            self.warnings.append(PartialSyncWarning(item.id, str(exc)))
            return None

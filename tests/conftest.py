"""Shared pytest fixtures for rmcloud tests."""

from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from rmcloud.config import Config
from rmcloud.errors import NotFound, TransientNetworkError
from rmcloud.sync.models import ROOT_ID, Entry, EntryKind, RootPointer

COLLECTION_TYPE = "CollectionType"
DOCUMENT_TYPE = "DocumentType"


class FakeStorageClient:
    """Minimal StorageClient replacement for testing.

    Simulates the content-addressed store with an in-memory dict of blobs.
    Entries are added with ``add_document`` / ``add_collection`` and become
    visible once ``publish()`` writes a new root index.
    """

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.root_hash = ""
        self.generation = 0
        self.failing: set[str] = set()
        self.root_error: Exception | None = None
        self.blob_calls: list[str] = []
        self.root_calls = 0
        self._entries: dict[str, str] = {}

    # -- StorageClient API -------------------------------------------------

    def get_root_pointer(self) -> RootPointer:
        self.root_calls += 1
        if self.root_error is not None:
            raise self.root_error
        return RootPointer(hash=self.root_hash, generation=self.generation)

    def get_blob(self, blob_hash: str) -> bytes:
        self.blob_calls.append(blob_hash)
        if blob_hash in self.failing:
            raise TransientNetworkError(f"Failed to fetch blob {blob_hash}")
        if blob_hash not in self.blobs:
            raise NotFound(f"blob {blob_hash} not found on server")
        return self.blobs[blob_hash]

    # -- Store setup -------------------------------------------------------

    def put(self, data: bytes) -> str:
        blob_hash = hashlib.sha256(data).hexdigest()
        self.blobs[blob_hash] = data
        return blob_hash

    def put_index(self, rows: list[tuple[str, str, int]]) -> str:
        """Store an index blob from ``(hash, name, size)`` rows."""
        lines = ["3"]
        for blob_hash, name, size in rows:
            lines.append(f"{blob_hash}:0:{name}:0:{size}")
        return self.put(("\n".join(lines) + "\n").encode())

    def _add(
        self,
        entry_id: str,
        metadata: dict,
        files: dict[str, bytes],
        metadata_file: str | None = None,
    ) -> str:
        """Store an entry's index: content files first, then its metadata."""
        rows = []
        for filename, data in files.items():
            rows.append((self.put(data), filename, len(data)))
        meta_blob = json.dumps(metadata).encode()
        rows.append(
            (
                self.put(meta_blob),
                metadata_file or f"{entry_id}.metadata",
                len(meta_blob),
            )
        )
        index_hash = self.put_index(rows)
        self._entries[entry_id] = index_hash
        return index_hash

    def add_collection(
        self, entry_id: str, name: str, parent: str = ROOT_ID, **extra
    ) -> str:
        metadata = {
            "visibleName": name,
            "type": COLLECTION_TYPE,
            "parent": parent,
            "lastModified": "1700000000000",
            "version": 1,
        }
        metadata.update(extra)
        return self._add(entry_id, metadata, {})

    def add_document(
        self,
        entry_id: str,
        name: str,
        parent: str = ROOT_ID,
        files: dict[str, bytes] | None = None,
        metadata_file: str | None = None,
        **extra,
    ) -> str:
        metadata = {
            "visibleName": name,
            "type": DOCUMENT_TYPE,
            "parent": parent,
            "lastModified": "1700000000000",
            "version": 1,
        }
        metadata.update(extra)
        return self._add(entry_id, metadata, files or {}, metadata_file)

    def index_hash(self, entry_id: str) -> str:
        return self._entries[entry_id]

    def publish(self) -> str:
        """Write a root index over all added entries and point the root at it."""
        lines = ["3"]
        for entry_id, index_hash in self._entries.items():
            lines.append(f"{index_hash}:80000000:{entry_id}:1:0")
        self.root_hash = self.put(("\n".join(lines) + "\n").encode())
        self.generation += 1
        return self.root_hash


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance for testing."""
    return Config(
        token="test-token",
        storage_url="https://storage.example.com",
        insecure=False,
        cache_path=tmp_path / "cache" / "tree.cache",
    )


@pytest.fixture
def mock_storage_client(mock_config):
    """Create a mock StorageClient instance for testing."""
    from rmcloud.core.client import StorageClient

    client = MagicMock(spec=StorageClient)
    client.config = mock_config
    return client


@pytest.fixture
def fake_client():
    """In-memory storage with no entries yet."""
    return FakeStorageClient()


@pytest.fixture
def make_entry():
    """Factory fixture for hierarchy entries."""

    def _make(
        entry_id: str,
        name: str | None = None,
        parent_id: str = ROOT_ID,
        collection: bool = False,
        **kwargs,
    ) -> Entry:
        return Entry(
            id=entry_id,
            parent_id=parent_id,
            kind=EntryKind.COLLECTION if collection else EntryKind.DOCUMENT,
            name=name if name is not None else entry_id,
            last_modified=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
            **kwargs,
        )

    return _make


@pytest.fixture(autouse=True)
def _reset_request_semaphore():
    """Each test runs in its own event loop; never share a semaphore."""
    import rmcloud.core.async_utils as mod

    original = mod._semaphore
    yield
    mod._semaphore = original

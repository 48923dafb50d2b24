"""Decoders for the storage API's index blobs and entry metadata.

Index blobs (the root index and every document's own index) share one
line-oriented format::

    3
    <hash>:<type>:<id-or-filename>:<subfiles>:<size>
    ...

The first line is the schema version and is skipped.  Malformed lines are
skipped rather than rejected, matching what the service itself tolerates.

Metadata blobs are JSON objects using the device's camelCase keys.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

from .models import (
    ROOT_ID,
    ContentManifest,
    Entry,
    EntryKind,
    IndexEntry,
    ManifestItem,
)

logger = logging.getLogger(__name__)

COLLECTION_TYPE = "CollectionType"
METADATA_SUFFIX = ".metadata"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


def _iter_lines(blob: bytes) -> list[list[str]]:
    text = blob.decode("utf-8")
    rows = []
    for line in text.splitlines()[1:]:
        if not line.strip():
            continue
        parts = line.split(":")
        if len(parts) < 5:
            logger.debug("Skipping malformed index line: %r", line)
            continue
        rows.append(parts)
    return rows


def parse_index(blob: bytes) -> list[IndexEntry]:
    """Decode a root index blob into its entries.

    Raises:
        UnicodeDecodeError: If the blob is not UTF-8 text.
    """
    return [
        IndexEntry(
            hash=parts[0],
            type_id=parts[1],
            id=parts[2],
            subfiles=_to_int(parts[3]),
            size=_to_int(parts[4]),
        )
        for parts in _iter_lines(blob)
    ]


def parse_manifest(doc_id: str, blob: bytes) -> ContentManifest:
    """Decode a document's index blob into its content manifest."""
    return ContentManifest(
        doc_id=doc_id,
        items=[
            ManifestItem(
                filename=parts[2],
                blob_hash=parts[0],
                size=_to_int(parts[4]),
            )
            for parts in _iter_lines(blob)
        ],
    )


def find_metadata_item(manifest: ContentManifest) -> ManifestItem | None:
    """Return the manifest item holding the entry's metadata JSON."""
    for item in manifest.items:
        if item.filename.endswith(METADATA_SUFFIX):
            return item
    return None


def _parse_timestamp(raw: object) -> datetime:
    try:
        millis = int(str(raw))
        return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return _EPOCH


def parse_metadata(
    entry_id: str, index_hash: str, blob: bytes
) -> Entry | None:
    """Decode a metadata blob into an ``Entry``.

    Args:
        entry_id: Id of the entry, from the root index.
        index_hash: Hash of the entry's own index blob.
        blob: Raw metadata JSON.

    Returns:
        The entry, or ``None`` when the metadata marks it deleted.

    Raises:
        ValueError: If the blob is not a JSON object.
    """
    data = json.loads(blob)
    if not isinstance(data, dict):
        raise ValueError(
            f"metadata for {entry_id} is {type(data).__name__}, not an object"
        )
    if data.get("deleted"):
        logger.debug("Entry %s is a deletion tombstone", entry_id)
        return None

    kind = (
        EntryKind.COLLECTION
        if data.get("type") == COLLECTION_TYPE
        else EntryKind.DOCUMENT
    )
    return Entry(
        id=entry_id,
        parent_id=str(data.get("parent") or ROOT_ID),
        kind=kind,
        name=str(data.get("visibleName") or "Unknown"),
        hash=index_hash,
        last_modified=_parse_timestamp(data.get("lastModified")),
        version=_to_int(str(data.get("version") or 0)),
        pinned=bool(data.get("pinned", False)),
    )

"""Single-document export.

``DocumentExporter.export()`` turns one stored document into one local file:

- **PDF / EPUB** -- the primary content blob is copied byte for byte to
  ``<target>.pdf`` / ``<target>.epub``.
- **Notebook** -- every blob in the manifest goes into a zip archive
  ``<target>.rmdoc``, one stored (uncompressed) entry per blob, named by
  its original filename and written in manifest order.
- **Unknown** -- ``UnsupportedFormat`` is raised; nothing is written.

Outputs are replaced atomically, so re-exporting overwrites cleanly and a
failed export never leaves a partial file at the final path.
"""

from __future__ import annotations

import logging
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO, TypeVar

from ..core.async_utils import fetch_blobs, run_sync, run_sync_limited
from ..errors import IoFailure, IsACollection, SyncRequired, UnsupportedFormat
from ..file_handler import atomic_write, with_extension, write_bytes_atomic
from ..sync.index import parse_manifest
from ..sync.models import ContentManifest, Entry, ManifestItem
from .classify import DocumentFormat, classify
from .models import ExportedFile

if TYPE_CHECKING:
    from ..core.client import StorageClient
    from ..sync.tree import Hierarchy

T = TypeVar("T")
logger = logging.getLogger(__name__)


def write_archive(
    target: Path, blobs: list[tuple[ManifestItem, bytes]]
) -> int:
    """Atomically write a ``.rmdoc`` zip holding *blobs* in the given order.

    Duplicate filenames keep their first occurrence.

    Returns:
        Size of the archive in bytes.
    """

    def _write(fh: BinaryIO) -> None:
        written: set[str] = set()
        with zipfile.ZipFile(fh, "w", compression=zipfile.ZIP_STORED) as zf:
            for item, data in blobs:
                if item.filename in written:
                    logger.warning(
                        "Duplicate manifest filename %s, keeping first",
                        item.filename,
                    )
                    continue
                written.add(item.filename)
                zf.writestr(item.filename, data)

    return atomic_write(target, _write)


class DocumentExporter:
    """Export documents of a synced hierarchy to local files.

    Args:
        client: Storage client for manifest and content blobs.
        hierarchy: Hierarchy from the last sync, or ``None`` if no sync
            has completed.
    """

    def __init__(
        self, client: StorageClient, hierarchy: Hierarchy | None
    ) -> None:
        self.client = client
        self.hierarchy = hierarchy

    def _document(self, doc_id: str) -> Entry:
        if self.hierarchy is None:
            raise SyncRequired("No hierarchy available; sync first")
        entry = self.hierarchy.get(doc_id)
        if entry.is_collection:
            raise IsACollection(
                f"{entry.name} is a directory. Use -r to download recursively."
            )
        return entry

    async def fetch_manifest(self, doc_id: str) -> ContentManifest:
        """Fetch and decode the content manifest of one document.

        Raises:
            NotFound: If *doc_id* is not in the hierarchy.
            IsACollection: If *doc_id* is a folder.
            TransientNetworkError: If the manifest blob cannot be fetched.
        """
        entry = self._document(doc_id)
        blob = await run_sync_limited(self.client.get_blob, entry.hash)
        try:
            return parse_manifest(doc_id, blob)
        except UnicodeDecodeError as exc:
            raise UnsupportedFormat(
                f"Manifest of {entry.name} is not valid text: {exc}"
            ) from exc

    async def export(
        self, doc_id: str, target_path: Path | str
    ) -> ExportedFile:
        """Export one document.

        Args:
            doc_id: Id of the document in the hierarchy.
            target_path: Output path without extension; the extension for
                the detected format is appended.

        Returns:
            Details of the written file.

        Raises:
            NotFound: If the document or one of its blobs does not exist.
            UnsupportedFormat: If the manifest matches no export format.
            IoFailure: If the output cannot be written.
            TransientNetworkError: If a blob fetch fails.
        """
        target_path = Path(target_path)
        manifest = await self.fetch_manifest(doc_id)
        result = classify(manifest)

        if result.format == DocumentFormat.UNKNOWN:
            raise UnsupportedFormat(
                f"Cannot export {target_path.name}: no PDF, EPUB or "
                f"notebook content in manifest ({len(manifest.items)} items)"
            )

        output = with_extension(target_path, result.format.extension)

        if result.primary is not None:
            logger.info("Downloading %s to %s", result.primary.filename, output)
            data = await run_sync_limited(
                self.client.get_blob, result.primary.blob_hash
            )
            size = await self._write(output, write_bytes_atomic, data)
            blob_count = 1
        else:
            logger.info(
                "Creating rmdoc at %s from %d blobs",
                output,
                len(manifest.items),
            )
            payloads = await fetch_blobs(
                self.client.get_blob,
                [item.blob_hash for item in manifest.items],
            )
            blobs = list(zip(manifest.items, payloads))
            size = await self._write(output, write_archive, blobs)
            blob_count = len(blobs)

        return ExportedFile(
            doc_id=doc_id,
            path=str(output),
            format=result.format,
            size=size,
            blob_count=blob_count,
        )

    async def _write(
        self, output: Path, writer: Callable[[Path, T], int], payload: T
    ) -> int:
        try:
            await run_sync(output.parent.mkdir, parents=True, exist_ok=True)
            return await run_sync(writer, output, payload)
        except OSError as exc:
            raise IoFailure(output, exc.strerror or str(exc)) from exc

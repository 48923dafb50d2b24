"""Recursive export of a hierarchy subtree.

``export_tree()`` is the one entry point for exporting a folder, shared by
the ``get -r`` command and any other caller.  It:

1. Mirrors every collection as a local directory.
2. Resolves sibling output-name collisions up front (a document claims
   its name with every possible extension), in traversal order, so each
   node's output path depends only on the tree, not on execution order.
3. Exports documents of one folder sequentially and walks sibling
   sub-folders concurrently.
4. Records every document's outcome in an ``ExportReport``.

Error handling is per-document: a failed export is recorded and the walk
continues.  Only a missing hierarchy aborts the walk.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from ..core.async_utils import gather_limited, run_sync
from ..errors import RmCloudError, SyncRequired
from ..file_handler import disambiguate, safe_filename
from ..sync.models import ROOT_ID, Entry
from ..sync.tree import Hierarchy
from .classify import OUTPUT_EXTENSIONS
from .exporter import DocumentExporter
from .models import ExportReport, ExportResult

logger = logging.getLogger(__name__)


class _Walk:
    """State for one ``export_tree()`` call."""

    def __init__(
        self, exporter: DocumentExporter, hierarchy: Hierarchy
    ) -> None:
        self.exporter = exporter
        self.hierarchy = hierarchy

    async def document(self, entry: Entry, base: Path) -> ExportResult:
        source_path = self.hierarchy.path_of(entry.id)
        try:
            exported = await self.exporter.export(entry.id, base)
        except (RmCloudError, OSError) as exc:
            logger.error("Failed to export %s: %s", source_path, exc)
            return ExportResult(
                doc_id=entry.id,
                source_path=source_path,
                target=str(base),
                success=False,
                error=str(exc),
            )
        logger.info("Downloaded %s", source_path)
        return ExportResult(
            doc_id=entry.id,
            source_path=source_path,
            target=str(base),
            success=True,
            path=exported.path,
            format=exported.format,
        )

    def fail_subtree(
        self, entry: Entry, local_dir: Path, reason: str
    ) -> list[ExportResult]:
        """Failed results for every document below a directory that could not be made."""
        return [
            ExportResult(
                doc_id=doc.id,
                source_path=self.hierarchy.path_of(doc.id),
                target=str(local_dir),
                success=False,
                error=reason,
            )
            for doc in self.hierarchy.walk(entry.id)
            if not doc.is_collection
        ]

    async def collection(
        self, entry: Entry, local_dir: Path
    ) -> tuple[list[ExportResult], list[str]]:
        """Export a folder; returns its results and the directories created."""
        try:
            await run_sync(local_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            logger.error("Cannot create directory %s: %s", local_dir, exc)
            return (
                self.fail_subtree(
                    entry,
                    local_dir,
                    f"cannot create directory {local_dir}: {exc}",
                ),
                [],
            )
        directories = [str(local_dir)]
        logger.debug("Created directory %s", local_dir)

        children = self.hierarchy.children(entry.id)
        # The format is only known after the manifest is fetched, so a
        # document claims every extension it might get
        names = disambiguate(
            [safe_filename(c.name) for c in children],
            [() if c.is_collection else OUTPUT_EXTENSIONS for c in children],
        )
        planned = list(zip(children, names))

        per_child: dict[str, list[ExportResult]] = {}
        for child, name in planned:
            if not child.is_collection:
                per_child[child.id] = [
                    await self.document(child, local_dir / name)
                ]

        folders = [(c, n) for c, n in planned if c.is_collection]
        nested = await gather_limited(
            [self.collection(c, local_dir / n) for c, n in folders]
        )
        for (child, _), (results, created) in zip(folders, nested):
            per_child[child.id] = results
            directories.extend(created)

        ordered: list[ExportResult] = []
        for child, _ in planned:
            ordered.extend(per_child[child.id])
        return ordered, directories


async def export_tree(
    exporter: DocumentExporter,
    root: Entry,
    target_dir: Path | str,
) -> ExportReport:
    """Export *root* and everything below it into *target_dir*.

    A collection becomes ``target_dir/<name>/...``; the hierarchy root is
    exported directly into *target_dir*.  A document root is exported as
    ``target_dir/<name>.<ext>``.

    Args:
        exporter: Exporter bound to the synced hierarchy.
        root: Entry to start from (document or collection).
        target_dir: Local destination directory.

    Returns:
        The report; it lists one result per document, failures included.

    Raises:
        SyncRequired: If the exporter has no hierarchy.
    """
    hierarchy = exporter.hierarchy
    if hierarchy is None:
        raise SyncRequired("No hierarchy available; sync first")

    target_dir = Path(target_dir)
    started_at = datetime.now(timezone.utc).isoformat()
    walk = _Walk(exporter, hierarchy)
    directories: list[str] = []

    if not root.is_collection:
        try:
            await run_sync(target_dir.mkdir, parents=True, exist_ok=True)
        except OSError as exc:
            results = walk.fail_subtree(
                root, target_dir, f"cannot create directory {target_dir}: {exc}"
            )
        else:
            results = [
                await walk.document(root, target_dir / safe_filename(root.name))
            ]
    elif root.id == ROOT_ID:
        results, directories = await walk.collection(root, target_dir)
    else:
        results, directories = await walk.collection(
            root, target_dir / safe_filename(root.name)
        )

    report = ExportReport(
        root_path=hierarchy.path_of(root.id),
        target_dir=str(target_dir),
        results=results,
        directories=directories,
        started_at=started_at,
        completed_at=datetime.now(timezone.utc).isoformat(),
    )
    logger.info(report.summary())
    return report

"""Report formatting functions.

Provides human-readable and machine-readable output for the commands:

- ``format_export_report`` -- full post-export summary.
- ``report_to_json`` -- structured dict for an export report.
- ``format_sync_summary`` -- short post-sync summary.
- ``format_listing`` -- one line per entry for ``ls``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..errors import PartialSyncWarning
    from ..sync.models import Entry
    from ..sync.tree import Hierarchy
    from .models import ExportReport

LISTING_NAME_WIDTH = 40
LISTING_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# ------------------------------------------------------------------
# Export report
# ------------------------------------------------------------------


def format_export_report(report: ExportReport) -> str:
    """Format a recursive export report as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        report: The completed export report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append(f"Export report for '{report.root_path}' -> {report.target_dir}")
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    lines.append("")

    lines.append(report.summary())
    lines.append("")

    if report.completed:
        lines.append("Exported:")
        for r in report.completed:
            lines.append(f"  {r.source_path} -> {r.path}")
        lines.append("")

    if report.failed:
        lines.append("Failed:")
        for r in report.failed:
            lines.append(f"  {r.source_path}: {r.error}")
        lines.append("")

    return "\n".join(lines).rstrip()


def report_to_json(report: ExportReport) -> dict:
    """Convert an export report to a structured dict for JSON serialisation.

    Args:
        report: The export report.

    Returns:
        Dict with root info, counts, and per-document details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "doc_id": r.doc_id,
            "source_path": r.source_path,
            "success": r.success,
        }
        if r.path:
            entry["path"] = r.path
        if r.format is not None:
            entry["format"] = r.format.value
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "root_path": report.root_path,
        "target_dir": report.target_dir,
        "started_at": report.started_at,
        "completed_at": report.completed_at,
        "counts": {
            "total": len(report.results),
            "exported": len(report.completed),
            "failed": len(report.failed),
            "directories": len(report.directories),
        },
        "results": results_list,
    }


# ------------------------------------------------------------------
# Sync summary
# ------------------------------------------------------------------


def format_sync_summary(
    hierarchy: Hierarchy, warnings: list[PartialSyncWarning]
) -> str:
    """Format the outcome of a sync: root hash, entry counts, skipped entries."""
    documents = sum(1 for _ in hierarchy.documents())
    lines = [
        f"Root hash: {hierarchy.root_hash}",
        f"Entries: {len(hierarchy)} ({documents} documents, "
        f"{len(hierarchy) - documents} folders)",
    ]
    if hierarchy.excluded:
        lines.append(
            f"Excluded (cyclic parents): {', '.join(sorted(hierarchy.excluded))}"
        )
    if warnings:
        lines.append(f"Skipped {len(warnings)} entries:")
        for w in warnings:
            lines.append(f"  {w.entry_id}: {w.reason}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# Listing
# ------------------------------------------------------------------


def format_listing(entries: list[Entry]) -> str:
    """Format folder contents, one ``name[/]  timestamp`` line per entry."""
    lines = []
    for entry in entries:
        name = f"{entry.name}/" if entry.is_collection else entry.name
        stamp = entry.last_modified.strftime(LISTING_TIME_FORMAT)
        lines.append(f"{name:<{LISTING_NAME_WIDTH}} {stamp}")
    return "\n".join(lines)

"""Tests for report formatting functions.

Covers:
- format_export_report with successes and failures
- report_to_json structure and completeness
- format_sync_summary with and without skipped entries
- format_listing line layout
"""

from __future__ import annotations

from rmcloud.errors import PartialSyncWarning
from rmcloud.export.classify import DocumentFormat
from rmcloud.export.models import ExportReport, ExportResult
from rmcloud.export.reporter import (
    format_export_report,
    format_listing,
    format_sync_summary,
    report_to_json,
)
from rmcloud.sync.tree import build_tree

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _ok(doc_id: str, source: str, path: str) -> ExportResult:
    return ExportResult(
        doc_id=doc_id,
        source_path=source,
        target=path.rsplit(".", 1)[0],
        success=True,
        path=path,
        format=DocumentFormat.PDF,
    )


def _failed(doc_id: str, source: str, error: str) -> ExportResult:
    return ExportResult(
        doc_id=doc_id,
        source_path=source,
        target=f"out{source}",
        success=False,
        error=error,
    )


def _make_report(results: list[ExportResult] | None = None) -> ExportReport:
    """Build an ExportReport with sensible defaults."""
    return ExportReport(
        root_path="/Folder",
        target_dir="out",
        results=results or [],
        directories=["out/Folder"],
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:00:05+00:00",
    )


# ---------------------------------------------------------------------------
# Export report
# ---------------------------------------------------------------------------


class TestFormatExportReport:
    """Tests for format_export_report()."""

    def test_sections(self):
        report = _make_report(
            [
                _ok("1", "/Folder/Paper", "out/Folder/Paper.pdf"),
                _failed("2", "/Folder/Image", "unsupported"),
            ]
        )
        text = format_export_report(report)

        assert text.startswith("Export report for '/Folder' -> out")
        assert "Exported 1 of 2 documents from /Folder (1 failed)" in text
        assert "  /Folder/Paper -> out/Folder/Paper.pdf" in text
        assert "Failed:\n  /Folder/Image: unsupported" in text

    def test_empty_sections_omitted(self):
        text = format_export_report(_make_report())
        assert "Exported:" not in text
        assert "Failed:" not in text
        assert text.endswith("(0 failed)")


class TestReportToJson:
    """Tests for report_to_json()."""

    def test_structure(self):
        report = _make_report(
            [
                _ok("1", "/Folder/Paper", "out/Folder/Paper.pdf"),
                _failed("2", "/Folder/Image", "unsupported"),
            ]
        )
        data = report_to_json(report)

        assert data["root_path"] == "/Folder"
        assert data["counts"] == {
            "total": 2,
            "exported": 1,
            "failed": 1,
            "directories": 1,
        }
        assert data["results"][0] == {
            "doc_id": "1",
            "source_path": "/Folder/Paper",
            "success": True,
            "path": "out/Folder/Paper.pdf",
            "format": "pdf",
        }
        assert data["results"][1]["error"] == "unsupported"
        assert "path" not in data["results"][1]


# ---------------------------------------------------------------------------
# Sync summary and listing
# ---------------------------------------------------------------------------


class TestFormatSyncSummary:
    """Tests for format_sync_summary()."""

    def test_counts(self, make_entry):
        tree = build_tree(
            [
                make_entry("f", "Folder", collection=True),
                make_entry("d", "Doc", parent_id="f"),
            ],
            root_hash="r1",
        )
        text = format_sync_summary(tree, [])
        assert text == "Root hash: r1\nEntries: 2 (1 documents, 1 folders)"

    def test_skipped_and_excluded(self, make_entry):
        tree = build_tree(
            [make_entry("a", collection=True, parent_id="a")], root_hash="r"
        )
        text = format_sync_summary(
            tree, [PartialSyncWarning("x", "HTTP 500")]
        )
        assert "Excluded (cyclic parents): a" in text
        assert "Skipped 1 entries:\n  x: HTTP 500" in text


class TestFormatListing:
    """Tests for format_listing()."""

    def test_lines(self, make_entry):
        text = format_listing(
            [
                make_entry("f", "Folder", collection=True),
                make_entry("d", "Doc"),
            ]
        )
        lines = text.splitlines()
        assert lines[0].startswith("Folder/ ")
        assert lines[0].endswith("2024-01-02 03:04:05")
        assert lines[1].startswith("Doc ")
        assert len(lines[0]) == len(lines[1]) == 40 + 1 + 19

    def test_empty(self):
        assert format_listing([]) == ""

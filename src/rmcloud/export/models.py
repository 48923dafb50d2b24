"""Pydantic models for export results.

- ``ExportedFile``: One successfully written output.
- ``ExportResult``: Outcome of exporting one document during a walk.
- ``ExportReport``: Aggregate results for a recursive export.

All models are frozen (immutable).
"""

from __future__ import annotations

from pydantic import BaseModel

from .classify import DocumentFormat


class ExportedFile(BaseModel):
    """A document written to disk.

    Attributes:
        doc_id: Id of the exported document.
        path: Final output path, extension included.
        format: Detected format.
        size: Output size in bytes.
        blob_count: Number of blobs written (1 for PDF/EPUB).
    """

    doc_id: str
    path: str
    format: DocumentFormat
    size: int
    blob_count: int

    model_config = {"frozen": True}


class ExportResult(BaseModel):
    """Outcome of exporting one document.

    Attributes:
        doc_id: Document id.
        source_path: Path of the document in the remote hierarchy.
        target: Output path without extension.
        success: Whether the export succeeded.
        path: Final output path when successful.
        format: Detected format when known.
        error: Error message if the export failed.
    """

    doc_id: str
    source_path: str
    target: str
    success: bool
    path: str | None = None
    format: DocumentFormat | None = None
    error: str | None = None

    model_config = {"frozen": True}


class ExportReport(BaseModel):
    """Aggregate report for a recursive export.

    Attributes:
        root_path: Remote path the walk started from.
        target_dir: Local directory the walk wrote into.
        results: One result per document visited, in traversal order.
        directories: Local directories created, in traversal order.
        started_at: ISO 8601 timestamp when the walk started.
        completed_at: ISO 8601 timestamp when the walk finished.
    """

    root_path: str
    target_dir: str
    results: list[ExportResult] = []
    directories: list[str] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def completed(self) -> list[ExportResult]:
        """Results where the export succeeded."""
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> list[ExportResult]:
        """Results where the export failed."""
        return [r for r in self.results if not r.success]

    def summary(self) -> str:
        """One-line count summary."""
        return (
            f"Exported {len(self.completed)} of {len(self.results)} documents "
            f"from {self.root_path} ({len(self.failed)} failed)"
        )

"""Export of stored documents to local files.

Modules:

- ``classify``     -- ``classify`` / ``DocumentFormat``: format from manifest.
- ``models``       -- ``ExportedFile``, ``ExportResult``, ``ExportReport``.
- ``exporter``     -- ``DocumentExporter``: one document to one file.
- ``orchestrator`` -- ``export_tree``: recursive export of a subtree.
- ``reporter``     -- text and JSON rendering of reports.
"""

from .classify import Classification, DocumentFormat, classify
from .models import ExportedFile, ExportReport, ExportResult
from .exporter import DocumentExporter
from .orchestrator import export_tree
from .reporter import (
    format_export_report,
    format_listing,
    format_sync_summary,
    report_to_json,
)

__all__ = [
    "Classification",
    "DocumentExporter",
    "DocumentFormat",
    "ExportReport",
    "ExportResult",
    "ExportedFile",
    "classify",
    "export_tree",
    "format_export_report",
    "format_listing",
    "format_sync_summary",
    "report_to_json",
]

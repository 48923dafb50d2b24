"""Format classification of a document from its content manifest.

Classification is a pure function of manifest filenames; nothing is fetched.
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel

from ..sync.models import ContentManifest, ManifestItem

logger = logging.getLogger(__name__)

# Parts that only native notebooks carry; every document has a .metadata
# item, so it says nothing about the format
NOTEBOOK_SUFFIXES = (".content", ".pagedata", ".rm")


class DocumentFormat(str, Enum):
    """Export format of a document."""

    PDF = "pdf"
    EPUB = "epub"
    NOTEBOOK = "notebook"
    UNKNOWN = "unknown"

    @property
    def extension(self) -> str | None:
        """Output file extension, or ``None`` for ``UNKNOWN``."""
        return _EXTENSIONS.get(self)


_EXTENSIONS = {
    DocumentFormat.PDF: "pdf",
    DocumentFormat.EPUB: "epub",
    DocumentFormat.NOTEBOOK: "rmdoc",
}

# Every extension an exported document can end up with
OUTPUT_EXTENSIONS = tuple(_EXTENSIONS.values())

_PRIMARY_SUFFIXES = {
    ".pdf": DocumentFormat.PDF,
    ".epub": DocumentFormat.EPUB,
}


class Classification(BaseModel):
    """Result of ``classify()``.

    Attributes:
        format: The detected format.
        primary: For PDF/EPUB, the manifest item holding the content.
        candidates: Number of items that looked like primary content.
    """

    format: DocumentFormat
    primary: ManifestItem | None = None
    candidates: int = 0

    model_config = {"frozen": True}


def _primary_format(item: ManifestItem) -> DocumentFormat | None:
    lowered = item.filename.lower()
    for suffix, fmt in _PRIMARY_SUFFIXES.items():
        if lowered.endswith(suffix):
            return fmt
    return None


def classify(manifest: ContentManifest) -> Classification:
    """Classify a document by the filenames in its manifest.

    The first ``.pdf`` or ``.epub`` item in manifest order decides the
    format and becomes the primary content.  Without one, any native
    notebook part makes it a notebook; otherwise it is unknown.
    """
    candidates = [
        (item, fmt)
        for item in manifest.items
        if (fmt := _primary_format(item)) is not None
    ]
    if candidates:
        primary, fmt = candidates[0]
        if len(candidates) > 1:
            logger.warning(
                "Document %s has %d primary content candidates (%s); using %s",
                manifest.doc_id,
                len(candidates),
                ", ".join(item.filename for item, _ in candidates),
                primary.filename,
            )
        return Classification(
            format=fmt, primary=primary, candidates=len(candidates)
        )

    if any(
        item.filename.endswith(NOTEBOOK_SUFFIXES) for item in manifest.items
    ):
        return Classification(format=DocumentFormat.NOTEBOOK)

    return Classification(format=DocumentFormat.UNKNOWN)

"""Tree cache persistence layer.

Keeps the last synced snapshot (root hash plus decoded entries) in a single
JSON file so a client whose root hash is unchanged can skip every blob
fetch on startup.

Key design choices:

* **Atomic writes** -- ``save()`` writes to a temp file in the cache
  directory then calls ``os.replace()`` so readers never see partial data
  and a crash mid-write keeps the previous cache intact.
* **Self-describing format** -- the record carries a ``format`` tag and a
  ``version``; anything that does not validate is treated as a cold start,
  never as a fatal error.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..errors import CorruptCache
from .models import CacheRecord

logger = logging.getLogger(__name__)


class CacheStore:
    """Load and save the tree cache file.

    Args:
        path: Location of the cache file.  Its directory is created on
            first save.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> CacheRecord | None:
        """Load the cached snapshot.

        Returns:
            The record, or ``None`` when there is no usable cache (missing
            file or corrupt content).  Callers fall back to a full resync.
        """
        if not self.path.exists():
            logger.debug("No tree cache at %s", self.path)
            return None
        try:
            return self._read()
        except CorruptCache as exc:
            logger.warning("Ignoring tree cache: %s", exc)
            return None

    def _read(self) -> CacheRecord:
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise CorruptCache(f"cannot read {self.path}: {exc}") from exc
        try:
            return CacheRecord.model_validate_json(raw)
        except ValidationError as exc:
            raise CorruptCache(
                f"{self.path} is not a valid tree cache "
                f"({exc.error_count()} errors)"
            ) from exc

    def save(self, record: CacheRecord) -> None:
        """Persist *record* atomically, replacing any previous cache.

        Raises:
            OSError: If the cache directory or file cannot be written.
                The previous cache file is left unchanged.
        """
        cache_dir = self.path.parent
        cache_dir.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(
            dir=str(cache_dir), prefix=".tree-", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(record.model_dump_json())
            os.replace(tmp_path, self.path)
        except BaseException:
            # Clean up temp file on any failure.
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise
        logger.debug(
            "Saved tree cache (%d entries) to %s",
            len(record.entries),
            self.path,
        )

    def clear(self) -> None:
        """Delete the cache file, forcing a full resync next time."""
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass

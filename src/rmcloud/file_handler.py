"""File handler module: output naming and atomic writes for exports.

Every export output is written to a temporary file in the destination
directory and moved into place with ``os.replace()``, so an interrupted or
failed export never leaves a half-written file under its final name.
"""

import logging
import os
import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

# =============================================================================
# Naming
# =============================================================================

_UNSAFE_CHARS = ("/", "\\", "\x00")


def safe_filename(name: str) -> str:
    """Turn a display name into a single path component.

    Path separators and NUL are replaced with ``_``; empty names and the
    special names ``.`` / ``..`` are replaced as well.
    """
    cleaned = name
    for ch in _UNSAFE_CHARS:
        cleaned = cleaned.replace(ch, "_")
    cleaned = cleaned.strip()
    if cleaned in ("", ".", ".."):
        return "_" if cleaned else "Unknown"
    return cleaned


def with_extension(base: Path, extension: str) -> Path:
    """Append ``.extension`` to *base* without replacing any existing suffix.

    ``Path("Notes v1.2").with_suffix(".pdf")`` would drop ``.2``; display
    names may legitimately contain dots.
    """
    return base.parent / f"{base.name}.{extension}"


def _output_keys(name: str, extensions: Sequence[str]) -> set[str]:
    keys = {name.casefold()}
    keys.update(f"{name}.{ext}".casefold() for ext in extensions)
    return keys


def disambiguate(
    names: list[str],
    extensions: list[Sequence[str]] | None = None,
) -> list[str]:
    """Make sibling output names unique, keeping the first claimant unchanged.

    Later duplicates get `` (1)``, `` (2)``, ... appended, skipping any
    suffixed name that some sibling already claims.  Comparison is
    case-insensitive so results are safe on case-folding filesystems.

    Args:
        names: Sibling names in traversal order.
        extensions: Per name, the extensions its output may gain once the
            format is known (``()`` for a directory).  A name then also
            claims every ``name.ext``, so the folder ``Notes.pdf`` and the
            document ``Notes`` cannot end up at the same path.

    Returns:
        One name per input, in input order.
    """
    if extensions is None:
        extensions = [()] * len(names)

    # Each output key belongs to the first sibling that can produce it
    claimed: dict[str, int] = {}
    for i, (name, exts) in enumerate(zip(names, extensions)):
        for key in _output_keys(name, exts):
            claimed.setdefault(key, i)

    used: set[str] = set()
    result: list[str] = []
    for i, (name, exts) in enumerate(zip(names, extensions)):
        chosen = name
        keys = _output_keys(name, exts)
        if not keys.isdisjoint(used) or any(claimed[k] != i for k in keys):
            counter = 1
            while True:
                chosen = f"{name} ({counter})"
                keys = _output_keys(chosen, exts)
                if keys.isdisjoint(used) and keys.isdisjoint(claimed):
                    break
                counter += 1
        used.update(keys)
        result.append(chosen)
    return result


# =============================================================================
# Atomic write
# =============================================================================


def atomic_write(target: Path, write: Callable[[BinaryIO], None]) -> int:
    """Write *target* through a temp file and atomically replace it.

    Args:
        target: Final output path.  Its parent directory must exist.
        write: Callback that writes the full content to the open binary
            temp file.

    Returns:
        Size of the written file in bytes.

    Raises:
        OSError: If any step fails; the temp file is removed and *target*
            keeps its previous content (if any).
    """
    fd, tmp_path = tempfile.mkstemp(
        dir=str(target.parent), prefix=f".{target.name}.", suffix=".part"
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            write(fh)
            fh.flush()
            os.fsync(fh.fileno())
        size = os.path.getsize(tmp_path)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    logger.debug("Wrote %s (%d bytes)", target, size)
    return size


def write_bytes_atomic(target: Path, data: bytes) -> int:
    """Atomically write *data* to *target*; returns the size written."""
    return atomic_write(target, lambda fh: fh.write(data))

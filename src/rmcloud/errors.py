"""Error taxonomy shared by the sync engine, exporter and command line.

Every failure the core raises derives from ``RmCloudError`` so callers can
catch one type at the command boundary.  ``PartialSyncWarning`` is the
exception: it is never raised, only collected by the synchronizer.
"""

from __future__ import annotations

from pathlib import Path


class RmCloudError(Exception):
    """Base class for all rmcloud errors."""


class TransientNetworkError(RmCloudError):
    """Connection failure, timeout, rate limit or server-side error.

    Retryable by the caller; the client does not retry internally.
    """


class RemoteRequestError(RmCloudError):
    """The remote API rejected a request (authentication, bad response)."""


class NotFound(RmCloudError):
    """A path, id or blob does not resolve."""


class CorruptCache(RmCloudError):
    """The cache file could not be read or validated."""


class UnsupportedFormat(RmCloudError):
    """A document's manifest matches no known export format."""


class IsACollection(RmCloudError):
    """A folder was given where a single document was expected."""


class SyncRequired(RmCloudError):
    """An operation needs a hierarchy but no sync has completed."""


class IoFailure(RmCloudError):
    """Writing an export output failed.

    Attributes:
        path: The final output path that could not be written.
    """

    def __init__(self, path: Path | str, message: str) -> None:
        self.path = Path(path)
        super().__init__(f"{self.path}: {message}")


class PartialSyncWarning(UserWarning):
    """An entry skipped during a rebuild because its metadata was unusable.

    Attributes:
        entry_id: Id of the skipped entry.
        reason: Why it was skipped.
    """

    def __init__(self, entry_id: str, reason: str) -> None:
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"skipped entry {entry_id}: {reason}")

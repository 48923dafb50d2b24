"""Storage client and async helpers shared by sync and export."""

from .async_utils import run_sync, run_sync_limited
from .client import StorageClient

__all__ = ["StorageClient", "run_sync", "run_sync_limited"]

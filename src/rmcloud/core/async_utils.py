"""Run blocking storage requests off the event loop.

``requests`` is synchronous, so every call to the storage API goes through
``run_sync_limited``: it runs in a worker thread and holds one slot of the
process-wide request semaphore while it does.  Local file work uses
``run_sync`` and does not count against the limit.
"""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Iterable, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)

# Bounds in-flight storage requests; set by init_semaphore() per command
_semaphore: asyncio.Semaphore | None = None


def init_semaphore(max_parallel: int = 8) -> None:
    """Create the request semaphore. Call once, inside the running loop.

    Raises:
        ValueError: If *max_parallel* is less than 1.
    """
    global _semaphore
    if max_parallel < 1:
        raise ValueError(f"max_parallel must be at least 1, got {max_parallel}")
    _semaphore = asyncio.Semaphore(max_parallel)
    logger.debug("Request limit set to %d parallel requests", max_parallel)


async def run_sync(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Run a blocking function in a worker thread (no request slot taken).

    Args:
        func: Synchronous function to call
        *args: Positional arguments for func
        **kwargs: Keyword arguments for func

    Returns:
        Result of func(*args, **kwargs)
    """
    return await asyncio.to_thread(func, *args, **kwargs)


async def run_sync_limited(
    func: Callable[..., T], *args: Any, **kwargs: Any
) -> T:
    """Like ``run_sync``, but waits for a free request slot first.

    Without ``init_semaphore`` the call is unbounded.

    Example:
        blob = await run_sync_limited(client.get_blob, blob_hash)
    """
    if _semaphore is None:
        return await asyncio.to_thread(func, *args, **kwargs)
    async with _semaphore:
        return await asyncio.to_thread(func, *args, **kwargs)


async def gather_limited(
    coros: Sequence[Coroutine[Any, Any, T]],
) -> list[T]:
    """Await *coros* concurrently and return their results in input order.

    The coroutines are expected to go through ``run_sync_limited`` for their
    requests; the first exception propagates.
    """
    return list(await asyncio.gather(*coros))


async def fetch_blobs(
    get_blob: Callable[[str], bytes], hashes: Iterable[str]
) -> list[bytes]:
    """Fetch several blobs concurrently, one request slot each.

    Results line up with *hashes*; a hash listed twice is fetched twice.
    """
    return await gather_limited(
        [run_sync_limited(get_blob, blob_hash) for blob_hash in hashes]
    )

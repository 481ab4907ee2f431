"""Coalescing of concurrent renders for the same cache key."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar


T = TypeVar("T")


class InflightRenders(Generic[T]):
    """Shares one in-progress render among concurrent callers.

    The first caller for a key runs the work; callers arriving while it is
    pending await the same result. Entries are removed as soon as the work
    finishes, so a later miss starts a new render.
    """

    def __init__(self) -> None:
        """Initialize with no pending work."""
        self._pending: dict[str, asyncio.Future[T]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    async def run(
        self,
        key: str,
        work: Callable[[], Awaitable[T]],
    ) -> tuple[T, bool]:
        """Run work for a key, or join the run already in progress.

        Args:
            key: Cache key.
            work: Coroutine factory producing the result.

        Returns:
            Tuple of (result, joined) where joined is True when the result
            came from another caller's run.
        """
        existing = self._pending.get(key)
        if existing is not None:
            # A cancelled waiter must not cancel the shared run
            return await asyncio.shield(existing), True

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._pending[key] = future
        try:
            result = await work()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved; with no waiters nobody else reads it
            future.exception()
            raise
        else:
            future.set_result(result)
            return result, False
        finally:
            del self._pending[key]

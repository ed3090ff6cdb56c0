"""
BackgroundWriter - Fire-and-forget work that stays observable.

Responses never wait for persistence, but tests and shutdown need to know
when the writes are done. Submitted jobs run as tasks tracked here until
they finish; ``drain()`` awaits everything still pending.
"""

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger


class BackgroundWriter:
    """
    Tracks background jobs submitted by request handlers.

    Usage:
        writer = BackgroundWriter()
        writer.submit("persist duga", lambda: store.upsert_many(items))
        ...
        await writer.drain()
    """

    def __init__(self, debug: bool = False):
        self._tasks: set[asyncio.Task[Any]] = set()
        self._debug = debug
        self._stats = BackgroundStats()

    def submit(
        self, name: str, job: Callable[[], Awaitable[Any]]
    ) -> asyncio.Task[Any]:
        """Schedule ``job`` on the running loop and return its task."""
        task = asyncio.create_task(self._run(name, job), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._stats.submitted += 1
        self._log(f"SUBMIT: {name}")
        return task

    async def _run(self, name: str, job: Callable[[], Awaitable[Any]]) -> Any:
        try:
            result = await job()
            self._stats.completed += 1
            self._log(f"DONE: {name}")
            return result
        except asyncio.CancelledError:
            self._stats.cancelled += 1
            raise
        except Exception as e:
            self._stats.failed += 1
            logger.warning(f"[Background] Job '{name}' failed: {e}")
            return None

    async def drain(self, timeout: float | None = None) -> int:
        """
        Wait for every pending job.

        Returns the number of jobs awaited. Jobs still running after
        ``timeout`` seconds are left alone.
        """
        pending = list(self._tasks)
        if not pending:
            return 0
        done, not_done = await asyncio.wait(pending, timeout=timeout)
        if not_done:
            logger.warning(f"[Background] {len(not_done)} jobs still running after drain")
        return len(done)

    async def cancel_all(self) -> int:
        """Cancel all pending jobs."""
        pending = list(self._tasks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            self._log(f"CANCEL_ALL: {len(pending)} jobs cancelled")
        return len(pending)

    def get_pending_count(self) -> int:
        return len(self._tasks)

    def get_stats(self) -> "BackgroundStats":
        self._stats.pending = len(self._tasks)
        return self._stats

    def _log(self, message: str) -> None:
        """Log debug message if debug mode is enabled."""
        if self._debug:
            logger.debug(f"[Background] {message}")


class BackgroundStats:
    """Statistics for background jobs."""

    def __init__(self):
        self.submitted: int = 0
        self.completed: int = 0
        self.failed: int = 0
        self.cancelled: int = 0
        self.pending: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "completed": self.completed,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "pending": self.pending,
        }

"""
Detached tasks: fire-and-forget coroutines that outlive the request.

The redirect path hands its click write to `spawn()` and returns the 302
without awaiting it. Every task runs inside its own error boundary: an
exception is logged and dropped, never re-raised into the request.

asyncio only keeps weak references to tasks, so we hold them here until they
finish. On shutdown `drain()` gives stragglers a bounded grace period and
then abandons them.
"""

import asyncio
from typing import Any, Coroutine

import structlog

logger = structlog.get_logger()


class DetachedTasks:
    def __init__(self):
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        task = asyncio.create_task(self._guard(coro, name), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _guard(self, coro: Coroutine[Any, Any, Any], name: str):
        try:
            await coro
        except asyncio.CancelledError:
            logger.warning("detached_task_cancelled", task=name)
            raise
        except Exception:
            logger.exception("detached_task_failed", task=name)

    async def drain(self, timeout: float | None = None):
        """Wait for in-flight tasks; cancel whatever is left after `timeout`."""
        if not self._tasks:
            return
        done, pending = await asyncio.wait(set(self._tasks), timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning("detached_tasks_abandoned", count=len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

"""Detached background work with its own failure channel."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Set

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TaskFailure:
    """A background task that finished with an error."""

    label: str
    message: str
    error: BaseException


class BackgroundTasks:
    """Runs fire-and-forget coroutines and reports their failures separately.

    The caller that spawns a task never sees its outcome; failures are
    logged, appended to :attr:`failures` and passed to ``on_failure`` so a
    UI can surface them as a secondary notification.
    """

    def __init__(self, on_failure: Optional[Callable[[TaskFailure], None]] = None) -> None:
        self._on_failure = on_failure
        self._pending: Set[asyncio.Task[Any]] = set()
        self.failures: List[TaskFailure] = []

    @property
    def pending(self) -> int:
        return len(self._pending)

    def spawn(self, coroutine: Awaitable[Any], *, label: str, user_message: Optional[str] = None) -> asyncio.Task[Any]:
        """Schedule ``coroutine`` on the running loop."""

        task = asyncio.ensure_future(coroutine)
        self._pending.add(task)

        def _done(finished: asyncio.Task[Any]) -> None:
            self._pending.discard(finished)
            if finished.cancelled():
                _LOGGER.info("Background task cancelled: %s", label)
                return
            error = finished.exception()
            if error is None:
                return
            message = getattr(error, "user_message", None) or user_message or str(error)
            _LOGGER.error("Background task failed: %s: %s", label, error)
            failure = TaskFailure(label=label, message=message, error=error)
            self.failures.append(failure)
            if self._on_failure is not None:
                self._on_failure(failure)

        task.add_done_callback(_done)
        return task

    async def drain(self) -> None:
        """Wait until every task spawned so far has settled."""

        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


__all__ = ["BackgroundTasks", "TaskFailure"]

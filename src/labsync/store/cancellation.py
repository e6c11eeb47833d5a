"""Cancellation scopes bound to an operation or view lifetime.

A ``CancellationScope`` owns the tasks spawned in it. Cancelling the scope
cancels those tasks and every child scope, and refuses new work. Work that
is cancelled stops at its next await, so it can never reach the state
writes that follow.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from labsync.shared.errors import ErrorCode, ErrorContext, OperationCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationScope:
    """A group of tasks cancelled together.

    Usable as an async context manager: leaving the block cancels whatever
    is still running and waits for it to finish.

    Args:
        name: Label used in task names and logs
        parent: Scope whose cancellation also cancels this one
    """

    def __init__(self, name: str = "scope", parent: CancellationScope | None = None) -> None:
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()
        self._children: set[CancellationScope] = set()
        self._cancelled = False
        self._parent = parent
        if parent is not None:
            if parent.cancelled:
                self._cancelled = True
            else:
                parent._children.add(self)

    def __repr__(self) -> str:
        state = "cancelled" if self._cancelled else f"{len(self._tasks)} tasks"
        return f"CancellationScope({self.name!r}, {state})"

    async def __aenter__(self) -> CancellationScope:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active_tasks(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def child(self, name: str | None = None) -> CancellationScope:
        """Create a scope that is cancelled together with this one."""
        return CancellationScope(name or f"{self.name}.child", parent=self)

    def spawn(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        """Run ``coro`` as a task owned by this scope.

        Raises:
            OperationCancelledError: If the scope is already cancelled
        """
        if self._cancelled:
            coro.close()
            raise OperationCancelledError(
                ErrorCode.OPERATION_CANCELLED,
                f"Scope {self.name} is cancelled",
                ErrorContext(operation="spawn", additional_data={"scope": self.name}),
            )

        task = asyncio.create_task(coro, name=f"{self.name}:{name or 'task'}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def cancel(self) -> int:
        """Cancel every task in this scope and its children.

        Returns:
            Number of tasks that were cancelled
        """
        self._cancelled = True
        count = 0
        for task in list(self._tasks):
            if not task.done():
                task.cancel()
                count += 1
        for child in list(self._children):
            count += child.cancel()
        if self._parent is not None:
            self._parent._children.discard(self)
        if count:
            logger.debug("Cancelled %d tasks in scope %s", count, self.name)
        return count

    async def aclose(self) -> None:
        """Cancel the scope and wait until its tasks have finished."""
        pending = [task for task in self._tasks if not task.done()]
        children = list(self._children)
        self.cancel()
        for child in children:
            await child.aclose()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)


__all__ = ["CancellationScope"]

"""In-flight request coalescing for asyncio code.

Goals
-----
- Concurrent callers asking for the same ``key`` share exactly one execution
  of the underlying coroutine and all observe its outcome (value or
  exception).
- Once that execution settles, the key is forgotten so the next call runs a
  fresh one. Nothing is memoized beyond the in-flight window.

Non-goals
---------
- Retries. A failure reaches every waiter as-is.
- Cancellation of the shared execution when one waiter gives up. Waiters are
  shielded from each other: cancelling one caller does not cancel the work
  the others are awaiting.
"""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

T = TypeVar("T")


class RequestDeduplicator:
    """Map of ``key -> running task``, scoped to one event loop."""

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Task[Any]] = {}

    async def execute(self, key: str, request_fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``request_fn`` under ``key`` or join the execution already running."""

        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(request_fn())
            self._pending[key] = task
            task.add_done_callback(functools.partial(self._evict, key))
        return await asyncio.shield(task)

    def _evict(self, key: str, task: asyncio.Task[Any]) -> None:
        # Only drop the entry if it still points at this task; clear() may
        # have made room for a newer one.
        if self._pending.get(key) is task:
            del self._pending[key]
        if not task.cancelled():
            # Mark the exception as retrieved when every waiter went away.
            task.exception()

    def has_pending(self, key: str) -> bool:
        return key in self._pending

    def clear(self, key: str) -> None:
        """Forget ``key`` so the next call starts a new execution.

        The running execution is not cancelled; its current waiters still
        receive its result.
        """

        self._pending.pop(key, None)

    def clear_all(self) -> None:
        self._pending.clear()

    def __len__(self) -> int:
        return len(self._pending)


def with_deduplication(
    deduplicator: RequestDeduplicator,
    *,
    key: Callable[..., str] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorate a coroutine function so concurrent calls coalesce.

    ``key`` derives the dedup key from the call arguments. When omitted, every
    call shares the function's qualified name, i.e. all concurrent calls
    collapse into one regardless of arguments.
    """

    def decorator(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        default_key = f"{fn.__module__}.{fn.__qualname__}"

        @functools.wraps(fn)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            k = key(*args, **kwargs) if key is not None else default_key
            return await deduplicator.execute(k, lambda: fn(*args, **kwargs))

        return wrapper

    return decorator


__all__ = ["RequestDeduplicator", "with_deduplication"]

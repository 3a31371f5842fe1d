"""Asyncio front-end for a ``ReducerStore``.

When actions originate from many concurrent tasks, an ``ActionQueue``
funnels them through a single consumer task so the store sees them one at
a time, in arrival order. Each ``put`` returns a future resolved with the
state after that action (or with the error the store raised).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Generic, TypeVar

from pyprovide.actions import action_kind
from pyprovide.exceptions import ProviderError
from pyprovide.store import ReducerStore

_logger = logging.getLogger(__name__)

S = TypeVar("S")
A = TypeVar("A")


class ActionQueue(Generic[S, A]):
    """Single-consumer action queue for one store.

    Usage::

        async with ActionQueue(store) as queue:
            state = await queue.submit(QuestAdded(id=1, text="Complete a Dungeon"))
    """

    def __init__(self, store: ReducerStore[S, A], *, maxsize: int = 0) -> None:
        self._store = store
        self._queue: asyncio.Queue[tuple[A, asyncio.Future[S]]] = asyncio.Queue(maxsize=maxsize)
        self._worker: asyncio.Task[None] | None = None

    @property
    def store(self) -> ReducerStore[S, A]:
        return self._store

    @property
    def pending(self) -> int:
        """Actions waiting to be applied."""
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def __aenter__(self) -> ActionQueue[S, A]:
        self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    def start(self) -> None:
        """Start the consumer task on the running loop."""
        if self.is_running:
            return
        self._worker = asyncio.get_running_loop().create_task(self._run(), name=f"action-queue:{self._store.name}")

    async def stop(self) -> None:
        """Apply everything already queued, then stop the consumer task."""
        worker = self._worker
        if worker is None:
            return
        if not worker.done():
            await self._queue.join()
        self._worker = None
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker

    async def put(self, action: A) -> asyncio.Future[S]:
        """Enqueue *action*; the returned future resolves once it is applied."""
        if not self.is_running:
            raise ProviderError(f"action queue for store {self._store.name!r} is not running")
        future: asyncio.Future[S] = asyncio.get_running_loop().create_future()
        await self._queue.put((action, future))
        return future

    async def submit(self, action: A) -> S:
        """Enqueue *action* and wait for the resulting state."""
        return await (await self.put(action))

    async def join(self) -> None:
        """Wait until every queued action has been applied."""
        await self._queue.join()

    async def _run(self) -> None:
        while True:
            action, future = await self._queue.get()
            try:
                if future.cancelled():
                    _logger.debug("Skipping cancelled action kind=%s", action_kind(action))
                    continue
                try:
                    state = self._store.dispatch(action)
                except Exception as exc:
                    future.set_exception(exc)
                else:
                    future.set_result(state)
            finally:
                self._queue.task_done()

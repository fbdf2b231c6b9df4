"""Base class for view-state machines."""

import asyncio
import logging
from typing import Any, Callable, Coroutine, Generic, TypeVar

from pydantic import BaseModel

from ..storage import Subscription

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=BaseModel)


class StateMachine(Generic[S]):
    """
    Holds one immutable view-state snapshot and publishes its replacements.

    Commands run on the event loop and are serialized by it. Follow-up work
    (debounced refreshes, delayed reloads, store pushes) is spawned as tracked
    tasks; close() cancels them and releases store subscriptions.
    """

    def __init__(self, initial: S):
        self._state = initial
        self._listeners: list[Callable[[S], None]] = []
        self._tasks: set[asyncio.Task] = set()
        self._subscriptions: list[Subscription] = []
        # Bumped by every superseding load; responses tagged with an older value are dropped
        self._generation = 0

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Attach to shared stores. Subclasses extend this."""

    async def close(self) -> None:
        """Release subscriptions and cancel outstanding tasks."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()

        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    @property
    def state(self) -> S:
        return self._state

    def subscribe(self, listener: Callable[[S], None]) -> Callable[[], None]:
        """Register a renderer; returns a function that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def join(self) -> None:
        """Wait until no spawned task is pending."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _publish(self, state: S) -> None:
        if state is self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    def _update(self, **changes: Any) -> S:
        self._publish(self._state.model_copy(update=changes))
        return self._state

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    def _spawn(self, coro: Coroutine) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("%s task failed", type(self).__name__, exc_info=task.exception())

"""Cooperative task scheduler for the airlock controller.

Every task of the controller runs on one asyncio event loop owned by a
TaskScheduler: the control loop, door sequences, UI event handling and the
dashboard. Tasks may be scheduled before the loop starts; they are queued
and started as soon as run() enters the loop.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from const import TRACE

_LOGGER = logging.getLogger(__name__)


@dataclass
class UiEvent:
    """Input event addressed to one attached panel."""

    target: str                  # Panel name
    element: str                 # Element name on the panel
    kind: str = "click"
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class _Task:
    fn: Callable[[], Any]
    delay: float | None = None
    propagate_errors: bool = False
    debug: bool = False

    @property
    def name(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))


async def _invoke(fn: Callable[[], Any]) -> Any:
    """Call a plain function or a coroutine function."""
    result = fn()
    if inspect.isawaitable(result):
        result = await result
    return result


class TaskScheduler:
    """Single event loop shared by all components."""

    def __init__(self) -> None:
        self._pending: list[_Task] = []
        self._handlers: dict[str, Callable[[UiEvent], None]] = {}
        self._tasks: set[asyncio.Task] = set()
        self._events: asyncio.Queue[UiEvent] | None = None
        self._done: asyncio.Event | None = None
        self._failure: BaseException | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def attach(self, name: str, handler: Callable[[UiEvent], None]) -> None:
        """Route UI events addressed to name to handler."""
        self._handlers[name] = handler
        _LOGGER.debug("Panel %s attached", name)

    def post_event(self, event: UiEvent) -> None:
        """Queue a UI event for the event pump."""
        if self._events is None:
            _LOGGER.warning("Event for %s dropped, scheduler not running", event.target)
            return
        self._events.put_nowait(event)

    def schedule(
        self,
        fn: Callable[[], Any],
        delay: float | None = None,
        propagate_errors: bool = False,
        debug: bool = False,
    ) -> None:
        """Schedule fn to run as a task, optionally after a delay.

        fn may be a plain function or a coroutine function. With
        propagate_errors an exception raised by fn stops the scheduler and
        is re-raised from run(). Otherwise it is logged; debug adds the
        traceback and task state messages.
        """
        task = _Task(fn, delay, propagate_errors, debug)
        if self._running:
            self._spawn(task)
        else:
            self._pending.append(task)
        _LOGGER.log(TRACE, "Task %s scheduled", task.name)

    def stop(self) -> None:
        """End run() as if the runtime had returned."""
        if self._done is not None:
            self._done.set()

    def run(
        self,
        runtime: Callable[[], Any] | None = None,
        on_event: Callable[[UiEvent], None] | None = None,
        before_draw: Callable[[], None] | None = None,
        after_draw: Callable[[], None] | None = None,
    ) -> None:
        """Run the event loop until runtime returns or stop() is called."""
        asyncio.run(self.run_async(runtime, on_event, before_draw, after_draw))

    async def run_async(
        self,
        runtime: Callable[[], Any] | None = None,
        on_event: Callable[[UiEvent], None] | None = None,
        before_draw: Callable[[], None] | None = None,
        after_draw: Callable[[], None] | None = None,
    ) -> None:
        """Coroutine form of run() for callers already inside a loop."""
        if self._running:
            raise RuntimeError("Scheduler is already running")
        self._events = asyncio.Queue()
        done = self._done = asyncio.Event()
        self._failure = None
        self._running = True
        _LOGGER.debug("Scheduler started")

        pending, self._pending = self._pending, []
        for task in pending:
            self._spawn(task)

        pump = asyncio.create_task(self._pump(on_event, before_draw, after_draw))
        body = None
        if runtime is not None:
            body = asyncio.create_task(_invoke(runtime))
            body.add_done_callback(lambda _: done.set())

        try:
            await done.wait()
        finally:
            self._running = False
            leftovers = [pump, *self._tasks]
            if body is not None and not body.done():
                leftovers.append(body)
            for task in leftovers:
                task.cancel()
            await asyncio.gather(*leftovers, return_exceptions=True)
            self._tasks.clear()
            self._events = None
            self._done = None
            _LOGGER.debug("Scheduler stopped")

        if self._failure is not None:
            raise self._failure
        if body is not None and not body.cancelled():
            body.result()

    def _spawn(self, task: _Task) -> None:
        handle = asyncio.create_task(self._run_task(task))
        self._tasks.add(handle)
        handle.add_done_callback(self._tasks.discard)

    async def _run_task(self, task: _Task) -> None:
        if task.delay:
            await asyncio.sleep(task.delay)
        if task.debug:
            _LOGGER.debug("Task %s started", task.name)
        try:
            await _invoke(task.fn)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if task.propagate_errors:
                self._failure = e
                self.stop()
                return
            if task.debug:
                _LOGGER.exception("Task %s failed", task.name)
            else:
                _LOGGER.error("Task %s failed: %s", task.name, e)
            return
        if task.debug:
            _LOGGER.debug("Task %s finished", task.name)

    async def _pump(
        self,
        on_event: Callable[[UiEvent], None] | None,
        before_draw: Callable[[], None] | None,
        after_draw: Callable[[], None] | None,
    ) -> None:
        """Deliver queued UI events to attached panels."""
        while True:
            event = await self._events.get()
            try:
                self._dispatch(event, on_event, before_draw, after_draw)
            except Exception as e:
                _LOGGER.error("Panel %s event handler error: %s", event.target, e)

    def _dispatch(
        self,
        event: UiEvent,
        on_event: Callable[[UiEvent], None] | None,
        before_draw: Callable[[], None] | None,
        after_draw: Callable[[], None] | None,
    ) -> None:
        if on_event:
            on_event(event)
        if before_draw:
            before_draw()
        handler = self._handlers.get(event.target)
        if handler is None:
            _LOGGER.warning("No panel %s for %s event", event.target, event.kind)
        else:
            handler(event)
        if after_draw:
            after_draw()

    def get_status(self) -> dict:
        """Get scheduler status for diagnostics."""
        return {
            "running": self._running,
            "tasks": len(self._tasks),
            "pending": len(self._pending),
            "panels": sorted(self._handlers),
            "queued_events": self._events.qsize() if self._events else 0,
        }

"""
Debounced Writer

A cancellable delayed task: every ``schedule()`` replaces the pending one,
so a burst of edits produces a single call ``delay`` seconds after the
last edit.

TIMERS:
=======
The writer only needs ``call_later(delay, callback) -> handle`` with
``handle.cancel()``. AsyncioScheduler uses the running event loop when
there is one and hands the callback to the loop's default executor, so a
blocking gateway call never stalls the loop; with no running loop it
falls back to a daemon ``threading.Timer``. ManualScheduler advances a
virtual clock explicitly (headless use and tests).
"""

from __future__ import annotations
from functools import partial
from typing import Any, Callable, List, Optional
import asyncio
import logging
import threading


logger = logging.getLogger(__name__)


class AsyncioScheduler:
    """Timers on the running asyncio loop, or on a thread outside one."""

    def call_later(self, delay: float, callback: Callable[[], None]):
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            timer = threading.Timer(delay, callback)
            timer.daemon = True
            timer.start()
            return timer
        return loop.call_later(delay, loop.run_in_executor, None, callback)


class _ManualHandle:
    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual-clock scheduler; nothing fires until ``advance()``."""

    def __init__(self):
        self.now = 0.0
        self._handles: List[_ManualHandle] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self.now + delay, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move the clock forward and run every due callback. Returns how many ran."""
        self.now += seconds
        ran = 0
        while True:
            due = sorted(
                (h for h in self._handles if not h.cancelled and h.due <= self.now),
                key=lambda h: h.due,
            )
            if not due:
                break
            handle = due[0]
            self._handles.remove(handle)
            handle.callback()
            ran += 1
        self._handles = [h for h in self._handles if not h.cancelled]
        return ran


class DebouncedWriter:
    """
    Runs ``action`` once, ``delay`` seconds after the last ``schedule()``.

    ``on_complete`` receives whatever ``action`` returned. The action is
    responsible for catching its own persistence errors.

    Timers may fire on another thread. Each ``schedule()`` starts a new
    generation; a timer from an older generation that fires after being
    replaced or cancelled does nothing.
    """

    def __init__(
        self,
        action: Callable[[], Any],
        delay: float = 1.0,
        scheduler=None,
        on_complete: Optional[Callable[[Any], None]] = None,
    ):
        self._action = action
        self._delay = delay
        self._scheduler = scheduler or AsyncioScheduler()
        self._on_complete = on_complete
        self._handle = None
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.cancel()
            self._generation += 1
            self._handle = self._scheduler.call_later(self._delay, partial(self._fire, self._generation))

    def cancel(self) -> bool:
        """Abandon the pending call. Returns True if one was pending."""
        with self._lock:
            if self._handle is None:
                return False
            self._handle.cancel()
            self._handle = None
            self._generation += 1
        logger.debug("Debounced write abandoned")
        return True

    def flush(self) -> Any:
        """Run the pending call now (if any)."""
        with self._lock:
            if self._handle is None:
                return None
            self._handle.cancel()
            self._generation += 1
            generation = self._generation
        return self._fire(generation)

    def _fire(self, generation: int) -> Any:
        with self._lock:
            if generation != self._generation:
                return None
            self._handle = None
        result = self._action()
        if self._on_complete is not None:
            self._on_complete(result)
        return result

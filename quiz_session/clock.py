"""
Schedulers that own cancellable timer handles.

Every debounce, cooldown, safe window and countdown tick in a session is a
TimerHandle created by the session's scheduler. All callbacks run while the
scheduler's re-entrant lock is held, so a session sees one event at a time.
"""

import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class TimerHandle:
    """A scheduled callback that can be cancelled before it fires."""

    def __init__(self, due: float, callback: Callable[[], None]):
        self.due = due
        self.callback = callback
        self.cancelled = False
        self.fired = False

    @property
    def active(self) -> bool:
        return not (self.cancelled or self.fired)

    def cancel(self):
        self.cancelled = True


class Scheduler:
    """Interface shared by the real and the virtual scheduler."""

    def __init__(self):
        self.lock = threading.RLock()

    def now(self) -> datetime:
        raise NotImplementedError

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        raise NotImplementedError

    def _run(self, handle: TimerHandle):
        with self.lock:
            if handle.cancelled or handle.fired:
                return
            handle.fired = True
            handle.callback()


class ThreadingScheduler(Scheduler):
    """Wall-clock scheduler backed by ``threading.Timer`` daemon threads."""

    def __init__(self):
        super().__init__()
        self._timers: List[threading.Timer] = []

    def now(self) -> datetime:
        return datetime.now()

    def _run(self, handle: TimerHandle):
        try:
            super()._run(handle)
        except Exception:
            logger.exception("Scheduled callback failed")

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(due=delay, callback=callback)
        timer = threading.Timer(max(delay, 0.0), self._run, args=(handle,))
        timer.daemon = True
        with self.lock:
            self._timers = [t for t in self._timers if t.is_alive()]
            self._timers.append(timer)
        timer.start()
        return handle

    def shutdown(self):
        """Cancel every pending thread timer."""
        with self.lock:
            for timer in self._timers:
                timer.cancel()
            self._timers = []


class ManualScheduler(Scheduler):
    """
    Deterministic virtual-time scheduler.

    Time only moves when ``advance()`` is called. Callbacks fire in due-time
    order (ties in scheduling order), including callbacks scheduled by other
    callbacks during the same advance.
    """

    def __init__(self, start: Optional[datetime] = None):
        super().__init__()
        self._start = start or datetime(2024, 1, 1, 9, 0, 0)
        self.elapsed = 0.0
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> datetime:
        return self._start + timedelta(seconds=self.elapsed)

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(due=self.elapsed + max(delay, 0.0), callback=callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, seconds: float):
        """Move virtual time forward, firing every callback that falls due."""
        target = self.elapsed + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            self.elapsed = max(self.elapsed, due)
            self._run(handle)
        self.elapsed = target

    def run_pending(self):
        """Fire callbacks that are already due without moving time."""
        self.advance(0)

    @property
    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if h.active)

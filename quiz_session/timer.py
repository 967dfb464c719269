"""
Exam countdown timer.

Ticks once per ``tick_seconds`` while armed and calls ``on_expire`` exactly
once when the remaining time reaches zero.
"""

from typing import Callable, Optional

from .clock import Scheduler, TimerHandle


class CountdownTimer:
    """Single countdown derived from the assignment duration."""

    def __init__(
        self,
        scheduler: Scheduler,
        on_expire: Callable[[], None],
        on_tick: Optional[Callable[[int], None]] = None,
        tick_seconds: float = 1.0,
        session_logger=None
    ):
        self.scheduler = scheduler
        self.on_expire = on_expire
        self.on_tick = on_tick
        self.tick_seconds = tick_seconds
        self.session_logger = session_logger

        self.remaining_seconds: Optional[int] = None
        self.armed = False
        self.expired = False
        self._handle: Optional[TimerHandle] = None

    def arm(self, remaining_seconds: int):
        """Start counting down from ``remaining_seconds``."""
        if self.armed:
            return

        self.remaining_seconds = max(int(remaining_seconds), 0)
        self.armed = True
        self.expired = False

        if self.remaining_seconds == 0:
            # Expire on the next scheduler turn, never inside the caller.
            self._handle = self.scheduler.call_later(0, self._expire)
        else:
            self._handle = self.scheduler.call_later(self.tick_seconds, self._tick)

    def disarm(self):
        """Stop ticking. A tick already in flight becomes a no-op."""
        self.armed = False
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def _tick(self):
        if not self.armed:
            return

        self.remaining_seconds -= 1
        if self.on_tick:
            self.on_tick(self.remaining_seconds)

        if self.remaining_seconds <= 0:
            self._expire()
        else:
            self._handle = self.scheduler.call_later(self.tick_seconds, self._tick)

    def _expire(self):
        if not self.armed:
            return

        self.remaining_seconds = 0
        self.armed = False
        self.expired = True
        self._handle = None

        if self.session_logger:
            self.session_logger("EXAM_TIMEOUT", "Exam time finished - auto-submitting")
        self.on_expire()

    def format_remaining(self) -> str:
        """Format remaining time as HH:MM:SS."""
        if self.remaining_seconds is None:
            return "infinite"

        total_seconds = self.remaining_seconds
        hours = total_seconds // 3600
        minutes = (total_seconds % 3600) // 60
        seconds = total_seconds % 60
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

"""
Integrity monitoring for an in-progress assessment.

Turns raw environment signals into counted violations:
- a safe window after arming ignores the fullscreen transition at start
- a cooldown after each counted violation collapses bursts into one
- reaching the violation limit triggers ``on_limit`` exactly once
Clipboard, context-menu and back-navigation events are suppressed, not counted.
"""

from typing import Callable, List, Optional

from .clock import Scheduler, TimerHandle
from .models import DEFAULT_FORBIDDEN_KEYS
from .signals import EnvironmentSignalSource, Signal, SignalEvent, is_forbidden_key

VIOLATION_SIGNALS = {
    Signal.FULLSCREEN_EXITED,
    Signal.TAB_HIDDEN,
    Signal.WINDOW_BLUR,
    Signal.KEY_PRESSED,
}

SUPPRESSED_SIGNALS = {
    Signal.CLIPBOARD,
    Signal.CONTEXT_MENU,
    Signal.BACK_NAVIGATION,
}

NETWORK_SIGNALS = {
    Signal.NETWORK_ONLINE,
    Signal.NETWORK_OFFLINE,
}


class IntegrityMonitor:
    """Debounced violation counter over an EnvironmentSignalSource."""

    def __init__(
        self,
        source: EnvironmentSignalSource,
        scheduler: Scheduler,
        on_limit: Callable[[], None],
        on_violation: Optional[Callable[[int, SignalEvent], None]] = None,
        on_network: Optional[Callable[[bool], None]] = None,
        max_violations: int = 3,
        safe_window_seconds: float = 2.0,
        cooldown_seconds: float = 3.0,
        forbidden_keys: Optional[List[str]] = None,
        session_logger=None
    ):
        self.source = source
        self.scheduler = scheduler
        self.on_limit = on_limit
        self.on_violation = on_violation
        self.on_network = on_network
        self.max_violations = max_violations
        self.safe_window_seconds = safe_window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.forbidden_keys = forbidden_keys or list(DEFAULT_FORBIDDEN_KEYS)
        self.session_logger = session_logger

        self.violation_count = 0
        self.armed = False
        self.in_safe_window = False
        self.in_cooldown = False
        self.limit_reached = False
        self.fullscreen_granted = False

        self._safe_handle: Optional[TimerHandle] = None
        self._cooldown_handle: Optional[TimerHandle] = None

    def _log(self, event: str, details: str = ""):
        if self.session_logger:
            self.session_logger(event, details)

    def arm(self, violation_count: int = 0):
        """
        Start listening.

        Args:
            violation_count: Violations already accumulated (on resume)
        """
        if self.armed:
            return

        self.violation_count = max(violation_count, 0)
        self.limit_reached = False
        self.in_cooldown = False
        self.armed = True

        self.in_safe_window = self.safe_window_seconds > 0
        if self.in_safe_window:
            self._safe_handle = self.scheduler.call_later(self.safe_window_seconds, self._end_safe_window)

        self.source.start(self.handle_signal)

        self.fullscreen_granted = self.source.request_fullscreen()
        if not self.fullscreen_granted:
            # A refusal is not a violation; only a later exit is.
            self._log("FULLSCREEN_UNAVAILABLE", "Fullscreen request refused or unsupported")

        self._log("INTEGRITY_MONITORING_STARTED",
                  f"Violations: {self.violation_count}/{self.max_violations}")

        if self.violation_count >= self.max_violations:
            self.scheduler.call_later(0, self._resume_at_limit)

    def _resume_at_limit(self):
        if self.armed:
            self._reach_limit()

    def disarm(self):
        """Stop listening and cancel every pending window. Late callbacks become no-ops."""
        was_armed = self.armed
        self.armed = False
        self.in_safe_window = False
        self.in_cooldown = False
        for handle in (self._safe_handle, self._cooldown_handle):
            if handle:
                handle.cancel()
        self._safe_handle = None
        self._cooldown_handle = None
        self.source.stop()
        if was_armed:
            self._log("INTEGRITY_MONITORING_STOPPED", f"Violations: {self.violation_count}")

    def handle_signal(self, event: SignalEvent) -> bool:
        """
        Entry point for the signal source.

        Returns:
            True if the host should prevent the event's default action
        """
        with self.scheduler.lock:
            if not self.armed:
                return False

            if event.kind in NETWORK_SIGNALS:
                if self.on_network:
                    self.on_network(event.kind == Signal.NETWORK_ONLINE)
                return False

            if event.kind in SUPPRESSED_SIGNALS:
                self._log("SIGNAL_SUPPRESSED", f"{event.kind.value} {event.detail}".strip())
                return True

            if event.kind == Signal.KEY_PRESSED:
                if not is_forbidden_key(event.detail, self.forbidden_keys):
                    return False
                self._raise_violation(event)
                return True

            if event.kind in VIOLATION_SIGNALS:
                self._raise_violation(event)
            return False

    def _raise_violation(self, event: SignalEvent):
        reason = None
        if self.limit_reached:
            reason = "limit reached"
        elif self.in_safe_window:
            reason = "safe window"
        elif self.in_cooldown:
            reason = "cooldown"

        if reason:
            self._log("VIOLATION_IGNORED", f"{event.kind.value} ({reason})")
            return

        self.violation_count += 1
        self.in_cooldown = True
        self._cooldown_handle = self.scheduler.call_later(self.cooldown_seconds, self._end_cooldown)

        self._log("VIOLATION", f"{event.kind.value} {event.detail}".strip()
                  + f" - count {self.violation_count}/{self.max_violations}")
        if self.on_violation:
            self.on_violation(self.violation_count, event)

        if self.violation_count >= self.max_violations:
            self._reach_limit()

    def _reach_limit(self):
        if self.limit_reached:
            return
        self.limit_reached = True
        self._log("VIOLATION_LIMIT", f"{self.violation_count} violations - forcing submission")
        self.on_limit()

    def _end_safe_window(self):
        self._safe_handle = None
        if self.armed:
            self.in_safe_window = False

    def _end_cooldown(self):
        self._cooldown_handle = None
        if self.armed:
            self.in_cooldown = False

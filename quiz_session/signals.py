"""
Environment signal sources.

The host environment (browser shell, kiosk wrapper, desktop client) reports
fullscreen, visibility, focus, keyboard, clipboard, navigation and network
events through an EnvironmentSignalSource. The integrity monitor consumes
them without knowing where they come from.
"""

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, List, Optional

from .connectivity import check_internet_connectivity


class Signal(str, Enum):
    FULLSCREEN_EXITED = "fullscreen-exited"
    TAB_HIDDEN = "tab-hidden"
    WINDOW_BLUR = "window-blur"
    KEY_PRESSED = "key-pressed"
    CLIPBOARD = "clipboard"
    CONTEXT_MENU = "context-menu"
    BACK_NAVIGATION = "back-navigation"
    NETWORK_ONLINE = "network-online"
    NETWORK_OFFLINE = "network-offline"


@dataclass(frozen=True)
class SignalEvent:
    kind: Signal
    detail: str = ""  # key combination or clipboard action


# Returns True when the host should prevent the event's default action.
SignalCallback = Callable[[SignalEvent], bool]


def normalize_key_combo(combo: str) -> str:
    """
    Canonical form of a key combination, e.g. ``shift+ctrl+i`` -> ``Ctrl+Shift+I``.
    """
    modifiers_order = ["Ctrl", "Alt", "Shift", "Meta"]
    aliases = {"control": "Ctrl", "ctrl": "Ctrl", "alt": "Alt", "option": "Alt",
               "shift": "Shift", "meta": "Meta", "cmd": "Meta", "command": "Meta"}

    parts = [p.strip() for p in combo.replace(" ", "").split("+") if p.strip()]
    modifiers = set()
    keys = []
    for part in parts:
        alias = aliases.get(part.lower())
        if alias:
            modifiers.add(alias)
        else:
            keys.append(part.upper() if len(part) == 1 else part.capitalize())

    ordered = [m for m in modifiers_order if m in modifiers]
    return "+".join(ordered + keys)


def is_forbidden_key(combo: str, forbidden: Iterable[str]) -> bool:
    """Check a key combination against the configured forbidden list."""
    normalized = normalize_key_combo(combo)
    return any(normalized == normalize_key_combo(f) for f in forbidden)


class EnvironmentSignalSource:
    """Capability the host must provide. Subclasses deliver events to the callback."""

    def __init__(self):
        self.callback: Optional[SignalCallback] = None

    @property
    def listening(self) -> bool:
        return self.callback is not None

    def start(self, callback: SignalCallback):
        self.callback = callback

    def stop(self):
        self.callback = None

    def request_fullscreen(self) -> bool:
        """Ask the host to enter fullscreen. Returns False if refused or unsupported."""
        return False

    def emit(self, event: SignalEvent) -> bool:
        """Deliver an event if listening. Returns the prevent-default decision."""
        callback = self.callback
        if callback is None:
            return False
        return bool(callback(event))


class CompositeSignalSource(EnvironmentSignalSource):
    """Fans several sources into a single callback."""

    def __init__(self, sources: List[EnvironmentSignalSource]):
        super().__init__()
        self.sources = list(sources)

    def start(self, callback: SignalCallback):
        super().start(callback)
        for source in self.sources:
            source.start(callback)

    def stop(self):
        for source in self.sources:
            source.stop()
        super().stop()

    def request_fullscreen(self) -> bool:
        return any(source.request_fullscreen() for source in self.sources)


class ConnectivitySignalSource(EnvironmentSignalSource):
    """Polls internet reachability in a daemon thread and reports changes."""

    def __init__(self, check_interval_seconds: float = 15, checker: Callable[[], bool] = check_internet_connectivity):
        super().__init__()
        self.check_interval_seconds = check_interval_seconds
        self.checker = checker
        self.last_state: Optional[bool] = None
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self, callback: SignalCallback):
        super().start(callback)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._monitor_background, daemon=True)
        self._thread.start()

    def stop(self):
        super().stop()
        self._stop_event.set()
        if self._thread and self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        self._thread = None

    def poll_once(self):
        """Run one connectivity check and emit if the state changed."""
        online = self.checker()
        if online != self.last_state:
            self.last_state = online
            self.emit(SignalEvent(Signal.NETWORK_ONLINE if online else Signal.NETWORK_OFFLINE))

    def _monitor_background(self):
        while not self._stop_event.is_set():
            self.poll_once()
            self._stop_event.wait(self.check_interval_seconds)

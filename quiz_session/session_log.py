"""
Append-only session event log.

Each entry is one line: ``[YYYY-MM-DD HH:MM:SS] - EVENT - details``.
"""

from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Tuple


class SessionLog:
    """Callable event logger shared by all components of a session."""

    def __init__(self, path: Optional[Path] = None, clock: Optional[Callable[[], datetime]] = None):
        self.path = Path(path) if path else None
        self.clock = clock or datetime.now
        self.entries: List[Tuple[str, str]] = []

    def __call__(self, event: str, details: str = ""):
        self.log(event, details)

    def log(self, event: str, details: str = ""):
        """Append an entry to the session log."""
        self.entries.append((event, details))
        if self.path is None:
            return

        timestamp = self.clock().strftime("%Y-%m-%d %H:%M:%S")
        log_entry = f"[{timestamp}] - {event}"
        if details:
            log_entry += f" - {details}"
        log_entry += "\n"

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'a', encoding='utf-8') as f:
            f.write(log_entry)

    def events(self, name: Optional[str] = None) -> List[str]:
        """Return logged event names, optionally filtered to one name."""
        return [e for e, _ in self.entries if name is None or e == name]

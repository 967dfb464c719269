"""
Local autosave of in-progress answers.

The store keeps one entry per (student, assignment) pair and survives
process restarts. The Autosaver in front of it debounces writes so only
the latest answer set is ever persisted.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from cryptography.fernet import Fernet, InvalidToken

from .clock import Scheduler, TimerHandle
from .crypto import derive_key_from_password, SALT_LENGTH
from .errors import AutosaveFailure
from .models import AutosaveStatus


@dataclass(frozen=True)
class AutosaveKey:
    """Identity of one autosave entry."""
    student_id: str
    assignment_id: str

    @property
    def slug(self) -> str:
        safe_student = "".join(c if c.isalnum() else '_' for c in self.student_id)
        safe_assignment = "".join(c if c.isalnum() else '_' for c in self.assignment_id)
        return f"assignment_{safe_assignment}_{safe_student}"


class AutosaveStore:
    """Interface of a durable local key-value store for answer sets."""

    def load(self, key: AutosaveKey) -> Optional[dict]:
        raise NotImplementedError

    def save(self, key: AutosaveKey, entry: dict):
        raise NotImplementedError

    def clear(self, key: AutosaveKey):
        raise NotImplementedError


class MemoryAutosaveStore(AutosaveStore):
    """Process-local store, mainly for simulations."""

    def __init__(self):
        self.entries = {}

    def load(self, key: AutosaveKey) -> Optional[dict]:
        entry = self.entries.get(key)
        return json.loads(entry) if entry is not None else None

    def save(self, key: AutosaveKey, entry: dict):
        self.entries[key] = json.dumps(entry)

    def clear(self, key: AutosaveKey):
        self.entries.pop(key, None)


class FileAutosaveStore(AutosaveStore):
    """One JSON file per entry under ``directory``."""

    suffix = ".json"

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def path_for(self, key: AutosaveKey) -> Path:
        return self.directory / f"{key.slug}{self.suffix}"

    def _encode(self, entry: dict) -> bytes:
        return json.dumps(entry, indent=2).encode('utf-8')

    def _decode(self, data: bytes) -> dict:
        return json.loads(data)

    def load(self, key: AutosaveKey) -> Optional[dict]:
        """
        Load an entry.

        Returns:
            The stored entry, or None if there is none

        Raises:
            AutosaveFailure: If the entry exists but cannot be read
        """
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, 'rb') as f:
                return self._decode(f.read())
        except (OSError, ValueError, InvalidToken) as e:
            raise AutosaveFailure(f"Could not read autosave entry {path.name}: {e}") from e

    def save(self, key: AutosaveKey, entry: dict):
        """Write an entry atomically (temp file + rename)."""
        path = self.path_for(key)
        tmp_path = path.with_name(path.name + ".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(self._encode(entry))
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            raise AutosaveFailure(f"Could not write autosave entry {path.name}: {e}") from e

    def clear(self, key: AutosaveKey):
        path = self.path_for(key)
        try:
            if path.exists():
                path.unlink()
        except OSError as e:
            raise AutosaveFailure(f"Could not remove autosave entry {path.name}: {e}") from e


class EncryptedFileAutosaveStore(FileAutosaveStore):
    """Fernet-encrypted variant so answers cannot be read or edited on disk."""

    suffix = ".enc"

    def __init__(self, directory: Path, key: bytes):
        super().__init__(directory)
        self.fernet = Fernet(key)

    @classmethod
    def from_password(cls, directory: Path, password: str) -> 'EncryptedFileAutosaveStore':
        """
        Derive the store key from a password.

        The salt is generated once per directory and kept in ``.salt``.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        salt_path = directory / ".salt"
        if salt_path.exists():
            salt = salt_path.read_bytes()
        else:
            salt = os.urandom(SALT_LENGTH)
            salt_path.write_bytes(salt)
        return cls(directory, derive_key_from_password(password, salt))

    def _encode(self, entry: dict) -> bytes:
        return self.fernet.encrypt(json.dumps(entry).encode('utf-8'))

    def _decode(self, data: bytes) -> dict:
        return json.loads(self.fernet.decrypt(data))


class Autosaver:
    """
    Trailing-edge debounce in front of an AutosaveStore.

    Each ``schedule()`` restarts the quiet period. When it elapses the
    current snapshot is written. Write failures only change the status.
    """

    def __init__(
        self,
        store: AutosaveStore,
        key: AutosaveKey,
        scheduler: Scheduler,
        snapshot: Callable[[], dict],
        debounce_seconds: float = 2.0,
        on_status: Optional[Callable[[AutosaveStatus], None]] = None,
        session_logger=None
    ):
        self.store = store
        self.key = key
        self.scheduler = scheduler
        self.snapshot = snapshot
        self.debounce_seconds = debounce_seconds
        self.on_status = on_status
        self.session_logger = session_logger

        self.status = AutosaveStatus.SAVED
        self.active = True
        self._handle: Optional[TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None and self._handle.active

    def schedule(self):
        """Restart the debounce window."""
        if not self.active:
            return
        self.cancel()
        self._handle = self.scheduler.call_later(self.debounce_seconds, self._fire)

    def cancel(self):
        if self._handle:
            self._handle.cancel()
            self._handle = None

    def flush(self) -> bool:
        """Write immediately if a save is pending. Returns True on success."""
        if not self.pending:
            return self.status != AutosaveStatus.ERROR
        return self.write_now()

    def write_now(self) -> bool:
        """Write the current snapshot, replacing any pending debounced save."""
        self.cancel()
        if not self.active:
            return False
        return self._write()

    def stop(self):
        """Disable further writes. A debounce already in flight is a no-op."""
        self.cancel()
        self.active = False

    def _fire(self):
        self._handle = None
        if not self.active:
            return
        self._write()

    def _write(self) -> bool:
        self._set_status(AutosaveStatus.SAVING)
        entry = self.snapshot()
        try:
            self.store.save(self.key, entry)
        except AutosaveFailure as e:
            self._set_status(AutosaveStatus.ERROR)
            if self.session_logger:
                self.session_logger("AUTOSAVE_ERROR", str(e))
            return False

        self._set_status(AutosaveStatus.SAVED)
        if self.session_logger:
            self.session_logger("ANSWERS_SAVED", f"{len(entry.get('answers', []))} answer(s) saved locally")
        return True

    def _set_status(self, status: AutosaveStatus):
        self.status = status
        if self.on_status:
            self.on_status(status)

    def load(self) -> Optional[dict]:
        """Read the stored entry. An unreadable entry is logged and treated as absent."""
        try:
            return self.store.load(self.key)
        except AutosaveFailure as e:
            if self.session_logger:
                self.session_logger("AUTOSAVE_LOAD_ERROR", str(e))
            return None

    def clear(self) -> bool:
        try:
            self.store.clear(self.key)
        except AutosaveFailure as e:
            if self.session_logger:
                self.session_logger("AUTOSAVE_CLEAR_ERROR", str(e))
            return False
        return True

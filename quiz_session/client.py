"""
Assignment content and submission boundaries.

HttpAssignmentClient talks to the course platform API. LocalAssignmentClient
reads a plaintext or encrypted bank file and writes submissions to an outbox
directory, for offline exam rooms.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import requests
from cryptography.fernet import InvalidToken

from .crypto import decrypt
from .errors import ContentLoadFailure, SubmissionFailure
from .models import AssignmentContent

logger = logging.getLogger(__name__)


class AssignmentClient:
    """Interface of the content and submission boundaries."""

    def fetch_assignment(self, assignment_id: str) -> AssignmentContent:
        raise NotImplementedError

    def submit_assignment(self, assignment_id: str, payload: dict) -> dict:
        raise NotImplementedError


class HttpAssignmentClient(AssignmentClient):
    """
    REST client for ``/student/assignments``.

    The server rejects a second submission for the same student; that
    rejection is treated as an acknowledgement of the first.
    """

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: float = 10.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()
        if token:
            self.http.headers["Authorization"] = f"Bearer {token}"

    def fetch_assignment(self, assignment_id: str) -> AssignmentContent:
        url = f"{self.base_url}/student/assignments/{assignment_id}"
        try:
            resp = self.http.get(url, timeout=self.timeout)
            resp.raise_for_status()
            return AssignmentContent.from_dict(resp.json(), assignment_id=assignment_id)
        except requests.exceptions.RequestException as e:
            logger.warning("Assignment fetch failed id=%s: %s", assignment_id, e)
            raise ContentLoadFailure(f"Could not load assignment {assignment_id}: {e}") from e
        except ValueError as e:
            logger.warning("Assignment payload invalid id=%s: %s", assignment_id, e)
            raise ContentLoadFailure(f"Invalid assignment {assignment_id}: {e}") from e

    def submit_assignment(self, assignment_id: str, payload: dict) -> dict:
        url = f"{self.base_url}/student/assignments/{assignment_id}/submit"
        try:
            resp = self.http.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.warning("Submission failed id=%s: %s", assignment_id, e)
            raise SubmissionFailure(f"Could not reach the server: {e}") from e

        if self._is_duplicate(resp):
            logger.info("Submission already recorded id=%s", assignment_id)
            return {"duplicate": True, "status": resp.status_code}

        try:
            resp.raise_for_status()
        except requests.exceptions.HTTPError as e:
            logger.warning("Submission rejected id=%s status=%s", assignment_id, resp.status_code)
            raise SubmissionFailure(f"Server rejected the submission: {e}") from e

        try:
            return resp.json()
        except ValueError:
            return {"status": resp.status_code}

    @staticmethod
    def _is_duplicate(resp) -> bool:
        if resp.status_code == 409:
            return True
        if resp.status_code != 400:
            return False
        try:
            message = str(resp.json().get('message', ''))
        except (ValueError, AttributeError):
            return False
        return "already submitted" in message.lower()


class LocalAssignmentClient(AssignmentClient):
    """Offline boundary backed by a bank file and an outbox directory."""

    def __init__(self, bank_path: Path, outbox_dir: Path, student_id: str,
                 password: Optional[str] = None):
        self.bank_path = Path(bank_path)
        self.outbox_dir = Path(outbox_dir)
        self.student_id = student_id
        self.password = password

    def _read_bank(self) -> dict:
        """
        Load the bank, decrypting ``.enc`` files with the password or key.

        Raises:
            ContentLoadFailure: If the file is missing, undecryptable or not JSON
        """
        try:
            data = self.bank_path.read_bytes()
        except OSError as e:
            raise ContentLoadFailure(f"Cannot read bank {self.bank_path}: {e}") from e

        if self.bank_path.suffix.lower() != '.json':
            if not self.password:
                raise ContentLoadFailure("Encrypted bank requires a password or key")
            try:
                data = decrypt(data, self.password)
            except (InvalidToken, ValueError) as e:
                raise ContentLoadFailure("Failed to decrypt the assignment bank") from e

        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            raise ContentLoadFailure(f"Invalid JSON in bank: {e}") from e

    def list_assignments(self) -> List[dict]:
        """
        Raises:
            ContentLoadFailure: If the bank is not an object or an entry is not an object
        """
        bank = self._read_bank()
        if not isinstance(bank, dict):
            raise ContentLoadFailure(f"Bank {self.bank_path.name} must be a JSON object")
        entries = bank['assignments'] if 'assignments' in bank else [bank]
        if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
            raise ContentLoadFailure(f"Bank {self.bank_path.name}: 'assignments' must be a list of objects")
        return list(entries)

    def fetch_assignment(self, assignment_id: str) -> AssignmentContent:
        for entry in self.list_assignments():
            meta = entry.get('assignment')
            if not isinstance(meta, dict):
                meta = {}
            entry_id = str(meta.get('_id') or meta.get('id') or "")
            if entry_id and entry_id != assignment_id:
                continue
            try:
                return AssignmentContent.from_dict(entry, assignment_id=assignment_id)
            except ValueError as e:
                raise ContentLoadFailure(f"Invalid assignment {assignment_id}: {e}") from e
        raise ContentLoadFailure(f"Assignment {assignment_id} not found in {self.bank_path.name}")

    def outbox_path(self, assignment_id: str) -> Path:
        safe_student = "".join(c if c.isalnum() else '_' for c in self.student_id)
        safe_assignment = "".join(c if c.isalnum() else '_' for c in assignment_id)
        return self.outbox_dir / f"{safe_student}_{safe_assignment}.json"

    def submit_assignment(self, assignment_id: str, payload: dict) -> dict:
        path = self.outbox_path(assignment_id)
        if path.exists():
            return {"duplicate": True, "path": str(path)}

        record = {
            "assignmentId": assignment_id,
            "studentId": self.student_id,
            "answers": payload.get("answers", []),
            "status": "SUBMITTED",
            "createdAt": datetime.now().isoformat(),
        }
        try:
            self.outbox_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise SubmissionFailure(f"Outbox {self.outbox_dir} is not writable: {e}") from e

        try:
            with open(path, 'x', encoding='utf-8') as f:
                json.dump(record, f, indent=2)
        except FileExistsError:
            return {"duplicate": True, "path": str(path)}
        except OSError as e:
            raise SubmissionFailure(f"Could not write submission: {e}") from e
        return {"path": str(path)}

"""
Shared fixtures: a deterministic scheduler, a scriptable signal source and an
in-memory assignment client.
"""

import copy
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from quiz_session.autosave import MemoryAutosaveStore
from quiz_session.client import AssignmentClient
from quiz_session.clock import ManualScheduler
from quiz_session.errors import ContentLoadFailure, SubmissionFailure
from quiz_session.models import AssignmentContent
from quiz_session.session import AssessmentSession
from quiz_session.signals import EnvironmentSignalSource, SignalEvent


QUIZ = {
    "assignment": {
        "_id": "A1",
        "title": "Week 3 Quiz",
        "totalMarks": 10,
        "durationMinutes": 1,
        "description": "Arithmetic and short answers",
    },
    "questions": [
        {
            "_id": "q1",
            "type": "MCQ",
            "questionText": "2 + 2 = ?",
            "marks": 2,
            "options": [{"text": "3"}, {"text": "4"}, {"text": "5"}],
            "correctAnswerIndex": 1,
        },
        {
            "_id": "q2",
            "type": "TEXT",
            "questionText": "Explain addition.",
            "marks": 5,
        },
        {
            "_id": "q3",
            "type": "CODE",
            "questionText": "Write add(a, b).",
            "marks": 3,
        },
    ],
}


class FakeSignalSource(EnvironmentSignalSource):
    """Signal source driven by the test."""

    def __init__(self, fullscreen: bool = True):
        super().__init__()
        self.fullscreen = fullscreen
        self.fullscreen_requests = 0

    def request_fullscreen(self) -> bool:
        self.fullscreen_requests += 1
        return self.fullscreen

    def fire(self, kind, detail: str = "") -> bool:
        return self.emit(SignalEvent(kind, detail))


class FakeClient(AssignmentClient):
    """In-memory boundary that can be told to fail the next N calls."""

    def __init__(self, data: dict):
        self.data = data
        self.fetch_failures = 0
        self.submit_failures = 0
        self.submissions = []

    def fetch_assignment(self, assignment_id: str) -> AssignmentContent:
        if self.fetch_failures:
            self.fetch_failures -= 1
            raise ContentLoadFailure("content service unavailable")
        return AssignmentContent.from_dict(self.data, assignment_id=assignment_id)

    def submit_assignment(self, assignment_id: str, payload: dict) -> dict:
        if self.submit_failures:
            self.submit_failures -= 1
            raise SubmissionFailure("503 Service Unavailable")
        self.submissions.append((assignment_id, payload))
        return {"message": "Assignment submitted successfully"}


@pytest.fixture
def quiz_data():
    return copy.deepcopy(QUIZ)


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def store():
    return MemoryAutosaveStore()


@pytest.fixture
def signal_source():
    return FakeSignalSource()


@pytest.fixture
def client(quiz_data):
    return FakeClient(quiz_data)


@pytest.fixture
def make_session(client, store, scheduler, signal_source):
    def _make(**kwargs):
        kwargs.setdefault("signal_source", signal_source)
        return AssessmentSession(
            "A1",
            "S1",
            kwargs.pop("client", client),
            kwargs.pop("store", store),
            scheduler,
            **kwargs
        )
    return _make


@pytest.fixture
def started_session(make_session):
    """A session already in IN_PROGRESS at virtual time 0."""
    session = make_session()
    session.load()
    session.start()
    session.begin()
    return session

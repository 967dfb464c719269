"""
Tests for the assignment content and submission boundaries.

The HTTP client is exercised against a mocked requests session; the local
client against bank and outbox files in a temporary directory.
"""

import json
import pytest
import requests
from unittest.mock import Mock
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from cryptography.fernet import Fernet

from quiz_session.client import HttpAssignmentClient, LocalAssignmentClient
from quiz_session.crypto import encrypt_with_password
from quiz_session.errors import ContentLoadFailure, SubmissionFailure


PAYLOAD = {"answers": [{"questionId": "q1", "answer": "4"}]}


def make_response(status_code=200, body=None):
    response = Mock()
    response.status_code = status_code
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(f"{status_code} Error")
    return response


@pytest.fixture
def http():
    session = Mock()
    session.headers = {}
    return session


@pytest.fixture
def api(http):
    return HttpAssignmentClient("https://lms.example.edu/api/", token="T0KEN", session=http)


class TestHttpFetch:
    """Test GET /student/assignments/{id}."""

    def test_fetch(self, api, http, quiz_data):
        http.get.return_value = make_response(200, quiz_data)

        content = api.fetch_assignment("A1")

        http.get.assert_called_once_with("https://lms.example.edu/api/student/assignments/A1", timeout=10.0)
        assert content.assignment.title == "Week 3 Quiz"
        assert len(content.questions) == 3

    def test_token_header(self, api, http):
        assert http.headers["Authorization"] == "Bearer T0KEN"

    def test_connection_error(self, api, http):
        http.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ContentLoadFailure):
            api.fetch_assignment("A1")

    def test_not_found(self, api, http):
        http.get.return_value = make_response(404, {"message": "Assignment not found"})

        with pytest.raises(ContentLoadFailure):
            api.fetch_assignment("A1")

    def test_malformed_payload(self, api, http):
        http.get.return_value = make_response(200, {"assignment": {}})

        with pytest.raises(ContentLoadFailure):
            api.fetch_assignment("A1")

    @pytest.mark.parametrize("body", [
        ["A1"],
        {"assignment": {"_id": "A1"}, "questions": [{"_id": "q1", "type": "MCQ", "marks": 1,
                                                     "options": [{"label": "a"}, {"label": "b"}]}]},
        {"assignment": {"_id": "A1"}, "questions": ["q1"]},
    ])
    def test_malformed_questions(self, api, http, body):
        http.get.return_value = make_response(200, body)

        with pytest.raises(ContentLoadFailure, match="Invalid assignment"):
            api.fetch_assignment("A1")


class TestHttpSubmit:
    """Test POST /student/assignments/{id}/submit."""

    def test_submit(self, api, http):
        http.post.return_value = make_response(201, {"message": "Assignment submitted successfully"})

        ack = api.submit_assignment("A1", PAYLOAD)

        http.post.assert_called_once_with(
            "https://lms.example.edu/api/student/assignments/A1/submit", json=PAYLOAD, timeout=10.0)
        assert ack["message"] == "Assignment submitted successfully"

    def test_conflict_is_duplicate_ack(self, api, http):
        http.post.return_value = make_response(409, {"message": "Conflict"})

        assert api.submit_assignment("A1", PAYLOAD) == {"duplicate": True, "status": 409}

    def test_already_submitted_message_is_duplicate_ack(self, api, http):
        http.post.return_value = make_response(400, {"message": "You have already submitted this assignment"})

        assert api.submit_assignment("A1", PAYLOAD)["duplicate"] is True

    def test_other_bad_request_fails(self, api, http):
        http.post.return_value = make_response(400, {"message": "Invalid question ID"})

        with pytest.raises(SubmissionFailure):
            api.submit_assignment("A1", PAYLOAD)

    def test_server_error_fails(self, api, http):
        http.post.return_value = make_response(503)

        with pytest.raises(SubmissionFailure):
            api.submit_assignment("A1", PAYLOAD)

    def test_timeout_fails(self, api, http):
        http.post.side_effect = requests.exceptions.Timeout("timed out")

        with pytest.raises(SubmissionFailure):
            api.submit_assignment("A1", PAYLOAD)

    def test_empty_success_body(self, api, http):
        http.post.return_value = make_response(204)

        assert api.submit_assignment("A1", PAYLOAD) == {"status": 204}


@pytest.fixture
def bank_file(tmp_path, quiz_data):
    path = tmp_path / "quiz.json"
    path.write_text(json.dumps(quiz_data), encoding="utf-8")
    return path


class TestLocalClient:
    """Test the offline bank and outbox."""

    def test_fetch_plain_bank(self, bank_file, tmp_path):
        client = LocalAssignmentClient(bank_file, tmp_path / "outbox", student_id="S1")

        content = client.fetch_assignment("A1")

        assert content.assignment.id == "A1"

    def test_unknown_assignment(self, bank_file, tmp_path):
        client = LocalAssignmentClient(bank_file, tmp_path / "outbox", student_id="S1")

        with pytest.raises(ContentLoadFailure, match="not found"):
            client.fetch_assignment("B2")

    def test_multi_assignment_bank(self, tmp_path, quiz_data):
        second = json.loads(json.dumps(quiz_data))
        second["assignment"]["_id"] = "B2"
        second["assignment"]["title"] = "Week 4 Quiz"
        path = tmp_path / "course.json"
        path.write_text(json.dumps({"assignments": [quiz_data, second]}), encoding="utf-8")
        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1")

        assert client.fetch_assignment("B2").assignment.title == "Week 4 Quiz"

    @pytest.mark.parametrize("field, value", [
        ("options", ["3", {"label": "x"}]),
        ("correctAnswerIndex", "1"),
    ])
    def test_malformed_question_is_load_failure(self, tmp_path, quiz_data, field, value):
        quiz_data["questions"][0][field] = value
        path = tmp_path / "quiz.json"
        path.write_text(json.dumps(quiz_data), encoding="utf-8")
        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1")

        with pytest.raises(ContentLoadFailure, match="Invalid assignment"):
            client.fetch_assignment("A1")

    @pytest.mark.parametrize("bank", [[1, 2], {"assignments": ["A1"]}, {"assignments": {"_id": "A1"}}])
    def test_malformed_bank_structure(self, tmp_path, bank):
        path = tmp_path / "quiz.json"
        path.write_text(json.dumps(bank), encoding="utf-8")
        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1")

        with pytest.raises(ContentLoadFailure):
            client.fetch_assignment("A1")

    def test_missing_bank(self, tmp_path):
        client = LocalAssignmentClient(tmp_path / "none.json", tmp_path / "outbox", student_id="S1")

        with pytest.raises(ContentLoadFailure):
            client.fetch_assignment("A1")

    def test_password_encrypted_bank(self, tmp_path, quiz_data):
        path = tmp_path / "quiz.enc"
        path.write_bytes(encrypt_with_password(json.dumps(quiz_data).encode("utf-8"), "s3cret-pass"))

        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1", password="s3cret-pass")

        assert client.fetch_assignment("A1").assignment.total_marks == 10

    def test_key_encrypted_bank(self, tmp_path, quiz_data):
        key = Fernet.generate_key()
        path = tmp_path / "quiz.enc"
        path.write_bytes(Fernet(key).encrypt(json.dumps(quiz_data).encode("utf-8")))

        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1", password=key.decode())

        assert len(client.fetch_assignment("A1").questions) == 3

    @pytest.mark.parametrize("secret", ["wrong-pass", None])
    def test_bad_secret(self, tmp_path, quiz_data, secret):
        path = tmp_path / "quiz.enc"
        path.write_bytes(encrypt_with_password(json.dumps(quiz_data).encode("utf-8"), "s3cret-pass"))

        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1", password=secret)

        with pytest.raises(ContentLoadFailure):
            client.fetch_assignment("A1")

    def test_bad_raw_key(self, tmp_path, quiz_data):
        path = tmp_path / "quiz.enc"
        path.write_bytes(Fernet(Fernet.generate_key()).encrypt(b"{}"))

        client = LocalAssignmentClient(path, tmp_path / "outbox", student_id="S1", password="not-a-key")

        with pytest.raises(ContentLoadFailure):
            client.fetch_assignment("A1")

    def test_submit_writes_outbox_once(self, bank_file, tmp_path):
        client = LocalAssignmentClient(bank_file, tmp_path / "outbox", student_id="S 1")

        ack = client.submit_assignment("A1", PAYLOAD)

        path = Path(ack["path"])
        assert path.name == "S_1_A1.json"
        record = json.loads(path.read_text(encoding="utf-8"))
        assert record["answers"] == PAYLOAD["answers"]
        assert record["status"] == "SUBMITTED"

        again = client.submit_assignment("A1", {"answers": []})
        assert again["duplicate"] is True
        assert json.loads(path.read_text(encoding="utf-8"))["answers"] == PAYLOAD["answers"]

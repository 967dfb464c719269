"""
Tests for data models and session configuration.
"""

import pytest
from datetime import datetime
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from quiz_session.models import (
    Answer,
    AssignmentContent,
    Correctness,
    EvaluationRecord,
    Question,
    QuestionType,
    SessionConfig,
    Stage,
    Submission,
    SubmissionStatus,
)


class TestQuestion:
    """Test question parsing and validation."""

    def test_api_shape(self):
        question = Question.from_dict({
            "_id": "q1", "type": "mcq", "questionText": "Pick", "marks": 2,
            "options": [{"text": "a"}, {"text": "b"}], "correctAnswerIndex": 0,
        })

        assert question.type == QuestionType.MCQ
        assert question.prompt == "Pick"
        assert question.options == ["a", "b"]
        assert question.correct_answer == "a"

    def test_bank_shape(self):
        question = Question.from_dict({"id": "q2", "type": "TEXT", "prompt": "Explain", "marks": 5,
                                       "options": ["ignored"]})

        assert question.options == []
        assert question.correct_answer is None

    @pytest.mark.parametrize("data, message", [
        ({"type": "TEXT", "marks": 1}, "missing an id"),
        ({"id": "q", "type": "ESSAY", "marks": 1}, "unknown type"),
        ({"id": "q", "type": "TEXT", "marks": 0}, "positive integer"),
        ({"id": "q", "type": "TEXT", "marks": 1.5}, "positive integer"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["only"]}, "at least 2"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["a", " "]}, "must have text"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["a", "b"], "correctAnswerIndex": 2}, "index"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["a", "b"], "correctAnswerIndex": "1"}, "integer"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["a", "b"], "correctAnswerIndex": True}, "integer"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": ["3", {"label": "x"}]}, "must have text"),
        ({"id": "q", "type": "MCQ", "marks": 1, "options": "a,b"}, "must be a list"),
    ])
    def test_invalid_questions(self, data, message):
        with pytest.raises(ValueError, match=message):
            Question.from_dict(data)

    def test_student_view_hides_key(self):
        question = Question("q1", QuestionType.MCQ, "Pick", 1, ["a", "b"], 1)

        assert question.student_view().correct_answer_index is None
        assert question.correct_answer_index == 1


class TestAssignmentContent:
    """Test the content envelope."""

    def test_parse(self, quiz_data):
        content = AssignmentContent.from_dict(quiz_data)

        assert content.assignment.id == "A1"
        assert content.assignment.duration_seconds == 60
        assert [q.id for q in content.questions] == ["q1", "q2", "q3"]
        assert content.get_question("q2").marks == 5
        assert content.get_question("missing") is None

    def test_total_marks_defaults_to_sum(self, quiz_data):
        del quiz_data["assignment"]["totalMarks"]

        assert AssignmentContent.from_dict(quiz_data).assignment.total_marks == 10

    def test_duplicate_question_ids_rejected(self, quiz_data):
        quiz_data["questions"][1]["_id"] = "q1"

        with pytest.raises(ValueError, match="Duplicate"):
            AssignmentContent.from_dict(quiz_data)

    def test_missing_envelope_rejected(self):
        with pytest.raises(ValueError):
            AssignmentContent.from_dict({"questions": []})

    def test_non_object_entries_rejected(self, quiz_data):
        with pytest.raises(ValueError, match="must be an object"):
            AssignmentContent.from_dict({"assignment": "A1", "questions": []})

        quiz_data["questions"].append("q4")
        with pytest.raises(ValueError, match="must be an object"):
            AssignmentContent.from_dict(quiz_data)

    def test_non_numeric_duration_rejected(self, quiz_data):
        quiz_data["assignment"]["durationMinutes"] = "one hour"

        with pytest.raises(ValueError, match="must be numbers"):
            AssignmentContent.from_dict(quiz_data)


class TestRecords:
    """Test answer and evaluation record serialization."""

    def test_answer_dict(self):
        answer = Answer("q1", "4", datetime(2024, 1, 1, 9, 0, 5))

        assert answer.to_dict() == {"questionId": "q1", "answer": "4", "savedAt": "2024-01-01T09:00:05"}
        assert Answer.from_dict(answer.to_dict()) == answer

    def test_evaluation_record_tristate(self):
        assert EvaluationRecord.from_dict({"questionId": "q1", "isCorrect": None}).is_correct is Correctness.PENDING
        assert EvaluationRecord.from_dict({"questionId": "q1", "isCorrect": False}).is_correct is Correctness.INCORRECT
        assert EvaluationRecord("q1", "x", 1, Correctness.CORRECT).to_dict()["isCorrect"] is True

    def test_populated_question_reference(self):
        record = EvaluationRecord.from_dict({"questionId": {"_id": "q9", "marks": 2}, "answer": "a"})

        assert record.question_id == "q9"

    def test_student_view_masks_until_evaluated(self):
        submission = Submission.from_dict({
            "assignmentId": {"_id": "A1", "totalMarks": 10},
            "studentId": "S1",
            "answers": [{"questionId": "q1", "answer": "4", "isCorrect": True, "awardedMarks": 2}],
        })

        assert submission.status == SubmissionStatus.SUBMITTED
        assert submission.student_view().records[0].is_correct is Correctness.PENDING
        assert submission.records[0].is_correct is Correctness.CORRECT

        submission.status = SubmissionStatus.EVALUATED
        assert submission.student_view().records[0].is_correct is Correctness.CORRECT


class TestStage:
    def test_order(self):
        assert [s.order for s in Stage] == [0, 1, 2, 3]
        assert Stage.SUBMITTED.order > Stage.IN_PROGRESS.order


class TestSessionConfig:
    """Test session policy validation."""

    def test_defaults(self):
        config = SessionConfig.default()

        assert config.max_violations == 3
        assert config.safe_window_seconds == 2.0
        assert config.cooldown_seconds == 3.0
        assert config.autosave_debounce_seconds == 2.0
        assert config.pass_threshold_percent == 40.0
        assert "Ctrl+Shift+I" in config.forbidden_keys
        assert config.validate() == (True, "")

    def test_from_dict(self):
        config = SessionConfig.from_dict({"max_violations": 5, "forbidden_keys": ["F12"]})

        assert config.max_violations == 5
        assert config.forbidden_keys == ["F12"]
        assert config.cooldown_seconds == 3.0

    @pytest.mark.parametrize("overrides", [
        {"max_violations": 0},
        {"cooldown_seconds": -1},
        {"tick_seconds": 0},
        {"pass_threshold_percent": 101},
        {"network_check_interval_seconds": 0},
    ])
    def test_invalid(self, overrides):
        is_valid, message = SessionConfig.from_dict(overrides).validate()

        assert is_valid is False
        assert message

"""
Data models for assessment content, answers and evaluation.

Provides type-safe structures for Question, Answer, AssignmentContent,
EvaluationRecord, Submission and SessionConfig objects.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any


class QuestionType(str, Enum):
    MCQ = "MCQ"
    TEXT = "TEXT"
    CODE = "CODE"


class Stage(str, Enum):
    """Phases of an assessment session, in the only order they may occur."""
    OVERVIEW = "OVERVIEW"
    INSTRUCTIONS = "INSTRUCTIONS"
    IN_PROGRESS = "IN_PROGRESS"
    SUBMITTED = "SUBMITTED"

    @property
    def order(self) -> int:
        return list(Stage).index(self)


class AutosaveStatus(str, Enum):
    SAVED = "saved"
    SAVING = "saving"
    ERROR = "error"


class SubmitTrigger(str, Enum):
    MANUAL = "manual"
    TIMER_EXPIRY = "timer-expiry"
    VIOLATION_LIMIT = "violation-limit"


class SubmissionStatus(str, Enum):
    SUBMITTED = "SUBMITTED"
    EVALUATED = "EVALUATED"


class Correctness(Enum):
    """Tri-state correctness of an answer. PENDING means awaiting manual evaluation."""
    CORRECT = True
    INCORRECT = False
    PENDING = None

    @staticmethod
    def from_value(value: Optional[bool]) -> 'Correctness':
        if value is None:
            return Correctness.PENDING
        return Correctness.CORRECT if value else Correctness.INCORRECT

    @property
    def is_resolved(self) -> bool:
        return self is not Correctness.PENDING


@dataclass(frozen=True)
class Question:
    """Represents a single question of an assignment."""
    id: str
    type: QuestionType
    prompt: str
    marks: int
    options: List[str] = field(default_factory=list)
    correct_answer_index: Optional[int] = None

    @staticmethod
    def from_dict(data: dict) -> 'Question':
        """
        Create a Question from a dictionary.

        Accepts both the API field names (``_id``, ``questionText``,
        ``options: [{"text": ...}]``, ``correctAnswerIndex``) and the short
        bank file names (``id``, ``prompt``, ``options: [...]``).

        Raises:
            ValueError: If the question is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Question must be an object, got {type(data).__name__}")

        question_id = data.get('_id') or data.get('id')
        if not question_id:
            raise ValueError("Question is missing an id")

        try:
            question_type = QuestionType(str(data.get('type', '')).upper())
        except ValueError:
            raise ValueError(f"Question {question_id}: unknown type '{data.get('type')}'")

        marks = data.get('marks')
        if not isinstance(marks, int) or isinstance(marks, bool) or marks < 1:
            raise ValueError(f"Question {question_id}: marks must be a positive integer")

        raw_options = data.get('options') or []
        if not isinstance(raw_options, list):
            raise ValueError(f"Question {question_id}: options must be a list")

        options = []
        for option in raw_options:
            if isinstance(option, dict):
                text = option.get('text')
                if not isinstance(text, str):
                    raise ValueError(f"Question {question_id}: all options must have text")
                options.append(text)
            else:
                options.append(str(option))

        correct_index = data.get('correctAnswerIndex', data.get('correct_answer_index'))

        if question_type == QuestionType.MCQ:
            if len(options) < 2:
                raise ValueError(f"Question {question_id}: MCQ must have at least 2 options")
            if any(not opt.strip() for opt in options):
                raise ValueError(f"Question {question_id}: all options must have text")
            if correct_index is not None:
                if not isinstance(correct_index, int) or isinstance(correct_index, bool):
                    raise ValueError(f"Question {question_id}: correct answer index must be an integer")
                if not 0 <= correct_index < len(options):
                    raise ValueError(f"Question {question_id}: correct answer index is invalid")
        else:
            options = []
            correct_index = None

        return Question(
            id=str(question_id),
            type=question_type,
            prompt=data.get('questionText') or data.get('prompt') or "",
            marks=marks,
            options=options,
            correct_answer_index=correct_index,
        )

    @property
    def correct_answer(self) -> Optional[str]:
        """Option text at the correct index, or None for non-MCQ questions."""
        if self.type != QuestionType.MCQ or self.correct_answer_index is None:
            return None
        return self.options[self.correct_answer_index]

    def student_view(self) -> 'Question':
        """Return a copy safe to show to the student (no answer key)."""
        return replace(self, correct_answer_index=None)


@dataclass
class Answer:
    """The latest locally written value for one question."""
    question_id: str
    value: str
    saved_at: datetime

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "answer": self.value,
            "savedAt": self.saved_at.isoformat(),
        }

    @staticmethod
    def from_dict(data: dict) -> 'Answer':
        return Answer(
            question_id=str(data['questionId']),
            value=str(data.get('answer', '')),
            saved_at=datetime.fromisoformat(data['savedAt']),
        )


@dataclass(frozen=True)
class AssignmentInfo:
    """Assignment metadata served with the questions."""
    id: str
    title: str
    total_marks: int
    duration_minutes: Optional[int] = None
    deadline: Optional[str] = None
    description: str = ""

    @property
    def duration_seconds(self) -> Optional[int]:
        if not self.duration_minutes:
            return None
        return int(self.duration_minutes) * 60


@dataclass(frozen=True)
class AssignmentContent:
    """Envelope returned by the assignment-content boundary."""
    assignment: AssignmentInfo
    questions: List[Question]

    @staticmethod
    def from_dict(data: dict, assignment_id: Optional[str] = None) -> 'AssignmentContent':
        """
        Create an AssignmentContent from ``{"assignment": {...}, "questions": [...]}``.

        Raises:
            ValueError: If a required field is missing or invalid
        """
        try:
            meta = data['assignment']
            raw_questions = data['questions']
        except (KeyError, TypeError):
            raise ValueError("Assignment payload must contain 'assignment' and 'questions'")
        if not isinstance(meta, dict) or not isinstance(raw_questions, list):
            raise ValueError("'assignment' must be an object and 'questions' a list")

        questions = [Question.from_dict(q) for q in raw_questions]
        seen = set()
        for question in questions:
            if question.id in seen:
                raise ValueError(f"Duplicate question id: {question.id}")
            seen.add(question.id)

        duration = meta.get('durationMinutes', meta.get('duration'))
        try:
            total_marks = int(meta.get('totalMarks') or sum(q.marks for q in questions))
            duration_minutes = int(duration) if duration else None
        except (TypeError, ValueError):
            raise ValueError("totalMarks and durationMinutes must be numbers")

        info = AssignmentInfo(
            id=str(meta.get('_id') or meta.get('id') or assignment_id or ""),
            title=meta.get('title', ""),
            total_marks=total_marks,
            duration_minutes=duration_minutes,
            deadline=meta.get('deadline'),
            description=meta.get('description') or "",
        )
        return AssignmentContent(assignment=info, questions=questions)

    def get_question(self, question_id: str) -> Optional[Question]:
        for question in self.questions:
            if question.id == question_id:
                return question
        return None

    def get_all_questions(self) -> Dict[str, Question]:
        """Return a dictionary mapping question IDs to Question objects."""
        return {q.id: q for q in self.questions}


@dataclass
class EvaluationRecord:
    """Correctness and marks awarded for one answer."""
    question_id: str
    answer: str
    awarded_marks: float = 0.0
    is_correct: Correctness = Correctness.PENDING
    teacher_comment: str = ""

    def to_dict(self) -> dict:
        return {
            "questionId": self.question_id,
            "answer": self.answer,
            "awardedMarks": self.awarded_marks,
            "isCorrect": self.is_correct.value,
            "teacherComment": self.teacher_comment,
        }

    @staticmethod
    def from_dict(data: dict) -> 'EvaluationRecord':
        question_id = data['questionId']
        if isinstance(question_id, dict):
            question_id = question_id.get('_id') or question_id.get('id')
        return EvaluationRecord(
            question_id=str(question_id),
            answer=data.get('answer') or "",
            awarded_marks=float(data.get('awardedMarks') or 0),
            is_correct=Correctness.from_value(data.get('isCorrect')),
            teacher_comment=data.get('teacherComment') or "",
        )


@dataclass
class Submission:
    """A persisted submission, as the boundary stores it."""
    assignment_id: str
    student_id: str
    total_marks: int
    records: List[EvaluationRecord]
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    total_score: float = 0.0
    feedback: str = ""

    @staticmethod
    def from_dict(data: dict) -> 'Submission':
        assignment = data.get('assignmentId')
        if isinstance(assignment, dict):
            assignment_id = assignment.get('_id') or assignment.get('id')
            total_marks = assignment.get('totalMarks', 0)
        else:
            assignment_id = assignment
            total_marks = data.get('totalMarks', 0)
        student = data.get('studentId')
        if isinstance(student, dict):
            student = student.get('_id') or student.get('id')
        return Submission(
            assignment_id=str(assignment_id),
            student_id=str(student or ""),
            total_marks=int(total_marks),
            records=[EvaluationRecord.from_dict(a) for a in data.get('answers', [])],
            status=SubmissionStatus(data.get('status', 'SUBMITTED')),
            total_score=float(data.get('totalScore') or 0),
            feedback=data.get('feedback') or "",
        )

    def to_dict(self) -> dict:
        return {
            "assignmentId": self.assignment_id,
            "studentId": self.student_id,
            "totalMarks": self.total_marks,
            "answers": [r.to_dict() for r in self.records],
            "status": self.status.value,
            "totalScore": self.total_score,
            "feedback": self.feedback,
        }

    def student_view(self) -> 'Submission':
        """Copy shown to the student: correctness stays hidden until evaluated."""
        if self.status == SubmissionStatus.EVALUATED:
            return self
        hidden = [replace(r, is_correct=Correctness.PENDING) for r in self.records]
        return replace(self, records=hidden)


@dataclass(frozen=True)
class SubmissionStats:
    """Aggregate statistics over a set of evaluation records."""
    total_questions: int
    answered_questions: int
    correct_count: int
    incorrect_count: int
    pending_count: int
    awarded_marks: float
    total_marks: float
    percentage_score: float
    is_passed: bool


DEFAULT_FORBIDDEN_KEYS = ["F12", "Ctrl+Shift+I", "Ctrl+Shift+J", "Ctrl+U"]


@dataclass
class SessionConfig:
    """
    Policy parameters for an assessment session.

    Attributes:
        max_violations: Counted violations that force submission
        safe_window_seconds: Grace period after begin() during which signals are ignored
        cooldown_seconds: Window after a counted violation during which signals are ignored
        autosave_debounce_seconds: Quiet period before the answer set is written locally
        tick_seconds: Countdown tick interval
        pass_threshold_percent: Minimum percentage for a pass
        forbidden_keys: Key combinations that count as violations
        network_check_interval_seconds: Connectivity polling interval
    """
    max_violations: int = 3
    safe_window_seconds: float = 2.0
    cooldown_seconds: float = 3.0
    autosave_debounce_seconds: float = 2.0
    tick_seconds: float = 1.0
    pass_threshold_percent: float = 40.0
    forbidden_keys: List[str] = field(default_factory=lambda: list(DEFAULT_FORBIDDEN_KEYS))
    network_check_interval_seconds: int = 15

    @staticmethod
    def from_dict(data: dict) -> 'SessionConfig':
        """Create SessionConfig from dictionary."""
        return SessionConfig(
            max_violations=int(data.get('max_violations', 3)),
            safe_window_seconds=float(data.get('safe_window_seconds', 2.0)),
            cooldown_seconds=float(data.get('cooldown_seconds', 3.0)),
            autosave_debounce_seconds=float(data.get('autosave_debounce_seconds', 2.0)),
            tick_seconds=float(data.get('tick_seconds', 1.0)),
            pass_threshold_percent=float(data.get('pass_threshold_percent', 40.0)),
            forbidden_keys=list(data.get('forbidden_keys', DEFAULT_FORBIDDEN_KEYS)),
            network_check_interval_seconds=int(data.get('network_check_interval_seconds', 15)),
        )

    def validate(self) -> tuple[bool, str]:
        """
        Validate configuration consistency.

        Returns:
            Tuple of (is_valid, error_message)
        """
        if self.max_violations < 1:
            return False, "max_violations must be at least 1"

        if any(x < 0 for x in [self.safe_window_seconds, self.cooldown_seconds,
                                self.autosave_debounce_seconds]):
            return False, "Time windows must be non-negative"

        if self.tick_seconds <= 0:
            return False, "tick_seconds must be positive"

        if not 0 <= self.pass_threshold_percent <= 100:
            return False, "pass_threshold_percent must be between 0 and 100"

        if self.network_check_interval_seconds < 1:
            return False, "network_check_interval_seconds must be at least 1"

        return True, ""

    @staticmethod
    def default() -> 'SessionConfig':
        """Return the default session policy."""
        return SessionConfig()

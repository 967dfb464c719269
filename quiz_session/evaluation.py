"""
Evaluation engine for submitted answers.

Objective questions (MCQ) are checked automatically against the answer key.
Subjective questions (TEXT, CODE) stay PENDING until a teacher grades them.
Aggregate statistics are a pure function of the evaluation records.
"""

from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Optional

from .errors import GradingError
from .models import (
    Correctness,
    EvaluationRecord,
    Question,
    QuestionType,
    Submission,
    SubmissionStats,
    SubmissionStatus,
)


class Evaluator:
    """Turns answers into evaluation records and records into statistics."""

    def __init__(self, pass_threshold_percent: float = 40.0):
        self.pass_threshold_percent = pass_threshold_percent
        self.checkers: Dict[QuestionType, Callable[[Question, str], Correctness]] = {
            QuestionType.MCQ: self._check_mcq,
        }

    # ===== CHECKER FUNCTIONS =====

    def _check_mcq(self, question: Question, value: str) -> Correctness:
        """The stored value must equal the option text at the correct index."""
        expected = question.correct_answer
        if expected is None:
            return Correctness.INCORRECT
        return Correctness.CORRECT if value == expected else Correctness.INCORRECT

    # ===== AUTOMATIC EVALUATION =====

    def evaluate_answer(self, question: Question, value: str) -> EvaluationRecord:
        """Evaluate one answer. Questions without a checker start PENDING."""
        checker = self.checkers.get(question.type)
        if checker is None:
            return EvaluationRecord(question_id=question.id, answer=value)

        correctness = checker(question, value)
        return EvaluationRecord(
            question_id=question.id,
            answer=value,
            awarded_marks=float(question.marks) if correctness is Correctness.CORRECT else 0.0,
            is_correct=correctness,
        )

    def evaluate_submission(self, questions: Iterable[Question], answers: Dict[str, str]) -> List[EvaluationRecord]:
        """
        Build one record per answered question, in question order.

        Args:
            questions: Questions of the assignment (with answer key)
            answers: Mapping of question id to the submitted value
        """
        return [
            self.evaluate_answer(question, answers[question.id])
            for question in questions if question.id in answers
        ]

    # ===== MANUAL GRADING =====

    def grade(
        self,
        record: EvaluationRecord,
        question: Question,
        awarded_marks: float,
        is_correct: Optional[bool] = None,
        comment: str = ""
    ) -> EvaluationRecord:
        """
        Apply a teacher's grade to one record.

        MCQ marks always follow correctness (full or zero); correctness comes
        from the key unless the teacher sets it. For TEXT and CODE the marks
        must lie in [0, question.marks]; when correctness is not given, any
        positive mark counts as correct.

        Raises:
            GradingError: If the marks are out of range
        """
        if question.type == QuestionType.MCQ:
            if is_correct is None:
                correctness = self._check_mcq(question, record.answer)
            else:
                correctness = Correctness.from_value(is_correct)
            marks = float(question.marks) if correctness is Correctness.CORRECT else 0.0
        else:
            marks = float(awarded_marks)
            if marks < 0 or marks > question.marks:
                raise GradingError(
                    f"Invalid marks for question {question.id}: {marks} not in [0, {question.marks}]")
            if is_correct is None:
                correctness = Correctness.CORRECT if marks > 0 else Correctness.INCORRECT
            else:
                correctness = Correctness.from_value(is_correct)

        return replace(record, awarded_marks=marks, is_correct=correctness, teacher_comment=comment or "")

    def finalize(
        self,
        submission: Submission,
        questions: Iterable[Question],
        grades: Dict[str, dict],
        feedback: str = ""
    ) -> Submission:
        """
        Apply teacher grades and mark the submission EVALUATED.

        Args:
            submission: A SUBMITTED submission
            questions: Questions of the assignment (with answer key)
            grades: question id -> {"awardedMarks", "isCorrect", "teacherComment"};
                answers without a grade keep their current record

        Raises:
            GradingError: If already evaluated, a grade is invalid, or the
                total exceeds the assignment's total marks
        """
        if submission.status == SubmissionStatus.EVALUATED:
            raise GradingError("Submission is already evaluated")

        by_id = {q.id: q for q in questions}
        records = []
        for record in submission.records:
            grade = grades.get(record.question_id)
            if grade is None:
                records.append(record)
                continue
            question = by_id.get(record.question_id)
            if question is None:
                raise GradingError(f"Unknown question: {record.question_id}")
            if not isinstance(grade, dict):
                raise GradingError(f"Grade for question {record.question_id} must be an object")
            records.append(self.grade(
                record,
                question,
                awarded_marks=float(grade.get('awardedMarks') or 0),
                is_correct=grade.get('isCorrect'),
                comment=grade.get('teacherComment', ""),
            ))

        total_score = sum(r.awarded_marks for r in records)
        if total_score > submission.total_marks:
            raise GradingError(
                f"Total score {total_score} exceeds assignment marks {submission.total_marks}")

        return replace(
            submission,
            records=records,
            total_score=total_score,
            feedback=feedback,
            status=SubmissionStatus.EVALUATED,
        )

    # ===== STATISTICS =====

    def compute_stats(
        self,
        records: Iterable[EvaluationRecord],
        total_marks: float,
        total_questions: Optional[int] = None
    ) -> SubmissionStats:
        """Aggregate statistics over a record set. Pure and deterministic."""
        records = list(records)
        awarded = sum(r.awarded_marks for r in records)
        percentage = (awarded * 100 / total_marks) if total_marks > 0 else 0.0

        return SubmissionStats(
            total_questions=len(records) if total_questions is None else total_questions,
            answered_questions=sum(1 for r in records if r.answer and r.answer.strip()),
            correct_count=sum(1 for r in records if r.is_correct is Correctness.CORRECT),
            incorrect_count=sum(1 for r in records if r.is_correct is Correctness.INCORRECT),
            pending_count=sum(1 for r in records if not r.is_correct.is_resolved),
            awarded_marks=awarded,
            total_marks=total_marks,
            percentage_score=percentage,
            is_passed=percentage >= self.pass_threshold_percent,
        )

    def submission_stats(self, submission: Submission) -> SubmissionStats:
        return self.compute_stats(submission.records, submission.total_marks)


def score_band(percentage: float) -> str:
    """Label for a percentage score."""
    if percentage >= 80:
        return "Excellent"
    if percentage >= 60:
        return "Good"
    if percentage >= 40:
        return "Average"
    return "Needs Improvement"


def format_stats(stats: SubmissionStats) -> str:
    """Format statistics for terminal display."""
    lines = [
        f"Score: {stats.awarded_marks:g} / {stats.total_marks:g} "
        f"({stats.percentage_score:.1f}%) - {score_band(stats.percentage_score)}",
        f"Answered: {stats.answered_questions}/{stats.total_questions}",
        f"Correct: {stats.correct_count}  Incorrect: {stats.incorrect_count}  "
        f"Pending review: {stats.pending_count}",
        "PASSED" if stats.is_passed else "NOT PASSED",
    ]
    return "\n".join(lines)

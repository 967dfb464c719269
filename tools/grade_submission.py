#!/usr/bin/env python3
"""
grade_submission.py - Evaluate an outbox submission against its assignment bank.

MCQ answers are checked against the answer key; TEXT and CODE answers stay
pending until a grades file supplies their marks.

Examples:
  # Automatic check only
  python tools/grade_submission.py --bank banks/sample_quiz.json --submission outbox/S1_week3.json

  # Apply manual grades and save the evaluated submission
  python tools/grade_submission.py --bank banks/quiz_week3.enc --submission outbox/S1_week3.json \
      --grades grades.json --feedback "Well done" --out evaluated/S1_week3.json

  # What the student sees
  python tools/grade_submission.py --bank banks/sample_quiz.json --submission outbox/S1_week3.json --student-view

grades.json maps question ids to {"awardedMarks", "isCorrect", "teacherComment"}.
"""

import argparse
import getpass
import json
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from quiz_session.client import LocalAssignmentClient
from quiz_session.errors import AssessmentError
from quiz_session.evaluation import Evaluator, format_stats
from quiz_session.models import AssignmentContent, Submission, SubmissionStatus


def read_submission(path: Path) -> dict:
    """
    Load an outbox record.

    Raises:
        ValueError: If the record is not valid JSON or lacks the required fields
    """
    try:
        record = json.loads(Path(path).read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in submission: {e}") from e

    if not isinstance(record, dict) or not record.get('assignmentId'):
        raise ValueError("Submission must be an object with an assignmentId")
    answers = record.get('answers', [])
    if not isinstance(answers, list) or not all(isinstance(a, dict) and 'questionId' in a for a in answers):
        raise ValueError("Submission answers must be a list of {questionId, answer} objects")
    return record


def evaluate(
    bank_file: str,
    submission_file: str,
    grades: dict = None,
    feedback: str = "",
    password: str = None,
    evaluator: Evaluator = None
):
    """
    Evaluate a submission and, when grades are given, finalize it.

    Returns:
        Tuple of (Submission, AssignmentContent)
    """
    evaluator = evaluator or Evaluator()
    record = read_submission(Path(submission_file))
    assignment_id = str(record['assignmentId'])
    student_id = str(record.get('studentId') or "")

    client = LocalAssignmentClient(bank_file, Path(submission_file).parent, student_id=student_id,
                                   password=password)
    content = client.fetch_assignment(assignment_id)

    answers = {str(a['questionId']): str(a.get('answer', '')) for a in record['answers']}
    unknown = set(answers) - set(content.get_all_questions())
    if unknown:
        print(f"  [!] Ignoring answers to unknown questions: {', '.join(sorted(unknown))}")

    records = evaluator.evaluate_submission(content.questions, answers)
    submission = Submission(
        assignment_id=assignment_id,
        student_id=student_id,
        total_marks=content.assignment.total_marks,
        records=records,
        total_score=sum(r.awarded_marks for r in records),
    )
    if grades:
        submission = evaluator.finalize(submission, content.questions, grades, feedback=feedback)
    return submission, content


def print_report(submission: Submission, content: AssignmentContent, evaluator: Evaluator,
                 student_view: bool = False) -> None:
    shown = submission.student_view() if student_view else submission
    evaluated = shown.status == SubmissionStatus.EVALUATED

    print(f"\n[RESULT] {content.assignment.title or content.assignment.id} - student {shown.student_id}")
    print(f"  Status: {shown.status.value}")

    records = {r.question_id: r for r in shown.records}
    for number, question in enumerate(content.questions, 1):
        record = records.get(question.id)
        if record is None:
            print(f"  Q{number} [{question.type.value}] not answered (0/{question.marks})")
            continue
        if not record.is_correct.is_resolved:
            verdict = "pending review"
        else:
            verdict = "correct" if record.is_correct.value else "incorrect"
        line = f"  Q{number} [{question.type.value}] {verdict}"
        if evaluated or not student_view:
            line += f" ({record.awarded_marks:g}/{question.marks})"
        print(line)
        if record.teacher_comment:
            print(f"      Comment: {record.teacher_comment}")

    if student_view and not evaluated:
        print("\nResults will be available once your teacher has evaluated the submission.")
        return

    if shown.feedback:
        print(f"\nFeedback: {shown.feedback}")
    stats = evaluator.compute_stats(shown.records, shown.total_marks, total_questions=len(content.questions))
    print()
    print(format_stats(stats))


def main():
    parser = argparse.ArgumentParser(
        description="Evaluate an outbox submission against its assignment bank.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python tools/grade_submission.py --bank banks/sample_quiz.json --submission outbox/S1_week3.json
  python tools/grade_submission.py --bank banks/quiz.enc --submission outbox/S1_week3.json --grades grades.json

Notes:
  - Encrypted banks (.enc) prompt for the password or key
  - --out writes the evaluated submission as JSON
        """
    )
    parser.add_argument("--bank", required=True, help="Assignment bank (.json or .enc)")
    parser.add_argument("--submission", required=True, help="Outbox submission file")
    parser.add_argument("--grades", help="JSON file of manual grades keyed by question id")
    parser.add_argument("--feedback", default="", help="Overall feedback stored with the grades")
    parser.add_argument("--out", help="Write the evaluated submission to this file")
    parser.add_argument("--student-view", action="store_true",
                        help="Show only what the student may see")
    args = parser.parse_args()

    password = None
    if Path(args.bank).suffix.lower() != '.json':
        password = getpass.getpass(f"Enter password or key for {Path(args.bank).name}: ").strip()

    evaluator = Evaluator()
    try:
        grades = None
        if args.grades:
            grades = json.loads(Path(args.grades).read_text(encoding='utf-8'))
            if not isinstance(grades, dict):
                raise ValueError("Grades file must map question ids to grade objects")

        submission, content = evaluate(args.bank, args.submission, grades=grades,
                                       feedback=args.feedback, password=password, evaluator=evaluator)

        if args.out:
            Path(args.out).parent.mkdir(parents=True, exist_ok=True)
            Path(args.out).write_text(json.dumps(submission.to_dict(), indent=2), encoding='utf-8')
            print(f"[OK] Evaluated submission written to {args.out}")
    except FileNotFoundError as e:
        print(f"[ERROR] File not found: {e}", file=sys.stderr)
        sys.exit(1)
    except (AssessmentError, OSError, ValueError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)

    print_report(submission, content, evaluator, student_view=args.student_view)


if __name__ == "__main__":
    main()

"""
Assessment session state machine.

Drives one student's attempt at one assignment through
OVERVIEW -> INSTRUCTIONS -> IN_PROGRESS -> SUBMITTED and owns the countdown
timer, the integrity monitor and the autosaver for that attempt.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from .autosave import Autosaver, AutosaveKey, AutosaveStore
from .client import AssignmentClient
from .clock import Scheduler
from .errors import (
    ContentLoadFailure,
    InvalidTransition,
    SessionClosed,
    SubmissionFailure,
    UnknownQuestion,
)
from .integrity import IntegrityMonitor
from .models import (
    Answer,
    AssignmentContent,
    AutosaveStatus,
    Question,
    SessionConfig,
    Stage,
    SubmitTrigger,
)
from .session_log import SessionLog
from .signals import EnvironmentSignalSource, SignalEvent
from .timer import CountdownTimer


@dataclass(frozen=True)
class ExitDecision:
    """What the caller needs to confirm before leaving an in-progress quiz."""
    answered: int
    total: int
    requires_confirmation: bool
    progress_saved: bool
    message: str


class AssessmentSession:
    """Manages the state of a student's assessment session."""

    def __init__(
        self,
        assignment_id: str,
        student_id: str,
        client: AssignmentClient,
        store: AutosaveStore,
        scheduler: Scheduler,
        signal_source: Optional[EnvironmentSignalSource] = None,
        config: Optional[SessionConfig] = None,
        session_logger=None,
        session_id: Optional[str] = None
    ):
        self.assignment_id = assignment_id
        self.student_id = student_id
        self.client = client
        self.scheduler = scheduler
        self.config = config or SessionConfig.default()
        self.session_id = session_id or f"QZ_{uuid.uuid4().hex[:6].upper()}"
        self.log = session_logger or SessionLog(clock=scheduler.now)

        self.stage = Stage.OVERVIEW
        self.content: Optional[AssignmentContent] = None
        self.current_index = 0
        self.answers: Dict[str, Answer] = {}
        self.violation_count = 0
        self.is_online = True
        self.autosave_status = AutosaveStatus.SAVED
        self.started_at: Optional[datetime] = None
        self.submitted_at: Optional[datetime] = None
        self.submit_trigger: Optional[SubmitTrigger] = None
        self.ack: Optional[dict] = None
        self.resumed = False
        self.closed = False

        self._timer_submit_attempted = False

        self.key = AutosaveKey(student_id=student_id, assignment_id=assignment_id)
        self.autosaver = Autosaver(
            store,
            self.key,
            scheduler,
            snapshot=self._snapshot,
            debounce_seconds=self.config.autosave_debounce_seconds,
            on_status=self._on_autosave_status,
            session_logger=self.log,
        )
        self.timer = CountdownTimer(
            scheduler,
            on_expire=lambda: self._auto_submit(SubmitTrigger.TIMER_EXPIRY),
            tick_seconds=self.config.tick_seconds,
            session_logger=self.log,
        )
        self.monitor = IntegrityMonitor(
            signal_source or EnvironmentSignalSource(),
            scheduler,
            on_limit=lambda: self._auto_submit(SubmitTrigger.VIOLATION_LIMIT),
            on_violation=self._on_violation,
            on_network=self._on_network,
            max_violations=self.config.max_violations,
            safe_window_seconds=self.config.safe_window_seconds,
            cooldown_seconds=self.config.cooldown_seconds,
            forbidden_keys=self.config.forbidden_keys,
            session_logger=self.log,
        )

    # ===== DERIVED STATE =====

    @property
    def questions(self) -> List[Question]:
        return self.content.questions if self.content else []

    @property
    def question_count(self) -> int:
        return len(self.questions)

    @property
    def current_question(self) -> Optional[Question]:
        if not self.questions:
            return None
        return self.questions[self.current_index].student_view()

    @property
    def duration_seconds(self) -> Optional[int]:
        if not self.content:
            return None
        return self.content.assignment.duration_seconds

    @property
    def time_remaining_seconds(self) -> Optional[int]:
        if self.duration_seconds is None or self.started_at is None:
            return None
        return self.timer.remaining_seconds

    @property
    def answered_count(self) -> int:
        return len(self.answers)

    @property
    def progress(self) -> float:
        """Percentage of questions answered."""
        if not self.question_count:
            return 0.0
        return self.answered_count * 100 / self.question_count

    def get_answer(self, question_id: str) -> str:
        answer = self.answers.get(question_id)
        return answer.value if answer else ""

    # ===== TRANSITIONS =====

    def load(self) -> AssignmentContent:
        """
        Fetch assignment content. The session cannot leave OVERVIEW without it.

        Raises:
            ContentLoadFailure: If the content boundary fails (retry permitted)
        """
        with self.scheduler.lock:
            self._require_stage(Stage.OVERVIEW)
            try:
                content = self.client.fetch_assignment(self.assignment_id)
            except ContentLoadFailure as e:
                self.log("CONTENT_LOAD_FAILED", str(e))
                raise

            self.content = content
            self.log("CONTENT_LOADED",
                     f"Assignment: {self.assignment_id}, Questions: {len(content.questions)}")
            return content

    def start(self):
        """OVERVIEW -> INSTRUCTIONS."""
        with self.scheduler.lock:
            self._require_stage(Stage.OVERVIEW)
            if self.content is None:
                raise InvalidTransition("Assignment content is not loaded")
            self.stage = Stage.INSTRUCTIONS
            self.log("SESSION_START", f"Student: {self.student_id}, Assignment: {self.assignment_id}")

    def begin(self):
        """
        INSTRUCTIONS -> IN_PROGRESS.

        Restores any autosaved attempt, then arms the timer and the
        integrity monitor.
        """
        with self.scheduler.lock:
            self._require_stage(Stage.INSTRUCTIONS)
            now = self.scheduler.now()

            self.started_at = now
            self.resumed = self._restore(self.autosaver.load())

            self.stage = Stage.IN_PROGRESS
            self.current_index = 0

            if self.started_at > now:
                self.log("AUTOSAVE_CLOCK_SKEW", f"Saved start {self.started_at.isoformat()} is in the future")
                self.started_at = now

            if self.duration_seconds is not None:
                elapsed = int((now - self.started_at).total_seconds())
                self.timer.arm(min(self.duration_seconds, max(self.duration_seconds - elapsed, 0)))

            self.monitor.arm(self.violation_count)

            if self.resumed:
                self.log("EXAM_RESUME", f"{self.answered_count} answer(s) restored, "
                                        f"{self.violation_count} violation(s), "
                                        f"remaining: {self.timer.format_remaining()}")
            else:
                duration = f"{self.duration_seconds}s" if self.duration_seconds else "infinite"
                self.log("EXAM_START", f"Exam started at {now.strftime('%H:%M:%S')}, duration: {duration}")

            # The entry lives from begin() until the submission is acknowledged.
            self.autosaver.write_now()

    def answer(self, question_id: str, value: str) -> Answer:
        """Record (or replace) the answer to a question and schedule an autosave."""
        with self.scheduler.lock:
            self._require_writable()
            if self.content.get_question(question_id) is None:
                raise UnknownQuestion(question_id)

            answer = Answer(question_id=question_id, value=value, saved_at=self.scheduler.now())
            self.answers[question_id] = answer
            self.autosaver.schedule()
            return answer

    def navigate(self, index: int) -> int:
        """Move the question cursor, clamped to the valid range."""
        with self.scheduler.lock:
            self._require_writable()
            self.current_index = min(max(index, 0), max(self.question_count - 1, 0))
            return self.current_index

    def next(self) -> int:
        return self.navigate(self.current_index + 1)

    def previous(self) -> int:
        return self.navigate(self.current_index - 1)

    def submit(self, trigger: SubmitTrigger = SubmitTrigger.MANUAL) -> bool:
        """
        IN_PROGRESS -> SUBMITTED.

        Returns:
            True if this call performed the submission, False if it was a
            duplicate (already submitted, or a repeated
            timer expiry)

        Raises:
            SubmissionFailure: If the boundary rejected the submission; the
                session stays IN_PROGRESS and may be submitted again
        """
        with self.scheduler.lock:
            if self.stage == Stage.SUBMITTED:
                self.log("SUBMIT_IGNORED", f"Trigger: {trigger.value} - already submitted")
                return False
            if self.closed:
                raise InvalidTransition("Session is closed")
            self._require_stage(Stage.IN_PROGRESS)
            if trigger == SubmitTrigger.TIMER_EXPIRY:
                if self._timer_submit_attempted:
                    return False
                self._timer_submit_attempted = True

            try:
                ack = self.client.submit_assignment(self.assignment_id, self.build_payload())
            except SubmissionFailure as e:
                self.autosave_status = AutosaveStatus.ERROR
                self.log("SUBMISSION_FAILED", f"Trigger: {trigger.value}, Error: {e}")
                raise

            self._finalize(trigger, ack)
            return True

    def exit(self) -> ExitDecision:
        """
        Ask to leave without submitting. Not a transition: answers stay saved
        locally and the timer keeps running for a later resume.
        """
        with self.scheduler.lock:
            self._require_writable()
            saved = self.autosaver.flush()
            self.log("SESSION_EXIT", f"Answered {self.answered_count}/{self.question_count} - progress saved")

            if saved:
                message = "Your progress has been saved. You can continue later, but the timer will keep running."
            else:
                message = "Your latest answers could not be saved locally. Leaving now may lose them."
            return ExitDecision(
                answered=self.answered_count,
                total=self.question_count,
                requires_confirmation=self.answered_count > 0,
                progress_saved=saved,
                message=message,
            )

    def close(self):
        """Tear down the session: flush pending saves and disarm every timer and listener."""
        with self.scheduler.lock:
            if self.closed:
                return
            if self.stage == Stage.IN_PROGRESS:
                self.autosaver.flush()
            self.timer.disarm()
            self.monitor.disarm()
            self.autosaver.stop()
            self.closed = True
            self.log("SESSION_CLOSED", f"Stage: {self.stage.value}")

    # ===== PAYLOADS =====

    def build_payload(self) -> dict:
        """Submission body: answers in question order."""
        return {
            "answers": [
                {"questionId": q.id, "answer": self.answers[q.id].value}
                for q in self.questions if q.id in self.answers
            ]
        }

    def _snapshot(self) -> dict:
        return {
            "sessionId": self.session_id,
            "answers": [a.to_dict() for a in self.answers.values()],
            "violationCount": self.violation_count,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
        }

    def _restore(self, entry: Optional[dict]) -> bool:
        """Repopulate answers from an autosave entry. Returns True on resume."""
        if not entry:
            return False

        try:
            answers = [Answer.from_dict(a) for a in entry.get('answers', [])]
            violation_count = max(int(entry.get('violationCount', 0)), 0)
            started_at = entry.get('startedAt')
            started_at = datetime.fromisoformat(started_at) if started_at else self.started_at
            if (started_at.tzinfo is None) != (self.started_at.tzinfo is None):
                raise ValueError(f"startedAt {started_at.isoformat()} does not match the session clock")
        except (KeyError, TypeError, ValueError) as e:
            self.log("AUTOSAVE_LOAD_ERROR", f"Ignoring unreadable entry: {e}")
            return False

        known = self.content.get_all_questions()
        self.answers = {a.question_id: a for a in answers if a.question_id in known}
        self.violation_count = violation_count
        self.started_at = started_at
        self.session_id = entry.get('sessionId') or self.session_id
        return True

    # ===== CALLBACKS =====

    def _finalize(self, trigger: SubmitTrigger, ack: Optional[dict]):
        self.stage = Stage.SUBMITTED
        self.submit_trigger = trigger
        self.submitted_at = self.scheduler.now()
        self.ack = ack

        self.timer.disarm()
        self.monitor.disarm()
        self.autosaver.stop()
        self.autosaver.clear()
        self.autosave_status = AutosaveStatus.SAVED

        self.log("SUBMISSION", f"Trigger: {trigger.value}, "
                               f"Answered: {self.answered_count}/{self.question_count}, "
                               f"Violations: {self.violation_count}")

    def _auto_submit(self, trigger: SubmitTrigger):
        try:
            self.submit(trigger)
        except SubmissionFailure:
            # No automatic retry; a manual submit stays available.
            self.log("AUTO_SUBMIT_FAILED", f"Trigger: {trigger.value} - waiting for manual submit")
        except InvalidTransition as e:
            self.log("AUTO_SUBMIT_SKIPPED", f"Trigger: {trigger.value} - {e}")

    def _on_violation(self, count: int, event: SignalEvent):
        self.violation_count = count
        # Persist immediately so a reload cannot reset the counter.
        self.autosaver.write_now()

    def _on_network(self, online: bool):
        if online != self.is_online:
            self.is_online = online
            self.log("NETWORK_STATUS", "ONLINE" if online else "OFFLINE")

    def _on_autosave_status(self, status: AutosaveStatus):
        self.autosave_status = status

    # ===== GUARDS =====

    def _require_stage(self, stage: Stage):
        if self.stage != stage:
            raise InvalidTransition(f"Expected stage {stage.value}, session is {self.stage.value}")

    def _require_writable(self):
        if self.stage == Stage.SUBMITTED:
            raise SessionClosed("Session is already submitted")
        if self.closed:
            raise InvalidTransition("Session is closed")
        self._require_stage(Stage.IN_PROGRESS)

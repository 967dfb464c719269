#!/usr/bin/env python3
"""
Timed Quiz Runner CLI

Student-facing terminal application for completing a timed quiz.
Handles content loading, answering, autosave, integrity monitoring and
submission.
"""

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

from .autosave import AutosaveStore, EncryptedFileAutosaveStore, FileAutosaveStore
from .client import AssignmentClient, HttpAssignmentClient, LocalAssignmentClient
from .clock import ThreadingScheduler
from .config_loader import load_config
from .errors import AssessmentError, ContentLoadFailure, SubmissionFailure
from .models import QuestionType, SessionConfig, Stage, SubmitTrigger
from .session import AssessmentSession
from .session_log import SessionLog
from .signals import ConnectivitySignalSource

MESSAGES = {
    "header": "=" * 60,
    "title": "            TIMED QUIZ RUNNER",
    "overview_title": "Quiz: {title}",
    "overview_marks": "Total marks: {marks}",
    "overview_duration": "Duration: {duration}",
    "overview_questions": "Questions: {count}",
    "overview_deadline": "Deadline: {deadline}",
    "instructions": (
        "Instructions:\n"
        "  - The timer starts when you begin and keeps running if you leave.\n"
        "  - Answers are saved automatically on this computer.\n"
        "  - Leaving the quiz window or using developer shortcuts counts as a violation.\n"
        "  - After {max_violations} violations the quiz is submitted automatically.\n"
        "  - The quiz is submitted automatically when time runs out."
    ),
    "ask_begin": "Type 'start' to begin the quiz: ",
    "begin_cancel": "Quiz not started.",
    "ask_store_pass": "Password for local autosave encryption: ",
    "ask_bank_pass": "Enter the password or key for {bank}: ",
    "pass_missing": "Error: A password is required.",
    "config_error": "Error loading configuration: {error}",
    "config_ok": "✓ Configuration loaded from {src}",
    "load_error": "Error: {error}",
    "resumed": "✓ Previous attempt restored: {answered} answer(s), {violations} violation(s).",
    "started": "✓ Quiz started. Time remaining: {remaining}",
    "cmd_help": (
        "Commands:\n"
        "  show            Show the current question\n"
        "  answer N TEXT   Answer question N (for multiple choice, TEXT may be the option number)\n"
        "  next / prev     Move to the next / previous question\n"
        "  goto N          Jump to question N\n"
        "  status          Show answered questions and autosave status\n"
        "  time            Show remaining time\n"
        "  submit          Submit the quiz\n"
        "  exit            Leave and continue later (the timer keeps running)\n"
        "  help            Show this message"
    ),
    "question_heading": "Question {index}/{count} [{type}] ({marks} mark(s))",
    "answer_current": "Your answer: {answer}",
    "answer_none": "Your answer: (not answered)",
    "answer_usage": "Usage: answer N TEXT",
    "goto_usage": "Usage: goto N",
    "invalid_number": "Invalid question number: {value}",
    "answer_saved": "✓ Answer to question {index} recorded.",
    "status_header": "Status for {student}:",
    "status_line": "  Q{index}: {state}",
    "status_summary": "Answered {answered}/{count} ({progress:.0f}%) | Autosave: {autosave} | "
                      "Violations: {violations}/{max_violations} | Network: {network}",
    "time_remaining": "Time remaining: {remaining}",
    "submit_summary": "You have answered {answered}/{count} question(s).",
    "submit_confirm": "Submit the quiz now? You cannot change answers afterwards. (y/n): ",
    "submit_continue": "Submission cancelled. Continue answering.",
    "submit_ok": "✓ Quiz submitted.",
    "submit_duplicate": "✓ Quiz was already submitted earlier.",
    "submit_failed": "Error: Submission failed ({error}). Your answers are saved locally. Try 'submit' again.",
    "exit_confirm": "Leave the quiz? (y/n): ",
    "auto_submitted_timer": "Time is up. Your quiz has been submitted automatically.",
    "auto_submitted_violations": "Too many violations. Your quiz has been submitted automatically.",
    "auto_submit_failed": "Automatic submission failed. Type 'submit' to try again.",
    "violation_warning": "⚠️  Violation recorded ({count}/{max_violations}). Stay in the quiz window.",
    "network_changed": "Network status: {status}",
    "unknown_command": "Unknown command: '{command}'. Type 'help' for a list of commands.",
    "interrupt": "Use 'exit' to save progress and leave, or 'submit' to finish the quiz.",
}


class QuizRunner:
    """Main CLI application controller."""

    def __init__(self):
        self.messages = MESSAGES
        self.config: Optional[SessionConfig] = None
        self.scheduler: Optional[ThreadingScheduler] = None
        self.session: Optional[AssessmentSession] = None
        self.session_log: Optional[SessionLog] = None
        self.finished = False

    def _msg(self, key: str, **kwargs) -> str:
        template = self.messages.get(key, key)
        return template.format(**kwargs)

    # ===== SETUP =====

    def build_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description="Timed Quiz Runner",
            formatter_class=argparse.RawDescriptionHelpFormatter
        )
        parser.add_argument(
            "--bank",
            help="Assignment bank file (.json or encrypted .enc) for offline use"
        )
        parser.add_argument(
            "--student",
            required=True,
            help="Student identifier"
        )
        parser.add_argument(
            "--assignment",
            help="Assignment identifier (default: the first assignment in the bank)"
        )
        parser.add_argument(
            "--api",
            help="Base URL of the course platform API (e.g., https://example.edu/api)"
        )
        parser.add_argument(
            "--token",
            help="Bearer token for the course platform API"
        )
        parser.add_argument(
            "--outbox",
            default="outbox",
            help="Directory for offline submissions (default: outbox)"
        )
        parser.add_argument(
            "--store-dir",
            default=".autosave",
            help="Directory for local autosave and the session log (default: .autosave)"
        )
        parser.add_argument(
            "--store-password",
            action="store_true",
            help="Encrypt local autosave entries with a password"
        )
        parser.add_argument(
            "--config",
            help="Path to session configuration file (default: config.json in executable directory)"
        )
        return parser

    def build_client(self, args) -> AssignmentClient:
        if args.api:
            return HttpAssignmentClient(args.api, token=args.token)

        bank_path = Path(args.bank)
        password = None
        if bank_path.suffix.lower() != '.json':
            password = getpass.getpass(self._msg("ask_bank_pass", bank=bank_path.name)).strip()
            if not password:
                raise ContentLoadFailure(self._msg("pass_missing"))
        return LocalAssignmentClient(bank_path, Path(args.outbox), student_id=args.student, password=password)

    def build_store(self, args) -> AutosaveStore:
        store_dir = Path(args.store_dir)
        if args.store_password:
            password = getpass.getpass(self._msg("ask_store_pass")).strip()
            if not password:
                raise ValueError(self._msg("pass_missing"))
            return EncryptedFileAutosaveStore.from_password(store_dir, password)
        return FileAutosaveStore(store_dir)

    def resolve_assignment_id(self, args, client: AssignmentClient) -> str:
        if args.assignment:
            return args.assignment
        if isinstance(client, LocalAssignmentClient):
            for entry in client.list_assignments():
                meta = entry.get('assignment')
                if not isinstance(meta, dict):
                    continue
                assignment_id = meta.get('_id') or meta.get('id')
                if assignment_id:
                    return str(assignment_id)
        raise ContentLoadFailure("No assignment selected; pass --assignment")

    def session_logger(self, event: str, details: str = ""):
        """Session log sink that also surfaces background events to the student."""
        self.session_log(event, details)

        if event == "VIOLATION" and self.session:
            print("\n" + self._msg("violation_warning", count=self.session.monitor.violation_count,
                                   max_violations=self.config.max_violations))
        elif event == "SUBMISSION" and self.session:
            if self.session.submit_trigger == SubmitTrigger.TIMER_EXPIRY:
                print("\n" + self._msg("auto_submitted_timer"))
            elif self.session.submit_trigger == SubmitTrigger.VIOLATION_LIMIT:
                print("\n" + self._msg("auto_submitted_violations"))
        elif event == "AUTO_SUBMIT_FAILED":
            print("\n" + self._msg("auto_submit_failed"))
        elif event == "NETWORK_STATUS":
            print("\n" + self._msg("network_changed", status=details))

    def run(self, argv=None) -> int:
        """Main application entry point."""
        parser = self.build_parser()
        args = parser.parse_args(argv)
        if not args.api and not args.bank:
            parser.error("one of --bank or --api is required")

        logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")

        print(self._msg("header"))
        print(self._msg("title"))
        print(self._msg("header"))

        try:
            config_path = Path(args.config) if args.config else None
            self.config = load_config(config_path)
            src = args.config if args.config else "config.json (default)"
            print(self._msg("config_ok", src=src))
        except ValueError as e:
            print(self._msg("config_error", error=e))
            return 1

        try:
            client = self.build_client(args)
            store = self.build_store(args)
            assignment_id = self.resolve_assignment_id(args, client)
        except (AssessmentError, ValueError) as e:
            print(self._msg("load_error", error=e))
            return 1
        except (KeyboardInterrupt, EOFError):
            print()
            return 1

        self.scheduler = ThreadingScheduler()
        self.session_log = SessionLog(path=Path(args.store_dir) / "session.log")
        self.session = AssessmentSession(
            assignment_id,
            args.student,
            client,
            store,
            self.scheduler,
            signal_source=ConnectivitySignalSource(self.config.network_check_interval_seconds),
            config=self.config,
            session_logger=self.session_logger,
        )

        try:
            if not self.show_overview():
                return 1
            if not self.show_instructions():
                return 0
            self.command_loop()
        finally:
            self.session.close()
            self.scheduler.shutdown()

        return 0

    # ===== STAGES =====

    def show_overview(self) -> bool:
        try:
            content = self.session.load()
        except ContentLoadFailure as e:
            print(self._msg("load_error", error=e))
            return False

        info = content.assignment
        print()
        print(self._msg("overview_title", title=info.title or info.id))
        if info.description:
            print(info.description)
        print(self._msg("overview_questions", count=len(content.questions)))
        print(self._msg("overview_marks", marks=info.total_marks))
        duration = f"{info.duration_minutes} minutes" if info.duration_minutes else "no time limit"
        print(self._msg("overview_duration", duration=duration))
        if info.deadline:
            print(self._msg("overview_deadline", deadline=info.deadline))
        self.session.start()
        return True

    def show_instructions(self) -> bool:
        print()
        print(self._msg("instructions", max_violations=self.config.max_violations))
        try:
            if input("\n" + self._msg("ask_begin")).strip().lower() != 'start':
                print(self._msg("begin_cancel"))
                return False
        except (KeyboardInterrupt, EOFError):
            print()
            print(self._msg("begin_cancel"))
            return False

        self.session.begin()
        if self.session.resumed:
            print(self._msg("resumed", answered=self.session.answered_count,
                            violations=self.session.violation_count))
        print(self._msg("started", remaining=self.session.timer.format_remaining()))
        return True

    # ===== COMMAND LOOP =====

    def command_loop(self):
        """Main interactive command loop."""
        print("\n" + self._msg("header"))
        print(self._msg("cmd_help"))
        print(self._msg("header") + "\n")
        self.cmd_show()

        while not self.finished and self.session.stage == Stage.IN_PROGRESS:
            try:
                cmd_line = input("quiz> ").strip()
                if not cmd_line:
                    continue

                # The quiz may have been submitted by the timer while waiting for input.
                if self.session.stage != Stage.IN_PROGRESS:
                    break

                parts = cmd_line.split(maxsplit=2)
                command = parts[0].lower()

                if command in ['exit', 'quit']:
                    self.cmd_exit()
                elif command == 'help':
                    print(self._msg("cmd_help"))
                elif command == 'show':
                    self.cmd_show()
                elif command == 'answer':
                    if len(parts) < 3:
                        print(self._msg("answer_usage"))
                    else:
                        self.cmd_answer(parts[1], parts[2])
                elif command == 'next':
                    self.session.next()
                    self.cmd_show()
                elif command in ['prev', 'previous']:
                    self.session.previous()
                    self.cmd_show()
                elif command == 'goto':
                    if len(parts) < 2:
                        print(self._msg("goto_usage"))
                    else:
                        self.cmd_goto(parts[1])
                elif command == 'status':
                    self.cmd_status()
                elif command == 'time':
                    self.cmd_time()
                elif command == 'submit':
                    self.cmd_submit()
                else:
                    print(self._msg("unknown_command", command=command))

            except (KeyboardInterrupt, EOFError):
                print("\n" + self._msg("interrupt"))
            except AssessmentError as e:
                print(f"Error: {e}")

    def _parse_index(self, value: str) -> Optional[int]:
        try:
            index = int(value) - 1
        except ValueError:
            index = -1
        if not 0 <= index < self.session.question_count:
            print(self._msg("invalid_number", value=value))
            return None
        return index

    def cmd_show(self):
        """Display the current question."""
        question = self.session.current_question
        if question is None:
            return

        print()
        print(self._msg("question_heading", index=self.session.current_index + 1,
                        count=self.session.question_count, type=question.type.value,
                        marks=question.marks))
        print(question.prompt)
        for i, option in enumerate(question.options, start=1):
            print(f"  {i}. {option}")

        current = self.session.get_answer(question.id)
        print(self._msg("answer_current", answer=current) if current else self._msg("answer_none"))
        print()

    def cmd_answer(self, number: str, text: str):
        index = self._parse_index(number)
        if index is None:
            return

        question = self.session.questions[index]
        value = text
        # For multiple choice the stored answer is the option text.
        if question.type == QuestionType.MCQ and text.isdigit():
            option = int(text) - 1
            if 0 <= option < len(question.options):
                value = question.options[option]

        self.session.answer(question.id, value)
        print(self._msg("answer_saved", index=index + 1))

    def cmd_goto(self, number: str):
        index = self._parse_index(number)
        if index is None:
            return
        self.session.navigate(index)
        self.cmd_show()

    def cmd_status(self):
        """Display answered questions and session indicators."""
        print()
        print(self._msg("status_header", student=self.session.student_id))
        for i, question in enumerate(self.session.questions, start=1):
            state = "answered" if question.id in self.session.answers else "not answered"
            print(self._msg("status_line", index=i, state=state))
        print(self._msg("status_summary",
                        answered=self.session.answered_count,
                        count=self.session.question_count,
                        progress=self.session.progress,
                        autosave=self.session.autosave_status.value,
                        violations=self.session.violation_count,
                        max_violations=self.config.max_violations,
                        network="online" if self.session.is_online else "offline"))
        print()

    def cmd_time(self):
        print(self._msg("time_remaining", remaining=self.session.timer.format_remaining()))

    def cmd_submit(self):
        """Confirm and submit the quiz."""
        print()
        print(self._msg("submit_summary", answered=self.session.answered_count,
                        count=self.session.question_count))
        try:
            confirm = input(self._msg("submit_confirm")).strip().lower()
        except (KeyboardInterrupt, EOFError):
            print()
            print(self._msg("submit_continue"))
            return
        if confirm != 'y':
            print(self._msg("submit_continue"))
            return

        try:
            performed = self.session.submit()
        except SubmissionFailure as e:
            print(self._msg("submit_failed", error=e))
            return

        duplicate = bool(self.session.ack and self.session.ack.get('duplicate'))
        if performed and not duplicate:
            print(self._msg("submit_ok"))
        else:
            print(self._msg("submit_duplicate"))
        self.finished = True

    def cmd_exit(self):
        """Leave the quiz without submitting."""
        decision = self.session.exit()
        if decision.requires_confirmation:
            print()
            print(decision.message)
            try:
                if input(self._msg("exit_confirm")).strip().lower() != 'y':
                    return
            except (KeyboardInterrupt, EOFError):
                print()
                return
        self.finished = True


def main():
    """Entry point for the quiz runner."""
    runner = QuizRunner()
    sys.exit(runner.run())


if __name__ == "__main__":
    main()

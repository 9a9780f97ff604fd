"""State machine for one student taking one quiz.

NotStarted -> InProgress -> Submitting -> Completed, with Error reachable from
any state when a persistence call fails. Answers live only in memory until
submission. The completion sequence (finalize attempt, then update the
enrollment) is two separate writes; when the second one fails the finalized
attempt is remembered, so submitting again only replays the enrollment update.
"""

from __future__ import annotations

from enum import Enum, auto
import logging
from threading import RLock
from typing import Any, Callable

from mindpop.constants.quiz_constants import SECONDS_PER_MINUTE
from mindpop.core.errors import (
    AttemptNotFoundError,
    AttemptStateError,
    DuplicateAttemptError,
    MindPopError,
    PartialCompletionError,
    PersistenceFailure,
    RecordNotFoundError,
)
from mindpop.core.models import AnswerValue, EnrolledCourse, Question, Quiz, QuizAttempt, User
from mindpop.core.quiz_timer import QuizTimer
from mindpop.core.scoring import score_answers
from mindpop.core.services.attempt_store import AttemptStore
from mindpop.core.services.enrollment_service import EnrollmentService

logger = logging.getLogger(__name__)

TimerFactory = Callable[[int, Callable[[], None]], QuizTimer]


class AttemptState(Enum):
    NOT_STARTED = auto()
    IN_PROGRESS = auto()
    SUBMITTING = auto()
    COMPLETED = auto()
    ERROR = auto()


class QuizAttemptWorkflow:
    """Drives starting, answering, navigating and submitting a quiz attempt."""

    def __init__(
        self,
        quiz: Quiz,
        questions: list[Question],
        user: User,
        attempts: AttemptStore,
        enrollments: EnrollmentService,
        timer_factory: TimerFactory = QuizTimer,
        run_timer_in_background: bool = False,
    ) -> None:
        self._quiz = quiz
        self._questions = list(questions)
        self._user = user
        self._attempts = attempts
        self._enrollments = enrollments
        self._timer_factory = timer_factory
        self._run_timer_in_background = run_timer_in_background
        self._lock = RLock()

        self._state = AttemptState.NOT_STARTED
        self._attempt_id: str | None = None
        self._current_index = 0
        self._answers: dict[str, AnswerValue] = {}
        self._timer: QuizTimer | None = None
        self._error: str | None = None
        self._finalized: QuizAttempt | None = None
        self._enrollment: EnrolledCourse | None = None

    # --- Read-only state ---

    @property
    def quiz(self) -> Quiz:
        return self._quiz

    @property
    def questions(self) -> list[Question]:
        return list(self._questions)

    @property
    def state(self) -> AttemptState:
        with self._lock:
            return self._state

    @property
    def attempt_id(self) -> str | None:
        with self._lock:
            return self._attempt_id

    @property
    def attempt_started(self) -> bool:
        with self._lock:
            return self._attempt_id is not None

    @property
    def is_submitting(self) -> bool:
        with self._lock:
            return self._state is AttemptState.SUBMITTING

    @property
    def current_question_index(self) -> int:
        with self._lock:
            return self._current_index

    @property
    def current_question(self) -> Question | None:
        with self._lock:
            if not self._questions:
                return None
            return self._questions[self._current_index]

    @property
    def answers(self) -> dict[str, AnswerValue]:
        with self._lock:
            return dict(self._answers)

    @property
    def answered_count(self) -> int:
        with self._lock:
            return len(self._answers)

    @property
    def time_left(self) -> int | None:
        timer = self._timer
        if timer is None:
            return None
        return timer.time_left

    @property
    def timer(self) -> QuizTimer | None:
        return self._timer

    @property
    def error(self) -> str | None:
        with self._lock:
            return self._error

    @property
    def result(self) -> QuizAttempt | None:
        """The finalized attempt once the attempt write has succeeded."""
        with self._lock:
            return self._finalized

    @property
    def enrollment(self) -> EnrolledCourse | None:
        with self._lock:
            return self._enrollment

    def all_answered(self) -> bool:
        """Whether every question has an answer. Submitting does not require it."""
        with self._lock:
            return all(question.id in self._answers for question in self._questions)

    def snapshot(self) -> dict[str, Any]:
        """Reactive fields for the presentation layer."""
        with self._lock:
            return {
                "state": self._state.name.lower(),
                "attempt_id": self._attempt_id,
                "attempt_started": self._attempt_id is not None,
                "current_question_index": self._current_index,
                "question_count": len(self._questions),
                "answers": dict(self._answers),
                "answered_count": len(self._answers),
                "time_left": self.time_left,
                "is_submitting": self._state is AttemptState.SUBMITTING,
                "error": self._error,
            }

    # --- Transitions ---

    def start(self) -> QuizAttempt:
        """Create the attempt record after verifying no completed attempt exists."""
        with self._lock:
            if self._attempt_id is not None:
                raise AttemptStateError("This attempt has already been started.")
            try:
                already_done = self._attempts.has_completed_attempt(self._quiz.id, self._user.id)
            except PersistenceFailure as exc:
                self._fail("Error checking previous attempts. Please try again.", exc)
                raise
            if already_done:
                self._error = "You have already completed this quiz."
                logger.info("User %s already completed quiz %s", self._user.id, self._quiz.id)
                raise DuplicateAttemptError(self._error)
            try:
                attempt = self._attempts.create(self._quiz.id, self._user.id, max_score=len(self._questions))
            except PersistenceFailure as exc:
                self._fail("Failed to start quiz. Please try again.", exc)
                raise
            self._attempt_id = attempt.id
            self._state = AttemptState.IN_PROGRESS
            self._current_index = 0
            self._error = None
            logger.info("User %s started attempt %s on quiz %s", self._user.id, attempt.id, self._quiz.id)
        self._start_timer()
        return attempt

    def record_answer(self, question_id: str, value: AnswerValue) -> None:
        with self._lock:
            self._require_answering()
            if not any(question.id == question_id for question in self._questions):
                raise RecordNotFoundError(f"Question '{question_id}' is not part of this quiz")
            self._answers[question_id] = value

    def next(self) -> bool:
        with self._lock:
            if self._current_index + 1 >= len(self._questions):
                return False
            self._current_index += 1
            return True

    def previous(self) -> bool:
        with self._lock:
            if self._current_index == 0:
                return False
            self._current_index -= 1
            return True

    def jump_to(self, index: int) -> None:
        with self._lock:
            if not 0 <= index < len(self._questions):
                raise IndexError(f"Question index {index} out of range")
            self._current_index = index

    def submit(self) -> QuizAttempt:
        """Score the answers, finalize the attempt, then update the enrollment."""
        with self._lock:
            if self._attempt_id is None:
                raise AttemptNotFoundError("Unable to submit quiz. Missing attempt information.")
            if self._state is AttemptState.COMPLETED:
                raise AttemptStateError("This attempt has already been submitted.")
            if self._state is AttemptState.SUBMITTING:
                raise AttemptStateError("This attempt is already being submitted.")
            self._state = AttemptState.SUBMITTING
            attempt_id = self._attempt_id
        self._stop_timer()

        with self._lock:
            if self._finalized is None:
                scored = score_answers(self._questions, self._answers)
                try:
                    self._finalized = self._attempts.complete(
                        attempt_id,
                        scored.answers,
                        score=scored.score,
                        max_score=scored.max_score,
                    )
                except PersistenceFailure as exc:
                    self._fail("Failed to submit quiz. Please try again.", exc)
                    self._resume_timer()
                    raise
                logger.info(
                    "Attempt %s scored %s/%s", attempt_id, scored.score, scored.max_score
                )
            else:
                logger.info("Attempt %s already finalized; replaying enrollment update", attempt_id)

            try:
                self._enrollment = self._enrollments.record_quiz_completion(
                    self._user.id, self._quiz.course_id, self._quiz.id
                )
            except PersistenceFailure as exc:
                self._fail("Quiz was scored but course progress could not be updated.", exc)
                raise PartialCompletionError(
                    attempt_id, f"Attempt {attempt_id} completed but enrollment update failed: {exc}"
                ) from exc

            self._state = AttemptState.COMPLETED
            self._error = None
            return self._finalized

    def close(self) -> None:
        """Stop the countdown of an attempt that is being abandoned."""
        self._stop_timer()

    # --- Internals ---

    def _require_answering(self) -> None:
        if self._attempt_id is None:
            raise AttemptStateError("Start the quiz before answering.")
        if self._finalized is not None or self._state in (AttemptState.SUBMITTING, AttemptState.COMPLETED):
            raise AttemptStateError("Answers can no longer be changed.")
        if self._timer is not None and self._timer.time_left == 0:
            raise AttemptStateError("Time is up for this quiz.")

    def _fail(self, message: str, exc: Exception) -> None:
        self._state = AttemptState.ERROR
        self._error = message
        logger.error("%s (%s)", message, exc)

    def _start_timer(self) -> None:
        if not self._quiz.time_limit:
            return
        self._timer = self._timer_factory(self._quiz.time_limit * SECONDS_PER_MINUTE, self._on_time_up)
        self._resume_timer()

    def _resume_timer(self) -> None:
        if self._timer is None:
            return
        if self._run_timer_in_background:
            self._timer.run_in_background()
        else:
            self._timer.start()

    def _stop_timer(self) -> None:
        if self._timer is not None:
            self._timer.stop_background()

    def _on_time_up(self) -> None:
        logger.info("Time is up for attempt %s; submitting automatically", self.attempt_id)
        try:
            self.submit()
        except MindPopError as exc:
            logger.error("Automatic submission failed: %s", exc)

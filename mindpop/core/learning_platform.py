"""Business logic shared between the HTTP layer and any other front end."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from threading import Lock

from mindpop.constants.quiz_constants import COMPLETED_WORKFLOW_RETENTION_SECONDS
from mindpop.core.auth import AccountDirectory
from mindpop.core.errors import PermissionDeniedError, ReviewNotAvailableError, RecordNotFoundError
from mindpop.core.models import AnswerValue, EnrolledCourse, Question, Quiz, QuizAttempt, User
from mindpop.core.quiz_attempt_workflow import AttemptState, QuizAttemptWorkflow
from mindpop.core.record_mappers import utc_now
from mindpop.core.scoring import has_passed, percentage
from mindpop.core.services.attempt_store import AttemptStore
from mindpop.core.services.course_store import CourseStore
from mindpop.core.services.dashboard_stats import DashboardStats
from mindpop.core.services.enrollment_service import EnrollmentService
from mindpop.core.services.question_store import QuestionStore
from mindpop.core.services.quiz_store import QuizStore
from mindpop.gateway.base import PersistenceGateway

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ReviewItem:
    question: Question
    answer: AnswerValue
    is_correct: bool


@dataclass(slots=True)
class AttemptReview:
    quiz: Quiz
    attempt: QuizAttempt
    items: list[ReviewItem]
    percentage: int
    passed: bool


class LearningPlatform:
    """Facade over the stores, enrollments, statistics and running attempts.

    Built once per process and passed to whatever needs it. Attempt stores are
    scoped per student; one workflow is kept per (student, quiz) pair.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        accounts: AccountDirectory | None = None,
        run_timers_in_background: bool = True,
    ) -> None:
        self._lock = Lock()
        self._gateway = gateway
        self._run_timers_in_background = run_timers_in_background

        self.accounts = accounts or AccountDirectory(gateway)
        self.courses = CourseStore(gateway)
        self.quizzes = QuizStore(gateway)
        self.questions = QuestionStore(gateway)
        self.enrollments = EnrollmentService(gateway, self.quizzes)
        self.all_attempts = AttemptStore(gateway)
        self.stats = DashboardStats(gateway, self.courses, self.quizzes, self.all_attempts, self.enrollments)

        self._attempt_stores: dict[str, AttemptStore] = {}
        self._workflows: dict[tuple[str, str], QuizAttemptWorkflow] = {}
        self._start_locks: dict[tuple[str, str], Lock] = {}

    # --- Stores ---

    def attempts_for(self, user: User) -> AttemptStore:
        with self._lock:
            store = self._attempt_stores.get(user.id)
            if store is None:
                store = AttemptStore(self._gateway, user.id)
                self._attempt_stores[user.id] = store
            return store

    def course_quizzes(self, course_id: str) -> list[Quiz]:
        self.courses.require(course_id)
        return self.quizzes.quizzes_for_course(course_id)

    # --- Enrollment ---

    def enroll(self, user: User, course_id: str) -> EnrolledCourse:
        self.courses.require(course_id)
        return self.enrollments.enroll(user.id, course_id)

    def enrollment_for(self, user: User, course_id: str) -> EnrolledCourse:
        enrollment = self.enrollments.get_enrollment(user.id, course_id)
        if enrollment is None:
            raise RecordNotFoundError(f"Not enrolled in course '{course_id}'")
        return enrollment

    # --- Attempts ---

    def get_workflow(self, user: User, quiz_id: str) -> QuizAttemptWorkflow:
        with self._lock:
            workflow = self._workflows.get((user.id, quiz_id))
        if workflow is None:
            raise RecordNotFoundError(f"No attempt in progress for quiz '{quiz_id}'")
        return workflow

    def start_attempt(self, user: User, quiz_id: str) -> QuizAttemptWorkflow:
        """Start, or resume, the student's attempt on a quiz.

        Starts for the same student and quiz are serialized, so a concurrent
        second call resumes the attempt the first one created.
        """
        quiz = self.quizzes.require(quiz_id)
        key = (user.id, quiz_id)
        with self._start_lock(key):
            with self._lock:
                previous = self._workflows.get(key)
            if previous is not None and previous.attempt_started and previous.state is not AttemptState.COMPLETED:
                return previous
            workflow = QuizAttemptWorkflow(
                quiz=quiz,
                questions=self.questions.questions_for_quiz(quiz_id),
                user=user,
                attempts=self.attempts_for(user),
                enrollments=self.enrollments,
                run_timer_in_background=self._run_timers_in_background,
            )
            workflow.start()
            with self._lock:
                self._workflows[key] = workflow
            if previous is not None:
                previous.close()
        self.all_attempts.invalidate()
        self.prune_workflows()
        return workflow

    def prune_workflows(self, now: datetime | None = None) -> int:
        """Forget submitted attempts older than the retention window."""
        cutoff = (now or utc_now()) - timedelta(seconds=COMPLETED_WORKFLOW_RETENTION_SECONDS)
        with self._lock:
            candidates = list(self._workflows.items())
        stale = [
            (key, workflow)
            for key, workflow in candidates
            if workflow.state is AttemptState.COMPLETED
            and workflow.result is not None
            and workflow.result.completed_at is not None
            and workflow.result.completed_at < cutoff
        ]
        evicted = 0
        with self._lock:
            for key, workflow in stale:
                if self._workflows.get(key) is not workflow:
                    continue
                del self._workflows[key]
                evicted += 1
                lock = self._start_locks.get(key)
                if lock is not None and not lock.locked():
                    del self._start_locks[key]
            active_users = {user_id for user_id, _ in self._workflows}
            for user_id in [user_id for user_id in self._attempt_stores if user_id not in active_users]:
                del self._attempt_stores[user_id]
        if evicted:
            logger.debug("Evicted %d completed attempt workflows", evicted)
        return evicted

    def _start_lock(self, key: tuple[str, str]) -> Lock:
        with self._lock:
            return self._start_locks.setdefault(key, Lock())

    def submit_attempt(self, user: User, quiz_id: str) -> QuizAttempt:
        workflow = self.get_workflow(user, quiz_id)
        try:
            return workflow.submit()
        finally:
            self.all_attempts.invalidate()

    def review_attempt(self, user: User, quiz_id: str) -> AttemptReview:
        quiz = self.quizzes.require(quiz_id)
        if not quiz.review_enabled:
            raise ReviewNotAvailableError("Review is not enabled for this quiz.")
        attempt = self.attempts_for(user).latest_completed_attempt(quiz_id)
        if attempt is None:
            raise RecordNotFoundError(f"No completed attempt for quiz '{quiz_id}'")
        recorded = {answer.question_id: answer for answer in attempt.answers}
        items = [
            ReviewItem(
                question=question,
                answer=recorded[question.id].answer if question.id in recorded else "",
                is_correct=recorded[question.id].is_correct if question.id in recorded else False,
            )
            for question in self.questions.questions_for_quiz(quiz_id)
        ]
        return AttemptReview(
            quiz=quiz,
            attempt=attempt,
            items=items,
            percentage=percentage(attempt.score, attempt.max_score),
            passed=has_passed(attempt.score, attempt.max_score, quiz.passing_score),
        )

    # --- Dashboard ---

    def dashboard(self, user: User) -> dict[str, object]:
        if not user.is_admin:
            raise PermissionDeniedError("Administrator access required.")
        self.all_attempts.invalidate()
        completion = self.stats.attempt_completion()
        return {
            "total_students": self.stats.total_students(),
            "courses_count": len(self.courses.list()),
            "quizzes_count": len(self.quizzes.list()),
            "completion_rate": completion.completion_rate,
            "course_completion_rate": self.stats.course_completion_rate(),
            "attempt_completion": completion,
            "enrollments": self.stats.course_enrollment_summary(),
            "quiz_performance": self.stats.quiz_performance(),
            "attempts_by_month": self.stats.attempts_by_month(),
        }

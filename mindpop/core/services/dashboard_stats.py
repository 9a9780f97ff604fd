"""Aggregate statistics for the administrator dashboard and student summaries."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime

from mindpop.constants.gateway_constants import PROFILES
from mindpop.core.errors import GatewayError, PersistenceFailure
from mindpop.core.models import QuizAttempt, UserRole
from mindpop.core.scoring import has_passed, percentage, round_half_up
from mindpop.core.services.attempt_store import AttemptStore
from mindpop.core.services.course_store import CourseStore
from mindpop.core.services.enrollment_service import EnrollmentService
from mindpop.core.services.quiz_store import QuizStore
from mindpop.gateway.base import PersistenceGateway


@dataclass(slots=True)
class QuizPerformanceRow:
    quiz_id: str
    name: str
    average: int
    attempts: int


@dataclass(slots=True)
class CourseEnrollmentRow:
    course_id: str
    name: str
    students: int
    quizzes: int


@dataclass(slots=True)
class AttemptCompletion:
    completed: int
    incomplete: int
    completion_rate: int


@dataclass(slots=True)
class RecentAttemptRow:
    id: str
    quiz_id: str
    user_id: str
    student_name: str
    quiz_title: str
    course_id: str | None
    started_at: datetime | None
    completed_at: datetime | None
    score: int
    max_score: int


@dataclass(slots=True)
class StudentSummary:
    total_courses: int
    completed_courses: int
    average_score: int
    quizzes_taken: int
    quizzes_passed: int


def _attempt_percentage(attempt: QuizAttempt) -> float:
    max_score = attempt.max_score or 1
    return (attempt.score or 0) / max_score * 100


class DashboardStats:
    """Read-only aggregations over the stores; nothing here writes."""

    def __init__(
        self,
        gateway: PersistenceGateway,
        courses: CourseStore,
        quizzes: QuizStore,
        attempts: AttemptStore,
        enrollments: EnrollmentService,
    ) -> None:
        self._gateway = gateway
        self._courses = courses
        self._quizzes = quizzes
        self._attempts = attempts
        self._enrollments = enrollments

    def total_students(self) -> int:
        try:
            profiles = self._gateway.select(PROFILES, {"role": UserRole.STUDENT.value})
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to count students: {exc}") from exc
        return len(profiles)

    def quiz_performance(self) -> list[QuizPerformanceRow]:
        attempts = self._attempts.list()
        rows: list[QuizPerformanceRow] = []
        for quiz in self._quizzes.list():
            quiz_attempts = [attempt for attempt in attempts if attempt.quiz_id == quiz.id]
            average = (
                sum(_attempt_percentage(attempt) for attempt in quiz_attempts) / len(quiz_attempts)
                if quiz_attempts
                else 0
            )
            rows.append(
                QuizPerformanceRow(
                    quiz_id=quiz.id,
                    name=quiz.title,
                    average=round_half_up(average),
                    attempts=len(quiz_attempts),
                )
            )
        return rows

    def attempt_completion(self) -> AttemptCompletion:
        attempts = self._attempts.list()
        completed = sum(1 for attempt in attempts if attempt.is_completed)
        incomplete = len(attempts) - completed
        rate = round_half_up(completed / len(attempts) * 100) if attempts else 0
        return AttemptCompletion(completed=completed, incomplete=incomplete, completion_rate=rate)

    def course_enrollment_summary(self) -> list[CourseEnrollmentRow]:
        counts: dict[str, int] = {}
        for enrollment in self._enrollments.all_enrollments():
            counts[enrollment.course_id] = counts.get(enrollment.course_id, 0) + 1
        return [
            CourseEnrollmentRow(
                course_id=course.id,
                name=course.title,
                students=counts.get(course.id, 0),
                quizzes=len(self._quizzes.quizzes_for_course(course.id)),
            )
            for course in self._courses.list()
        ]

    def course_completion_rate(self) -> int:
        enrollments = self._enrollments.all_enrollments()
        if not enrollments:
            return 0
        completed = sum(1 for enrollment in enrollments if self._enrollments.is_course_complete(enrollment))
        return round_half_up(completed / len(enrollments) * 100)

    def recent_attempts(self, limit: int = 20) -> list[RecentAttemptRow]:
        """Newest attempts first, labelled with the student's name and the quiz title."""
        dated = [a for a in self._attempts.list() if (a.completed_at or a.started_at) is not None]
        dated.sort(key=lambda a: a.completed_at or a.started_at, reverse=True)
        quizzes = {quiz.id: quiz for quiz in self._quizzes.list()}
        names = self._profile_names()
        rows: list[RecentAttemptRow] = []
        for attempt in dated[:limit]:
            quiz = quizzes.get(attempt.quiz_id)
            rows.append(
                RecentAttemptRow(
                    id=attempt.id,
                    quiz_id=attempt.quiz_id,
                    user_id=attempt.user_id,
                    student_name=names.get(attempt.user_id) or "Unknown",
                    quiz_title=quiz.title if quiz is not None else "Unknown Quiz",
                    course_id=quiz.course_id if quiz is not None else None,
                    started_at=attempt.started_at,
                    completed_at=attempt.completed_at,
                    score=attempt.score,
                    max_score=attempt.max_score,
                )
            )
        return rows

    def attempts_by_month(self, limit: int = 20) -> dict[str, list[RecentAttemptRow]]:
        """Recent attempts grouped under labels such as ``"March 2025"``."""
        grouped: OrderedDict[str, list[RecentAttemptRow]] = OrderedDict()
        for row in self.recent_attempts(limit):
            moment = row.completed_at or row.started_at
            grouped.setdefault(moment.strftime("%B %Y"), []).append(row)
        return dict(grouped)

    def _profile_names(self) -> dict[str, str]:
        try:
            profiles = self._gateway.select(PROFILES)
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to load profiles: {exc}") from exc
        return {str(profile["id"]): profile.get("name") or "" for profile in profiles}

    def student_summary(self, user_id: str) -> StudentSummary:
        enrollments = self._enrollments.enrollments_for_user(user_id)
        quizzes = {quiz.id: quiz for quiz in self._quizzes.list()}
        completed_attempts = [
            attempt
            for attempt in self._attempts.list()
            if attempt.user_id == user_id and attempt.is_completed
        ]
        passed = sum(
            1
            for attempt in completed_attempts
            if attempt.quiz_id in quizzes
            and has_passed(attempt.score, attempt.max_score, quizzes[attempt.quiz_id].passing_score)
        )
        average = (
            round_half_up(
                sum(percentage(a.score, a.max_score) for a in completed_attempts) / len(completed_attempts)
            )
            if completed_attempts
            else 0
        )
        return StudentSummary(
            total_courses=len(enrollments),
            completed_courses=sum(1 for e in enrollments if self._enrollments.is_course_complete(e)),
            average_score=average,
            quizzes_taken=len(completed_attempts),
            quizzes_passed=passed,
        )

"""Enrollment records and course progress bookkeeping."""

from __future__ import annotations

import logging

from mindpop.constants.gateway_constants import ENROLLMENTS
from mindpop.core.errors import GatewayError, PersistenceFailure
from mindpop.core.models import EnrolledCourse
from mindpop.core.record_mappers import enrollment_from_record
from mindpop.core.scoring import compute_progress, is_course_complete
from mindpop.core.services.quiz_store import QuizStore
from mindpop.gateway.base import PersistenceGateway

logger = logging.getLogger(__name__)


class EnrollmentService:
    """Reads and writes enrollments directly; progress is derived from the quiz store."""

    def __init__(self, gateway: PersistenceGateway, quizzes: QuizStore) -> None:
        self._gateway = gateway
        self._quizzes = quizzes

    def enroll(self, user_id: str, course_id: str) -> EnrolledCourse:
        existing = self.get_enrollment(user_id, course_id)
        if existing is not None:
            return existing
        try:
            record = self._gateway.insert(
                ENROLLMENTS,
                {"user_id": user_id, "course_id": course_id, "progress": 0, "completed_quizzes": []},
            )
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to enroll: {exc}") from exc
        logger.info("User %s enrolled in course %s", user_id, course_id)
        return enrollment_from_record(record)

    def get_enrollment(self, user_id: str, course_id: str) -> EnrolledCourse | None:
        try:
            records = self._gateway.select(ENROLLMENTS, {"user_id": user_id, "course_id": course_id})
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to load enrollment: {exc}") from exc
        return enrollment_from_record(records[0]) if records else None

    def enrollments_for_user(self, user_id: str) -> list[EnrolledCourse]:
        return self._select({"user_id": user_id})

    def all_enrollments(self) -> list[EnrolledCourse]:
        return self._select(None)

    def _select(self, filters: dict[str, str] | None) -> list[EnrolledCourse]:
        try:
            records = self._gateway.select(ENROLLMENTS, filters)
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to load enrollments: {exc}") from exc
        return [enrollment_from_record(record) for record in records]

    def _course_quiz_ids(self, course_id: str) -> list[str]:
        return [quiz.id for quiz in self._quizzes.quizzes_for_course(course_id)]

    def course_progress(self, enrollment: EnrolledCourse) -> int:
        return compute_progress(enrollment.completed_quizzes, self._course_quiz_ids(enrollment.course_id))

    def is_course_complete(self, enrollment: EnrolledCourse) -> bool:
        return is_course_complete(enrollment.completed_quizzes, self._course_quiz_ids(enrollment.course_id))

    def record_quiz_completion(self, user_id: str, course_id: str, quiz_id: str) -> EnrolledCourse | None:
        """Add ``quiz_id`` to the completed set and recompute progress.

        Re-running it for the same quiz rewrites the same values. Returns None
        when the student is not enrolled in the course.
        """
        enrollment = self.get_enrollment(user_id, course_id)
        if enrollment is None:
            logger.warning("No enrollment for user %s in course %s; progress not updated", user_id, course_id)
            return None
        completed = list(enrollment.completed_quizzes)
        if quiz_id not in completed:
            completed.append(quiz_id)
        progress = compute_progress(completed, self._course_quiz_ids(course_id))
        try:
            record = self._gateway.update(
                ENROLLMENTS,
                enrollment.id,
                {"completed_quizzes": completed, "progress": progress},
            )
        except GatewayError as exc:
            raise PersistenceFailure(f"Failed to update enrollment: {exc}") from exc
        logger.info("Enrollment %s progress now %s%%", enrollment.id, progress)
        return enrollment_from_record(record)

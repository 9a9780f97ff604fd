from __future__ import annotations

from typing import Any, Mapping

import pytest

from mindpop.core.errors import GatewayError
from mindpop.core.learning_platform import LearningPlatform
from mindpop.core.models import UserRole
from mindpop.gateway.base import Record
from mindpop.gateway.memory import InMemoryGateway


class FailingGateway(InMemoryGateway):
    """In-memory gateway that can be told to reject chosen operations."""

    def __init__(self) -> None:
        super().__init__()
        self.failures: set[tuple[str, str]] = set()
        self.calls: list[tuple[str, str]] = []

    def fail(self, operation: str, collection: str) -> None:
        self.failures.add((operation, collection))

    def recover(self) -> None:
        self.failures.clear()

    def _check(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if (operation, collection) in self.failures:
            raise GatewayError(f"{operation} on {collection} rejected")

    def count(self, operation: str, collection: str) -> int:
        return self.calls.count((operation, collection))

    def select(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Record]:
        self._check("select", collection)
        return super().select(collection, filters)

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        self._check("insert", collection)
        return super().insert(collection, record)

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        self._check("update", collection)
        return super().update(collection, record_id, changes)

    def delete(self, collection: str, record_id: str) -> None:
        self._check("delete", collection)
        super().delete(collection, record_id)


@pytest.fixture
def gateway() -> FailingGateway:
    return FailingGateway()


@pytest.fixture
def platform(gateway):
    return LearningPlatform(gateway, run_timers_in_background=False)


@pytest.fixture
def admin(platform):
    return platform.accounts.register("admin@example.com", "admin-secret", "Ada Admin", UserRole.ADMIN)


@pytest.fixture
def student(platform):
    return platform.accounts.register("student@example.com", "student-secret", "Sam Student")


@pytest.fixture
def course(platform, admin):
    return platform.courses.create(
        {"title": "Algebra Basics", "description": "Linear equations and friends."},
        author=admin,
    )


@pytest.fixture
def quiz(platform, course):
    return platform.quizzes.create(
        {
            "course_id": course.id,
            "title": "Linear Equations",
            "description": "Solve for x in simple equations.",
            "time_limit": 1,
            "passing_score": 70,
            "review_enabled": True,
        }
    )


@pytest.fixture
def questions(platform, quiz):
    return [
        platform.questions.create(
            {
                "quiz_id": quiz.id,
                "text": "What is $x$ if $x + 1 = 3$?",
                "type": "multiple_choice",
                "options": ["1", "2", "3"],
                "correct_answer": "2",
            }
        ),
        platform.questions.create(
            {
                "quiz_id": quiz.id,
                "text": "Is $2x = 4$ solved by $x = 2$?",
                "type": "true_false",
                "correct_answer": "true",
            }
        ),
        platform.questions.create(
            {
                "quiz_id": quiz.id,
                "text": "Solve $3x = 12$.",
                "type": "short_answer",
                "correct_answer": "x = 4",
                "points": 2,
            }
        ),
    ]

"""Domain models for the learning platform."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

AnswerValue = str | list[str]


class UserRole(str, Enum):
    ADMIN = "admin"
    STUDENT = "student"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    SHORT_ANSWER = "short_answer"


@dataclass(slots=True)
class User:
    """Authenticated user as supplied by the auth collaborator."""

    id: str
    email: str
    role: UserRole = UserRole.STUDENT
    name: str | None = None
    avatar: str | None = None
    created_at: datetime | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is UserRole.ADMIN


@dataclass(slots=True)
class Profile:
    """Public profile row kept alongside each account."""

    id: str
    name: str
    role: UserRole
    avatar: str | None = None
    created_at: datetime | None = None


@dataclass(slots=True)
class Course:
    id: str
    title: str
    description: str
    created_by: str
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class Quiz:
    """Quiz owned by a course. Immutable from the student's point of view."""

    id: str
    course_id: str
    title: str
    description: str
    time_limit: int | None = None  # minutes
    passing_score: int | None = None  # percentage
    review_enabled: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(slots=True)
class Question:
    """Single quiz question; options only matter for multiple choice."""

    id: str
    quiz_id: str
    text: str
    type: QuestionType
    correct_answer: AnswerValue
    options: list[str] = field(default_factory=list)
    points: int = 1


@dataclass(slots=True)
class AnswerRecord:
    """Answer stored on a completed attempt."""

    question_id: str
    answer: AnswerValue
    is_correct: bool


@dataclass(slots=True)
class QuizAttempt:
    id: str
    quiz_id: str
    user_id: str
    started_at: datetime | None = None
    completed_at: datetime | None = None
    score: int = 0
    max_score: int = 0
    answers: list[AnswerRecord] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(slots=True)
class EnrolledCourse:
    """Per-(student, course) record tracking progress and completed quizzes."""

    id: str
    user_id: str
    course_id: str
    enrolled_at: datetime | None = None
    progress: int = 0
    completed_quizzes: list[str] = field(default_factory=list)

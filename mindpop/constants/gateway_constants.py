"""Persistence gateway settings read from the environment."""

import os

GATEWAY_URL: str | None = os.getenv("MINDPOP_GATEWAY_URL")
GATEWAY_API_KEY: str | None = os.getenv("MINDPOP_GATEWAY_KEY")
GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("MINDPOP_GATEWAY_TIMEOUT", "10"))

COURSES = "courses"
QUIZZES = "quizzes"
QUESTIONS = "questions"
QUIZ_ATTEMPTS = "quiz_attempts"
ENROLLMENTS = "enrollments"
PROFILES = "profiles"

COLLECTIONS: tuple[str, ...] = (
    COURSES,
    QUIZZES,
    QUESTIONS,
    QUIZ_ATTEMPTS,
    ENROLLMENTS,
    PROFILES,
)

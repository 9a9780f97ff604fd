"""Translation between gateway records and domain models.

Gateway records are plain dicts keyed by the remote column names. Columns may
be absent or null; this module is the only place that knows how to default
them (a missing score is 0, missing options are an empty list, and so on).
Timestamps travel as ISO-8601 strings and are parsed into aware datetimes.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from mindpop.constants.quiz_constants import DEFAULT_QUESTION_POINTS
from mindpop.core.models import (
    AnswerRecord,
    Course,
    EnrolledCourse,
    Profile,
    Question,
    QuestionType,
    Quiz,
    QuizAttempt,
    UserRole,
)

Record = dict[str, Any]


def parse_timestamp(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    return int(value)


def _string_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    return []


def _answer_value(value: Any) -> str | list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if value is None:
        return ""
    return str(value)


def _only(changes: Mapping[str, Any], allowed: tuple[str, ...]) -> Record:
    unknown = set(changes) - set(allowed)
    if unknown:
        raise KeyError(f"Unsupported fields: {', '.join(sorted(unknown))}")
    return dict(changes)


# --- Courses ---

COURSE_UPDATE_FIELDS = ("title", "description", "image_url")


def course_from_record(record: Mapping[str, Any]) -> Course:
    return Course(
        id=str(record["id"]),
        title=record.get("title") or "",
        description=record.get("description") or "",
        created_by=str(record.get("created_by") or ""),
        image_url=record.get("image_url") or None,
        created_at=parse_timestamp(record.get("created_at")),
        updated_at=parse_timestamp(record.get("updated_at")),
    )


def course_to_record(course: Course) -> Record:
    return {
        "id": course.id,
        "title": course.title,
        "description": course.description,
        "created_by": course.created_by,
        "image_url": course.image_url,
        "created_at": format_timestamp(course.created_at),
        "updated_at": format_timestamp(course.updated_at),
    }


def course_changes_to_record(changes: Mapping[str, Any]) -> Record:
    record = _only(changes, COURSE_UPDATE_FIELDS)
    if "image_url" in record and not record["image_url"]:
        record["image_url"] = None
    return record


# --- Quizzes ---

QUIZ_UPDATE_FIELDS = ("title", "description", "time_limit", "passing_score", "review_enabled")


def quiz_from_record(record: Mapping[str, Any]) -> Quiz:
    return Quiz(
        id=str(record["id"]),
        course_id=str(record.get("course_id") or ""),
        title=record.get("title") or "",
        description=record.get("description") or "",
        time_limit=_optional_int(record.get("time_limit")),
        passing_score=_optional_int(record.get("passing_score")),
        review_enabled=bool(record.get("review_enabled", False)),
        created_at=parse_timestamp(record.get("created_at")),
        updated_at=parse_timestamp(record.get("updated_at")),
    )


def quiz_to_record(quiz: Quiz) -> Record:
    return {
        "id": quiz.id,
        "course_id": quiz.course_id,
        "title": quiz.title,
        "description": quiz.description,
        "time_limit": quiz.time_limit,
        "passing_score": quiz.passing_score,
        "review_enabled": quiz.review_enabled,
        "created_at": format_timestamp(quiz.created_at),
        "updated_at": format_timestamp(quiz.updated_at),
    }


def quiz_changes_to_record(changes: Mapping[str, Any]) -> Record:
    return _only(changes, QUIZ_UPDATE_FIELDS)


# --- Questions ---

QUESTION_UPDATE_FIELDS = ("text", "type", "options", "correct_answer", "points")


def question_from_record(record: Mapping[str, Any]) -> Question:
    points = record.get("points")
    return Question(
        id=str(record["id"]),
        quiz_id=str(record.get("quiz_id") or ""),
        text=record.get("text") or "",
        type=QuestionType(record.get("type") or QuestionType.MULTIPLE_CHOICE.value),
        options=_string_list(record.get("options")),
        correct_answer=_answer_value(record.get("correct_answer")),
        points=int(points) if points is not None else DEFAULT_QUESTION_POINTS,
    )


def question_to_record(question: Question) -> Record:
    return {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "text": question.text,
        "type": question.type.value,
        "options": list(question.options),
        "correct_answer": question.correct_answer,
        "points": question.points,
    }


def question_changes_to_record(changes: Mapping[str, Any]) -> Record:
    record = _only(changes, QUESTION_UPDATE_FIELDS)
    if isinstance(record.get("type"), QuestionType):
        record["type"] = record["type"].value
    return record


# --- Quiz attempts ---


def answer_from_record(record: Mapping[str, Any]) -> AnswerRecord:
    question_id = record.get("question_id", record.get("questionId"))
    is_correct = record.get("is_correct", record.get("isCorrect"))
    return AnswerRecord(
        question_id=str(question_id or ""),
        answer=_answer_value(record.get("answer")),
        is_correct=bool(is_correct),
    )


def answers_to_record(answers: list[AnswerRecord]) -> list[Record]:
    return [
        {
            "question_id": answer.question_id,
            "answer": answer.answer,
            "is_correct": answer.is_correct,
        }
        for answer in answers
    ]


def attempt_from_record(record: Mapping[str, Any]) -> QuizAttempt:
    raw_answers = record.get("answers")
    answers = [answer_from_record(item) for item in raw_answers] if isinstance(raw_answers, list) else []
    return QuizAttempt(
        id=str(record["id"]),
        quiz_id=str(record.get("quiz_id") or ""),
        user_id=str(record.get("user_id") or ""),
        started_at=parse_timestamp(record.get("started_at")),
        completed_at=parse_timestamp(record.get("completed_at")),
        score=record.get("score") or 0,
        max_score=record.get("max_score") or 0,
        answers=answers,
    )


def attempt_to_record(attempt: QuizAttempt) -> Record:
    return {
        "id": attempt.id,
        "quiz_id": attempt.quiz_id,
        "user_id": attempt.user_id,
        "started_at": format_timestamp(attempt.started_at),
        "completed_at": format_timestamp(attempt.completed_at),
        "score": attempt.score,
        "max_score": attempt.max_score,
        "answers": answers_to_record(attempt.answers),
    }


# --- Enrollments ---


def enrollment_from_record(record: Mapping[str, Any]) -> EnrolledCourse:
    return EnrolledCourse(
        id=str(record["id"]),
        user_id=str(record.get("user_id") or ""),
        course_id=str(record.get("course_id") or ""),
        enrolled_at=parse_timestamp(record.get("enrolled_at")),
        progress=int(record.get("progress") or 0),
        completed_quizzes=_string_list(record.get("completed_quizzes")),
    )


def enrollment_to_record(enrollment: EnrolledCourse) -> Record:
    return {
        "id": enrollment.id,
        "user_id": enrollment.user_id,
        "course_id": enrollment.course_id,
        "enrolled_at": format_timestamp(enrollment.enrolled_at),
        "progress": enrollment.progress,
        "completed_quizzes": list(enrollment.completed_quizzes),
    }


# --- Profiles ---


def profile_from_record(record: Mapping[str, Any]) -> Profile:
    return Profile(
        id=str(record["id"]),
        name=record.get("name") or "Unknown",
        role=UserRole(record.get("role") or UserRole.STUDENT.value),
        avatar=record.get("avatar"),
        created_at=parse_timestamp(record.get("created_at")),
    )


def profile_to_record(profile: Profile) -> Record:
    return {
        "id": profile.id,
        "name": profile.name,
        "role": profile.role.value,
        "avatar": profile.avatar,
        "created_at": format_timestamp(profile.created_at),
    }


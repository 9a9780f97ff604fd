import pytest

from mindpop.constants.gateway_constants import QUIZ_ATTEMPTS
from mindpop.core.errors import PermissionDeniedError, RecordNotFoundError, ReviewNotAvailableError


@pytest.fixture
def completed(platform, student, course, quiz, questions):
    platform.enroll(student, course.id)
    workflow = platform.start_attempt(student, quiz.id)
    workflow.record_answer(questions[0].id, "2")
    workflow.record_answer(questions[1].id, "true")
    workflow.record_answer(questions[2].id, "x = 4")
    return platform.submit_attempt(student, quiz.id)


def test_dashboard_requires_admin(platform, student):
    with pytest.raises(PermissionDeniedError):
        platform.dashboard(student)


def test_dashboard_aggregates(platform, admin, student, course, quiz, completed):
    platform.accounts.register("other@example.com", "other-secret", "Olive")
    platform.start_attempt(platform.accounts.authenticate("other@example.com", "other-secret"), quiz.id)

    dashboard = platform.dashboard(admin)

    assert dashboard["total_students"] == 2
    assert dashboard["courses_count"] == 1
    assert dashboard["quizzes_count"] == 1
    assert dashboard["completion_rate"] == 50
    assert dashboard["course_completion_rate"] == 100
    assert dashboard["attempt_completion"].completed == 1
    assert dashboard["attempt_completion"].incomplete == 1

    [row] = dashboard["quiz_performance"]
    assert row.quiz_id == quiz.id
    assert row.attempts == 2
    assert row.average == 50

    [enrollment_row] = dashboard["enrollments"]
    assert enrollment_row.students == 1
    assert enrollment_row.quizzes == 1

    grouped = dashboard["attempts_by_month"]
    assert sum(len(items) for items in grouped.values()) == 2
    label = completed.completed_at.strftime("%B %Y")
    assert label in grouped


def test_empty_dashboard(platform, admin):
    dashboard = platform.dashboard(admin)

    assert dashboard["total_students"] == 0
    assert dashboard["completion_rate"] == 0
    assert dashboard["course_completion_rate"] == 0
    assert dashboard["quiz_performance"] == []
    assert dashboard["attempts_by_month"] == {}


def test_student_summary(platform, student, completed):
    summary = platform.stats.student_summary(student.id)

    assert summary.total_courses == 1
    assert summary.completed_courses == 1
    assert summary.quizzes_taken == 1
    assert summary.quizzes_passed == 1
    assert summary.average_score == 100


def test_review_lists_every_question(platform, student, quiz, questions, completed):
    review = platform.review_attempt(student, quiz.id)

    assert review.percentage == 100
    assert review.passed
    assert [item.question.id for item in review.items] == [q.id for q in questions]
    assert all(item.is_correct for item in review.items)


def test_review_requires_completed_attempt(platform, student, quiz, questions):
    with pytest.raises(RecordNotFoundError):
        platform.review_attempt(student, quiz.id)


def test_review_can_be_disabled(platform, student, quiz, completed):
    platform.quizzes.update(quiz.id, {"review_enabled": False})

    with pytest.raises(ReviewNotAvailableError):
        platform.review_attempt(student, quiz.id)


def test_started_attempt_is_resumed(platform, student, quiz, questions):
    first = platform.start_attempt(student, quiz.id)
    first.record_answer(questions[0].id, "1")

    again = platform.start_attempt(student, quiz.id)

    assert again is first
    assert platform.get_workflow(student, quiz.id).answers == {questions[0].id: "1"}


def test_recent_attempts_carry_student_and_quiz_labels(platform, admin, student, course, quiz, completed):
    other = platform.accounts.register("other@example.com", "other-secret", "Olive")
    platform.start_attempt(other, quiz.id)

    rows = platform.stats.recent_attempts()

    assert {row.student_name for row in rows} == {"Sam Student", "Olive"}
    assert all(row.quiz_title == "Linear Equations" for row in rows)
    assert all(row.course_id == course.id for row in rows)
    grouped = platform.dashboard(admin)["attempts_by_month"]
    [mine] = [row for items in grouped.values() for row in items if row.user_id == student.id]
    assert mine.student_name == "Sam Student"
    assert mine.score == 4


def test_recent_attempts_fall_back_for_missing_profile_and_quiz(platform, gateway):
    gateway.insert(
        QUIZ_ATTEMPTS,
        {
            "id": "orphan",
            "quiz_id": "deleted-quiz",
            "user_id": "deleted-user",
            "started_at": "2025-03-04T10:00:00+00:00",
            "completed_at": None,
            "score": 0,
            "max_score": 2,
            "answers": [],
        },
    )
    platform.all_attempts.invalidate()

    [row] = platform.stats.recent_attempts()

    assert row.student_name == "Unknown"
    assert row.quiz_title == "Unknown Quiz"
    assert row.course_id is None
    assert list(platform.stats.attempts_by_month()) == ["March 2025"]

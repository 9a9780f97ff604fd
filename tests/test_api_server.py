import pytest
from fastapi.testclient import TestClient

from mindpop.constants.gateway_constants import QUIZ_ATTEMPTS
from mindpop.constants.network_constants import SESSION_COOKIE
from mindpop.server.api_server import SessionRegistry, create_api_app


@pytest.fixture
def app(platform):
    return create_api_app(platform)


@pytest.fixture
def admin_client(app, admin):
    client = TestClient(app)
    response = client.post("/auth/login", json={"email": "admin@example.com", "password": "admin-secret"})
    assert response.status_code == 200
    return client


@pytest.fixture
def student_client(app, student):
    client = TestClient(app)
    response = client.post("/auth/login", json={"email": "student@example.com", "password": "student-secret"})
    assert response.status_code == 200
    return client


def test_signup_sets_session_cookie(app):
    client = TestClient(app)

    response = client.post("/auth/signup", json={"email": "new@example.com", "password": "secret-pass", "name": "Nia"})

    assert response.status_code == 201
    assert SESSION_COOKIE in response.cookies
    me = client.get("/auth/me").json()
    assert me["email"] == "new@example.com"
    assert me["role"] == "student"


def test_signup_validation_errors(app):
    client = TestClient(app)

    response = client.post("/auth/signup", json={"email": "new@example.com", "password": "123"})

    assert response.status_code == 422
    assert "password" in response.json()["fields"]


def test_bad_login_and_anonymous_access(app, student):
    client = TestClient(app)

    assert client.post("/auth/login", json={"email": "student@example.com", "password": "nope"}).status_code == 401
    assert client.get("/auth/me").status_code == 401
    assert client.get("/enrollments").status_code == 401


def test_logout_ends_session(student_client):
    assert student_client.post("/auth/logout").status_code == 204
    assert student_client.get("/auth/me").status_code == 401


def test_course_writes_are_admin_only(admin_client, student_client):
    payload = {"title": "Geometry", "description": "Shapes and angles."}

    assert student_client.post("/courses", json=payload).status_code == 403

    created = admin_client.post("/courses", json=payload)
    assert created.status_code == 201
    course_id = created.json()["id"]

    assert admin_client.patch(f"/courses/{course_id}", json={"title": "Geometry II"}).json()["title"] == "Geometry II"
    assert [course["title"] for course in student_client.get("/courses").json()] == ["Geometry II"]
    assert admin_client.delete(f"/courses/{course_id}").status_code == 204
    assert student_client.get("/courses").json() == []


def test_invalid_course_returns_field_errors(admin_client):
    response = admin_client.post("/courses", json={"title": "Go", "description": "Long enough text."})

    assert response.status_code == 422
    assert "title" in response.json()["fields"]


def test_unknown_quiz_is_not_found(student_client):
    assert student_client.get("/quizzes/missing/questions").status_code == 404
    assert student_client.get("/courses/missing/quizzes").status_code == 404


def test_students_do_not_see_correct_answers(admin_client, student_client, quiz, questions):
    student_view = student_client.get(f"/quizzes/{quiz.id}/questions").json()
    admin_view = admin_client.get(f"/quizzes/{quiz.id}/questions").json()

    assert all("correct_answer" not in question for question in student_view)
    assert admin_view[0]["correct_answer"] == "2"
    assert "<p>" in student_view[0]["text_html"]


def test_full_attempt_flow(student_client, course, quiz, questions):
    assert student_client.post(f"/courses/{course.id}/enroll").status_code == 201

    started = student_client.post(f"/quizzes/{quiz.id}/attempt/start")
    assert started.status_code == 201
    state = started.json()
    assert state["state"] == "in_progress"
    assert state["current_question"]["id"] == questions[0].id
    assert "correct_answer" not in state["current_question"]
    assert state["time_display"] == "01:00"

    student_client.post(f"/quizzes/{quiz.id}/attempt/answer", json={"question_id": questions[0].id, "answer": "2"})
    moved = student_client.post(f"/quizzes/{quiz.id}/attempt/next").json()
    assert moved["current_question_index"] == 1
    student_client.post(f"/quizzes/{quiz.id}/attempt/answer", json={"question_id": questions[1].id, "answer": "true"})
    jumped = student_client.post(f"/quizzes/{quiz.id}/attempt/jump", json={"index": 2}).json()
    assert jumped["current_question"]["id"] == questions[2].id
    assert student_client.post(f"/quizzes/{quiz.id}/attempt/jump", json={"index": 9}).status_code == 422
    back = student_client.post(f"/quizzes/{quiz.id}/attempt/previous").json()
    assert back["current_question_index"] == 1

    submitted = student_client.post(f"/quizzes/{quiz.id}/attempt/submit")
    assert submitted.status_code == 200
    result = submitted.json()
    assert result["state"] == "completed"
    assert result["result"]["score"] == 2
    assert result["result"]["max_score"] == 4

    [enrollment] = student_client.get("/enrollments").json()
    assert enrollment["completed_quizzes"] == [quiz.id]
    assert enrollment["progress"] == 100
    assert enrollment["is_complete"] is True

    review = student_client.get(f"/quizzes/{quiz.id}/review").json()
    assert review["percentage"] == 50
    assert review["passed"] is False
    assert [item["is_correct"] for item in review["items"]] == [True, True, False]

    summary = student_client.get("/me/summary").json()
    assert summary["quizzes_taken"] == 1
    assert summary["quizzes_passed"] == 0


def test_second_attempt_is_a_conflict(platform, gateway, student_client, course, quiz, questions):
    student_client.post(f"/courses/{course.id}/enroll")
    student_client.post(f"/quizzes/{quiz.id}/attempt/start")
    student_client.post(f"/quizzes/{quiz.id}/attempt/submit")

    response = student_client.post(f"/quizzes/{quiz.id}/attempt/start")

    assert response.status_code == 409
    assert len(gateway.select(QUIZ_ATTEMPTS, {"quiz_id": quiz.id})) == 1
    assert student_client.get(f"/quizzes/{quiz.id}/attempt").json()["state"] == "completed"
    assert student_client.post(f"/quizzes/{quiz.id}/attempt/submit").status_code == 409


def test_attempt_routes_need_a_started_attempt(student_client, quiz):
    assert student_client.get(f"/quizzes/{quiz.id}/attempt").status_code == 404
    assert student_client.post(f"/quizzes/{quiz.id}/attempt/submit").status_code == 404


def test_gateway_failure_maps_to_bad_gateway(gateway, student_client, quiz, questions):
    gateway.fail("select", QUIZ_ATTEMPTS)

    response = student_client.post(f"/quizzes/{quiz.id}/attempt/start")

    assert response.status_code == 502


def test_admin_dashboard(admin_client, student_client, quiz, questions):
    assert student_client.get("/admin/dashboard").status_code == 403

    dashboard = admin_client.get("/admin/dashboard").json()

    assert dashboard["total_students"] == 1
    assert dashboard["quizzes_count"] == 1
    assert dashboard["quiz_performance"][0]["attempts"] == 0


def test_admin_manages_quizzes_and_questions(admin_client, course):
    quiz = admin_client.post(
        "/quizzes",
        json={"course_id": course.id, "title": "Fractions", "description": "Adding and subtracting fractions."},
    )
    assert quiz.status_code == 201
    quiz_id = quiz.json()["id"]

    question = admin_client.post(
        "/questions",
        json={"quiz_id": quiz_id, "text": "Is 1/2 + 1/2 = 1?", "type": "true_false", "correct_answer": "true"},
    )
    assert question.status_code == 201
    question_id = question.json()["id"]

    patched = admin_client.patch(f"/questions/{question_id}", json={"points": 3})
    assert patched.json()["points"] == 3
    assert admin_client.patch(f"/quizzes/{quiz_id}", json={"time_limit": 15}).json()["time_limit"] == 15
    assert admin_client.delete(f"/questions/{question_id}").status_code == 204
    assert admin_client.delete(f"/quizzes/{quiz_id}").status_code == 204
    assert admin_client.get(f"/courses/{course.id}/quizzes").json() == []


def test_enrollment_in_course_without_quizzes_is_complete(student_client, course):
    student_client.post(f"/courses/{course.id}/enroll")

    [enrollment] = student_client.get("/enrollments").json()

    assert enrollment["progress"] == 100
    assert enrollment["is_complete"] is True


def test_admin_dashboard_labels_recent_attempts(admin_client, student_client, course, quiz, questions):
    student_client.post(f"/quizzes/{quiz.id}/attempt/start")

    grouped = admin_client.get("/admin/dashboard").json()["attempts_by_month"]

    [row] = [row for rows in grouped.values() for row in rows]
    assert row["student_name"] == "Sam Student"
    assert row["quiz_title"] == "Linear Equations"
    assert row["course_id"] == course.id


def test_sessions_expire_after_cookie_lifetime(platform, student):
    now = [1000.0]
    sessions = SessionRegistry(max_age=60, clock=lambda: now[0])
    client = TestClient(create_api_app(platform, sessions))
    client.post("/auth/login", json={"email": "student@example.com", "password": "student-secret"})
    assert client.get("/auth/me").status_code == 200

    now[0] += 61

    assert client.get("/auth/me").status_code == 401
    assert len(sessions) == 0


def test_expired_sessions_are_dropped_when_new_ones_open(platform, student):
    now = [0.0]
    sessions = SessionRegistry(max_age=60, clock=lambda: now[0])
    client = TestClient(create_api_app(platform, sessions))
    for _ in range(3):
        client.post("/auth/login", json={"email": "student@example.com", "password": "student-secret"})
    assert len(sessions) == 3

    now[0] += 120
    client.post("/auth/login", json={"email": "student@example.com", "password": "student-secret"})

    assert len(sessions) == 1

"""FastAPI server exposing the platform to browser clients."""

from __future__ import annotations

import logging
import secrets
from threading import Lock
import time
from typing import Any, Callable

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from mindpop.constants.about import APP_ABOUT_TEXT, APP_LICENSE, APP_NAME, APP_VERSION
from mindpop.constants.network_constants import SESSION_COOKIE, SESSION_COOKIE_MAX_AGE
from mindpop.core.auth import AuthSession
from mindpop.core.errors import (
    AttemptNotFoundError,
    AttemptStateError,
    AuthenticationRequiredError,
    DuplicateAttemptError,
    MindPopError,
    PermissionDeniedError,
    PersistenceFailure,
    RecordNotFoundError,
    ReviewNotAvailableError,
    ValidationError,
)
from mindpop.core.learning_platform import LearningPlatform
from mindpop.core.markdown_math_renderer import renderer
from mindpop.core.models import AnswerValue, Question, User
from mindpop.core.quiz_attempt_workflow import QuizAttemptWorkflow

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[MindPopError], int], ...] = (
    (ValidationError, 422),
    (AuthenticationRequiredError, 401),
    (PermissionDeniedError, 403),
    (RecordNotFoundError, 404),
    (AttemptNotFoundError, 404),
    (ReviewNotAvailableError, 403),
    (DuplicateAttemptError, 409),
    (AttemptStateError, 409),
    (PersistenceFailure, 502),
)


class CredentialsPayload(BaseModel):
    email: str
    password: str


class SignupPayload(CredentialsPayload):
    name: str = ""


class AnswerPayload(BaseModel):
    question_id: str
    answer: AnswerValue


class JumpPayload(BaseModel):
    index: int


class SessionRegistry:
    """Maps session cookie values to per-client auth sessions.

    A session expires ``max_age`` seconds after it was opened, matching the
    cookie lifetime; expired entries are dropped on lookup and on every add.
    """

    def __init__(self, max_age: float = SESSION_COOKIE_MAX_AGE, clock: Callable[[], float] = time.monotonic) -> None:
        self._lock = Lock()
        self._max_age = max_age
        self._clock = clock
        self._sessions: dict[str, tuple[AuthSession, float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get(self, token: str | None) -> AuthSession | None:
        if not token:
            return None
        with self._lock:
            entry = self._sessions.get(token)
            if entry is None:
                return None
            session, expires_at = entry
            if expires_at <= self._clock():
                del self._sessions[token]
                return None
            return session

    def add(self, session: AuthSession) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            now = self._clock()
            for stale in [key for key, (_, expires_at) in self._sessions.items() if expires_at <= now]:
                del self._sessions[stale]
            self._sessions[token] = (session, now + self._max_age)
        return token

    def remove(self, token: str | None) -> None:
        if token:
            with self._lock:
                self._sessions.pop(token, None)


def status_for(exc: MindPopError) -> int:
    return next((status for error_type, status in _STATUS_BY_ERROR if isinstance(exc, error_type)), 400)


def _question_payload(question: Question, include_answer: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": question.id,
        "quiz_id": question.quiz_id,
        "text": question.text,
        "text_html": renderer.render_fragment(question.text),
        "type": question.type.value,
        "options": list(question.options),
        "points": question.points,
    }
    if include_answer:
        payload["correct_answer"] = question.correct_answer
    return payload


def _attempt_payload(workflow: QuizAttemptWorkflow) -> dict[str, Any]:
    state = workflow.snapshot()
    question = workflow.current_question
    quiz = workflow.quiz
    state["quiz"] = {
        "id": quiz.id,
        "title": quiz.title,
        "time_limit": quiz.time_limit,
        "passing_score": quiz.passing_score,
    }
    state["current_question"] = _question_payload(question, include_answer=False) if question else None
    state["time_display"] = workflow.timer.format_time() if workflow.timer else None
    result = workflow.result
    state["result"] = (
        {"score": result.score, "max_score": result.max_score, "completed_at": result.completed_at}
        if result is not None
        else None
    )
    return jsonable_encoder(state)


def _get_platform_dependency(platform: LearningPlatform):
    def dependency() -> LearningPlatform:
        return platform

    return dependency


def create_api_app(platform: LearningPlatform, sessions: SessionRegistry | None = None) -> FastAPI:
    """Create a FastAPI application wired to the provided platform."""
    app = FastAPI(
        title=f"{APP_NAME} API",
        version=APP_VERSION,
        description=APP_ABOUT_TEXT,
        license_info={"name": APP_LICENSE},
    )
    platform_dep = _get_platform_dependency(platform)
    sessions = sessions if sessions is not None else SessionRegistry()

    @app.exception_handler(MindPopError)
    async def handle_platform_error(_: Request, exc: MindPopError) -> JSONResponse:
        status = status_for(exc)
        if status >= 500:
            logger.error("Request failed: %s", exc)
        body: dict[str, Any] = {"detail": str(exc)}
        if isinstance(exc, ValidationError) and exc.fields:
            body["fields"] = exc.fields
        return JSONResponse(status_code=status, content=body)

    def session_dep(request: Request) -> AuthSession:
        return sessions.get(request.cookies.get(SESSION_COOKIE)) or AuthSession(platform.accounts)

    def user_dep(session: AuthSession = Depends(session_dep)) -> User:
        user = session.current_user()
        if user is None:
            raise HTTPException(status_code=401, detail="User not authenticated")
        return user

    def admin_dep(user: User = Depends(user_dep)) -> User:
        if not user.is_admin:
            raise HTTPException(status_code=403, detail="Administrator access required.")
        return user

    def _open_session(response: Response, session: AuthSession) -> None:
        token = sessions.add(session)
        response.set_cookie(
            key=SESSION_COOKIE,
            value=token,
            max_age=SESSION_COOKIE_MAX_AGE,
            samesite="lax",
            httponly=True,
        )

    # --- Auth ---

    @app.post("/auth/signup", status_code=201)
    def signup(payload: SignupPayload, response: Response) -> dict[str, Any]:
        user = platform.accounts.register(payload.email, payload.password, payload.name)
        session = AuthSession(platform.accounts, user)
        _open_session(response, session)
        return jsonable_encoder(session.current_user())

    @app.post("/auth/login")
    def login(payload: CredentialsPayload, response: Response) -> dict[str, Any]:
        session = AuthSession(platform.accounts)
        if not session.login(payload.email, payload.password):
            raise HTTPException(status_code=401, detail="Invalid email or password.")
        _open_session(response, session)
        return jsonable_encoder(session.current_user())

    @app.post("/auth/logout", status_code=204)
    def logout(request: Request, response: Response) -> None:
        token = request.cookies.get(SESSION_COOKIE)
        session = sessions.get(token)
        if session is not None:
            session.logout()
        sessions.remove(token)
        response.delete_cookie(SESSION_COOKIE)

    @app.get("/auth/me")
    def me(user: User = Depends(user_dep)) -> dict[str, Any]:
        return jsonable_encoder(user)

    # --- Courses ---

    @app.get("/courses")
    def list_courses(manager: LearningPlatform = Depends(platform_dep)) -> list[dict[str, Any]]:
        return jsonable_encoder(manager.courses.list())

    @app.post("/courses", status_code=201)
    def create_course(
        payload: dict[str, Any],
        admin: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.courses.create(payload, author=admin))

    @app.patch("/courses/{course_id}")
    def update_course(
        course_id: str,
        payload: dict[str, Any],
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.courses.update(course_id, payload))

    @app.delete("/courses/{course_id}", status_code=204)
    def delete_course(
        course_id: str,
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> None:
        manager.courses.delete(course_id)

    @app.get("/courses/{course_id}/quizzes")
    def list_course_quizzes(
        course_id: str,
        manager: LearningPlatform = Depends(platform_dep),
    ) -> list[dict[str, Any]]:
        return jsonable_encoder(manager.course_quizzes(course_id))

    @app.post("/courses/{course_id}/enroll", status_code=201)
    def enroll(
        course_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.enroll(user, course_id))

    @app.get("/enrollments")
    def list_enrollments(
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> list[dict[str, Any]]:
        enrollments = manager.enrollments.enrollments_for_user(user.id)
        return [
            {
                **jsonable_encoder(enrollment),
                "progress": manager.enrollments.course_progress(enrollment),
                "is_complete": manager.enrollments.is_course_complete(enrollment),
            }
            for enrollment in enrollments
        ]

    # --- Quizzes and questions ---

    @app.post("/quizzes", status_code=201)
    def create_quiz(
        payload: dict[str, Any],
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.quizzes.create(payload))

    @app.patch("/quizzes/{quiz_id}")
    def update_quiz(
        quiz_id: str,
        payload: dict[str, Any],
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.quizzes.update(quiz_id, payload))

    @app.delete("/quizzes/{quiz_id}", status_code=204)
    def delete_quiz(
        quiz_id: str,
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> None:
        manager.quizzes.delete(quiz_id)

    @app.get("/quizzes/{quiz_id}/questions")
    def list_questions(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> list[dict[str, Any]]:
        manager.quizzes.require(quiz_id)
        return [
            _question_payload(question, include_answer=user.is_admin)
            for question in manager.questions.questions_for_quiz(quiz_id)
        ]

    @app.post("/questions", status_code=201)
    def create_question(
        payload: dict[str, Any],
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return _question_payload(manager.questions.create(payload), include_answer=True)

    @app.patch("/questions/{question_id}")
    def update_question(
        question_id: str,
        payload: dict[str, Any],
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return _question_payload(manager.questions.update(question_id, payload), include_answer=True)

    @app.delete("/questions/{question_id}", status_code=204)
    def delete_question(
        question_id: str,
        _: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> None:
        manager.questions.delete(question_id)

    # --- Attempt workflow ---

    @app.post("/quizzes/{quiz_id}/attempt/start", status_code=201)
    def start_attempt(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return _attempt_payload(manager.start_attempt(user, quiz_id))

    @app.get("/quizzes/{quiz_id}/attempt")
    def get_attempt(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return _attempt_payload(manager.get_workflow(user, quiz_id))

    @app.post("/quizzes/{quiz_id}/attempt/answer")
    def record_answer(
        quiz_id: str,
        payload: AnswerPayload,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        workflow = manager.get_workflow(user, quiz_id)
        workflow.record_answer(payload.question_id, payload.answer)
        return _attempt_payload(workflow)

    @app.post("/quizzes/{quiz_id}/attempt/next")
    def next_question(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        workflow = manager.get_workflow(user, quiz_id)
        workflow.next()
        return _attempt_payload(workflow)

    @app.post("/quizzes/{quiz_id}/attempt/previous")
    def previous_question(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        workflow = manager.get_workflow(user, quiz_id)
        workflow.previous()
        return _attempt_payload(workflow)

    @app.post("/quizzes/{quiz_id}/attempt/jump")
    def jump_to_question(
        quiz_id: str,
        payload: JumpPayload,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        workflow = manager.get_workflow(user, quiz_id)
        try:
            workflow.jump_to(payload.index)
        except IndexError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return _attempt_payload(workflow)

    @app.post("/quizzes/{quiz_id}/attempt/submit")
    def submit_attempt(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        manager.submit_attempt(user, quiz_id)
        return _attempt_payload(manager.get_workflow(user, quiz_id))

    @app.get("/quizzes/{quiz_id}/review")
    def review_attempt(
        quiz_id: str,
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        review = manager.review_attempt(user, quiz_id)
        return {
            "quiz": jsonable_encoder(review.quiz),
            "attempt": jsonable_encoder(review.attempt),
            "percentage": review.percentage,
            "passed": review.passed,
            "items": [
                {
                    "question": _question_payload(item.question, include_answer=True),
                    "answer": item.answer,
                    "is_correct": item.is_correct,
                }
                for item in review.items
            ],
        }

    # --- Dashboards ---

    @app.get("/admin/dashboard")
    def admin_dashboard(
        admin: User = Depends(admin_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.dashboard(admin))

    @app.get("/me/summary")
    def student_summary(
        user: User = Depends(user_dep),
        manager: LearningPlatform = Depends(platform_dep),
    ) -> dict[str, Any]:
        return jsonable_encoder(manager.stats.student_summary(user.id))

    return app


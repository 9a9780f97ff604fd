"""Store for quiz attempts. Attempts are never deleted."""

from __future__ import annotations

from typing import Any, Mapping

from mindpop.constants.gateway_constants import QUIZ_ATTEMPTS
from mindpop.core.errors import GatewayError, PersistenceFailure
from mindpop.core.models import AnswerRecord, QuizAttempt
from mindpop.core.record_mappers import (
    answers_to_record,
    attempt_from_record,
    format_timestamp,
    utc_now,
)
from mindpop.core.services.entity_store import EntityStore
from mindpop.gateway.base import PersistenceGateway, Record


class AttemptStore(EntityStore[QuizAttempt]):
    """Attempts of one student, or of everyone when ``user_id`` is None."""

    collection = QUIZ_ATTEMPTS
    entity_name = "attempt"

    def __init__(self, gateway: PersistenceGateway, user_id: str | None = None) -> None:
        super().__init__(gateway)
        self._user_id = user_id

    def _from_record(self, record: Mapping[str, Any]) -> QuizAttempt:
        return attempt_from_record(record)

    def _fetch(self) -> list[Record]:
        if self._user_id is None:
            return self._gateway.select(self.collection)
        return self._gateway.select(self.collection, {"user_id": self._user_id})

    def attempts_for_quiz(self, quiz_id: str) -> list[QuizAttempt]:
        return [attempt for attempt in self.list() if attempt.quiz_id == quiz_id]

    def has_completed_attempt(self, quiz_id: str, user_id: str | None = None) -> bool:
        """Check the gateway directly, bypassing the cache, for a finished attempt."""
        owner = user_id or self._user_id
        filters = {"quiz_id": quiz_id} if owner is None else {"quiz_id": quiz_id, "user_id": owner}
        try:
            records = self._gateway.select(self.collection, filters)
        except GatewayError as exc:
            raise PersistenceFailure(f"Error checking previous attempts: {exc}") from exc
        return any(record.get("completed_at") for record in records)

    def latest_completed_attempt(self, quiz_id: str) -> QuizAttempt | None:
        completed = [a for a in self.attempts_for_quiz(quiz_id) if a.completed_at is not None]
        if not completed:
            return None
        return max(completed, key=lambda attempt: attempt.completed_at)

    def create(self, quiz_id: str, user_id: str, max_score: int) -> QuizAttempt:
        record = {
            "quiz_id": quiz_id,
            "user_id": user_id,
            "score": 0,
            "max_score": max_score,
            "answers": [],
        }
        stored = self._write("create", lambda: self._gateway.insert(self.collection, record))
        return attempt_from_record(stored)

    def complete(
        self,
        attempt_id: str,
        answers: list[AnswerRecord],
        score: int,
        max_score: int,
    ) -> QuizAttempt:
        """Finalize an attempt: answers, score and completion time in one write."""
        changes = {
            "completed_at": format_timestamp(utc_now()),
            "score": score,
            "max_score": max_score,
            "answers": answers_to_record(answers),
        }
        stored = self._write("complete", lambda: self._gateway.update(self.collection, attempt_id, changes))
        return attempt_from_record(stored)

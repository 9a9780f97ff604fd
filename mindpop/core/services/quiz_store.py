"""Store for quizzes."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from mindpop.constants.gateway_constants import QUIZZES
from mindpop.core.forms import QuizForm, validate_form
from mindpop.core.models import Quiz
from mindpop.core.record_mappers import (
    QUIZ_UPDATE_FIELDS,
    format_timestamp,
    quiz_changes_to_record,
    quiz_from_record,
    utc_now,
)
from mindpop.core.services.entity_store import EntityStore


class QuizStore(EntityStore[Quiz]):
    collection = QUIZZES
    entity_name = "quiz"

    def _from_record(self, record: Mapping[str, Any]) -> Quiz:
        return quiz_from_record(record)

    def quizzes_for_course(self, course_id: str) -> list[Quiz]:
        return [quiz for quiz in self.list() if quiz.course_id == course_id]

    def create(self, fields: Mapping[str, Any]) -> Quiz:
        form = validate_form(QuizForm, fields)
        record = form.model_dump()
        stored = self._write("create", lambda: self._gateway.insert(self.collection, record))
        return quiz_from_record(stored)

    def update(self, quiz_id: str, changes: Mapping[str, Any]) -> Quiz:
        """Update quiz settings. The owning course never changes."""
        self._reject_unknown(changes, QUIZ_UPDATE_FIELDS)
        current = asdict(self.require(quiz_id))
        merged = {name: current[name] for name in ("course_id", *QUIZ_UPDATE_FIELDS)} | dict(changes)
        validated = validate_form(QuizForm, merged).model_dump()
        record = quiz_changes_to_record({name: validated[name] for name in changes})
        record["updated_at"] = format_timestamp(utc_now())
        stored = self._write("update", lambda: self._gateway.update(self.collection, quiz_id, record))
        return quiz_from_record(stored)

    def delete(self, quiz_id: str) -> bool:
        return self._delete(quiz_id)

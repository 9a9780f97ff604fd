"""Store for quiz questions."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from mindpop.constants.gateway_constants import QUESTIONS
from mindpop.core.forms import QuestionForm, validate_form
from mindpop.core.models import Question
from mindpop.core.record_mappers import (
    QUESTION_UPDATE_FIELDS,
    question_changes_to_record,
    question_from_record,
)
from mindpop.core.services.entity_store import EntityStore


class QuestionStore(EntityStore[Question]):
    collection = QUESTIONS
    entity_name = "question"

    def _from_record(self, record: Mapping[str, Any]) -> Question:
        return question_from_record(record)

    def questions_for_quiz(self, quiz_id: str) -> list[Question]:
        """Questions of one quiz in the order the gateway returned them."""
        return [question for question in self.list() if question.quiz_id == quiz_id]

    def create(self, fields: Mapping[str, Any]) -> Question:
        form = validate_form(QuestionForm, fields)
        record = form.model_dump(mode="json")
        stored = self._write("create", lambda: self._gateway.insert(self.collection, record))
        return question_from_record(stored)

    def update(self, question_id: str, changes: Mapping[str, Any]) -> Question:
        self._reject_unknown(changes, QUESTION_UPDATE_FIELDS)
        current = asdict(self.require(question_id))
        merged = {name: current[name] for name in ("quiz_id", *QUESTION_UPDATE_FIELDS)} | dict(changes)
        validated = validate_form(QuestionForm, merged).model_dump(mode="json")
        # options are normalised by the form, so they are written whenever the type changes
        touched = set(changes) | ({"options"} if "type" in changes else set())
        record = question_changes_to_record({name: validated[name] for name in touched})
        stored = self._write("update", lambda: self._gateway.update(self.collection, question_id, record))
        return question_from_record(stored)

    def delete(self, question_id: str) -> bool:
        return self._delete(question_id)

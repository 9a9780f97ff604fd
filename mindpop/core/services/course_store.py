"""Store for courses."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Mapping

from mindpop.constants.gateway_constants import COURSES
from mindpop.core.auth import AuthProvider
from mindpop.core.errors import AuthenticationRequiredError
from mindpop.core.forms import CourseForm, validate_form
from mindpop.core.models import Course, User
from mindpop.core.record_mappers import (
    COURSE_UPDATE_FIELDS,
    course_changes_to_record,
    course_from_record,
    format_timestamp,
    utc_now,
)
from mindpop.core.services.entity_store import EntityStore
from mindpop.gateway.base import PersistenceGateway


class CourseStore(EntityStore[Course]):
    collection = COURSES
    entity_name = "course"

    def __init__(self, gateway: PersistenceGateway, auth: AuthProvider | None = None) -> None:
        super().__init__(gateway)
        self._auth = auth

    def _from_record(self, record: Mapping[str, Any]) -> Course:
        return course_from_record(record)

    def create(self, fields: Mapping[str, Any], author: User | None = None) -> Course:
        """Create a course owned by ``author``, or by the signed-in user when omitted."""
        user = author or (self._auth.current_user() if self._auth is not None else None)
        if user is None:
            raise AuthenticationRequiredError("User not authenticated")
        form = validate_form(CourseForm, fields)
        record = {**form.model_dump(), "created_by": user.id}
        stored = self._write("create", lambda: self._gateway.insert(self.collection, record))
        return course_from_record(stored)

    def update(self, course_id: str, changes: Mapping[str, Any]) -> Course:
        self._reject_unknown(changes, COURSE_UPDATE_FIELDS)
        current = asdict(self.require(course_id))
        form = validate_form(CourseForm, {name: current[name] for name in COURSE_UPDATE_FIELDS} | dict(changes))
        validated = form.model_dump()
        record = course_changes_to_record({name: validated[name] for name in changes})
        record["updated_at"] = format_timestamp(utc_now())
        stored = self._write("update", lambda: self._gateway.update(self.collection, course_id, record))
        return course_from_record(stored)

    def delete(self, course_id: str) -> bool:
        return self._delete(course_id)

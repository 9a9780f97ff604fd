"""Thread-safe in-process gateway used for local runs and tests."""

from __future__ import annotations

import copy
from threading import Lock
from typing import Any, Mapping
from uuid import uuid4

from mindpop.constants.gateway_constants import (
    COLLECTIONS,
    COURSES,
    ENROLLMENTS,
    QUESTIONS,
    QUIZ_ATTEMPTS,
    QUIZZES,
)
from mindpop.constants.quiz_constants import DEFAULT_QUESTION_POINTS
from mindpop.core.errors import GatewayError
from mindpop.core.record_mappers import format_timestamp, utc_now
from mindpop.gateway.base import PersistenceGateway, Record


def _server_defaults(collection: str, now: str) -> Record:
    defaults: Record = {"created_at": now}
    if collection in (COURSES, QUIZZES):
        defaults["updated_at"] = now
    if collection == QUIZZES:
        defaults["review_enabled"] = False
    elif collection == QUESTIONS:
        defaults["points"] = DEFAULT_QUESTION_POINTS
    elif collection == QUIZ_ATTEMPTS:
        defaults.update(started_at=now, completed_at=None, score=0, max_score=0, answers=[])
    elif collection == ENROLLMENTS:
        defaults.update(enrolled_at=now, progress=0, completed_quizzes=[])
    return defaults


class InMemoryGateway(PersistenceGateway):
    """Stores each collection as an insertion-ordered dict of records."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._tables: dict[str, dict[str, Record]] = {name: {} for name in COLLECTIONS}

    def select(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Record]:
        self.check_collection(collection)
        criteria = dict(filters or {})
        with self._lock:
            rows = [
                copy.deepcopy(row)
                for row in self._tables[collection].values()
                if all(row.get(key) == value for key, value in criteria.items())
            ]
        return rows

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        self.check_collection(collection)
        row = _server_defaults(collection, format_timestamp(utc_now()))
        row.update({key: value for key, value in record.items() if value is not None})
        row["id"] = str(record.get("id") or uuid4().hex)
        with self._lock:
            table = self._tables[collection]
            if row["id"] in table:
                raise GatewayError(f"Duplicate id '{row['id']}' in {collection}")
            table[row["id"]] = copy.deepcopy(row)
        return row

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        self.check_collection(collection)
        with self._lock:
            row = self._tables[collection].get(record_id)
            if row is None:
                raise GatewayError(f"No record '{record_id}' in {collection}")
            row.update(copy.deepcopy({key: value for key, value in changes.items() if key != "id"}))
            return copy.deepcopy(row)

    def delete(self, collection: str, record_id: str) -> None:
        self.check_collection(collection)
        with self._lock:
            if self._tables[collection].pop(record_id, None) is None:
                raise GatewayError(f"No record '{record_id}' in {collection}")

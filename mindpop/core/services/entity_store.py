"""Shared cache-plus-mutator behaviour for one gateway collection."""

from __future__ import annotations

from abc import ABC, abstractmethod
import logging
from threading import Lock
from typing import Any, Callable, Generic, Iterable, Mapping, TypeVar

from mindpop.core.errors import GatewayError, PersistenceFailure, RecordNotFoundError, ValidationError
from mindpop.gateway.base import PersistenceGateway, Record

T = TypeVar("T")
R = TypeVar("R")

logger = logging.getLogger(__name__)


class EntityStore(ABC, Generic[T]):
    """Fetches a whole collection on first read and refetches after any successful write.

    Writes are never applied to the cache locally; a failed write leaves the
    cache as it was and surfaces ``PersistenceFailure``.
    """

    collection: str
    entity_name: str

    def __init__(self, gateway: PersistenceGateway) -> None:
        self._gateway = gateway
        self._lock = Lock()
        self._cache: list[T] | None = None

    @abstractmethod
    def _from_record(self, record: Mapping[str, Any]) -> T: ...

    @staticmethod
    def _id_of(item: T) -> str:
        return getattr(item, "id")

    def _fetch(self) -> list[Record]:
        return self._gateway.select(self.collection)

    def list(self) -> list[T]:
        with self._lock:
            if self._cache is not None:
                return list(self._cache)
        try:
            records = self._fetch()
        except GatewayError as exc:
            logger.error("Failed to load %s: %s", self.collection, exc)
            raise PersistenceFailure(f"Failed to load {self.collection}: {exc}") from exc
        items = [self._from_record(record) for record in records]
        with self._lock:
            self._cache = items
        return list(items)

    def is_cached(self) -> bool:
        with self._lock:
            return self._cache is not None

    def invalidate(self) -> None:
        with self._lock:
            self._cache = None

    def get(self, item_id: str) -> T | None:
        return next((item for item in self.list() if self._id_of(item) == item_id), None)

    def require(self, item_id: str) -> T:
        item = self.get(item_id)
        if item is None:
            raise RecordNotFoundError(f"{self.entity_name} '{item_id}' not found")
        return item

    def _write(self, action: str, operation: Callable[[], R]) -> R:
        try:
            result = operation()
        except GatewayError as exc:
            logger.error("Failed to %s %s: %s", action, self.entity_name, exc)
            raise PersistenceFailure(f"Failed to {action} {self.entity_name}: {exc}") from exc
        self.invalidate()
        logger.info("%s %sd successfully", self.entity_name.capitalize(), action)
        return result

    def _delete(self, item_id: str) -> bool:
        self._write("delete", lambda: self._gateway.delete(self.collection, item_id))
        return True

    @staticmethod
    def _reject_unknown(changes: Mapping[str, Any], allowed: Iterable[str]) -> None:
        unknown = sorted(set(changes) - set(allowed))
        if unknown:
            raise ValidationError(
                f"Fields cannot be changed: {', '.join(unknown)}",
                {name: "not editable" for name in unknown},
            )

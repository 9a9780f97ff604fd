"""Contract for the record-oriented persistence service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping

from mindpop.constants.gateway_constants import COLLECTIONS
from mindpop.core.errors import GatewayError

Record = dict[str, Any]


class PersistenceGateway(ABC):
    """Select/insert/update/delete over named collections keyed by ``id``.

    Field names at this boundary are the remote column names; translation to
    domain models happens in ``mindpop.core.record_mappers``.
    """

    @abstractmethod
    def select(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Record]:
        """Return every record of ``collection`` whose fields equal ``filters``."""

    @abstractmethod
    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        """Insert ``record`` and return it as stored."""

    @abstractmethod
    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        """Apply ``changes`` to one record and return it as stored."""

    @abstractmethod
    def delete(self, collection: str, record_id: str) -> None:
        """Remove one record."""

    @staticmethod
    def check_collection(collection: str) -> None:
        if collection not in COLLECTIONS:
            raise GatewayError(f"Unknown collection '{collection}'")

"""HTTP gateway speaking the PostgREST dialect used by hosted Postgres backends."""

from __future__ import annotations

import logging
from typing import Any, Mapping

import requests

from mindpop.constants.gateway_constants import GATEWAY_TIMEOUT_SECONDS
from mindpop.core.errors import GatewayError
from mindpop.gateway.base import PersistenceGateway, Record

logger = logging.getLogger(__name__)


class RestGateway(PersistenceGateway):
    """Issues one HTTP request per gateway call; no retries, no caching."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: requests.Session | None = None,
        timeout: float = GATEWAY_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
                "Prefer": "return=representation",
            }
        )

    def select(self, collection: str, filters: Mapping[str, Any] | None = None) -> list[Record]:
        params = {"select": "*"}
        params.update(self._equality_params(filters))
        return self._request("GET", collection, params=params)

    def insert(self, collection: str, record: Mapping[str, Any]) -> Record:
        rows = self._request("POST", collection, json=dict(record))
        return self._single(rows, collection)

    def update(self, collection: str, record_id: str, changes: Mapping[str, Any]) -> Record:
        rows = self._request(
            "PATCH",
            collection,
            params=self._equality_params({"id": record_id}),
            json=dict(changes),
        )
        return self._single(rows, collection)

    def delete(self, collection: str, record_id: str) -> None:
        self._request("DELETE", collection, params=self._equality_params({"id": record_id}))

    def _request(self, method: str, collection: str, **kwargs: Any) -> list[Record]:
        self.check_collection(collection)
        url = f"{self._base_url}/rest/v1/{collection}"
        try:
            response = self._session.request(method, url, timeout=self._timeout, **kwargs)
        except requests.RequestException as exc:
            logger.error("%s %s failed: %s", method, collection, exc)
            raise GatewayError(f"{method} {collection} failed: {exc}") from exc
        if not response.ok:
            message = self._error_message(response)
            logger.error("%s %s returned %s: %s", method, collection, response.status_code, message)
            raise GatewayError(f"{method} {collection} returned {response.status_code}: {message}")
        if not response.content:
            return []
        payload = response.json()
        return payload if isinstance(payload, list) else [payload]

    @staticmethod
    def _equality_params(filters: Mapping[str, Any] | None) -> dict[str, str]:
        params: dict[str, str] = {}
        for key, value in (filters or {}).items():
            if isinstance(value, bool):
                value = str(value).lower()
            params[key] = f"eq.{value}"
        return params

    @staticmethod
    def _single(rows: list[Record], collection: str) -> Record:
        if not rows:
            raise GatewayError(f"No record returned from {collection}")
        return rows[0]

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return str(body.get("message") or body)
        return str(body)

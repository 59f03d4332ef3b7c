"""Store de documents via une API REST de type PostgREST.

Variables de configuration utilisées:
  - `STORE_URL`: URL de base du projet (les tables sont sous `/rest/v1`)
  - `STORE_API_KEY`: clé envoyée en `apikey` et en `Authorization: Bearer`

Lecture: `GET /rest/v1/{collection}?champ=eq.valeur`.
Upsert: `POST /rest/v1/{collection}?on_conflict=a,b` avec
`Prefer: resolution=merge-duplicates,return=representation`.
Les erreurs réseau, 5xx et 429 sont réessayées avec backoff exponentiel + jitter;
les autres 4xx échouent immédiatement.
"""

from __future__ import annotations

import asyncio
import random as _rand
from collections.abc import Mapping, Sequence
from typing import Any

import httpx
import structlog

from astrofriends.core.http_constants import (
    HTTP_STATUS_CLIENT_ERROR_MAX,
    HTTP_STATUS_CLIENT_ERROR_MIN,
    HTTP_STATUS_SERVER_ERROR_MAX,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_TOO_MANY_REQUESTS,
    RETRY_BASE_DELAY,
    RETRY_RANDOM_FACTOR,
)
from astrofriends.domain.errors import MalformedResponse, RemoteUnavailable
from astrofriends.infra.store.base import DocumentStore, Record

log = structlog.get_logger(__name__)


def _retryable(status: int) -> bool:
    return (
        status == HTTP_TOO_MANY_REQUESTS
        or HTTP_STATUS_SERVER_ERROR_MIN <= status < HTTP_STATUS_SERVER_ERROR_MAX
    )


class RestDocumentStore(DocumentStore):
    """Adaptateur REST (httpx asynchrone, client réutilisable)."""

    backend_name = "rest"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_s: float = 15.0,
        max_retries: int = 3,
        backoff_base: float = RETRY_BASE_DELAY,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self._client = httpx.AsyncClient(
            base_url=f"{base_url.rstrip('/')}/rest/v1",
            headers=headers,
            timeout=httpx.Timeout(timeout_s),
            limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
            transport=transport,
        )

    async def _sleep_before_retry(self, attempt: int) -> None:
        delay = (2 ** (attempt - 1)) * self.backoff_base
        if self.backoff_base:
            delay += _rand.random() * RETRY_RANDOM_FACTOR
        await asyncio.sleep(delay)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = await self._client.request(method, path, **kwargs)
            except httpx.HTTPError as exc:
                if attempt < self.max_retries:
                    log.warning(
                        "store_request_retry",
                        path=path,
                        attempt=attempt,
                        error=type(exc).__name__,
                    )
                    await self._sleep_before_retry(attempt)
                    continue
                raise RemoteUnavailable(f"store_network_error: {exc}") from exc

            status = resp.status_code
            if _retryable(status):
                if attempt < self.max_retries:
                    log.warning("store_request_retry", path=path, attempt=attempt, status=status)
                    await self._sleep_before_retry(attempt)
                    continue
                raise RemoteUnavailable("store_http_error", status_code=status)
            if HTTP_STATUS_CLIENT_ERROR_MIN <= status < HTTP_STATUS_CLIENT_ERROR_MAX:
                raise RemoteUnavailable("store_client_error", status_code=status)
            try:
                return resp.json()
            except ValueError as exc:
                raise MalformedResponse("store_invalid_json") from exc

    async def get(self, collection: str, filters: Mapping[str, Any]) -> list[Record]:
        params = {"select": "*"}
        params.update({k: f"eq.{v}" for k, v in filters.items()})
        data = await self._request("GET", f"/{collection}", params=params)
        if not isinstance(data, list):
            raise MalformedResponse(f"store_unexpected_payload:{collection}")
        return [row for row in data if isinstance(row, dict)]

    async def upsert(
        self, collection: str, record: Record, conflict_key: Sequence[str]
    ) -> Record:
        data = await self._request(
            "POST",
            f"/{collection}",
            params={"on_conflict": ",".join(conflict_key)},
            json=record,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        if isinstance(data, list) and data and isinstance(data[0], dict):
            return data[0]
        if isinstance(data, dict):
            return data
        return dict(record)

    async def aclose(self) -> None:
        await self._client.aclose()

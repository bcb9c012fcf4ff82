"""
HTTP client for the remote artifact store.

Contract
--------
  POST /artifacts                 → stored artifact (echo + durable `id`)
  POST /artifacts/{id}/apply      → {created, artifact, action_record}
  GET  /artifacts/{id}            → stored artifact
  GET  /artifacts                 → {total, items}

Failure mapping
---------------
  401                      → StoreUnauthorizedError   (session invalid)
  any other status ≥ 400   → StoreUnreachableError
  transport error          → StoreUnreachableError
  non-JSON / wrong shape   → StoreUnreachableError

The bearer token is always passed in by the caller; the client never reads
credentials from settings or any other ambient state.
"""
from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from app.core.config import settings
from app.core.errors import StoreUnauthorizedError, StoreUnreachableError

logger = logging.getLogger(__name__)


class ArtifactStore(Protocol):
    def save(self, payload: dict[str, Any], token: str) -> dict[str, Any]: ...

    def apply(self, artifact_id: str, payload: dict[str, Any], token: str) -> dict[str, Any]: ...

    def fetch(self, artifact_id: str, token: str) -> dict[str, Any]: ...

    def list(self, token: str, **filters: Any) -> dict[str, Any]: ...


class HttpArtifactStore:
    """ArtifactStore over HTTP. Pass `client` to reuse a configured httpx.Client."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.Client] = None,
    ):
        self._client = client or httpx.Client(
            base_url=base_url or settings.ARTIFACT_STORE_URL,
            timeout=timeout or settings.STORE_TIMEOUT_SECONDS,
        )

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        json_data: dict | None = None,
        params: dict | None = None,
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
        }
        try:
            response = self._client.request(
                method, path, headers=headers, json=json_data, params=params,
            )
        except httpx.HTTPError as exc:
            raise StoreUnreachableError(f"Artifact store request failed: {exc}") from exc

        if response.status_code == 401:
            raise StoreUnauthorizedError(path)
        if response.status_code >= 400:
            raise StoreUnreachableError(
                f"Artifact store error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise StoreUnreachableError(
                "Artifact store returned a non-JSON body.",
                status_code=response.status_code,
            ) from exc
        if not isinstance(body, dict):
            raise StoreUnreachableError(
                "Artifact store returned an unexpected body.",
                status_code=response.status_code,
            )
        return body

    def save(self, payload: dict[str, Any], token: str) -> dict[str, Any]:
        body = self._request("POST", "/artifacts", token, json_data=payload)
        if body.get("id") is None:
            raise StoreUnreachableError("Artifact store response is missing an id.")
        return body

    def apply(self, artifact_id: str, payload: dict[str, Any], token: str) -> dict[str, Any]:
        body = self._request("POST", f"/artifacts/{artifact_id}/apply", token, json_data=payload)
        if not isinstance(body.get("action_record"), dict):
            raise StoreUnreachableError("Artifact store apply response has no action record.")
        return body

    def fetch(self, artifact_id: str, token: str) -> dict[str, Any]:
        return self._request("GET", f"/artifacts/{artifact_id}", token)

    def list(self, token: str, **filters: Any) -> dict[str, Any]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/artifacts", token, params=params)

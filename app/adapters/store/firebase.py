"""Firebase Realtime Database adapter over its REST API.

Every path maps to ``<base_url>/<path>.json``. Authentication uses the
``auth`` query parameter (database secret or user ID token). Conditional
writes use the ``X-Firebase-ETag`` / ``if-match`` headers; the database
answers 412 when the stored value changed since it was read.
"""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import quote

import httpx

from app.adapters.store.base import AbstractKeyValueStore, Document, split_path
from app.core.errors import StoreRejected, StoreUnavailable

logger = logging.getLogger(__name__)


class FirebaseKeyValueStore(AbstractKeyValueStore):
    """Async REST client for a Realtime Database instance."""

    supports_conditional_writes = True

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the REST client.

        Args:
            base_url: Database root, e.g. ``https://<project>.firebaseio.com``.
            auth_token: Optional secret/ID token sent as ``auth``.
            timeout_seconds: Per-request timeout.
            client: Pre-built client (tests inject one with a mock transport).
                The caller keeps ownership: ``aclose`` leaves it open.
        """
        if not base_url:
            raise ValueError("base_url is required for the firebase store")

        self._base_url = base_url.rstrip("/")
        self._auth_token = auth_token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    def _url(self, path: str) -> str:
        encoded = "/".join(quote(segment, safe="") for segment in split_path(path))
        return f"{self._base_url}/{encoded}.json"

    def _params(self) -> dict[str, str]:
        return {"auth": self._auth_token} if self._auth_token else {}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        headers: dict[str, str] | None = None,
        send_body: bool = False,
    ) -> httpx.Response:
        """Issue one request, translating transport failures to StoreUnavailable."""
        kwargs: dict[str, Any] = {"params": self._params(), "headers": headers or {}}
        if send_body:
            # Serialized by hand so a None document goes out as JSON null (delete)
            kwargs["content"] = json.dumps(json_body).encode()
            kwargs["headers"] = {"Content-Type": "application/json", **kwargs["headers"]}

        try:
            return await self._client.request(method, self._url(path), **kwargs)
        except httpx.HTTPError as exc:
            logger.warning(
                "store.transport_error",
                extra={"method": method, "path": path, "error_type": type(exc).__name__},
            )
            raise StoreUnavailable(
                code="store_unavailable",
                message=f"Could not reach the database: {type(exc).__name__}",
                details={"cause": str(exc)},
            ) from exc

    @staticmethod
    def _raise_for_status(response: httpx.Response, method: str, path: str) -> None:
        if response.is_success:
            return

        body = response.text[:200]
        logger.warning(
            "store.request_failed",
            extra={"method": method, "path": path, "status_code": response.status_code},
        )
        if response.status_code >= 500:
            raise StoreUnavailable(
                code="store_unavailable",
                message=f"Database returned HTTP {response.status_code}",
                details={"http_status": response.status_code, "cause": body},
            )
        raise StoreRejected(
            code="store_rejected",
            message=f"Database rejected the request (HTTP {response.status_code})",
            details={"http_status": response.status_code, "cause": body},
        )

    @staticmethod
    def _decode(response: httpx.Response, path: str) -> Document | None:
        try:
            return response.json()
        except ValueError as exc:
            logger.warning(
                "store.malformed_response",
                extra={"path": path, "status_code": response.status_code},
            )
            raise StoreRejected(
                code="store_malformed_response",
                message="Database returned a body that is not JSON",
                details={"http_status": response.status_code, "cause": response.text[:200]},
            ) from exc

    async def get(self, path: str) -> Document | None:
        response = await self._request("GET", path)
        self._raise_for_status(response, "GET", path)
        return self._decode(response, path)

    async def put(self, path: str, document: Document | None) -> None:
        response = await self._request("PUT", path, json_body=document, send_body=True)
        self._raise_for_status(response, "PUT", path)

    async def get_with_etag(self, path: str) -> tuple[Document | None, str]:
        response = await self._request("GET", path, headers={"X-Firebase-ETag": "true"})
        self._raise_for_status(response, "GET", path)
        etag = response.headers.get("ETag")
        if not etag:
            raise StoreRejected(
                code="store_missing_etag",
                message="Database did not return an ETag for a conditional read",
            )
        return self._decode(response, path), etag

    async def put_if_match(self, path: str, document: Document | None, etag: str) -> bool:
        response = await self._request(
            "PUT",
            path,
            json_body=document,
            headers={"if-match": etag},
            send_body=True,
        )
        if response.status_code == 412:
            logger.info("store.etag_mismatch", extra={"path": path})
            return False
        self._raise_for_status(response, "PUT", path)
        return True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

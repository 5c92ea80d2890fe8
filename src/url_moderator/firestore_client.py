"""
Firestore REST client implementing the DocumentStore protocol.

This module provides an async client for the Firestore v1 REST API with
API-key and optional ID-token authentication, typed-value encoding, and
mapping of HTTP failures onto the moderator's exception taxonomy.

Operation mapping:
- create:             POST   documents/{collection}
- get:                GET    documents/{collection}/{id}   (404 -> None)
- list_all:           GET    documents/{collection}        (paged)
- update:             PATCH  with updateMask and currentDocument.exists=true
- set:                PATCH  without mask or precondition
- delete:             DELETE
- query_equal:        POST   documents:runQuery            (EQUAL filter)
- update_with_append: POST   documents:commit              (update + appendMissingElements)
"""

import re
from typing import Any, Optional

import httpx

from .config import FirestoreConfig
from .document_store import StoredDocument
from .enums import StoreErrorCode
from .exceptions import NotFoundError, RemoteUnavailableError
from .firestore_codec import decode_fields, document_id, encode_fields, encode_value
from .retry_manager import RetryManager


_SIMPLE_FIELD_PATH = re.compile(r"^[A-Za-z_][A-Za-z_0-9]*$")


def quote_field_path(name: str) -> str:
    """Quote a top-level field name for use in a field path."""
    if _SIMPLE_FIELD_PATH.match(name):
        return name
    escaped = name.replace("\\", "\\\\").replace("`", "\\`")
    return f"`{escaped}`"


class FirestoreClient:
    """
    Async Firestore REST client.

    The underlying httpx client is created on first use or on entering the
    async context, and closed on exit.
    """

    PAGE_SIZE = 300

    def __init__(
        self,
        config: FirestoreConfig,
        retry_manager: Optional[RetryManager] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the Firestore client.

        Args:
            config: Project, database and credential settings
            retry_manager: Optional retry policy applied to reads
            transport: Optional httpx transport (tests use MockTransport)
        """
        self._config = config
        self._retry_manager = retry_manager
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "FirestoreClient":
        self._ensure_client()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def documents_url(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/{self._config.documents_path}"

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._config.timeout_seconds),
                transport=self._transport,
            )
        return self._client

    def _document_name(self, collection: str, doc_id: str) -> str:
        return f"{self._config.documents_path}/{collection}/{doc_id}"

    async def create(self, collection: str, data: dict) -> str:
        payload = await self._request(
            "POST",
            f"{self.documents_url}/{collection}",
            json={"fields": encode_fields(data)},
        )
        return document_id(payload["name"])

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        async def do_get() -> Optional[dict]:
            try:
                payload = await self._request(
                    "GET", f"{self.documents_url}/{collection}/{doc_id}"
                )
            except NotFoundError:
                return None
            return decode_fields(payload.get("fields", {}))

        return await self._read(do_get)

    async def list_all(self, collection: str) -> list[StoredDocument]:
        async def do_list() -> list[StoredDocument]:
            documents: list[StoredDocument] = []
            page_token: Optional[str] = None
            while True:
                params: list[tuple[str, Any]] = [("pageSize", self.PAGE_SIZE)]
                if page_token:
                    params.append(("pageToken", page_token))
                try:
                    payload = await self._request(
                        "GET", f"{self.documents_url}/{collection}", params=params
                    )
                except NotFoundError:
                    return documents
                for raw in payload.get("documents", []):
                    documents.append(self._to_stored(raw))
                page_token = payload.get("nextPageToken")
                if not page_token:
                    return documents

        return await self._read(do_list)

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        params: list[tuple[str, Any]] = [
            ("updateMask.fieldPaths", quote_field_path(name)) for name in fields
        ]
        params.append(("currentDocument.exists", "true"))
        await self._request(
            "PATCH",
            f"{self.documents_url}/{collection}/{doc_id}",
            params=params,
            json={"fields": encode_fields(fields)},
        )

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        await self._request(
            "PATCH",
            f"{self.documents_url}/{collection}/{doc_id}",
            json={"fields": encode_fields(data)},
        )

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            await self._request("DELETE", f"{self.documents_url}/{collection}/{doc_id}")
        except NotFoundError:
            pass

    async def query_equal(
        self, collection: str, field: str, value: Any
    ) -> list[StoredDocument]:
        body = {
            "structuredQuery": {
                "from": [{"collectionId": collection}],
                "where": {
                    "fieldFilter": {
                        "field": {"fieldPath": quote_field_path(field)},
                        "op": "EQUAL",
                        "value": encode_value(value),
                    }
                },
            }
        }

        async def do_query() -> list[StoredDocument]:
            payload = await self._request(
                "POST", f"{self.documents_url}:runQuery", json=body
            )
            return [
                self._to_stored(item["document"])
                for item in payload
                if isinstance(item, dict) and "document" in item
            ]

        return await self._read(do_query)

    async def update_with_append(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        append: dict[str, list],
    ) -> None:
        write = {
            "update": {
                "name": self._document_name(collection, doc_id),
                "fields": encode_fields(fields),
            },
            "updateMask": {"fieldPaths": [quote_field_path(name) for name in fields]},
            "updateTransforms": [
                {
                    "fieldPath": quote_field_path(name),
                    "appendMissingElements": {
                        "values": [encode_value(element) for element in elements]
                    },
                }
                for name, elements in append.items()
            ],
            "currentDocument": {"exists": True},
        }
        await self._request(
            "POST", f"{self.documents_url}:commit", json={"writes": [write]}
        )

    async def _read(self, operation):
        if self._retry_manager is None:
            return await operation()
        return await self._retry_manager.run(operation)

    def _to_stored(self, raw: dict) -> StoredDocument:
        return StoredDocument(
            id=document_id(raw.get("name", "")),
            data=decode_fields(raw.get("fields", {})),
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.id_token:
            headers["Authorization"] = f"Bearer {self._config.id_token}"
        return headers

    async def _request(
        self,
        method: str,
        url: str,
        params: Optional[list[tuple[str, Any]]] = None,
        json: Optional[dict] = None,
    ) -> Any:
        """
        Send a request and return the decoded JSON body.

        Raises:
            NotFoundError: On HTTP 404
            RemoteUnavailableError: On transport errors and other failures
        """
        client = self._ensure_client()
        query = list(params or [])
        if self._config.api_key:
            query.append(("key", self._config.api_key))

        try:
            response = await client.request(
                method, url, params=query, json=json, headers=self._headers()
            )
        except httpx.TimeoutException:
            raise RemoteUnavailableError(
                code=StoreErrorCode.TIMEOUT.value,
                message=f"Document store request timed out after {self._config.timeout_seconds}s",
                details={"method": method, "url": url},
            )
        except httpx.HTTPError as e:
            raise RemoteUnavailableError(
                code=StoreErrorCode.NETWORK_ERROR.value,
                message=f"Connection error: {e}",
                details={"method": method, "url": url},
            )

        if response.status_code >= 400:
            raise self._error_for(response, method, url)

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise RemoteUnavailableError(
                code=StoreErrorCode.PARSE_ERROR.value,
                message=f"Failed to parse document store response: {e}",
                details={"method": method, "url": url},
            )

    def _error_for(self, response: httpx.Response, method: str, url: str) -> Exception:
        status = response.status_code
        details = {
            "method": method,
            "url": url,
            "http_status_code": status,
            "reason": self._error_reason(response),
        }

        if status == 404:
            return NotFoundError(
                code=StoreErrorCode.NOT_FOUND.value,
                message="Document not found",
                details=details,
            )
        if status in (401, 403):
            code = StoreErrorCode.PERMISSION_DENIED
        elif status == 429:
            code = StoreErrorCode.RATE_LIMITED
        elif status >= 500:
            code = StoreErrorCode.SERVER_ERROR
        else:
            code = StoreErrorCode.INVALID_ARGUMENT

        return RemoteUnavailableError(
            code=code.value,
            message=f"Document store error {status}: {details['reason']}",
            details=details,
        )

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(body, list) and body:
            body = body[0]
        if isinstance(body, dict):
            error = body.get("error", {})
            if isinstance(error, dict):
                return str(error.get("message") or error.get("status") or "")
        return ""

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

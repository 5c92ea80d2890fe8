"""
Document store contract and in-memory implementation.

The moderation core talks to the remote document database only through the
DocumentStore protocol: documents addressed by collection name and id,
plain-mapping bodies, merge updates, equality queries, and one combined
"update fields and append to array fields" write that the store applies
atomically to a single document.

MemoryDocumentStore implements the same contract in process memory. It is
used in simulation mode and by the tests.
"""

import copy
import secrets
import string
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from .enums import StoreErrorCode
from .exceptions import NotFoundError


@dataclass
class StoredDocument:
    """A document body together with its id."""

    id: str
    data: dict


@runtime_checkable
class DocumentStore(Protocol):
    """
    Remote document store operations used by the moderation core.

    Every method may raise RemoteUnavailableError; methods addressing an
    existing document raise NotFoundError when it is absent.
    """

    async def create(self, collection: str, data: dict) -> str:
        """Create a document with a generated id and return the id."""
        ...

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the document body, or None if it does not exist."""
        ...

    async def list_all(self, collection: str) -> list[StoredDocument]:
        """Return every document of a collection."""
        ...

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        """Merge the given top-level fields into an existing document."""
        ...

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        """Create or overwrite a document under a fixed id."""
        ...

    async def delete(self, collection: str, doc_id: str) -> None:
        """Delete a document; deleting a missing document is not an error."""
        ...

    async def query_equal(
        self, collection: str, field: str, value: Any
    ) -> list[StoredDocument]:
        """Return the documents whose ``field`` equals ``value``."""
        ...

    async def update_with_append(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        append: dict[str, list],
    ) -> None:
        """
        Merge ``fields`` and append ``append[name]`` elements to array fields.

        Elements already present in the array are not appended again.
        """
        ...


_ID_ALPHABET = string.ascii_letters + string.digits


def generate_document_id(length: int = 20) -> str:
    """Generate a random document id in the store's id format."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class MemoryDocumentStore:
    """
    In-process document store.

    Bodies are deep-copied on the way in and out so callers never share
    mutable state with the store, as with a remote database. Collections
    keep insertion order.
    """

    def __init__(self, initial: Optional[dict[str, dict[str, dict]]] = None) -> None:
        """
        Initialize the store.

        Args:
            initial: Optional seed data as {collection: {doc_id: body}}
        """
        self._collections: dict[str, dict[str, dict]] = {}
        for collection, documents in (initial or {}).items():
            self._collections[collection] = {
                doc_id: copy.deepcopy(body) for doc_id, body in documents.items()
            }
        self._write_count = 0

    @property
    def write_count(self) -> int:
        """Number of write calls applied so far."""
        return self._write_count

    def snapshot(self, collection: str) -> dict[str, dict]:
        """Copy of a whole collection (for inspection in tests and the CLI)."""
        return copy.deepcopy(self._collections.get(collection, {}))

    async def create(self, collection: str, data: dict) -> str:
        documents = self._collections.setdefault(collection, {})
        doc_id = generate_document_id()
        while doc_id in documents:
            doc_id = generate_document_id()
        documents[doc_id] = copy.deepcopy(data)
        self._write_count += 1
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        body = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(body) if body is not None else None

    async def list_all(self, collection: str) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(body))
            for doc_id, body in self._collections.get(collection, {}).items()
        ]

    async def update(self, collection: str, doc_id: str, fields: dict) -> None:
        body = self._require(collection, doc_id)
        for name, value in fields.items():
            body[name] = copy.deepcopy(value)
        self._write_count += 1

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        self._write_count += 1

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections.get(collection, {}).pop(doc_id, None)
        self._write_count += 1

    async def query_equal(
        self, collection: str, field: str, value: Any
    ) -> list[StoredDocument]:
        return [
            StoredDocument(id=doc_id, data=copy.deepcopy(body))
            for doc_id, body in self._collections.get(collection, {}).items()
            if field in body and body[field] == value
        ]

    async def update_with_append(
        self,
        collection: str,
        doc_id: str,
        fields: dict,
        append: dict[str, list],
    ) -> None:
        body = self._require(collection, doc_id)
        for name, value in fields.items():
            body[name] = copy.deepcopy(value)
        for name, elements in append.items():
            current = body.get(name)
            if not isinstance(current, list):
                current = []
            for element in elements:
                if element not in current:
                    current.append(copy.deepcopy(element))
            body[name] = current
        self._write_count += 1

    def _require(self, collection: str, doc_id: str) -> dict:
        body = self._collections.get(collection, {}).get(doc_id)
        if body is None:
            raise NotFoundError(
                code=StoreErrorCode.NOT_FOUND.value,
                message=f"Document {collection}/{doc_id} does not exist",
                details={"collection": collection, "doc_id": doc_id},
            )
        return body

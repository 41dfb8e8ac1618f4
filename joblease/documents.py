"""
Document store interface and in-memory implementation.

The job store talks to persistence only through DocumentStore. Documents
are plain dicts keyed by field name with an ``id`` key; stores return
copies so callers can never mutate stored state by accident.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import DuplicateKeyError, NotFoundError
from .filters import Predicate

Document = Dict[str, Any]
SortSpec = Sequence[Tuple[str, bool]]  # (key, ascending)


class DocumentStore(ABC):
    """Abstract interface for document persistence.

    Each call is atomic for the single document it touches. There are no
    cross-document transactions.
    """

    @abstractmethod
    def find_one(self, collection: str, doc_id: str) -> Optional[Document]:
        """Get a document by id, or None."""
        ...

    @abstractmethod
    def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        """List documents matching the predicate in store-native order unless sorted."""
        ...

    @abstractmethod
    def insert_one(self, collection: str, document: Document) -> None:
        """Insert a new document.

        Raises:
            DuplicateKeyError: If the id already exists
        """
        ...

    @abstractmethod
    def update_fields(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Set the given fields on one document.

        When ``expected`` is given, the document must also currently hold
        those values (None meaning absent) for the write to apply.

        Raises:
            NotFoundError: If no document matches the id and expected values
        """
        ...

    @abstractmethod
    def delete_one(self, collection: str, doc_id: str) -> None:
        """Delete a document. Missing ids are ignored."""
        ...

    @abstractmethod
    def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        """Count documents matching the predicate."""
        ...


def _sort_key(key: str):
    # Absent values sort first, mirroring document-store null ordering
    def extract(doc: Document):
        value = doc.get(key)
        return (value is not None, value)
    return extract


def sort_documents(docs: List[Document], sort: Optional[SortSpec]) -> List[Document]:
    if not sort:
        return docs
    # Stable sorts applied from the least significant key outwards
    for key, ascending in reversed(list(sort)):
        docs.sort(key=_sort_key(key), reverse=not ascending)
    return docs


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store.

    Suitable for testing and single-process deployments. Iteration order
    is insertion order. Thread-safe via threading.Lock.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Document]] = {}
        self._lock = threading.Lock()

    def _collection(self, name: str) -> Dict[str, Document]:
        return self._collections.setdefault(name, {})

    def find_one(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            return dict(doc) if doc is not None else None

    def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        with self._lock:
            docs = [
                dict(d) for d in self._collection(collection).values()
                if predicate is None or predicate.matches(d)
            ]
        docs = sort_documents(docs, sort)
        if limit is not None:
            docs = docs[:limit]
        return docs

    def insert_one(self, collection: str, document: Document) -> None:
        doc_id = document["id"]
        with self._lock:
            docs = self._collection(collection)
            if doc_id in docs:
                raise DuplicateKeyError(collection, doc_id)
            docs[doc_id] = dict(document)

    def update_fields(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> None:
        with self._lock:
            doc = self._collection(collection).get(doc_id)
            if doc is None:
                raise NotFoundError(collection, doc_id)
            if expected:
                for key, value in expected.items():
                    if doc.get(key) != value:
                        raise NotFoundError(
                            collection,
                            doc_id,
                            f"Document '{doc_id}' in '{collection}' no longer has {key}={value!r}",
                        )
            doc.update(fields)

    def delete_one(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._collection(collection).pop(doc_id, None)

    def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        with self._lock:
            docs = self._collection(collection).values()
            if predicate is None:
                return len(docs)
            return sum(1 for d in docs if predicate.matches(d))


__all__ = [
    "Document",
    "DocumentStore",
    "InMemoryDocumentStore",
    "sort_documents",
]

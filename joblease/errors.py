"""
Error types raised by the job store and the document stores beneath it.

Nothing here is retried internally; every error surfaces to the caller.
"""

from typing import List, Optional


class JobStoreError(Exception):
    """Base class for all job store failures."""
    pass


class NotFoundError(JobStoreError):
    """A write targeted a document that no longer exists."""

    def __init__(self, collection: str, doc_id: str, message: Optional[str] = None):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(message or f"No document '{doc_id}' in collection '{collection}'")


class LeaseConflictError(NotFoundError):
    """The lease changed underneath a conditional update."""
    pass


class DuplicateKeyError(JobStoreError):
    """Insert collided with an existing id."""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document '{doc_id}' already exists in collection '{collection}'")


class UnsupportedOperationError(JobStoreError, NotImplementedError):
    """Operation is not implemented by this store."""
    pass


class StoreUnavailableError(JobStoreError):
    """The underlying store could not be reached."""
    pass


class InvalidJobError(JobStoreError, ValueError):
    """Job document failed validation before insert."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid job document: " + "; ".join(self.errors))

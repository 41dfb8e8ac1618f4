"""
Lease-based job persistence and expiry detection.
"""

__version__ = "0.1.0"

from .errors import (
    JobStoreError,
    NotFoundError,
    LeaseConflictError,
    DuplicateKeyError,
    UnsupportedOperationError,
    StoreUnavailableError,
    InvalidJobError,
)
from .record import JobRecord
from .filters import JobQuery, ScopeMode
from .documents import DocumentStore, InMemoryDocumentStore
from .settings import JobServiceSettings, SystemClock, ManualClock
from .job_store import JobStore, COLLECTION_JOBS

__all__ = [
    "__version__",
    "JobStoreError",
    "NotFoundError",
    "LeaseConflictError",
    "DuplicateKeyError",
    "UnsupportedOperationError",
    "StoreUnavailableError",
    "InvalidJobError",
    "JobRecord",
    "JobQuery",
    "ScopeMode",
    "DocumentStore",
    "InMemoryDocumentStore",
    "JobServiceSettings",
    "SystemClock",
    "ManualClock",
    "JobStore",
    "COLLECTION_JOBS",
]

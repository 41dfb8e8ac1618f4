"""
Job record model.

A JobRecord is the live, mutable view of one persisted job document.
Alongside the live values it carries the original snapshot: the document
as it was last read from or written to the store. Only the store sets
the snapshot.
"""

import uuid
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# attribute name -> document key
FIELD_KEYS = {
    "id": "id",
    "execution_id": "executionId",
    "process_instance_id": "processInstanceId",
    "process_definition_id": "processDefinitionId",
    "scope_type": "scopeType",
    "job_type": "jobType",
    "job_handler_type": "jobHandlerType",
    "job_handler_configuration": "jobHandlerConfiguration",
    "exclusive": "exclusive",
    "retries": "retries",
    "exception_message": "exceptionMessage",
    "lock_owner": "lockOwner",
    "lock_expiration_time": "lockExpirationTime",
    "create_time": "createTime",
    "tenant_id": "tenantId",
}

DOCUMENT_KEYS = tuple(FIELD_KEYS.values())

TIMESTAMP_KEYS = ("lockExpirationTime", "createTime")


def to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Return an aware UTC datetime; naive values are taken to be UTC.

    Anything that is not a datetime is returned unchanged so that schema
    validation can report it.
    """
    if not isinstance(value, datetime):
        return value
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(eq=False)
class JobRecord:
    """
    One asynchronous unit of work.

    Records compare equal by persisted values. They are mutable, so they
    are not hashable; key collections by ``id`` instead.
    """

    __hash__ = None

    id: Optional[str] = None
    execution_id: Optional[str] = None
    process_instance_id: Optional[str] = None
    process_definition_id: Optional[str] = None
    scope_type: Optional[str] = None  # None = process-engine scope
    job_type: str = "message"
    job_handler_type: Optional[str] = None
    job_handler_configuration: Optional[str] = None
    exclusive: bool = True
    retries: int = 3
    exception_message: Optional[str] = None
    lock_owner: Optional[str] = None
    lock_expiration_time: Optional[datetime] = None
    create_time: Optional[datetime] = None
    tenant_id: Optional[str] = None

    _snapshot: Dict[str, Any] = field(default_factory=dict, repr=False)

    def __post_init__(self):
        self.lock_expiration_time = to_utc(self.lock_expiration_time)
        self.create_time = to_utc(self.create_time)

    def __eq__(self, other):
        if not isinstance(other, JobRecord):
            return NotImplemented
        return self.to_document() == other.to_document()

    @property
    def is_leased(self) -> bool:
        return self.lock_expiration_time is not None

    def is_lease_expired(self, now: datetime) -> bool:
        """True when a lease is held and its expiration time has passed."""
        return self.is_leased and to_utc(self.lock_expiration_time) < to_utc(now)

    def to_document(self) -> Dict[str, Any]:
        """Serialize live values to a document keyed by persisted field names."""
        doc = {}
        for attr, key in FIELD_KEYS.items():
            value = getattr(self, attr)
            if key in TIMESTAMP_KEYS:
                value = to_utc(value)
            doc[key] = value
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "JobRecord":
        """
        Build a record from a stored document.

        The snapshot is left empty; the store resets it after loading.
        """
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for attr, key in FIELD_KEYS.items():
            if key in doc and attr in known:
                kwargs[attr] = doc[key]
        return cls(**kwargs)

    def original_snapshot(self) -> Dict[str, Any]:
        """Return a copy of the original persistent state."""
        return dict(self._snapshot)

    def _reset_snapshot(self) -> None:
        self._snapshot = self.to_document()

    def _apply_to_snapshot(self, written: Dict[str, Any]) -> None:
        # Snapshot mirrors the stored document, so untracked edits are left out
        self._snapshot = {**self._snapshot, **written}

"""
Dirty-field detection for partial updates.

Only the lease and retry fields may change after insert. Correlation and
payload fields are write-once, so changes to them are never sent.
"""

from typing import Any, Dict, Iterable

from .record import JobRecord

TRACKED_FIELDS = ("retries", "exceptionMessage", "lockOwner", "lockExpirationTime")

LEASE_FIELDS = ("lockOwner", "lockExpirationTime")


def diff_fields(
    old: Dict[str, Any], new: Dict[str, Any], keys: Iterable[str]
) -> Dict[str, Dict[str, Any]]:
    changed = {}
    for k in keys:
        ov = old.get(k)
        nv = new.get(k)
        if ov != nv:
            changed[k] = {"old": ov, "new": nv}
    return changed


def dirty_fields(record: JobRecord) -> Dict[str, Any]:
    """
    Return ``{document_key: new_value}`` for tracked fields whose live
    value differs from the record's snapshot. Empty means nothing to write.
    """
    changes = diff_fields(record.original_snapshot(), record.to_document(), TRACKED_FIELDS)
    return {k: v["new"] for k, v in changes.items()}


def touches_lease(fields: Dict[str, Any]) -> bool:
    return any(k in fields for k in LEASE_FIELDS)

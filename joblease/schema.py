from datetime import datetime
from typing import Any, Dict, List

OPTIONAL_STR_FIELDS = [
    "executionId",
    "processInstanceId",
    "processDefinitionId",
    "scopeType",
    "jobType",
    "jobHandlerType",
    "jobHandlerConfiguration",
    "exceptionMessage",
    "lockOwner",
    "tenantId",
]
TIMESTAMP_FIELDS = ["lockExpirationTime", "createTime"]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_fields(data: Dict[str, Any]) -> List[str]:
    """
    Check only the fields present in ``data``. Used for partial updates,
    where the rest of the document is already stored.
    """
    errors: List[str] = []

    if "id" in data and not _is_non_empty_str(data["id"]):
        errors.append("Field 'id' must be a non-empty string")

    if "retries" in data:
        retries = data["retries"]
        # bool is an int subclass
        if isinstance(retries, bool) or not isinstance(retries, int):
            errors.append("Field 'retries' must be an integer")

    for f in OPTIONAL_STR_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    for f in TIMESTAMP_FIELDS:
        if data.get(f) is not None and not isinstance(data[f], datetime):
            errors.append(f"Field '{f}' must be a datetime if provided")

    if "exclusive" in data and not isinstance(data["exclusive"], bool):
        errors.append("Field 'exclusive' must be a boolean")

    return errors


def validate_job_document(data: Dict[str, Any]) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.
    Shape checks only; lease semantics are not validated here.
    """
    # A full document must carry id and retries even when absent
    return validate_fields({"id": None, "retries": None, **data})

"""
Tests for record.py and dirty.py - job records, snapshots and diffs.
"""

import pytest
from datetime import datetime, timedelta, timezone

from joblease.dirty import TRACKED_FIELDS, diff_fields, dirty_fields, touches_lease
from joblease.record import JobRecord, to_utc

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class TestJobRecord:
    """Test the record model."""

    def test_defaults(self):
        record = JobRecord()
        assert record.retries == 3
        assert record.exclusive is True
        assert not record.is_leased
        assert record.original_snapshot() == {}

    def test_naive_timestamps_are_utc(self):
        record = JobRecord(create_time=datetime(2026, 3, 1, 9, 0))
        assert record.create_time == NOW
        assert record.create_time.tzinfo is not None

    def test_to_utc_converts_offsets(self):
        plus_two = timezone(timedelta(hours=2))
        assert to_utc(datetime(2026, 3, 1, 11, 0, tzinfo=plus_two)) == NOW
        assert to_utc(None) is None

    def test_document_keys(self):
        doc = JobRecord(id="j", execution_id="e1", lock_owner="w").to_document()
        assert doc["id"] == "j"
        assert doc["executionId"] == "e1"
        assert doc["lockOwner"] == "w"
        assert doc["lockExpirationTime"] is None

    def test_from_document_ignores_unknown_keys(self):
        record = JobRecord.from_document({"id": "j", "retries": 1, "_rev": "x"})
        assert record.id == "j"
        assert record.retries == 1

    def test_snapshot_is_a_copy(self):
        record = JobRecord(id="j")
        record._reset_snapshot()

        snapshot = record.original_snapshot()
        snapshot["retries"] = 0

        assert record.original_snapshot()["retries"] == 3

    def test_lease_expiry(self):
        record = JobRecord(lock_owner="w", lock_expiration_time=NOW)
        assert record.is_leased
        assert not record.is_lease_expired(NOW)
        assert record.is_lease_expired(NOW + timedelta(microseconds=1))
        assert not JobRecord().is_lease_expired(NOW)

    def test_equality_ignores_snapshot(self):
        a = JobRecord(id="j")
        b = JobRecord(id="j")
        a._reset_snapshot()
        assert a == b
        assert a != JobRecord(id="k")

    def test_records_are_not_hashable(self):
        with pytest.raises(TypeError):
            hash(JobRecord(id="j"))
        with pytest.raises(TypeError):
            {JobRecord(id="j")}

    def test_non_datetime_timestamps_pass_through(self):
        """Wrong types are left for validation to report."""
        assert to_utc("2026-03-01") == "2026-03-01"
        assert to_utc(None) is None

        record = JobRecord(create_time="2026-03-01")

        assert record.to_document()["createTime"] == "2026-03-01"


class TestDirtyFields:
    """Test dirty-field detection."""

    def test_diff_fields(self):
        changed = diff_fields({"a": 1, "b": 2}, {"a": 1, "b": 3}, ["a", "b", "c"])
        assert changed == {"b": {"old": 2, "new": 3}}

    def test_loaded_record_is_clean(self):
        record = JobRecord(id="j")
        record._reset_snapshot()
        assert dirty_fields(record) == {}

    def test_value_equality_not_identity(self):
        """An equal but distinct timestamp is not a change."""
        record = JobRecord(id="j", lock_expiration_time=NOW)
        record._reset_snapshot()
        record.lock_expiration_time = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)
        assert dirty_fields(record) == {}

    def test_each_tracked_field(self):
        record = JobRecord(id="j")
        record._reset_snapshot()
        record.retries = 2
        record.exception_message = "boom"
        record.lock_owner = "w"
        record.lock_expiration_time = NOW

        assert dirty_fields(record) == {
            "retries": 2,
            "exceptionMessage": "boom",
            "lockOwner": "w",
            "lockExpirationTime": NOW,
        }
        assert set(dirty_fields(record)) == set(TRACKED_FIELDS)

    def test_untracked_changes_are_ignored(self):
        record = JobRecord(id="j")
        record._reset_snapshot()
        record.execution_id = "e9"
        record.scope_type = "cmmn"
        record.tenant_id = "t"
        assert dirty_fields(record) == {}

    def test_touches_lease(self):
        assert touches_lease({"lockOwner": None})
        assert touches_lease({"lockExpirationTime": NOW})
        assert not touches_lease({"retries": 1})

    def test_apply_to_snapshot(self):
        record = JobRecord(id="j")
        record._reset_snapshot()
        record.retries = 1
        record.tenant_id = "t"

        record._apply_to_snapshot(dirty_fields(record))

        assert dirty_fields(record) == {}
        assert record.original_snapshot()["tenantId"] is None

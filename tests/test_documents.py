"""
Tests for the document store contract, run against every implementation.
"""

import pytest
from datetime import datetime, timedelta, timezone

from joblease.errors import DuplicateKeyError, NotFoundError
from joblease.filters import Eq, IsNull, Lt, and_, or_
from joblease.record import JobRecord

NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def doc(job_id, **kwargs):
    kwargs.setdefault("create_time", NOW)
    return JobRecord(id=job_id, **kwargs).to_document()


class TestInsertAndFind:
    """Test insert, find_one and find."""

    def test_find_one(self, documents):
        documents.insert_one("jobs", doc("a", execution_id="e1"))

        found = documents.find_one("jobs", "a")

        assert found["executionId"] == "e1"
        assert found["createTime"] == NOW

    def test_find_one_missing(self, documents):
        assert documents.find_one("jobs", "missing") is None

    def test_duplicate_insert(self, documents):
        documents.insert_one("jobs", doc("a"))

        with pytest.raises(DuplicateKeyError):
            documents.insert_one("jobs", doc("a"))

    def test_returned_documents_are_copies(self, documents):
        documents.insert_one("jobs", doc("a"))

        found = documents.find_one("jobs", "a")
        found["lockOwner"] = "sneaky"

        assert documents.find_one("jobs", "a")["lockOwner"] is None

    def test_find_keeps_insertion_order(self, documents):
        for job_id in ["c", "a", "b"]:
            documents.insert_one("jobs", doc(job_id))

        assert [d["id"] for d in documents.find("jobs")] == ["c", "a", "b"]

    def test_find_with_limit(self, documents):
        for job_id in ["c", "a", "b"]:
            documents.insert_one("jobs", doc(job_id))

        assert [d["id"] for d in documents.find("jobs", limit=2)] == ["c", "a"]

    def test_find_with_sort(self, documents):
        documents.insert_one("jobs", doc("a", retries=2))
        documents.insert_one("jobs", doc("b", retries=5))
        documents.insert_one("jobs", doc("c", retries=1))

        ascending = documents.find("jobs", sort=[("retries", True)])
        descending = documents.find("jobs", sort=[("retries", False)])

        assert [d["id"] for d in ascending] == ["c", "a", "b"]
        assert [d["id"] for d in descending] == ["b", "a", "c"]


class TestPredicateSelection:
    """Both stores must select the same documents for a predicate."""

    @pytest.fixture
    def loaded(self, documents):
        documents.insert_one("jobs", doc("unleased"))
        documents.insert_one("jobs", doc(
            "lapsed", lock_owner="w", lock_expiration_time=NOW - timedelta(seconds=5)
        ))
        documents.insert_one("jobs", doc(
            "active", lock_owner="w", lock_expiration_time=NOW + timedelta(seconds=5)
        ))
        documents.insert_one("jobs", doc(
            "old", scope_type="cmmn", create_time=NOW - timedelta(days=2)
        ))
        return documents

    def _ids(self, documents, predicate):
        return [d["id"] for d in documents.find("jobs", predicate)]

    def test_is_null(self, loaded):
        assert self._ids(loaded, IsNull("lockExpirationTime")) == ["unleased", "old"]

    def test_eq(self, loaded):
        assert self._ids(loaded, Eq("scopeType", "cmmn")) == ["old"]

    def test_lt_on_timestamps(self, loaded):
        assert self._ids(loaded, Lt("lockExpirationTime", NOW)) == ["lapsed"]

    def test_nested(self, loaded):
        predicate = or_(
            Lt("lockExpirationTime", NOW),
            and_(IsNull("lockExpirationTime"), Lt("createTime", NOW - timedelta(days=1))),
        )
        assert self._ids(loaded, predicate) == ["lapsed", "old"]

    def test_count(self, loaded):
        assert loaded.count("jobs") == 4
        assert loaded.count("jobs", IsNull("scopeType")) == 3


class TestUpdateFields:
    """Test partial writes."""

    def test_sets_only_given_fields(self, documents):
        documents.insert_one("jobs", doc("a", execution_id="e1"))

        documents.update_fields("jobs", "a", {"retries": 0, "exceptionMessage": "boom"})

        found = documents.find_one("jobs", "a")
        assert found["retries"] == 0
        assert found["exceptionMessage"] == "boom"
        assert found["executionId"] == "e1"

    def test_missing_document(self, documents):
        with pytest.raises(NotFoundError):
            documents.update_fields("jobs", "ghost", {"retries": 1})

    def test_expected_values_must_match(self, documents):
        documents.insert_one("jobs", doc("a"))
        lease = {"lockOwner": "w1", "lockExpirationTime": NOW}

        documents.update_fields("jobs", "a", lease, expected={"lockExpirationTime": None})

        with pytest.raises(NotFoundError):
            documents.update_fields(
                "jobs", "a", {"lockOwner": "w2"}, expected={"lockExpirationTime": None}
            )
        assert documents.find_one("jobs", "a")["lockOwner"] == "w1"

    def test_expected_timestamp_match(self, documents):
        documents.insert_one("jobs", doc("a", lock_owner="w1", lock_expiration_time=NOW))

        documents.update_fields(
            "jobs", "a", {"lockOwner": None, "lockExpirationTime": None},
            expected={"lockExpirationTime": NOW},
        )

        assert documents.find_one("jobs", "a")["lockExpirationTime"] is None


class TestDeleteOne:
    """Test deletion."""

    def test_delete(self, documents):
        documents.insert_one("jobs", doc("a"))

        documents.delete_one("jobs", "a")

        assert documents.find_one("jobs", "a") is None

    def test_delete_missing_is_noop(self, documents):
        documents.delete_one("jobs", "a")
        documents.delete_one("jobs", "a")
        assert documents.count("jobs") == 0

"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime, timedelta, timezone

from joblease.database import SqlDocumentStore
from joblease.documents import InMemoryDocumentStore
from joblease.job_store import JobStore
from joblease.logger import StructuredLogger
from joblease.record import JobRecord
from joblease.settings import JobServiceSettings, ManualClock


START = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    """Clock pinned to a known instant."""
    return ManualClock(START)


@pytest.fixture
def quiet_logger() -> StructuredLogger:
    return StructuredLogger(name="joblease-test", level="DEBUG", enable_console=False)


@pytest.fixture
def memory_documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def sql_documents(tmp_path) -> SqlDocumentStore:
    store = SqlDocumentStore(tmp_path / "jobs.db")
    yield store
    store.close()


@pytest.fixture(params=["memory", "sqlite"])
def documents(request, tmp_path):
    """Each document store implementation in turn."""
    if request.param == "memory":
        yield InMemoryDocumentStore()
        return
    store = SqlDocumentStore(tmp_path / "jobs.db")
    yield store
    store.close()


@pytest.fixture
def make_store(documents, clock, quiet_logger):
    """Factory for a JobStore over the current document store."""

    def _make(**settings_kwargs) -> JobStore:
        settings_kwargs.setdefault("clock", clock)
        settings_kwargs.setdefault("max_reset_timeout", timedelta(hours=1))
        settings = JobServiceSettings(**settings_kwargs)
        return JobStore(documents, settings=settings, logger=quiet_logger)

    return _make


@pytest.fixture
def job_store(make_store) -> JobStore:
    """Job store serving all scopes."""
    return make_store(execution_scope="all")


@pytest.fixture
def sample_job() -> JobRecord:
    return JobRecord(
        id="job-1",
        execution_id="e1",
        process_instance_id="p1",
        process_definition_id="order:1:7",
        job_handler_type="async-continuation",
        tenant_id="acme",
    )

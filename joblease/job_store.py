"""
Job store.

The public persistence and query surface for jobs. Composes the filter
builders and the dirty-field tracker over an abstract DocumentStore.

Lease protocol:
- A caller acquires a lease by loading an unleased job, setting
  lock_owner and lock_expiration_time, and calling update().
- With ``lease_precondition`` enabled (the default), a lease write only
  applies if lockExpirationTime still holds the value the caller loaded.
  A concurrent acquirer that lost the race gets LeaseConflictError.
- With it disabled, lease writes are unconditional and the last write
  wins.
"""

from typing import List, Optional, Union

from .dirty import dirty_fields, touches_lease
from .documents import Document, DocumentStore
from .errors import (
    InvalidJobError,
    JobStoreError,
    LeaseConflictError,
    NotFoundError,
    UnsupportedOperationError,
)
from .filters import (
    JobQuery,
    correlation_filter,
    execution_filter,
    expired_filter,
)
from .logger import StructuredLogger, get_logger
from .record import JobRecord, new_job_id
from .schema import validate_fields, validate_job_document
from .settings import JobServiceSettings

COLLECTION_JOBS = "jobs"


def _check_page_limit(page_limit: int) -> None:
    if isinstance(page_limit, bool) or not isinstance(page_limit, int) or page_limit < 1:
        raise ValueError(f"page_limit must be a positive integer, got {page_limit!r}")


class JobStore:
    """Persistence and lease-query surface for job records."""

    def __init__(
        self,
        documents: DocumentStore,
        settings: Optional[JobServiceSettings] = None,
        logger: Optional[StructuredLogger] = None,
    ):
        self.documents = documents
        self.settings = settings or JobServiceSettings()
        self.logger = logger or get_logger()

    def _load(self, doc: Document) -> JobRecord:
        record = JobRecord.from_document(doc)
        record._reset_snapshot()
        return record

    def _find(self, predicate, limit: Optional[int] = None) -> List[JobRecord]:
        self.logger.record_store_call("find")
        docs = self.documents.find(COLLECTION_JOBS, predicate, limit=limit)
        return [self._load(d) for d in docs]

    # ---------- CRUD ----------

    def create(self) -> JobRecord:
        """New, unsaved record with an empty snapshot."""
        return JobRecord()

    def find_by_id(self, job_id: str) -> Optional[JobRecord]:
        self.logger.record_store_call("find_one")
        doc = self.documents.find_one(COLLECTION_JOBS, job_id)
        if doc is None:
            self.logger.debug("Job not found", job_id=job_id)
            return None
        return self._load(doc)

    def insert(self, record: JobRecord) -> JobRecord:
        """
        Persist a new job.

        Assigns an id and create_time when missing.

        Raises:
            InvalidJobError: If the document fails validation
            DuplicateKeyError: If the id already exists
        """
        if record.id is None:
            record.id = new_job_id()
        if record.create_time is None:
            record.create_time = self.settings.current_time()

        doc = record.to_document()
        errors = validate_job_document(doc)
        if errors:
            self.logger.record_error(InvalidJobError.__name__)
            raise InvalidJobError(errors)

        self.logger.record_store_call("insert_one")
        self.documents.insert_one(COLLECTION_JOBS, doc)
        record._reset_snapshot()
        self.logger.debug("Inserted job", job_id=record.id, scope_type=record.scope_type)
        return record

    def update(self, record: JobRecord) -> JobRecord:
        """
        Write the tracked fields that changed since the record was loaded.

        Does nothing when no tracked field changed.

        Raises:
            InvalidJobError: If a changed field has the wrong type
            NotFoundError: If the job no longer exists
            LeaseConflictError: If the lease changed since the record was loaded
        """
        fields = dirty_fields(record)
        if not fields:
            self.logger.record_update(False)
            return record

        errors = validate_fields(fields)
        if errors:
            self.logger.record_error(InvalidJobError.__name__)
            raise InvalidJobError(errors)

        expected = None
        if self.settings.lease_precondition and touches_lease(fields):
            expected = {"lockExpirationTime": record.original_snapshot().get("lockExpirationTime")}

        self.logger.record_store_call("update_fields")
        try:
            self.documents.update_fields(COLLECTION_JOBS, record.id, fields, expected=expected)
        except NotFoundError as e:
            if expected is not None and self._exists(record.id):
                self.logger.record_lease_conflict()
                self.logger.warning(
                    "Lease changed concurrently, update rejected",
                    job_id=record.id,
                    lock_owner=record.lock_owner,
                    expected=expected,
                )
                raise LeaseConflictError(
                    COLLECTION_JOBS,
                    record.id,
                    f"Lease on job '{record.id}' was changed by another owner",
                ) from e
            self.logger.record_error(type(e).__name__)
            raise

        self.logger.record_update(True)
        record._apply_to_snapshot(fields)
        self.logger.debug("Updated job", job_id=record.id, fields=sorted(fields))
        return record

    def _exists(self, job_id: str) -> bool:
        self.logger.record_store_call("find_one")
        return self.documents.find_one(COLLECTION_JOBS, job_id) is not None

    def delete(self, job: Union[str, JobRecord]) -> None:
        """Delete a job by id or record. Deleting a missing job is a no-op."""
        job_id = job.id if isinstance(job, JobRecord) else job
        self.logger.record_store_call("delete_one")
        self.documents.delete_one(COLLECTION_JOBS, job_id)
        self.logger.debug("Deleted job", job_id=job_id)

    # ---------- Lease queries ----------

    def find_jobs_to_execute(self, page_limit: int) -> List[JobRecord]:
        """Unleased jobs in the configured execution scope, at most page_limit."""
        _check_page_limit(page_limit)
        jobs = self._find(execution_filter(self.settings.scope), limit=page_limit)
        self.logger.debug(
            "Jobs to execute",
            count=len(jobs),
            scope=self.settings.execution_scope,
        )
        return jobs

    def find_expired_jobs(self, page_limit: int) -> List[JobRecord]:
        """
        Jobs whose lease has lapsed, plus never-leased jobs older than the
        max reset timeout, at most page_limit.
        """
        _check_page_limit(page_limit)
        now = self.settings.current_time()
        predicate = expired_filter(self.settings.scope, now, self.settings.max_reset_timeout)
        jobs = self._find(predicate, limit=page_limit)
        self.logger.debug(
            "Expired jobs",
            count=len(jobs),
            now=now,
            scope=self.settings.execution_scope,
        )
        return jobs

    # ---------- Correlation queries ----------

    def find_jobs_by_query_criteria(self, query: JobQuery) -> List[JobRecord]:
        """Jobs matching the query; an empty query matches every job."""
        return self._find(correlation_filter(query))

    def find_job_count_by_query_criteria(self, query: JobQuery) -> int:
        self.logger.record_store_call("count")
        return self.documents.count(COLLECTION_JOBS, correlation_filter(query))

    def find_by_correlation(
        self,
        execution_id: Optional[str] = None,
        process_instance_id: Optional[str] = None,
    ) -> List[JobRecord]:
        return self.find_jobs_by_query_criteria(JobQuery(execution_id, process_instance_id))

    def count_by_correlation(
        self,
        execution_id: Optional[str] = None,
        process_instance_id: Optional[str] = None,
    ) -> int:
        return self.find_job_count_by_query_criteria(JobQuery(execution_id, process_instance_id))

    def find_jobs_by_execution_id(self, execution_id: str) -> List[JobRecord]:
        return self.find_by_correlation(execution_id=execution_id)

    def find_jobs_by_process_instance_id(self, process_instance_id: str) -> List[JobRecord]:
        return self.find_by_correlation(process_instance_id=process_instance_id)

    def delete_by_execution_id(self, execution_id: str) -> int:
        """
        Delete every job of an execution, one at a time.

        Not atomic: if a delete fails, the earlier ones stay committed and
        the error propagates. Safe to call again.

        Returns:
            Number of jobs deleted
        """
        deleted = 0
        for job in self.find_jobs_by_execution_id(execution_id):
            try:
                self.delete(job)
            except JobStoreError as e:
                self.logger.record_error(type(e).__name__)
                self.logger.error(
                    "Bulk delete stopped part way",
                    execution_id=execution_id,
                    job_id=job.id,
                    deleted=deleted,
                    error=str(e),
                )
                raise
            deleted += 1
        self.logger.debug("Deleted jobs for execution", execution_id=execution_id, deleted=deleted)
        return deleted

    # ---------- Unsupported ----------

    def reset_expired_job(self, job_id: str) -> None:
        self.logger.warning("reset_expired_job is not supported", job_id=job_id)
        raise UnsupportedOperationError("reset_expired_job is not implemented by this store")

    def update_tenant_id_for_deployment(self, deployment_id: str, new_tenant_id: str) -> None:
        self.logger.warning(
            "update_tenant_id_for_deployment is not supported",
            deployment_id=deployment_id,
        )
        raise UnsupportedOperationError(
            "update_tenant_id_for_deployment is not implemented by this store"
        )


__all__ = ["JobStore", "COLLECTION_JOBS"]

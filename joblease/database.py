"""
Database schema and SQLite-backed document store.

Uses SQLite with SQLAlchemy for job storage. Each job document maps onto
one row of the ``jobs`` table; predicates from ``filters`` are compiled
into SQLAlchemy expressions so selection happens in the database.
"""

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    and_,
    create_engine,
    false,
    func,
    literal_column,
    or_,
    select,
    true,
    update,
)
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker

from .documents import Document, DocumentStore, SortSpec
from .errors import DuplicateKeyError, NotFoundError, StoreUnavailableError
from .filters import And, Eq, IsNull, Lt, MatchAll, Or, Predicate
from .record import FIELD_KEYS, TIMESTAMP_KEYS, to_utc

Base = declarative_base()

SUPPORTED_COLLECTION = "jobs"


class JobRow(Base):
    """Persisted job document."""

    __tablename__ = "jobs"

    id = Column(String, primary_key=True)
    execution_id = Column(String, nullable=True, index=True)
    process_instance_id = Column(String, nullable=True, index=True)
    process_definition_id = Column(String, nullable=True)
    scope_type = Column(String, nullable=True)  # NULL = process-engine scope
    job_type = Column(String, nullable=True)
    job_handler_type = Column(String, nullable=True)
    job_handler_configuration = Column(Text, nullable=True)
    exclusive = Column(Boolean, nullable=True)
    retries = Column(Integer, nullable=False, default=3)
    exception_message = Column(Text, nullable=True)
    lock_owner = Column(String, nullable=True)
    lock_expiration_time = Column(DateTime, nullable=True, index=True)  # naive UTC
    create_time = Column(DateTime, nullable=True)  # naive UTC
    tenant_id = Column(String, nullable=True)


# document key -> JobRow attribute
COLUMN_FOR_KEY = {key: attr for attr, key in FIELD_KEYS.items()}


def create_db_engine(db_path: Path):
    return create_engine(f"sqlite:///{db_path}")


def init_database(db_path: Path) -> None:
    """
    Initialize database and create tables.

    Args:
        db_path: Path to SQLite database file
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_db_engine(db_path)
    try:
        Base.metadata.create_all(engine)
    finally:
        engine.dispose()


def _column(key: str):
    try:
        return getattr(JobRow, COLUMN_FOR_KEY[key])
    except KeyError:
        raise ValueError(f"Unknown job field: {key}")


def _to_db(value: Any) -> Any:
    # SQLite has no timezone support; timestamps are stored as naive UTC
    if isinstance(value, datetime):
        return to_utc(value).replace(tzinfo=None)
    return value


def _equals(key: str, value: Any):
    col = _column(key)
    if value is None:
        return col.is_(None)
    return col == _to_db(value)


def compile_predicate(predicate: Optional[Predicate]):
    """Translate a predicate tree into a SQLAlchemy boolean clause."""
    if predicate is None or isinstance(predicate, MatchAll):
        return true()
    if isinstance(predicate, Eq):
        return _equals(predicate.key, predicate.value)
    if isinstance(predicate, IsNull):
        return _column(predicate.key).is_(None)
    if isinstance(predicate, Lt):
        # NULL < x is never true in SQL, matching Lt.matches on absent values
        return _column(predicate.key) < _to_db(predicate.value)
    if isinstance(predicate, And):
        return and_(*[compile_predicate(c) for c in predicate.clauses])
    if isinstance(predicate, Or):
        if not predicate.clauses:
            return false()
        return or_(*[compile_predicate(c) for c in predicate.clauses])
    raise TypeError(f"Cannot compile predicate {predicate!r}")


def row_to_document(row: JobRow) -> Document:
    doc = {}
    for key, attr in COLUMN_FOR_KEY.items():
        value = getattr(row, attr)
        if key in TIMESTAMP_KEYS:
            value = to_utc(value)
        doc[key] = value
    return doc


class SqlDocumentStore(DocumentStore):
    """
    Document store over a SQLite database.

    Serves the ``jobs`` collection only. Every call runs in its own
    session and transaction. Without an explicit sort, rows come back in
    rowid (insertion) order.
    """

    def __init__(self, db_path: Optional[Path] = None, engine=None):
        if engine is None:
            if db_path is None:
                raise ValueError("Either db_path or engine is required")
            db_path = Path(db_path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
            engine = create_db_engine(db_path)
        Base.metadata.create_all(engine)
        self.engine = engine
        self._Session = sessionmaker(bind=engine)

    def close(self) -> None:
        """Release pooled connections."""
        self.engine.dispose()

    @contextmanager
    def _transaction(self):
        try:
            with self._Session.begin() as session:
                yield session
        except OperationalError as e:
            raise StoreUnavailableError(f"Database unavailable: {e}") from e

    def _check_collection(self, collection: str) -> None:
        if collection != SUPPORTED_COLLECTION:
            raise ValueError(f"Unsupported collection: {collection}")

    def find_one(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check_collection(collection)
        with self._transaction() as session:
            row = session.get(JobRow, doc_id)
            return row_to_document(row) if row is not None else None

    def find(
        self,
        collection: str,
        predicate: Optional[Predicate] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Document]:
        self._check_collection(collection)
        stmt = select(JobRow).where(compile_predicate(predicate))
        if sort:
            for key, ascending in sort:
                col = _column(key)
                stmt = stmt.order_by(col.asc() if ascending else col.desc())
        else:
            stmt = stmt.order_by(literal_column("jobs.rowid"))
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._transaction() as session:
            return [row_to_document(row) for row in session.scalars(stmt)]

    def insert_one(self, collection: str, document: Document) -> None:
        self._check_collection(collection)
        doc_id = document["id"]
        values = {
            COLUMN_FOR_KEY[k]: _to_db(v) for k, v in document.items() if k in COLUMN_FOR_KEY
        }
        try:
            with self._transaction() as session:
                if session.get(JobRow, doc_id) is not None:
                    raise DuplicateKeyError(collection, doc_id)
                session.add(JobRow(**values))
        except IntegrityError as e:
            # Lost a race with a concurrent insert of the same id
            raise DuplicateKeyError(collection, doc_id) from e

    def update_fields(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> None:
        self._check_collection(collection)
        conditions = [JobRow.id == doc_id]
        for key, value in (expected or {}).items():
            conditions.append(_equals(key, value))
        values = {COLUMN_FOR_KEY[k]: _to_db(v) for k, v in fields.items()}
        stmt = (
            update(JobRow)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        with self._transaction() as session:
            result = session.execute(stmt)
            if result.rowcount == 0:
                raise NotFoundError(collection, doc_id)

    def delete_one(self, collection: str, doc_id: str) -> None:
        self._check_collection(collection)
        with self._transaction() as session:
            row = session.get(JobRow, doc_id)
            if row is not None:
                session.delete(row)

    def count(self, collection: str, predicate: Optional[Predicate] = None) -> int:
        self._check_collection(collection)
        stmt = select(func.count()).select_from(JobRow).where(compile_predicate(predicate))
        with self._transaction() as session:
            return session.execute(stmt).scalar_one()

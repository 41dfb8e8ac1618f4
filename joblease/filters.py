"""
Query predicates for job lookup.

Predicates form a small expression tree (Eq, Lt, IsNull, And, Or, MatchAll)
that can be evaluated against a document directly with ``matches`` or
compiled by a store into its own query language. The builder functions at
the bottom assemble the three predicates the job store needs: execution
eligibility, lease expiry, and correlation lookup.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Tuple

ALL_SCOPES = "all"


class Predicate:
    """Base class for predicate nodes."""

    def matches(self, document: Dict[str, Any]) -> bool:
        raise NotImplementedError


@dataclass(frozen=True)
class MatchAll(Predicate):
    def matches(self, document: Dict[str, Any]) -> bool:
        return True


@dataclass(frozen=True)
class Eq(Predicate):
    key: str
    value: Any

    def matches(self, document: Dict[str, Any]) -> bool:
        return document.get(self.key) == self.value


@dataclass(frozen=True)
class IsNull(Predicate):
    """Field is missing or None."""
    key: str

    def matches(self, document: Dict[str, Any]) -> bool:
        return document.get(self.key) is None


@dataclass(frozen=True)
class Lt(Predicate):
    """Field is present and strictly less than value. Absent fields never match."""
    key: str
    value: Any

    def matches(self, document: Dict[str, Any]) -> bool:
        current = document.get(self.key)
        if current is None:
            return False
        return current < self.value


@dataclass(frozen=True)
class And(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, document: Dict[str, Any]) -> bool:
        return all(c.matches(document) for c in self.clauses)


@dataclass(frozen=True)
class Or(Predicate):
    clauses: Tuple[Predicate, ...]

    def matches(self, document: Dict[str, Any]) -> bool:
        return any(c.matches(document) for c in self.clauses)


def and_(*predicates: Optional[Predicate]) -> Predicate:
    """
    Conjunction of predicates.

    None and MatchAll operands are dropped and nested And nodes are
    flattened. With nothing left the result is MatchAll.
    """
    clauses = []
    for p in predicates:
        if p is None or isinstance(p, MatchAll):
            continue
        if isinstance(p, And):
            clauses.extend(p.clauses)
        else:
            clauses.append(p)
    if not clauses:
        return MatchAll()
    if len(clauses) == 1:
        return clauses[0]
    return And(tuple(clauses))


def or_(*predicates: Predicate) -> Predicate:
    """Disjunction of predicates. A MatchAll operand makes the whole thing MatchAll."""
    clauses = []
    for p in predicates:
        if isinstance(p, MatchAll):
            return MatchAll()
        if isinstance(p, Or):
            clauses.extend(p.clauses)
        else:
            clauses.append(p)
    if len(clauses) == 1:
        return clauses[0]
    return Or(tuple(clauses))


@dataclass(frozen=True)
class ScopeMode:
    """
    Which jobs an executor considers.

    ``name`` is None for the default process-engine scope, ``"all"`` for
    every scope, or any other string for a named scope.
    """
    name: Optional[str] = None

    @property
    def is_default(self) -> bool:
        return self.name is None

    @property
    def is_all(self) -> bool:
        return self.name == ALL_SCOPES

    @classmethod
    def default(cls) -> "ScopeMode":
        return cls(None)

    @classmethod
    def all(cls) -> "ScopeMode":
        return cls(ALL_SCOPES)

    @classmethod
    def named(cls, name: str) -> "ScopeMode":
        if not name:
            raise ValueError("Scope name cannot be empty")
        return cls(name)


@dataclass
class JobQuery:
    """Ad-hoc correlation query. Unset fields add no constraint."""
    execution_id: Optional[str] = None
    process_instance_id: Optional[str] = None

    def is_empty(self) -> bool:
        return self.execution_id is None and self.process_instance_id is None


def scope_filter(scope: ScopeMode) -> Predicate:
    if scope.is_all:
        return MatchAll()
    if scope.is_default:
        return IsNull("scopeType")
    return Eq("scopeType", scope.name)


def execution_filter(scope: ScopeMode) -> Predicate:
    """Unleased jobs in scope."""
    return and_(IsNull("lockExpirationTime"), scope_filter(scope))


def expired_filter(scope: ScopeMode, now: datetime, max_reset_timeout: timedelta) -> Predicate:
    """
    Jobs in scope whose lease has lapsed, or that were never leased and
    have been waiting longer than max_reset_timeout (orphans).
    """
    orphan_cutoff = now - max_reset_timeout
    return and_(
        scope_filter(scope),
        or_(
            Lt("lockExpirationTime", now),
            and_(IsNull("lockExpirationTime"), Lt("createTime", orphan_cutoff)),
        ),
    )


def correlation_filter(query: JobQuery) -> Predicate:
    clauses = []
    if query.execution_id is not None:
        clauses.append(Eq("executionId", query.execution_id))
    if query.process_instance_id is not None:
        clauses.append(Eq("processInstanceId", query.process_instance_id))
    return and_(*clauses)

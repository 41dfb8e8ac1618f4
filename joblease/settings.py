"""
Job service settings and clocks.

Settings are a read-only view for the job store: which execution scope
this executor serves, how long an unleased job may wait before it is
treated as orphaned, and where "now" comes from.
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from .filters import ScopeMode
from .record import to_utc

DEFAULT_MAX_RESET_TIMEOUT = timedelta(hours=24)

TRUTHY = {"1", "true", "yes", "y", "on"}
FALSY = {"0", "false", "no", "n", "off"}


def load_env() -> None:
    """Load .env from project root if present."""
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path)


class Clock:
    def current_time(self) -> datetime:
        raise NotImplementedError


class SystemClock(Clock):
    def current_time(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self._now = to_utc(start) if start is not None else datetime.now(timezone.utc)

    def current_time(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = to_utc(now)

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move forward by ``seconds`` plus any timedelta keyword arguments."""
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in TRUTHY:
        return True
    if value in FALSY:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class JobServiceSettings:
    """
    Configuration consumed by the job store.

    Attributes:
        execution_scope: None for the process-engine scope, "all" for every
            scope, or a named scope type
        max_reset_timeout: How long a never-leased job may wait before it
            counts as expired
        lease_precondition: Guard lease writes with the previously observed
            lockExpirationTime so concurrent acquirers cannot both win
        clock: Source of the current time
    """

    execution_scope: Optional[str] = None
    max_reset_timeout: timedelta = DEFAULT_MAX_RESET_TIMEOUT
    lease_precondition: bool = True
    clock: Clock = field(default_factory=SystemClock)

    def __post_init__(self):
        if self.max_reset_timeout < timedelta(0):
            raise ValueError("max_reset_timeout cannot be negative")

    @property
    def scope(self) -> ScopeMode:
        # Blank means the default scope, as in from_env
        name = (self.execution_scope or "").strip() or None
        return ScopeMode(name)

    def current_time(self) -> datetime:
        return to_utc(self.clock.current_time())

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "JobServiceSettings":
        """
        Build settings from environment variables.

        Reads JOBLEASE_EXECUTION_SCOPE, JOBLEASE_MAX_RESET_TIMEOUT_SECONDS and
        JOBLEASE_LEASE_PRECONDITION. A .env file in the working directory is
        loaded first when reading the process environment.
        """
        if environ is None:
            load_env()
            environ = os.environ

        scope = environ.get("JOBLEASE_EXECUTION_SCOPE", "").strip() or None

        raw_timeout = environ.get("JOBLEASE_MAX_RESET_TIMEOUT_SECONDS")
        if raw_timeout is None or not raw_timeout.strip():
            timeout = DEFAULT_MAX_RESET_TIMEOUT
        else:
            try:
                timeout = timedelta(seconds=float(raw_timeout))
            except ValueError:
                raise ValueError(
                    f"JOBLEASE_MAX_RESET_TIMEOUT_SECONDS must be a number, got {raw_timeout!r}"
                )

        raw_precondition = environ.get("JOBLEASE_LEASE_PRECONDITION")
        if raw_precondition is None or not raw_precondition.strip():
            precondition = True
        else:
            precondition = _parse_bool("JOBLEASE_LEASE_PRECONDITION", raw_precondition)

        return cls(
            execution_scope=scope,
            max_reset_timeout=timeout,
            lease_precondition=precondition,
        )

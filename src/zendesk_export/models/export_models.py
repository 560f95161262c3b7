"""
Export job models, error taxonomy and run summaries.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from .entity_models import EntityKind


class ExportError(Exception):
    """Base exception for export pipeline failures."""

    def __init__(
        self,
        message: str,
        entity_kind: Optional[EntityKind] = None,
        entity_id: Optional[Any] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.entity_kind = entity_kind
        self.entity_id = entity_id
        self.operation = operation


class RemoteAPIError(ExportError):
    """The remote API rejected a request or returned an unusable response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.url = url


class NotFoundError(RemoteAPIError):
    """Remote entity does not exist."""


class AuthError(RemoteAPIError):
    """Credentials were rejected by the remote API."""


class TransientError(RemoteAPIError):
    """Network failure, server error or rate limiting."""

    def __init__(self, message: str, retry_after: Optional[int] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class InvalidResponseError(RemoteAPIError):
    """Response body could not be decoded into the expected envelope."""


class StorageFault(ExportError):
    """Local storage failure (permission denied, disk full, ...)."""

    def __init__(self, message: str, path: Optional[Path] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.path = path


class SerializationError(StorageFault):
    """Record cannot be represented as JSON."""


class MalformedInputError(ExportError):
    """Invalid entity argument supplied by the command surface."""


class TaskTimeoutError(ExportError):
    """A job exceeded the configured per-job timeout."""

    def __init__(
        self,
        message: str,
        task_id: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.task_id = task_id
        self.timeout_seconds = timeout_seconds


class JobState(Enum):
    """Lifecycle of a single export job."""

    REQUESTED = "requested"
    RETRIEVED = "retrieved"
    SKIPPED = "skipped"
    PERSISTED = "persisted"
    DESCENDING = "descending"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.DONE, JobState.FAILED)


@dataclass
class JobResult:
    """Outcome of exporting one entity, with its full state history."""

    kind: EntityKind
    entity_id: Any
    parent_ids: tuple = ()
    path: Optional[Path] = None
    state: JobState = JobState.REQUESTED
    history: List[JobState] = field(default_factory=lambda: [JobState.REQUESTED])
    error: Optional[BaseException] = None
    started_at: datetime = field(default_factory=datetime.now)
    finished_at: Optional[datetime] = None

    def advance(self, state: JobState) -> None:
        if self.state.is_terminal:
            raise ValueError(
                f"Job {self.label} already finished in state {self.state.value}"
            )
        self.state = state
        self.history.append(state)
        if state.is_terminal:
            self.finished_at = datetime.now()

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.advance(JobState.FAILED)

    @property
    def label(self) -> str:
        return f"{self.kind.value} {self.entity_id}"

    @property
    def failed(self) -> bool:
        return self.state == JobState.FAILED

    @property
    def was_written(self) -> bool:
        """True when this job wrote content to its canonical path."""
        return JobState.PERSISTED in self.history

    @property
    def was_skipped(self) -> bool:
        return JobState.SKIPPED in self.history


@dataclass
class ExportTarget:
    """A parsed ``{id|all}`` command argument."""

    entity_id: Optional[int] = None

    _ID_PATTERN = re.compile(r"^\d+$")

    @property
    def is_all(self) -> bool:
        return self.entity_id is None

    @classmethod
    def parse(cls, value: Any, kind: Optional[EntityKind] = None) -> "ExportTarget":
        """
        Parse ``all`` or a positive integer id.

        Raises:
            MalformedInputError: for anything else
        """
        label = kind.value.title() if kind else "Entity"

        if isinstance(value, bool):
            raise MalformedInputError(f"must pass a valid {label} ID", entity_kind=kind)

        if isinstance(value, int):
            if value > 0:
                return cls(entity_id=value)
            raise MalformedInputError(
                f"must pass a valid {label} ID, got {value}", entity_kind=kind
            )

        text = str(value).strip() if value is not None else ""
        if text.lower() == "all":
            return cls()

        if not cls._ID_PATTERN.match(text) or int(text) <= 0:
            raise MalformedInputError(
                f"must pass a valid {label} ID, got '{text}'", entity_kind=kind
            )

        return cls(entity_id=int(text))

    def __str__(self) -> str:
        return "all" if self.is_all else str(self.entity_id)


@dataclass
class ExportSummary:
    """Aggregated results for one top-level export invocation."""

    kind: EntityKind
    target: ExportTarget
    results: List[JobResult] = field(default_factory=list)
    listing_error: Optional[BaseException] = None
    start_time: datetime = field(default_factory=datetime.now)
    end_time: Optional[datetime] = None

    def add(self, result: JobResult) -> None:
        self.results.append(result)

    def finish(self) -> "ExportSummary":
        self.end_time = datetime.now()
        return self

    @property
    def failed_jobs(self) -> List[JobResult]:
        return [result for result in self.results if result.failed]

    @property
    def success(self) -> bool:
        return not self.failed_jobs and self.listing_error is None

    @property
    def written_count(self) -> int:
        return sum(1 for result in self.results if result.was_written)

    @property
    def skipped_count(self) -> int:
        return sum(1 for result in self.results if result.was_skipped)

    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.end_time:
            return None
        return (self.end_time - self.start_time).total_seconds()

    def counts_by_kind(self) -> Dict[str, Dict[str, int]]:
        """Per-kind counts of written, skipped and failed jobs."""
        counts: Dict[str, Dict[str, int]] = {}
        for result in self.results:
            bucket = counts.setdefault(
                result.kind.value, {"written": 0, "skipped": 0, "failed": 0}
            )
            if result.failed:
                bucket["failed"] += 1
            elif result.was_written:
                bucket["written"] += 1
            elif result.was_skipped:
                bucket["skipped"] += 1
        return counts

"""
Unit tests for export targets, job state tracking and summaries.
"""

import pytest

from zendesk_export.models.entity_models import EntityKind
from zendesk_export.models.export_models import (
    ExportError,
    ExportSummary,
    ExportTarget,
    JobResult,
    JobState,
    MalformedInputError,
    NotFoundError,
    RemoteAPIError,
    SerializationError,
    StorageFault,
    TransientError,
)


class TestExportTarget:
    """Test parsing of ``{id|all}`` arguments."""

    @pytest.mark.parametrize("value", ["all", "ALL", " all "])
    def test_all(self, value):
        target = ExportTarget.parse(value)
        assert target.is_all
        assert str(target) == "all"

    @pytest.mark.parametrize("value,expected", [("1", 1), ("42", 42), (7, 7)])
    def test_id(self, value, expected):
        target = ExportTarget.parse(value)
        assert not target.is_all
        assert target.entity_id == expected
        assert str(target) == str(expected)

    @pytest.mark.parametrize("value", ["0", "-1", "abc", "", None, "1.5", "12abc", 0, True])
    def test_malformed(self, value):
        with pytest.raises(MalformedInputError):
            ExportTarget.parse(value)

    def test_message_names_kind(self):
        with pytest.raises(MalformedInputError, match="must pass a valid Ticket ID"):
            ExportTarget.parse("x", EntityKind.TICKET)


class TestJobResult:
    """Test job state transitions."""

    def test_history_records_every_transition(self):
        job = JobResult(kind=EntityKind.TICKET, entity_id=42)

        job.advance(JobState.RETRIEVED)
        job.advance(JobState.PERSISTED)
        job.advance(JobState.DESCENDING)
        job.advance(JobState.DONE)

        assert job.history == [
            JobState.REQUESTED,
            JobState.RETRIEVED,
            JobState.PERSISTED,
            JobState.DESCENDING,
            JobState.DONE,
        ]
        assert job.was_written
        assert not job.failed
        assert job.finished_at is not None

    def test_fail(self):
        job = JobResult(kind=EntityKind.USER, entity_id=1)
        error = NotFoundError("Error getting user 1: not found (404)")

        job.fail(error)

        assert job.failed
        assert job.error is error
        assert job.state.is_terminal

    def test_terminal_state_is_final(self):
        job = JobResult(kind=EntityKind.USER, entity_id=1)
        job.advance(JobState.DONE)

        with pytest.raises(ValueError):
            job.advance(JobState.RETRIEVED)

    def test_label(self):
        assert JobResult(kind=EntityKind.COMMENT, entity_id=7).label == "comment 7"


class TestExportSummary:
    """Test aggregation of job results."""

    def _job(self, kind, entity_id, *states):
        job = JobResult(kind=kind, entity_id=entity_id)
        for state in states:
            job.advance(state)
        return job

    def test_counts(self):
        summary = ExportSummary(kind=EntityKind.TICKET, target=ExportTarget())
        summary.add(self._job(EntityKind.TICKET, 1, JobState.RETRIEVED, JobState.PERSISTED, JobState.DONE))
        summary.add(self._job(EntityKind.TICKET, 2, JobState.RETRIEVED, JobState.SKIPPED, JobState.DONE))
        failed = self._job(EntityKind.COMMENT, 3)
        failed.fail(StorageFault("disk full"))
        summary.add(failed)
        summary.finish()

        assert summary.written_count == 1
        assert summary.skipped_count == 1
        assert summary.failed_jobs == [failed]
        assert not summary.success
        assert summary.duration_seconds is not None
        assert summary.counts_by_kind() == {
            "ticket": {"written": 1, "skipped": 1, "failed": 0},
            "comment": {"written": 0, "skipped": 0, "failed": 1},
        }

    def test_listing_error_marks_failure(self):
        summary = ExportSummary(kind=EntityKind.USER, target=ExportTarget())
        summary.listing_error = TransientError("Error getting all users: server error (500)")
        assert not summary.success

    def test_empty_summary_succeeds(self):
        assert ExportSummary(kind=EntityKind.USER, target=ExportTarget(5)).success


class TestErrorHierarchy:
    """Test error taxonomy and context."""

    def test_hierarchy(self):
        assert issubclass(NotFoundError, RemoteAPIError)
        assert issubclass(RemoteAPIError, ExportError)
        assert issubclass(SerializationError, StorageFault)
        assert issubclass(MalformedInputError, ExportError)

    def test_context(self):
        error = TransientError(
            "rate limited",
            retry_after=30,
            status_code=429,
            url="https://acme.zendesk.com/api/v2/users.json",
            entity_kind=EntityKind.USER,
            operation="list",
        )
        assert error.retry_after == 30
        assert error.status_code == 429
        assert error.entity_kind == EntityKind.USER
        assert error.operation == "list"
        assert str(error) == "rate limited"

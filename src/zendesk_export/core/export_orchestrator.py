"""
Recursive export of users and tickets to the local data tree.

A ticket export walks ticket -> comments -> attachments and recordings. Every
entity passes the same gate: resolve its path, skip it if something is already
there, otherwise create the parent directories and write it. Each entity is
tracked as a ``JobResult`` so a failure stays local to that entity.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Awaitable, Callable, Optional, Set

from ..integration.zendesk_client import ZendeskClient, ZendeskCredentials
from ..models.config_models import AppConfig
from ..models.entity_models import (
    Attachment,
    CommentRecord,
    EntityKind,
    EntityRecord,
    Recording,
    TicketRecord,
)
from ..models.export_models import (
    ExportError,
    ExportSummary,
    ExportTarget,
    JobResult,
    JobState,
    TaskTimeoutError,
)
from .atomic_file_manager import AtomicFileManager
from .concurrent_processor import ConcurrentProcessor
from .content_fetcher import ContentFetcher
from .resource_retriever import ResourceRetriever
from .storage_path_manager import StoragePathManager

logger = logging.getLogger(__name__)

JobFunc = Callable[[JobResult, Optional[EntityRecord], ExportSummary], Awaitable[None]]


class ExportOrchestrator:
    """
    Drives user and ticket exports.

    Top-level jobs run on a shared ``ConcurrentProcessor`` so several exports
    started from the interactive shell together stay within one concurrency
    bound.
    """

    def __init__(
        self,
        retriever: ResourceRetriever,
        file_manager: AtomicFileManager,
        path_manager: StoragePathManager,
        fetcher: ContentFetcher,
        max_concurrent: int = 5,
        task_timeout: Optional[float] = None,
    ):
        self.retriever = retriever
        self.file_manager = file_manager
        self.path_manager = path_manager
        self.fetcher = fetcher
        self.task_timeout = task_timeout
        self.processor: ConcurrentProcessor[Any, None] = ConcurrentProcessor(
            max_concurrent=max_concurrent
        )
        self._background_tasks: Set["asyncio.Task[ExportSummary]"] = set()

    async def export_users(self, target: ExportTarget) -> ExportSummary:
        """Export one user or every user."""
        return await self._export(EntityKind.USER, target, self._user_job)

    async def export_tickets(self, target: ExportTarget) -> ExportSummary:
        """Export one ticket or every ticket, including its comment tree."""
        return await self._export(EntityKind.TICKET, target, self._ticket_job)

    def submit(
        self, kind: EntityKind, target: ExportTarget
    ) -> "asyncio.Task[ExportSummary]":
        """
        Start an export in the background.

        The outcome is logged when the task finishes; the returned task can be
        awaited for the ``ExportSummary``.
        """
        if kind == EntityKind.USER:
            coro = self.export_users(target)
        elif kind == EntityKind.TICKET:
            coro = self.export_tickets(target)
        else:
            raise ValueError(f"Cannot export {kind.value} records directly")

        task = asyncio.ensure_future(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: "asyncio.Task[ExportSummary]") -> None:
        self._background_tasks.discard(task)
        if task.cancelled():
            logger.warning("Background export cancelled")
            return

        error = task.exception()
        if error is not None:
            logger.error(f"Background export failed: {error}", exc_info=error)
            return

        summary = task.result()
        log = logger.info if summary.success else logger.warning
        log(format_summary_line(summary))

    @property
    def pending_exports(self) -> int:
        return len(self._background_tasks)

    async def wait_for_background(self) -> None:
        """Wait until every submitted export has finished."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Cancel background exports and running jobs."""
        logger.info(
            f"Shutting down: {self.pending_exports} export(s), "
            f"{self.processor.active_task_count} running job(s)"
        )
        for task in list(self._background_tasks):
            task.cancel()
        await self.processor.shutdown(timeout=timeout)
        if self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def _export(
        self, kind: EntityKind, target: ExportTarget, job_func: JobFunc
    ) -> ExportSummary:
        summary = ExportSummary(kind=kind, target=target)
        label = f"all {kind.value}s" if target.is_all else f"{kind.value} {target}"
        logger.info(f"Exporting {label}")

        async def run_listed(record: EntityRecord) -> None:
            await self._run_top_level(kind, record.id, record, summary, job_func)

        async def run_single(entity_id: int) -> None:
            await self._run_top_level(kind, entity_id, None, summary, job_func)

        try:
            if target.is_all:
                await self.processor.process_with_concurrency(
                    self.retriever.list_all(kind), run_listed
                )
            else:
                await self.processor.process_with_concurrency(
                    [target.entity_id], run_single
                )
        except ExportError as e:
            summary.listing_error = e
            logger.error(str(e))

        return summary.finish()

    async def _run_top_level(
        self,
        kind: EntityKind,
        entity_id: int,
        record: Optional[EntityRecord],
        summary: ExportSummary,
        job_func: JobFunc,
    ) -> None:
        job = self._new_job(summary, kind, entity_id)
        try:
            if self.task_timeout:
                await asyncio.wait_for(
                    job_func(job, record, summary), timeout=self.task_timeout
                )
            else:
                await job_func(job, record, summary)
        except asyncio.TimeoutError:
            error = TaskTimeoutError(
                f"Export of {job.label} timed out after {self.task_timeout}s",
                task_id=job.label,
                timeout_seconds=self.task_timeout,
                entity_kind=kind,
                entity_id=entity_id,
            )
            logger.error(str(error))
            self._fail_unfinished(summary, job, error)
        except asyncio.CancelledError:
            self._fail_unfinished(
                summary, job, ExportError(f"Export of {job.label} was cancelled")
            )
            raise

    @staticmethod
    def _fail_unfinished(
        summary: ExportSummary, root: JobResult, error: BaseException
    ) -> None:
        """Fail ``root`` and any of its descendants that did not finish."""
        for job in summary.results:
            if job.state.is_terminal:
                continue
            is_descendant = bool(job.parent_ids) and job.parent_ids[0] == root.entity_id
            if job is root or (root.kind == EntityKind.TICKET and is_descendant):
                job.fail(error)

    @staticmethod
    def _new_job(
        summary: ExportSummary, kind: EntityKind, entity_id: Any, *parent_ids: Any
    ) -> JobResult:
        job = JobResult(kind=kind, entity_id=entity_id, parent_ids=parent_ids)
        summary.add(job)
        return job

    def _handle_failure(self, job: JobResult, error: Exception) -> None:
        if isinstance(error, ExportError):
            logger.error(str(error))
        else:
            logger.exception(f"Unexpected error exporting {job.label}: {error}")
        job.fail(error)

    async def _persist_record(self, job: JobResult, record: Any, path: Path) -> None:
        """Write ``record`` to ``path`` unless something is already there."""
        job.path = path
        if await self.file_manager.exists(path):
            logger.debug(f"{path} already exists, skipping")
            job.advance(JobState.SKIPPED)
            return

        await self.file_manager.ensure_dir(path)
        await self.file_manager.write_json(record, path)
        logger.info(f"Saved {job.label} to {path}")
        job.advance(JobState.PERSISTED)

    async def _user_job(
        self, job: JobResult, record: Optional[EntityRecord], summary: ExportSummary
    ) -> None:
        try:
            if record is None:
                record = await self.retriever.get_one(EntityKind.USER, job.entity_id)
            job.advance(JobState.RETRIEVED)

            await self._persist_record(
                job, record.raw, self.path_manager.user_path(record.id)
            )
            job.advance(JobState.DONE)
        except Exception as e:
            self._handle_failure(job, e)

    async def _ticket_job(
        self, job: JobResult, record: Optional[EntityRecord], summary: ExportSummary
    ) -> None:
        try:
            if record is None:
                record = await self.retriever.get_one(EntityKind.TICKET, job.entity_id)
            job.advance(JobState.RETRIEVED)

            await self._persist_record(
                job, record.raw, self.path_manager.ticket_path(record.id)
            )

            job.advance(JobState.DESCENDING)
            await self._export_comments(record, summary)
            job.advance(JobState.DONE)
        except Exception as e:
            self._handle_failure(job, e)

    async def _export_comments(self, ticket: TicketRecord, summary: ExportSummary) -> None:
        # A listing failure propagates and fails the ticket job.
        count = 0
        async for comment in self.retriever.iter_comments(ticket.id):
            count += 1
            await self._comment_job(comment, summary)
        logger.debug(f"Processed {count} comments for ticket {ticket.id}")

    async def _comment_job(self, comment: CommentRecord, summary: ExportSummary) -> None:
        job = self._new_job(summary, EntityKind.COMMENT, comment.id, comment.ticket_id)
        try:
            job.advance(JobState.RETRIEVED)
            await self._persist_record(
                job,
                comment.raw,
                self.path_manager.comment_path(comment.ticket_id, comment.id),
            )
            job.advance(JobState.DESCENDING)
        except Exception as e:
            self._handle_failure(job, e)
            return

        for attachment in comment.attachments:
            await self._attachment_job(comment, attachment, summary)

        if comment.recording is not None:
            await self._recording_job(comment, comment.recording, summary)

        job.advance(JobState.DONE)

    async def _attachment_job(
        self, comment: CommentRecord, attachment: Attachment, summary: ExportSummary
    ) -> None:
        job = self._new_job(
            summary, EntityKind.ATTACHMENT, attachment.id, comment.ticket_id, comment.id
        )
        path = self.path_manager.attachment_path(
            comment.ticket_id, comment.id, attachment.id, attachment.file_name
        )
        await self._fetch_job(job, attachment.content_url, path)

    async def _recording_job(
        self, comment: CommentRecord, recording: Recording, summary: ExportSummary
    ) -> None:
        job = self._new_job(
            summary, EntityKind.RECORDING, recording.call_id, comment.ticket_id, comment.id
        )
        path = self.path_manager.recording_path(
            comment.ticket_id, comment.id, recording.call_id
        )
        await self._fetch_job(job, recording.recording_url, path)

    async def _fetch_job(self, job: JobResult, uri: str, path: Path) -> None:
        job.path = path
        try:
            job.advance(JobState.RETRIEVED)
            if await self.file_manager.exists(path):
                logger.debug(f"{path} already exists, skipping")
                job.advance(JobState.SKIPPED)
            else:
                await self.file_manager.ensure_dir(path)
                result = await self.fetcher.fetch_content(uri, path)
                job.advance(JobState.SKIPPED if result.skipped else JobState.PERSISTED)
            job.advance(JobState.DONE)
        except Exception as e:
            self._handle_failure(job, e)


def format_summary_line(summary: ExportSummary) -> str:
    """One-line description of a finished export, used for log output."""
    what = (
        f"all {summary.kind.value}s"
        if summary.target.is_all
        else f"{summary.kind.value} {summary.target}"
    )
    duration = summary.duration_seconds or 0.0
    line = (
        f"Finished exporting {what}: {summary.written_count} written, "
        f"{summary.skipped_count} already present, "
        f"{len(summary.failed_jobs)} failed in {duration:.1f}s"
    )
    if summary.listing_error is not None:
        line += f" (listing aborted: {summary.listing_error})"
    return line


@asynccontextmanager
async def export_session(
    config: AppConfig,
    output_path: Optional[str] = None,
    max_concurrent: Optional[int] = None,
    transport: Any = None,
) -> AsyncGenerator[ExportOrchestrator, None]:
    """
    Build an orchestrator and its collaborators from configuration.

    The API client is closed when the block exits.
    """
    zendesk = config.zendesk
    credentials = ZendeskCredentials.from_username(zendesk.username, zendesk.token)
    base_path = output_path or config.export.output_path

    file_manager = AtomicFileManager(base_path)
    path_manager = StoragePathManager(file_manager.base_path)

    async with ZendeskClient(
        zendesk.domain,
        credentials,
        timeout=zendesk.timeout_seconds,
        page_size=zendesk.page_size,
        transport=transport,
    ) as client:
        fetcher = ContentFetcher(
            client,
            file_manager,
            chunk_size=config.export.chunk_size,
            max_concurrent=config.export.max_concurrent_downloads,
        )
        yield ExportOrchestrator(
            ResourceRetriever(client),
            file_manager,
            path_manager,
            fetcher,
            max_concurrent=(
                max_concurrent
                if max_concurrent is not None
                else config.export.max_concurrent
            ),
            task_timeout=config.export.task_timeout,
        )

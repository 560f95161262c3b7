"""
Unit tests for streaming content downloads.
"""

import hashlib
from pathlib import Path

import pytest

from zendesk_export.core.atomic_file_manager import TEMP_SUFFIX, AtomicFileManager
from zendesk_export.core.content_fetcher import ContentFetcher
from zendesk_export.models.export_models import NotFoundError, TransientError


@pytest.fixture
def file_manager(tmp_path):
    return AtomicFileManager(tmp_path)


class TestContentFetcher:
    """Test ContentFetcher.fetch_content."""

    @pytest.mark.asyncio
    async def test_downloads_in_chunks(self, zendesk_client, fake_zendesk, file_manager, tmp_path):
        content = bytes(range(256)) * 100
        url = fake_zendesk.add_file("/attachments/token/3/", content)
        fetcher = ContentFetcher(zendesk_client, file_manager, chunk_size=1024)

        result = await fetcher.fetch_content(url, "log.bin")

        assert not result.skipped
        assert (tmp_path / "log.bin").read_bytes() == content
        assert result.file_size == len(content)
        assert result.checksum == hashlib.sha256(content).hexdigest()

    @pytest.mark.asyncio
    async def test_existing_file_not_downloaded(self, zendesk_client, fake_zendesk, file_manager, tmp_path):
        url = fake_zendesk.add_file("/attachments/token/3/", b"new content")
        (tmp_path / "log.txt").write_bytes(b"old content")
        fetcher = ContentFetcher(zendesk_client, file_manager)

        result = await fetcher.fetch_content(url, Path("log.txt"))

        assert result.skipped
        assert (tmp_path / "log.txt").read_bytes() == b"old content"
        assert fake_zendesk.requests_to("/attachments/") == []

    @pytest.mark.asyncio
    async def test_http_error_leaves_no_file(self, zendesk_client, fake_zendesk, file_manager, tmp_path):
        fetcher = ContentFetcher(zendesk_client, file_manager)

        with pytest.raises(NotFoundError) as exc_info:
            await fetcher.fetch_content(fake_zendesk.url("/attachments/missing/"), "x.txt")

        assert "Error downloading file" in str(exc_info.value)
        assert not (tmp_path / "x.txt").exists()

    @pytest.mark.asyncio
    async def test_interrupted_stream_leaves_no_partial_file(
        self, zendesk_client, fake_zendesk, file_manager, tmp_path
    ):
        fake_zendesk.broken_files["/recordings/abc"] = b"first half"
        fetcher = ContentFetcher(zendesk_client, file_manager)

        with pytest.raises(TransientError):
            await fetcher.fetch_content(fake_zendesk.url("/recordings/abc"), "abc.mp3")

        assert not (tmp_path / "abc.mp3").exists()
        assert list(tmp_path.rglob(f"*{TEMP_SUFFIX}")) == []

    @pytest.mark.asyncio
    async def test_download_semaphore(self, zendesk_client, fake_zendesk, file_manager, tmp_path):
        url = fake_zendesk.add_file("/attachments/token/1/", b"data")
        fetcher = ContentFetcher(zendesk_client, file_manager, max_concurrent=1)

        result = await fetcher.fetch_content(url, "a.txt")

        assert result.file_size == 4
        assert fetcher._semaphore is not None
        assert not fetcher._semaphore.locked()

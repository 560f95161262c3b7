"""
Streams attachment and recording content to disk.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..integration.zendesk_client import ZendeskClient
from .atomic_file_manager import AtomicFileManager

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    """Outcome of a single content fetch."""

    path: Path
    skipped: bool = False
    file_size: int = 0
    checksum: Optional[str] = None


class ContentFetcher:
    """
    Downloads binary content with the API credentials, never buffering the
    whole payload and never leaving a partial file at the canonical path.
    """

    def __init__(
        self,
        client: ZendeskClient,
        file_manager: AtomicFileManager,
        chunk_size: int = 64 * 1024,
        max_concurrent: Optional[int] = None,
    ):
        """
        Args:
            client: Zendesk client used for authenticated streaming
            file_manager: Atomic writer for the export directory
            chunk_size: Bytes read per chunk
            max_concurrent: Optional cap on simultaneous downloads
        """
        self.client = client
        self.file_manager = file_manager
        self.chunk_size = chunk_size
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrent) if max_concurrent else None
        )

    async def fetch_content(self, uri: str, path: Union[str, Path]) -> FetchResult:
        """
        Stream ``uri`` to ``path``.

        An existing file at ``path`` is left untouched and reported as skipped.

        Raises:
            RemoteAPIError: on HTTP or network failure
            StorageFault: on local write failure
        """
        path = Path(path)

        if await self.file_manager.exists(path):
            logger.debug(f"{path} already exists, not downloading again")
            return FetchResult(path=path, skipped=True)

        if self._semaphore is None:
            metadata = await self._stream_to_file(uri, path)
        else:
            async with self._semaphore:
                metadata = await self._stream_to_file(uri, path)

        logger.info(f"Downloaded {path} ({metadata['file_size']} bytes)")
        return FetchResult(
            path=path, file_size=metadata["file_size"], checksum=metadata["checksum"]
        )

    async def _stream_to_file(self, uri: str, path: Path) -> Dict[str, Any]:
        description = f"Error downloading file {path} <{uri}>"
        async with self.client.stream(uri, description) as response:
            async with self.file_manager.atomic_write(path) as writer:
                async for chunk in response.aiter_bytes(self.chunk_size):
                    writer.write(chunk)
        return writer.get_metadata()

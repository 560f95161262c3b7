"""
Atomic file operations for the export pipeline.

Every write goes to a temporary file in the target directory and is moved
onto the canonical path only after it has been flushed and synced, so a
reader never observes a partially-written file.
"""

import asyncio
import hashlib
import json
import logging
import os
import tempfile
import time
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, BinaryIO, Dict, Optional, Union

from ..models.export_models import ExportError, SerializationError, StorageFault

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".tmp"


def serialize_record(record: Any) -> bytes:
    """
    Serialize a record as pretty-printed UTF-8 JSON.

    Field order follows the record; indentation is four spaces and there is no
    trailing newline, matching the files written by earlier exports.
    """
    try:
        text = json.dumps(record, indent=4, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(
            f"Record is not representable as JSON: {e}", operation="serialize"
        ) from e
    return text.encode("utf-8")


class AtomicFileWriter:
    """Binary writer over a temporary file with size and checksum tracking."""

    def __init__(self, file_path: Path, file_handle: BinaryIO):
        self.file_path = file_path
        self.file_size = 0
        self.start_time = time.time()
        self.hasher = hashlib.sha256()
        self._file_handle: Optional[BinaryIO] = file_handle

    def __enter__(self) -> "AtomicFileWriter":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def write(self, data: bytes) -> None:
        if self._file_handle is None:
            raise StorageFault("Writer is already closed", path=self.file_path)
        self._file_handle.write(data)
        self.hasher.update(data)
        self.file_size += len(data)

    async def finalize(self) -> Dict[str, Any]:
        """Flush and sync the temporary file, then return write metadata."""
        if self._file_handle is not None:
            handle = self._file_handle
            handle.flush()
            await asyncio.get_event_loop().run_in_executor(
                None, os.fsync, handle.fileno()
            )
        return self.get_metadata()

    def close(self) -> None:
        if self._file_handle is not None:
            try:
                self._file_handle.close()
            except OSError as e:
                logger.warning(f"Error closing file handle for {self.file_path}: {e}")
            finally:
                self._file_handle = None

    def get_metadata(self) -> Dict[str, Any]:
        write_time = time.time() - self.start_time
        return {
            "file_size": self.file_size,
            "checksum": self.hasher.hexdigest(),
            "write_time": write_time,
        }


class AtomicFileManager:
    """Existence checks, directory creation and atomic writes under a base path."""

    def __init__(self, base_path: Union[str, Path]):
        self.base_path = Path(base_path).expanduser().resolve()
        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageFault(
                f"Cannot create export directory {self.base_path}: {e}",
                path=self.base_path,
                operation="init",
            ) from e
        logger.debug(f"Initialized AtomicFileManager with base path: {self.base_path}")

    def _full_path(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        if path.is_absolute():
            return path
        return self.base_path / path

    async def exists(self, path: Union[str, Path]) -> bool:
        """
        Check whether ``path`` already has content.

        Returns:
            False only when the path does not exist

        Raises:
            StorageFault: for any other failure (permissions, a file where a
                directory is expected, ...)
        """
        full_path = self._full_path(path)
        try:
            await asyncio.get_event_loop().run_in_executor(None, os.stat, full_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageFault(
                f"Error checking file {path}: {e.strerror or e}",
                path=Path(path),
                operation="exists",
            ) from e
        return True

    async def ensure_dir(self, path: Union[str, Path]) -> Path:
        """
        Create every missing parent directory of ``path``.

        Tolerates the same chain being created concurrently.
        """
        directory = self._full_path(path).parent
        try:
            await asyncio.get_event_loop().run_in_executor(
                None, lambda: directory.mkdir(parents=True, exist_ok=True)
            )
        except OSError as e:
            raise StorageFault(
                f"Error creating directory {directory}: {e.strerror or e}",
                path=Path(path),
                operation="ensure_dir",
            ) from e
        return directory

    @asynccontextmanager
    async def atomic_write(
        self, target_path: Union[str, Path]
    ) -> AsyncGenerator[AtomicFileWriter, None]:
        """
        Context manager yielding a writer whose content replaces ``target_path``
        only if the block completes. The parent directory must already exist.
        """
        full_path = self._full_path(target_path)
        temp_path: Optional[Path] = None
        committed = False

        try:
            temp_fd, temp_path_str = tempfile.mkstemp(
                dir=full_path.parent, prefix=f".{full_path.name}.", suffix=TEMP_SUFFIX
            )
            temp_path = Path(temp_path_str)
            logger.debug(f"Created temporary file: {temp_path}")

            with AtomicFileWriter(temp_path, os.fdopen(temp_fd, "wb")) as writer:
                yield writer
                await writer.finalize()

            await asyncio.get_event_loop().run_in_executor(
                None, os.replace, temp_path, full_path
            )
            committed = True
            logger.debug(
                f"Atomically wrote {writer.file_size} bytes to {full_path}"
            )

        except ExportError:
            raise
        except OSError as e:
            raise StorageFault(
                f"Error saving file {target_path}: {e.strerror or e}",
                path=Path(target_path),
                operation="atomic_write",
            ) from e

        finally:
            if not committed and temp_path is not None:
                try:
                    temp_path.unlink(missing_ok=True)
                    logger.debug(f"Cleaned up temporary file: {temp_path}")
                except OSError as cleanup_error:
                    logger.warning(
                        f"Failed to clean up temporary file {temp_path}: {cleanup_error}"
                    )

    async def write_json(self, record: Any, path: Union[str, Path]) -> Dict[str, Any]:
        """Persist ``record`` as JSON at ``path`` atomically."""
        data = serialize_record(record)
        async with self.atomic_write(path) as writer:
            writer.write(data)
        return writer.get_metadata()

    async def read_json(self, path: Union[str, Path]) -> Any:
        """Load a previously saved JSON document."""
        full_path = self._full_path(path)
        try:
            content = await asyncio.get_event_loop().run_in_executor(
                None, full_path.read_bytes
            )
        except OSError as e:
            raise StorageFault(
                f"Error reading file {path}: {e.strerror or e}",
                path=Path(path),
                operation="read_json",
            ) from e

        try:
            return json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise SerializationError(
                f"File {path} is not valid JSON: {e}",
                path=Path(path),
                operation="read_json",
            ) from e

    async def cleanup_temp_files(self, max_age_hours: float = 24.0) -> int:
        """Remove temporary files left behind by interrupted runs."""
        cleanup_count = 0
        current_time = time.time()
        age_threshold = max_age_hours * 3600

        for temp_file in self.base_path.rglob(f".*{TEMP_SUFFIX}"):
            try:
                if not temp_file.is_file():
                    continue
                if current_time - temp_file.stat().st_mtime >= age_threshold:
                    temp_file.unlink()
                    cleanup_count += 1
                    logger.debug(f"Cleaned up old temp file: {temp_file}")
            except OSError as e:
                logger.warning(f"Failed to clean up temp file {temp_file}: {e}")

        if cleanup_count > 0:
            logger.info(f"Cleaned up {cleanup_count} old temporary files")

        return cleanup_count

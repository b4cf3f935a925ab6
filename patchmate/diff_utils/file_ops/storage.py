"""
Storage backends that supply file snapshots and persist modified content.

The orchestrator only ever reads a whole file and writes a whole file; both
operations are coroutines so a backend may suspend on I/O.
"""

import asyncio
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Optional

from patchmate.utils.logging_utils import logger


class StorageError(Exception):
    """Base error raised by storage backends."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.message = message
        self.path = path
        super().__init__(message)


class StorageNotFoundError(StorageError):
    pass


class StorageExistsError(StorageError):
    pass


class FileStorage(ABC):
    """Read and write whole text files by workspace-relative path."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def read_text(self, path: str) -> str:
        """Return the file content with its original line endings."""

    @abstractmethod
    async def write_text(self, path: str, content: str) -> None:
        """Replace the file content. Either all of it lands or none of it does."""

    @abstractmethod
    async def create_empty(self, path: str) -> None:
        """Create an empty file, raising StorageExistsError if it already exists."""


def _resolve_and_validate(relative_path: str, root: Path) -> Path:
    """
    Resolve relative_path under root, rejecting paths that escape it.

    Raises:
        StorageError: On empty paths or '..' traversal
    """
    if not relative_path or not relative_path.strip():
        raise StorageError("path must not be empty", relative_path)

    cleaned = relative_path.strip()
    if ".." in cleaned.split(os.sep) or ".." in cleaned.split("/"):
        raise StorageError(f"path traversal ('..') is not allowed: {cleaned}", relative_path)

    resolved = (root / cleaned).resolve()
    try:
        resolved.relative_to(root)
    except ValueError:
        raise StorageError(f"resolved path escapes root: {resolved} is not under {root}", relative_path)
    return resolved


def atomic_write(file_path: Path, content: str, encoding: str = 'utf-8') -> None:
    """
    Write content through a temp file in the same directory and rename it into place.

    The rename is atomic on the same filesystem, so readers see either the old
    content or the new content. Existing permissions are carried over.
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_name = tempfile.mkstemp(prefix=f".tmp_{file_path.name}_", dir=file_path.parent, suffix=".tmp")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(temp_fd, 'w', encoding=encoding, newline='') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if file_path.exists():
            os.chmod(temp_path, file_path.stat().st_mode)
        os.replace(temp_path, file_path)
    except BaseException:
        if temp_path.exists():
            temp_path.unlink()
        raise


class LocalFileStorage(FileStorage):
    """Files under a root directory on the local filesystem."""

    def __init__(self, root: str, encoding: str = 'utf-8'):
        self.root = Path(root).resolve()
        self.encoding = encoding

    def resolve(self, path: str) -> Path:
        return _resolve_and_validate(path, self.root)

    async def exists(self, path: str) -> bool:
        return self.resolve(path).is_file()

    async def read_text(self, path: str) -> str:
        resolved = self.resolve(path)
        if not resolved.is_file():
            raise StorageNotFoundError(f"File not found: {path}", path)
        return await asyncio.to_thread(self._read, resolved)

    def _read(self, resolved: Path) -> str:
        # newline='' keeps \r\n intact
        with open(resolved, 'r', encoding=self.encoding, newline='') as f:
            return f.read()

    async def write_text(self, path: str, content: str) -> None:
        resolved = self.resolve(path)
        await asyncio.to_thread(atomic_write, resolved, content, self.encoding)
        logger.debug(f"Wrote {len(content)} characters to {resolved}")

    async def create_empty(self, path: str) -> None:
        resolved = self.resolve(path)
        resolved.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(resolved, 'x', encoding=self.encoding):
                pass
        except FileExistsError:
            raise StorageExistsError(f"File already exists: {path}", path)
        logger.info(f"Created empty file {resolved}")


class InMemoryFileStorage(FileStorage):
    """Dict-backed storage for embedding and tests."""

    def __init__(self, files: Optional[Dict[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})
        self.writes = 0

    async def exists(self, path: str) -> bool:
        return path in self.files

    async def read_text(self, path: str) -> str:
        try:
            return self.files[path]
        except KeyError:
            raise StorageNotFoundError(f"File not found: {path}", path)

    async def write_text(self, path: str, content: str) -> None:
        self.files[path] = content
        self.writes += 1

    async def create_empty(self, path: str) -> None:
        if path in self.files:
            raise StorageExistsError(f"File already exists: {path}", path)
        self.files[path] = ''

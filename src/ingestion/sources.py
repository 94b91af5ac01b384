"""File sources: where raw transcript bytes and their metadata come from."""

from __future__ import annotations

import mimetypes
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from src.errors import NotFoundError
from src.ingestion.models import FileMetadata


class FileSource(Protocol):
    def fetch_metadata(self, file_id: str) -> FileMetadata: ...

    def fetch_content(self, file_id: str) -> bytes | str: ...


class StaticFileSource:
    """A single in-memory file, e.g. an HTTP upload."""

    def __init__(self, metadata: FileMetadata, content: bytes | str) -> None:
        self._metadata = metadata
        self._content = content

    def _check(self, file_id: str) -> None:
        if file_id != self._metadata.file_id:
            raise NotFoundError(f"File not found: {file_id}")

    def fetch_metadata(self, file_id: str) -> FileMetadata:
        self._check(file_id)
        return self._metadata

    def fetch_content(self, file_id: str) -> bytes | str:
        self._check(file_id)
        return self._content


class LocalDirectoryFileSource:
    """Transcripts under a directory; the file id is the path relative to it."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _path(self, file_id: str) -> Path:
        path = (self._root / file_id).resolve()
        if not path.is_relative_to(self._root) or not path.is_file():
            raise NotFoundError(f"File not found: {file_id}")
        return path

    def fetch_metadata(self, file_id: str) -> FileMetadata:
        path = self._path(file_id)
        stat = path.stat()
        mime_type, _ = mimetypes.guess_type(path.name)
        return FileMetadata(
            file_id=file_id,
            name=path.name,
            created_at=datetime.fromtimestamp(stat.st_mtime, tz=UTC).isoformat(),
            mime_type=mime_type or "application/octet-stream",
        )

    def fetch_content(self, file_id: str) -> bytes:
        return self._path(file_id).read_bytes()

from __future__ import annotations

from pathlib import Path


class ArchiverError(Exception):
    """Base class for errors raised by chapter-archiver."""


class NetworkError(ArchiverError):
    """A page could not be fetched after exhausting the retry budget."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"Failed to fetch {url}: {message}")
        self.url = url
        self.message = message


class ExtractionGap(ArchiverError):
    """A required selector matched nothing in the fetched markup."""

    def __init__(self, field: str, url: str) -> None:
        super().__init__(f"No match for {field!r} in {url}")
        self.field = field
        self.url = url


class ReportError(ArchiverError):
    """The missing-chapters report is absent, unreadable or lacks a story."""


class PersistenceError(ArchiverError):
    """Reading or writing a file in the archive failed."""

    def __init__(self, path: Path, message: str) -> None:
        super().__init__(f"Storage error on {path}: {message}")
        self.path = path
        self.message = message


class FileKeyCollision(ArchiverError):
    """A chapter's file name is already held by a different chapter."""

    def __init__(self, path: Path, owner: str) -> None:
        super().__init__(f"{path.name} already holds {owner}")
        self.path = path
        self.owner = owner

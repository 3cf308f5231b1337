"""Error types shared across the reader, sync and API layers."""

from __future__ import annotations

from typing import Optional


class ReadshelfError(Exception):
    """Base for every error raised by readshelf."""


# ── Opening books ──────────────────────────────────────


class OpenError(ReadshelfError):
    """A book could not be opened. Fatal to the attempt, not to the app."""

    def __init__(self, message: str, book_id: Optional[int] = None) -> None:
        super().__init__(message)
        self.book_id = book_id


class CorruptContainer(OpenError):
    pass


class EmptyContent(OpenError):
    pass


class UnsupportedFormat(OpenError):
    pass


class OpenCancelled(ReadshelfError):
    """The session was closed or replaced while ``open`` was in flight."""


# ── Sync / server ──────────────────────────────────────


class SyncError(ReadshelfError):
    """Base for failures talking to the library server."""


class NetworkError(SyncError):
    pass


class ServerRejected(SyncError):
    def __init__(self, status_code: int, message: str = "") -> None:
        super().__init__(f"HTTP {status_code}: {message}" if message else f"HTTP {status_code}")
        self.status_code = status_code


class ApiError(SyncError):
    """The server answered 2xx but the body did not match the expected schema."""

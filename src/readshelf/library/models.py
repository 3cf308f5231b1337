"""Data models for the library, reading progress and the sync queue."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Any, Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class FormatFamily(enum.Enum):
    PAGINATED = "paginated"  # page index + total pages
    FLOWABLE = "flowable"  # location token + fraction through book


class BookFormat(str, enum.Enum):
    EPUB = "epub"
    PDF = "pdf"
    CBZ = "cbz"
    CBR = "cbr"

    @property
    def family(self) -> FormatFamily:
        if self is BookFormat.EPUB:
            return FormatFamily.FLOWABLE
        return FormatFamily.PAGINATED

    @classmethod
    def from_filename(cls, name: str) -> BookFormat:
        """Infer the tag from a file name. Only used when uploading."""
        suffix = PurePath(name).suffix.lower().lstrip(".")
        try:
            return cls(suffix)
        except ValueError:
            supported = ", ".join(f".{f.value}" for f in cls)
            raise ValueError(
                f"Unsupported format: .{suffix}. Supported: {supported}"
            ) from None


class Direction(enum.Enum):
    FORWARD = 1
    BACKWARD = -1


def coerce_format(tag: str) -> str:
    """Map a stored tag onto ``BookFormat``; unknown tags are kept verbatim."""
    try:
        return BookFormat(tag.lower())
    except ValueError:
        return tag


@dataclass(frozen=True)
class Book:
    id: int
    title: str
    format: str  # BookFormat member, or the raw tag if unknown to this client
    author: str = "Unknown"
    file_size: int = 0
    file_path: str = ""  # storage locator on the server
    upload_date: Optional[datetime] = None
    last_read: Optional[datetime] = None

    @property
    def format_tag(self) -> str:
        if isinstance(self.format, BookFormat):
            return self.format.value
        return self.format

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "author": self.author,
            "format": self.format_tag,
            "file_size": self.file_size,
            "file_path": self.file_path,
            "upload_date": self.upload_date.isoformat() if self.upload_date else None,
            "last_read": self.last_read.isoformat() if self.last_read else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Book:
        upload_date = data.get("upload_date")
        last_read = data.get("last_read")
        return cls(
            id=int(data["id"]),
            title=data["title"],
            format=coerce_format(data["format"]),
            author=data.get("author") or "Unknown",
            file_size=int(data.get("file_size") or 0),
            file_path=data.get("file_path") or "",
            upload_date=parse_timestamp(upload_date) if upload_date else None,
            last_read=parse_timestamp(last_read) if last_read else None,
        )


@dataclass
class ReadingProgress:
    book_id: int
    progress_percent: int = 0  # 0 - 100
    current_page: Optional[int] = None  # 1-based, paginated families
    total_pages: Optional[int] = None
    current_location: Optional[str] = None  # flowable family
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def family(self) -> Optional[FormatFamily]:
        if self.current_location is not None:
            return FormatFamily.FLOWABLE
        if self.current_page is not None:
            return FormatFamily.PAGINATED
        return None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "book_id": self.book_id,
            "progress_percent": self.progress_percent,
            "updated_at": self.updated_at.isoformat(),
        }
        if self.current_location is not None:
            data["current_location"] = self.current_location
        else:
            data["current_page"] = self.current_page
            data["total_pages"] = self.total_pages
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReadingProgress:
        updated_at = data.get("updated_at")
        return cls(
            book_id=int(data["book_id"]),
            progress_percent=int(data.get("progress_percent") or 0),
            current_page=data.get("current_page"),
            total_pages=data.get("total_pages"),
            current_location=data.get("current_location"),
            updated_at=parse_timestamp(updated_at) if updated_at else utcnow(),
        )


@dataclass
class SyncRecord:
    """A queued progress update. At most one exists per book."""

    book_id: int
    progress: ReadingProgress
    needs_sync: bool = True
    synced_at: Optional[datetime] = None


@dataclass
class OfflineBook:
    book_id: int
    data: bytes
    metadata: Book
    downloaded_at: datetime = field(default_factory=utcnow)


@dataclass(frozen=True)
class PositionDescriptor:
    """Format-native position reported by an adapter."""

    family: FormatFamily
    page: Optional[int] = None
    total_pages: Optional[int] = None
    location: Optional[str] = None
    fraction: Optional[float] = None  # 0.0 - 1.0, engine's own mapping

    @classmethod
    def paged(cls, page: int, total_pages: int) -> PositionDescriptor:
        return cls(FormatFamily.PAGINATED, page=page, total_pages=total_pages)

    @classmethod
    def located(cls, location: str, fraction: float) -> PositionDescriptor:
        return cls(FormatFamily.FLOWABLE, location=location, fraction=fraction)


@dataclass(frozen=True)
class OutlineEntry:
    title: str
    target: str
    level: int = 0

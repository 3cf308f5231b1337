"""Response shapes of the library server, validated once at the client boundary."""

from __future__ import annotations

import datetime as dt
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from readshelf.library.models import (
    Book,
    ReadingProgress,
    coerce_format,
    parse_timestamp,
    utcnow,
)


def _timestamp_or_none(value: Optional[str]) -> Optional[dt.datetime]:
    if not value:
        return None
    try:
        return parse_timestamp(value)
    except ValueError:
        return None


class Envelope(BaseModel):
    """Every JSON body is wrapped as ``{success, data}`` or ``{success, error}``."""

    success: bool
    data: Any = None
    error: Optional[str] = None


class ProgressPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    book_id: Optional[int] = None
    progress_percent: int = Field(0, ge=0, le=100)
    current_page: Optional[int] = Field(None, ge=1)
    total_pages: Optional[int] = Field(None, ge=1)
    current_location: Optional[str] = None
    updated_at: Optional[str] = None

    def to_progress(self, book_id: int) -> ReadingProgress:
        return ReadingProgress(
            book_id=self.book_id if self.book_id is not None else book_id,
            progress_percent=self.progress_percent,
            current_page=self.current_page,
            total_pages=self.total_pages,
            current_location=self.current_location,
            updated_at=_timestamp_or_none(self.updated_at) or utcnow(),
        )


class ProgressResponse(BaseModel):
    """Body of both GET and PUT on a book's progress."""

    model_config = ConfigDict(extra="ignore")

    book_id: int
    progress: Optional[ProgressPayload] = None


class BookPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    title: str
    author: Optional[str] = None
    file_type: str
    file_size: int = 0
    uploaded_at: Optional[str] = None
    progress: Optional[ProgressPayload] = None
    last_accessed_at: Optional[str] = None

    def to_book(self) -> Book:
        return Book(
            id=self.id,
            title=self.title,
            format=coerce_format(self.file_type),
            author=self.author or "Unknown",
            file_size=self.file_size,
            upload_date=_timestamp_or_none(self.uploaded_at),
            last_read=_timestamp_or_none(self.last_accessed_at),
        )


class UploadResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    book_id: int
    title: str
    author: Optional[str] = None
    file_type: str
    file_size: int = 0

    def to_book(self) -> Book:
        return Book(
            id=self.book_id,
            title=self.title,
            format=coerce_format(self.file_type),
            author=self.author or "Unknown",
            file_size=self.file_size,
            upload_date=utcnow(),
        )

"""A reading session: one open book, one adapter, normalized progress."""

from __future__ import annotations

import enum
import logging
import math
from typing import Optional

from readshelf.adapters.base import (
    AdapterSettings,
    FormatAdapter,
    RenderSurface,
    create_adapter,
)
from readshelf.errors import OpenError
from readshelf.library.models import (
    Book,
    Direction,
    FormatFamily,
    OutlineEntry,
    PositionDescriptor,
    ReadingProgress,
    utcnow,
)

from .progress import ProgressReporter, round_half_up

log = logging.getLogger(__name__)


class SessionState(enum.Enum):
    CLOSED = "closed"
    OPENING = "opening"
    OPEN = "open"


def normalize_progress(position: PositionDescriptor) -> int:
    """Map a format-native position onto 0-100."""
    if position.family is FormatFamily.PAGINATED:
        if not position.total_pages:
            return 0
        return round_half_up(position.page or 0, position.total_pages)
    fraction = min(1.0, max(0.0, position.fraction or 0.0))
    return math.floor(fraction * 100 + 0.5)


def progress_from_position(book_id: int, position: PositionDescriptor) -> ReadingProgress:
    percent = normalize_progress(position)
    if position.family is FormatFamily.PAGINATED:
        return ReadingProgress(
            book_id=book_id,
            progress_percent=percent,
            current_page=position.page,
            total_pages=position.total_pages,
            updated_at=utcnow(),
        )
    # total pages is not meaningful for flowable books
    return ReadingProgress(
        book_id=book_id,
        progress_percent=percent,
        current_location=position.location,
        updated_at=utcnow(),
    )


class ReadingSession:
    def __init__(
        self,
        reporter: ProgressReporter,
        settings: Optional[AdapterSettings] = None,
    ) -> None:
        self.reporter = reporter
        self._settings = settings
        self._state = SessionState.CLOSED
        self._book: Optional[Book] = None
        self._adapter: Optional[FormatAdapter] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def book(self) -> Optional[Book]:
        return self._book

    @property
    def adapter(self) -> Optional[FormatAdapter]:
        return self._adapter

    async def open(
        self,
        book: Book,
        data: bytes,
        surface: RenderSurface,
        prior: Optional[ReadingProgress] = None,
    ) -> None:
        if self._state is not SessionState.CLOSED:
            self.close()

        try:
            adapter = create_adapter(book.format_tag, self._settings)
        except OpenError as e:
            e.book_id = book.id
            raise

        self._adapter = adapter
        self._book = book
        self._state = SessionState.OPENING
        try:
            await adapter.open(data, surface, prior)
        except BaseException as e:
            if isinstance(e, OpenError) and e.book_id is None:
                e.book_id = book.id
            if self._adapter is adapter:
                self._reset()
            adapter.close()
            raise

        self._state = SessionState.OPEN
        log.debug("Opened book %s (%s)", book.id, book.format_tag)
        self._emit()

    def navigate(self, direction: Direction) -> None:
        if self._state is not SessionState.OPEN or self._adapter is None:
            return
        self._adapter.advance(direction)
        self._emit()

    def position(self) -> Optional[PositionDescriptor]:
        if self._state is not SessionState.OPEN or self._adapter is None:
            return None
        return self._adapter.current_position()

    def progress(self) -> Optional[ReadingProgress]:
        position = self.position()
        if position is None or self._book is None:
            return None
        return progress_from_position(self._book.id, position)

    def outline(self) -> list[OutlineEntry]:
        if self._adapter is None:
            return []
        return self._adapter.list_outline()

    def close(self) -> None:
        adapter = self._adapter
        self._reset()
        if adapter is not None:
            adapter.close()

    def _reset(self) -> None:
        self._adapter = None
        self._book = None
        self._state = SessionState.CLOSED

    def _emit(self) -> None:
        progress = self.progress()
        if progress is not None:
            self.reporter.publish(progress)

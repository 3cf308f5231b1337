"""Base adapter interface shared by every container format."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from readshelf.errors import OpenCancelled, UnsupportedFormat
from readshelf.library.models import (
    BookFormat,
    Direction,
    FormatFamily,
    OutlineEntry,
    PositionDescriptor,
    ReadingProgress,
)

from .resources import HandlePool, ResourceHandle


@dataclass(frozen=True)
class AdapterSettings:
    chars_per_location: int = 1024
    pdf_render_scale: float = 1.5


@dataclass(frozen=True)
class PageView:
    """What an adapter hands to its surface: an image handle or a block of text."""

    caption: str
    image: Optional[ResourceHandle] = None
    text: Optional[str] = None


class RenderSurface(Protocol):
    def show(self, view: PageView) -> None: ...

    def clear(self) -> None: ...


class FormatAdapter(ABC):
    """Wraps one rendering engine behind a uniform navigation contract.

    Subclasses decode the container in ``_decode`` (run in a worker thread,
    must not touch the handle pool), adopt the decoded state in ``_load``,
    and draw the current unit in ``_render``.
    """

    FAMILY: FormatFamily
    FORMATS: tuple[BookFormat, ...] = ()

    def __init__(
        self, book_format: BookFormat, settings: Optional[AdapterSettings] = None
    ) -> None:
        self.book_format = book_format
        self.settings = settings or AdapterSettings()
        self._pool = HandlePool()
        self._surface: Optional[RenderSurface] = None
        self._ready = False
        self._closed = False

    @property
    def outstanding_handles(self) -> int:
        return self._pool.outstanding

    @property
    def closed(self) -> bool:
        return self._closed

    async def open(
        self,
        data: bytes,
        surface: RenderSurface,
        prior: Optional[ReadingProgress] = None,
    ) -> None:
        if self._closed:
            raise OpenCancelled("adapter already closed")
        self._surface = surface

        decoded = await asyncio.to_thread(self._decode, data)
        if self._closed:
            self._discard(decoded)
            raise OpenCancelled("adapter closed while decoding")

        if prior is not None and prior.family is not self.FAMILY:
            prior = None
        self._load(decoded, prior)
        self._ready = True
        self._render()

    def advance(self, direction: Direction) -> None:
        if not self._ready:
            return
        if self._step(direction):
            self._render()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._ready = False
        try:
            self._release()
        finally:
            self._pool.revoke_all()
            surface, self._surface = self._surface, None
            if surface is not None:
                surface.clear()

    def list_outline(self) -> list[OutlineEntry]:
        """No outline is available for any format yet."""
        return []

    def _show(self, view: PageView) -> None:
        if self._surface is not None:
            self._surface.show(view)

    @abstractmethod
    def current_position(self) -> PositionDescriptor:
        """Return the format-native position."""

    @abstractmethod
    def _decode(self, data: bytes) -> Any:
        """Parse the container. Raises CorruptContainer or EmptyContent."""

    @abstractmethod
    def _load(self, decoded: Any, prior: Optional[ReadingProgress]) -> None:
        """Adopt decoded state and pick the starting unit."""

    @abstractmethod
    def _step(self, direction: Direction) -> bool:
        """Move one unit. Returns False at a boundary."""

    @abstractmethod
    def _render(self) -> None:
        """Show the current unit on the surface."""

    def _release(self) -> None:
        """Release engine state beyond the handle pool."""

    def _discard(self, decoded: Any) -> None:
        """Drop decoded state that arrived after close."""


def create_adapter(
    tag: str, settings: Optional[AdapterSettings] = None
) -> FormatAdapter:
    """Return a fresh adapter for a book's format tag."""
    from readshelf.adapters.comic_adapter import ComicAdapter
    from readshelf.adapters.epub_adapter import EpubAdapter
    from readshelf.adapters.pdf_adapter import PdfAdapter

    adapters: list[type[FormatAdapter]] = [EpubAdapter, PdfAdapter, ComicAdapter]
    for adapter_cls in adapters:
        if tag in adapter_cls.FORMATS:
            return adapter_cls(BookFormat(tag), settings)

    supported = []
    for a in adapters:
        supported.extend(f.value for f in a.FORMATS)
    raise UnsupportedFormat(
        f"Unsupported format: {tag}. Supported: {', '.join(supported)}"
    )

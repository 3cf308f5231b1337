"""Comic archive adapter (CBZ via zipfile, CBR via rarfile)."""

from __future__ import annotations

import io
import logging
import posixpath
import zipfile
import zlib
from typing import Optional

import rarfile

from readshelf.errors import CorruptContainer, EmptyContent
from readshelf.library.models import (
    BookFormat,
    Direction,
    FormatFamily,
    PositionDescriptor,
    ReadingProgress,
)

from .base import AdapterSettings, FormatAdapter, PageView
from .resources import ResourceHandle

log = logging.getLogger(__name__)

IMAGE_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}


def _is_page(name: str) -> bool:
    if name.endswith("/") or name.startswith("__MACOSX/"):
        return False
    return posixpath.splitext(name)[1].lower() in IMAGE_TYPES


class ComicAdapter(FormatAdapter):
    FAMILY = FormatFamily.PAGINATED
    FORMATS = (BookFormat.CBZ, BookFormat.CBR)

    def __init__(
        self, book_format: BookFormat, settings: Optional[AdapterSettings] = None
    ) -> None:
        super().__init__(book_format, settings)
        self._pages: list[ResourceHandle] = []
        self._index = 0  # 0-based

    @property
    def total_pages(self) -> int:
        return len(self._pages)

    def _decode(self, data: bytes) -> list[tuple[str, bytes]]:
        try:
            if self.book_format is BookFormat.CBR:
                images = self._read_rar(data)
            else:
                images = self._read_zip(data)
        except (zipfile.BadZipFile, zlib.error, rarfile.Error, OSError, EOFError) as e:
            raise CorruptContainer(f"Cannot read comic archive: {e}") from e
        if not images:
            raise EmptyContent("Comic archive contains no page images")
        return images

    @staticmethod
    def _read_zip(data: bytes) -> list[tuple[str, bytes]]:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            names = sorted(n for n in zf.namelist() if _is_page(n))
            return [(name, zf.read(name)) for name in names]

    @staticmethod
    def _read_rar(data: bytes) -> list[tuple[str, bytes]]:
        with rarfile.RarFile(io.BytesIO(data)) as rf:
            names = sorted(n for n in rf.namelist() if _is_page(n))
            return [(name, rf.read(name)) for name in names]

    def _load(
        self, decoded: list[tuple[str, bytes]], prior: Optional[ReadingProgress]
    ) -> None:
        for name, blob in decoded:
            mime = IMAGE_TYPES[posixpath.splitext(name)[1].lower()]
            self._pages.append(self._pool.allocate(blob, mime))
        log.debug("Decoded %d comic pages", len(self._pages))

        if prior is not None and prior.current_page:
            self._index = max(0, min(prior.current_page - 1, len(self._pages) - 1))

    def _step(self, direction: Direction) -> bool:
        new_index = self._index + direction.value
        if not 0 <= new_index < len(self._pages):
            return False
        self._index = new_index
        return True

    def _render(self) -> None:
        self._show(
            PageView(
                caption=f"Page {self._index + 1} of {len(self._pages)}",
                image=self._pages[self._index],
            )
        )

    def current_position(self) -> PositionDescriptor:
        return PositionDescriptor.paged(self._index + 1, len(self._pages))

    def _release(self) -> None:
        self._pages = []

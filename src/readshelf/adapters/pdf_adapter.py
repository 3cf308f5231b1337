"""PDF adapter using PyMuPDF. Renders one page at a time to a PNG pixmap."""

from __future__ import annotations

import logging
from typing import Optional

import pymupdf

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


class PdfAdapter(FormatAdapter):
    FAMILY = FormatFamily.PAGINATED
    FORMATS = (BookFormat.PDF,)

    def __init__(
        self, book_format: BookFormat, settings: Optional[AdapterSettings] = None
    ) -> None:
        super().__init__(book_format, settings)
        self._doc: Optional[pymupdf.Document] = None
        self._page_no = 1  # 1-based
        self._total = 0
        self._pixmap: Optional[ResourceHandle] = None

    @property
    def total_pages(self) -> int:
        return self._total

    def _decode(self, data: bytes) -> pymupdf.Document:
        try:
            doc = pymupdf.open(stream=data, filetype="pdf")
        except RuntimeError as e:
            # FileDataError and EmptyFileError both derive from RuntimeError
            raise CorruptContainer(f"Cannot read PDF: {e}") from e
        if doc.page_count == 0:
            doc.close()
            raise EmptyContent("PDF has no pages")
        return doc

    def _load(self, decoded: pymupdf.Document, prior: Optional[ReadingProgress]) -> None:
        self._doc = decoded
        self._total = decoded.page_count
        log.debug("Opened PDF with %d pages", self._total)
        if prior is not None and prior.current_page:
            self._page_no = max(1, min(prior.current_page, self._total))

    def _step(self, direction: Direction) -> bool:
        new_page = self._page_no + direction.value
        if not 1 <= new_page <= self._total:
            return False
        self._page_no = new_page
        return True

    def _render(self) -> None:
        if self._doc is None:
            return
        page = self._doc[self._page_no - 1]
        scale = self.settings.pdf_render_scale
        pix = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale))
        # One rendered page is alive at a time.
        self._pool.revoke(self._pixmap)
        self._pixmap = self._pool.allocate(pix.tobytes("png"), "image/png")
        self._show(
            PageView(
                caption=f"Page {self._page_no} of {self._total}",
                image=self._pixmap,
                text=page.get_text("text").strip() or None,
            )
        )

    def current_position(self) -> PositionDescriptor:
        return PositionDescriptor.paged(self._page_no, self._total)

    def _release(self) -> None:
        self._pixmap = None
        if self._doc is not None:
            self._doc.close()
            self._doc = None

    def _discard(self, decoded: pymupdf.Document) -> None:
        decoded.close()

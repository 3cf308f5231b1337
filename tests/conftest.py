"""Shared fixtures for tests."""

from __future__ import annotations

import io
import struct
import zipfile
from pathlib import Path
from typing import Callable, Optional

import pytest

from readshelf.adapters.base import PageView
from readshelf.config import AppConfig
from readshelf.library.database import Database
from readshelf.library.models import Book, BookFormat

PNG_STUB = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


class RecordingSurface:
    """Render surface that keeps everything it was asked to show."""

    def __init__(self) -> None:
        self.views: list[PageView] = []
        self.clears = 0

    @property
    def last(self) -> Optional[PageView]:
        return self.views[-1] if self.views else None

    def show(self, view: PageView) -> None:
        self.views.append(view)

    def clear(self) -> None:
        self.clears += 1


@pytest.fixture
def db(tmp_path: Path) -> Database:
    db_path = tmp_path / "test.db"
    database = Database(db_path)
    yield database
    database.close()


@pytest.fixture
def config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        data_dir=tmp_path / "data",
        config_dir=tmp_path / "config",
        server_url="http://library.test",
        session_token="tok-123",
    )


@pytest.fixture
def surface() -> RecordingSurface:
    return RecordingSurface()


def make_book(
    book_id: int = 1, fmt: str = "cbz", title: str = "Test Book", author: str = "Author"
) -> Book:
    try:
        book_format = BookFormat(fmt)
    except ValueError:
        book_format = fmt
    return Book(id=book_id, title=title, format=book_format, author=author, file_size=1024)


def scribble_deflated(data: bytes, suffix: str) -> bytes:
    """Overwrite the compressed bytes of the first deflated entry ending in suffix.

    The central directory stays intact, so the archive still opens and the
    damage only surfaces when the entry is inflated.
    """
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        info = next(
            i
            for i in zf.infolist()
            if i.filename.endswith(suffix) and i.compress_type == zipfile.ZIP_DEFLATED
        )
    off = info.header_offset
    name_len, extra_len = struct.unpack("<HH", data[off + 26 : off + 30])
    start = off + 30 + name_len + extra_len
    end = start + info.compress_size
    return data[:start] + b"\xff" * (end - start) + data[end:]


@pytest.fixture
def cbz_factory() -> Callable[[int], bytes]:
    def build(pages: int) -> bytes:
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            # Written out of order; pages are sorted by name on open.
            for i in reversed(range(pages)):
                zf.writestr(f"page{i + 1:03d}.png", PNG_STUB + bytes([i]))
            zf.writestr("ComicInfo.xml", "<ComicInfo/>")
            zf.writestr("__MACOSX/._page001.png", b"junk")
        return buf.getvalue()

    return build


@pytest.fixture
def pdf_factory() -> Callable[[int], bytes]:
    def build(pages: int) -> bytes:
        import pymupdf

        doc = pymupdf.open()
        for i in range(pages):
            page = doc.new_page()
            page.insert_text((72, 72), f"Page text {i + 1}", fontsize=12)
        data = doc.tobytes()
        doc.close()
        return data

    return build


@pytest.fixture
def epub_factory(tmp_path: Path) -> Callable[[list[list[str]]], bytes]:
    def build(chapters: list[list[str]]) -> bytes:
        from ebooklib import epub

        book = epub.EpubBook()
        book.set_identifier("test123")
        book.set_title("Test Book")
        book.set_language("en")
        book.add_author("Test Author")

        items = []
        for n, paragraphs in enumerate(chapters, start=1):
            ch = epub.EpubHtml(title=f"Chapter {n}", file_name=f"ch{n}.xhtml", lang="en")
            body = "".join(f"<p>{p}</p>" for p in paragraphs)
            ch.content = f"<html><body>{body}</body></html>"
            book.add_item(ch)
            items.append(ch)

        book.toc = [
            epub.Link(f"ch{n}.xhtml", f"Chapter {n}", f"ch{n}")
            for n in range(1, len(items) + 1)
        ]
        book.add_item(epub.EpubNcx())
        book.add_item(epub.EpubNav())
        book.spine = items

        f = tmp_path / "test.epub"
        epub.write_epub(str(f), book)
        return f.read_bytes()

    return build

"""EPUB adapter using ebooklib.

Spine documents are reduced to paragraphs and grouped into fixed-size
locations, independent of any screen pagination. Each location is named by
a CFI-style token and maps to a fraction of the book by its index.
"""

from __future__ import annotations

import logging
import re
import tempfile
import warnings
import zipfile
import zlib
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import ebooklib
from bs4 import BeautifulSoup, XMLParsedAsHTMLWarning
from ebooklib import epub

from readshelf.errors import CorruptContainer, EmptyContent
from readshelf.library.models import (
    BookFormat,
    Direction,
    FormatFamily,
    PositionDescriptor,
    ReadingProgress,
)

from .base import AdapterSettings, FormatAdapter, PageView

warnings.filterwarnings("ignore", category=XMLParsedAsHTMLWarning)

log = logging.getLogger(__name__)

_SPINE_STEP_RE = re.compile(r"^epubcfi\(/6/(\d+)!")


def make_cfi(spine_index: int, paragraph_index: int) -> str:
    return f"epubcfi(/6/{2 * (spine_index + 1)}!/4/{2 * (paragraph_index + 1)})"


def spine_index_of(token: str) -> Optional[int]:
    match = _SPINE_STEP_RE.match(token)
    if not match:
        return None
    return int(match.group(1)) // 2 - 1


@dataclass(frozen=True)
class Location:
    token: str
    spine_index: int
    text: str


class EpubAdapter(FormatAdapter):
    FAMILY = FormatFamily.FLOWABLE
    FORMATS = (BookFormat.EPUB,)

    _BLOCK_TAGS = frozenset(
        ["p", "div", "h1", "h2", "h3", "h4", "h5", "h6", "li", "blockquote", "pre"]
    )

    def __init__(
        self, book_format: BookFormat, settings: Optional[AdapterSettings] = None
    ) -> None:
        super().__init__(book_format, settings)
        self._locations: list[Location] = []
        self._index = 0

    @property
    def location_count(self) -> int:
        return len(self._locations)

    def _decode(self, data: bytes) -> list[Location]:
        # ebooklib reads from a path, so stage the bytes in a temp dir
        with tempfile.TemporaryDirectory() as tmp:
            epub_path = Path(tmp) / "book.epub"
            epub_path.write_bytes(data)
            # Entries may inflate lazily, so content extraction stays guarded.
            try:
                book = epub.read_epub(str(epub_path), options={"ignore_ncx": False})
                spine_texts = [
                    self._html_to_paragraphs(
                        item.get_content().decode("utf-8", errors="replace")
                    )
                    for item in self._ordered_items(book)
                ]
            except (
                epub.EpubException,
                zipfile.BadZipFile,
                zlib.error,
                KeyError,
                ValueError,
                SyntaxError,
                OSError,
                EOFError,
            ) as e:
                raise CorruptContainer(f"Cannot read EPUB: {e}") from e

        locations = self._build_locations(spine_texts)
        if not locations:
            raise EmptyContent("EPUB has no readable text")
        return locations

    @staticmethod
    def _ordered_items(book: epub.EpubBook) -> list[epub.EpubItem]:
        documents = list(book.get_items_of_type(ebooklib.ITEM_DOCUMENT))
        id_to_item = {item.get_id(): item for item in documents}
        ordered = [id_to_item[sid] for sid, _ in book.spine if sid in id_to_item]
        # Fall back to all document items if spine is empty
        return ordered or documents

    def _html_to_paragraphs(self, html: str) -> list[str]:
        soup = BeautifulSoup(html, "lxml")

        for tag in soup.find_all(["head", "script", "style", "sup"]):
            tag.decompose()

        paragraphs: list[str] = []
        block_tags = soup.find_all(list(self._BLOCK_TAGS))

        if block_tags:
            for tag in block_tags:
                if tag.find(list(self._BLOCK_TAGS)):
                    continue
                text = re.sub(r"\s+", " ", tag.get_text(separator=" ", strip=True))
                if text.strip():
                    paragraphs.append(text.strip())
        else:
            text = soup.get_text(separator="\n")
            for para in re.split(r"\n\s*\n", text):
                cleaned = re.sub(r"\s+", " ", para).strip()
                if cleaned:
                    paragraphs.append(cleaned)

        return paragraphs

    def _build_locations(self, spine_texts: list[list[str]]) -> list[Location]:
        limit = self.settings.chars_per_location
        locations: list[Location] = []

        for spine_idx, paragraphs in enumerate(spine_texts):
            chunk: list[str] = []
            chunk_start = 0
            size = 0
            for para_idx, para in enumerate(paragraphs):
                if chunk and size + len(para) > limit:
                    locations.append(
                        Location(
                            make_cfi(spine_idx, chunk_start),
                            spine_idx,
                            "\n\n".join(chunk),
                        )
                    )
                    chunk, size = [], 0
                if not chunk:
                    chunk_start = para_idx
                chunk.append(para)
                size += len(para)
            if chunk:
                locations.append(
                    Location(
                        make_cfi(spine_idx, chunk_start), spine_idx, "\n\n".join(chunk)
                    )
                )

        return locations

    def _load(self, decoded: list[Location], prior: Optional[ReadingProgress]) -> None:
        self._locations = decoded
        log.debug("Built %d EPUB locations", len(decoded))
        if prior is not None and prior.current_location:
            self._index = self._find(prior.current_location)

    def _find(self, token: str) -> int:
        for i, loc in enumerate(self._locations):
            if loc.token == token:
                return i
        spine_idx = spine_index_of(token)
        if spine_idx is not None:
            for i, loc in enumerate(self._locations):
                if loc.spine_index == spine_idx:
                    return i
        return 0

    def fraction_at(self, index: int) -> float:
        if len(self._locations) <= 1:
            return 1.0
        return index / (len(self._locations) - 1)

    def _step(self, direction: Direction) -> bool:
        new_index = self._index + direction.value
        if not 0 <= new_index < len(self._locations):
            return False
        self._index = new_index
        return True

    def _render(self) -> None:
        loc = self._locations[self._index]
        self._show(
            PageView(
                caption=f"{self.fraction_at(self._index):.0%}",
                text=loc.text,
            )
        )

    def current_position(self) -> PositionDescriptor:
        loc = self._locations[self._index]
        return PositionDescriptor.located(loc.token, self.fraction_at(self._index))

    def _release(self) -> None:
        self._locations = []

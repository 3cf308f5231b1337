"""Library operations that span the server, the local store and the reader."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from readshelf.errors import SyncError
from readshelf.library.database import Database
from readshelf.library.models import Book, BookFormat, OfflineBook, ReadingProgress

if TYPE_CHECKING:
    from readshelf.api.client import LibraryClient
    from readshelf.reader.host import SessionHost
    from readshelf.sync.coordinator import SyncCoordinator

log = logging.getLogger(__name__)


class Library:
    def __init__(
        self, db: Database, client: LibraryClient, sync: SyncCoordinator
    ) -> None:
        self._db = db
        self._client = client
        self._sync = sync
        self._online = True

    @property
    def online(self) -> bool:
        return self._online

    async def list_books(self) -> list[Book]:
        """Books from the server, or the local catalog when it is unreachable."""
        try:
            books = await self._client.list_books()
        except SyncError as e:
            log.warning("Book list unavailable, using local catalog: %s", e)
            await self.set_online(False)
            return self._db.list_books()
        for book in books:
            self._db.add_book(book)
        await self.set_online(True)
        return books

    def is_offline(self, book_id: int) -> bool:
        return self._db.get_offline_book(book_id) is not None

    def local_progress(self, book_id: int) -> Optional[ReadingProgress]:
        return self._sync.local_progress(book_id)

    async def download_for_offline(self, book: Book) -> OfflineBook:
        data = await self._client.download_file(book.id)
        offline = OfflineBook(book_id=book.id, data=data, metadata=book)
        self._db.save_offline_book(offline)
        log.info("Saved %s for offline reading (%d bytes)", book.title, len(data))
        return offline

    def remove_offline(self, book_id: int) -> None:
        self._db.remove_offline_book(book_id)

    async def upload(self, file_path: Path) -> Book:
        # Rejects unsupported files before sending; the server's tag is kept.
        BookFormat.from_filename(file_path.name)
        book = await self._client.upload_book(file_path)
        self._db.add_book(book)
        return book

    async def load(self, book_id: int) -> tuple[Book, bytes]:
        """Book metadata and container bytes, preferring the offline copy."""
        offline = self._db.get_offline_book(book_id)
        if offline is not None:
            return offline.metadata, offline.data

        book = self._db.get_book(book_id)
        if book is None:
            books = await self.list_books()
            book = next((b for b in books if b.id == book_id), None)
            if book is None:
                raise LookupError(f"Book {book_id} not found")
        data = await self._client.download_file(book_id)
        return book, data

    async def open_reader(self, book_id: int, host: SessionHost) -> bool:
        book, data = await self.load(book_id)
        self._db.add_book(book)
        prior = await self._sync.resolve_prior(book_id)
        return await host.open_book(book, data, prior)

    def record_progress(self, progress: ReadingProgress) -> None:
        self._sync.record(progress.book_id, progress)

    async def set_online(self, online: bool) -> int:
        """Track connectivity; coming back online flushes the sync queue."""
        was_online, self._online = self._online, online
        if online and not was_online:
            log.info("Back online, flushing queued progress")
            return await self._sync.flush()
        return 0

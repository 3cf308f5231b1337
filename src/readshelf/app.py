"""Readshelf - terminal client for a self-hosted e-book library."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from textual.app import App

from readshelf.api.client import LibraryClient
from readshelf.config import AppConfig, load_config
from readshelf.library.database import Database
from readshelf.library.service import Library
from readshelf.reader.host import SessionHost
from readshelf.sync.coordinator import SyncCoordinator
from readshelf.ui.screens.library_screen import LibraryScreen
from readshelf.ui.screens.reader_screen import ReaderScreen
from readshelf.ui.themes import APP_CSS

log = logging.getLogger(__name__)


class ReadshelfApp(App):
    """Library browser and reader with offline progress sync."""

    TITLE = "Readshelf"
    CSS = APP_CSS

    def __init__(
        self, config: AppConfig | None = None, open_book_id: Optional[int] = None
    ) -> None:
        super().__init__()
        self.config = config or load_config()
        self.db = Database(self.config.db_path)
        self.client = LibraryClient(self.config)
        self.sync = SyncCoordinator(self.db, self.client)
        self.library = Library(self.db, self.client, self.sync)
        self._open_book_id = open_book_id

    def on_mount(self) -> None:
        # The host renders onto the reader screen.
        self.reader = ReaderScreen()
        self.host = SessionHost(
            self.reader,
            keys=self.reader.key_listeners,
            settings=self.config.adapter_settings(),
        )
        self.host.progress.subscribe(self.library.record_progress)
        self.install_screen(self.reader, name="reader")
        self.set_interval(self.config.sync_interval, self._flush_sync)
        self.push_screen(LibraryScreen())
        if self._open_book_id is not None:
            self.open_book(self._open_book_id)

    def open_book(self, book_id: int) -> None:
        """Open a book in the reader. Called from LibraryScreen."""
        self.reader.request_open(book_id)
        self.push_screen("reader")

    async def _flush_sync(self) -> None:
        confirmed = await self.sync.flush()
        if confirmed:
            log.info("Synced progress for %d book(s)", confirmed)

    async def action_quit(self) -> None:
        self.host.close()
        await self.sync.flush()
        await self.client.close()
        self.db.close()
        self.exit()


def _setup_logging(config: AppConfig) -> None:
    handler = logging.FileHandler(config.log_path, encoding="utf-8")
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
    )
    root = logging.getLogger("readshelf")
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def main() -> None:
    config = load_config()
    _setup_logging(config)

    open_book_id: Optional[int] = None
    if len(sys.argv) > 1:
        try:
            open_book_id = int(sys.argv[1])
        except ValueError:
            sys.exit(f"Expected a book id, got {sys.argv[1]!r}")

    app = ReadshelfApp(config=config, open_book_id=open_book_id)
    app.run()


if __name__ == "__main__":
    main()

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

from textual import on, work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import Button, DataTable, DirectoryTree, Footer, Header, Label, Static

from readshelf.errors import SyncError
from readshelf.library.models import Book, BookFormat

if TYPE_CHECKING:
    from readshelf.app import ReadshelfApp

log = logging.getLogger(__name__)

BOOK_EXTENSIONS = {f".{fmt.value}" for fmt in BookFormat}


class BookDirectoryTree(DirectoryTree):
    def filter_paths(self, paths: Iterable[Path]) -> Iterable[Path]:
        return sorted(
            [p for p in paths if p.is_dir() or p.suffix.lower() in BOOK_EXTENSIONS],
            key=lambda p: (not p.is_dir(), p.name.lower()),
        )


class FilePickerScreen(ModalScreen[str | None]):
    BINDINGS = [
        Binding("escape", "cancel", "Cancel"),
    ]

    DEFAULT_CSS = """
    FilePickerScreen {
        align: center middle;
    }
    #file-picker-dialog {
        width: 80%;
        height: 80%;
        background: $surface;
        border: solid $primary;
        padding: 1 2;
    }
    #file-picker-title {
        text-align: center;
        text-style: bold;
        margin-bottom: 1;
    }
    #file-tree {
        height: 1fr;
        margin-bottom: 1;
    }
    #file-picker-buttons {
        align: center middle;
        height: 3;
    }
    """

    def __init__(self, start_path: str = "~") -> None:
        super().__init__()
        self._start = str(Path(start_path).expanduser().resolve())

    def compose(self) -> ComposeResult:
        with Vertical(id="file-picker-dialog"):
            yield Label("Select a book to upload", id="file-picker-title")
            yield BookDirectoryTree(self._start, id="file-tree")
            with Horizontal(id="file-picker-buttons"):
                yield Button("Cancel [Esc]", variant="default", id="fp-cancel")

    def on_mount(self) -> None:
        self.query_one("#file-tree", BookDirectoryTree).focus()

    @on(DirectoryTree.FileSelected)
    def on_file_selected(self, event: DirectoryTree.FileSelected) -> None:
        self.dismiss(str(event.path))

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "fp-cancel":
            self.dismiss(None)

    def action_cancel(self) -> None:
        self.dismiss(None)


class LibraryScreen(Screen):
    BINDINGS = [
        Binding("u", "upload_book", "Upload"),
        Binding("o", "toggle_offline", "Offline"),
        Binding("r", "refresh", "Refresh"),
        Binding("q", "quit_app", "Quit"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._books: dict[int, Book] = {}

    @property
    def rs(self) -> ReadshelfApp:
        return self.app  # type: ignore[return-value]

    def compose(self) -> ComposeResult:
        yield Header()
        yield Static("", id="library-header")
        yield DataTable(id="book-table")
        yield Footer()

    def on_mount(self) -> None:
        table = self.query_one("#book-table", DataTable)
        table.cursor_type = "row"
        table.add_columns("Title", "Author", "Format", "Progress", "Offline")
        table.focus()

    def on_screen_resume(self) -> None:
        self._refresh_books()
        self.query_one("#book-table", DataTable).focus()

    @work(exclusive=True)
    async def _refresh_books(self) -> None:
        books = await self.rs.library.list_books()
        self._books = {b.id: b for b in books}

        table = self.query_one("#book-table", DataTable)
        table.clear()
        for book in books:
            progress = self.rs.library.local_progress(book.id)
            pct = f"{progress.progress_percent}%" if progress else "0%"
            table.add_row(
                book.title,
                book.author,
                book.format_tag.upper(),
                pct,
                "yes" if self.rs.library.is_offline(book.id) else "",
                key=str(book.id),
            )

        status = "" if self.rs.library.online else "  [offline]"
        self.query_one("#library-header", Static).update(
            f" Readshelf Library  ({len(books)} books){status}"
        )

    def _selected_book(self) -> Book | None:
        table = self.query_one("#book-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return self._books.get(int(str(row_key.value)))

    # ── Upload ──────────────────────────────────

    def action_upload_book(self) -> None:
        self.app.push_screen(FilePickerScreen("~"), callback=self._on_file_picked)

    def _on_file_picked(self, result: str | None) -> None:
        if result:
            self._do_upload(result)

    @work()
    async def _do_upload(self, path_str: str) -> None:
        file_path = Path(path_str).expanduser().resolve()
        try:
            book = await self.rs.library.upload(file_path)
        except (ValueError, SyncError, OSError) as e:
            log.error("Upload of %s failed: %s", file_path, e)
            self.notify(f"Upload failed: {e}", severity="error")
            return
        self.notify(f"Uploaded: {book.title}")
        self._refresh_books()

    # ── Offline copies ──────────────────────────

    def action_toggle_offline(self) -> None:
        book = self._selected_book()
        if book is None:
            return
        if self.rs.library.is_offline(book.id):
            self.rs.library.remove_offline(book.id)
            self.notify(f"Removed offline copy: {book.title}")
            self._refresh_books()
        else:
            self._do_download(book)

    @work()
    async def _do_download(self, book: Book) -> None:
        try:
            await self.rs.library.download_for_offline(book)
        except SyncError as e:
            log.error("Download of book %s failed: %s", book.id, e)
            self.notify(f"Download failed: {e}", severity="error")
            return
        self.notify(f"Available offline: {book.title}")
        self._refresh_books()

    # ── Open / Refresh / Quit ───────────────────

    @on(DataTable.RowSelected, "#book-table")
    def on_row_selected(self, event: DataTable.RowSelected) -> None:
        book = self._books.get(int(str(event.row_key.value)))
        if book:
            self.rs.open_book(book.id)

    def action_refresh(self) -> None:
        self._refresh_books()

    async def action_quit_app(self) -> None:
        await self.rs.action_quit()

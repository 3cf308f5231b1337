from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Vertical
from textual.events import Key
from textual.screen import Screen
from textual.widgets import Footer, Static

from readshelf.adapters.base import PageView
from readshelf.errors import OpenError, SyncError
from readshelf.library.models import ReadingProgress
from readshelf.reader.host import KeyDispatcher

if TYPE_CHECKING:
    from readshelf.app import ReadshelfApp

log = logging.getLogger(__name__)


def describe_view(view: PageView) -> str:
    """Terminal rendering of a page: text as-is, images as a placeholder."""
    parts: list[str] = []
    if view.image is not None and not view.image.revoked:
        kib = len(view.image) / 1024
        parts.append(f"[{view.image.mime_type} page image, {kib:.1f} KiB]")
    if view.text:
        parts.append(view.text)
    return "\n\n".join(parts) or "(blank page)"


class ReaderScreen(Screen):
    """Render surface for the active reading session.

    Installed once by the app and reused for every book; key presses are
    forwarded to whichever session listener is currently installed.
    """

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
        Binding("left", "noop", "←"),
        Binding("right", "noop", "→"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self.key_listeners = KeyDispatcher()
        self._pending: Optional[int] = None
        self._percent: Optional[int] = None

    @property
    def rs(self) -> ReadshelfApp:
        return self.app  # type: ignore[return-value]

    def compose(self) -> ComposeResult:
        yield Static("", id="reader-header")
        with Vertical(id="reader-body"):
            yield Static("", id="content-text")
            yield Static("", id="page-caption")
        yield Footer()

    def on_mount(self) -> None:
        self.rs.host.progress.subscribe(self._on_progress)

    def request_open(self, book_id: int) -> None:
        self._pending = book_id

    def on_screen_resume(self) -> None:
        if self._pending is not None:
            book_id, self._pending = self._pending, None
            self._open_book(book_id)

    @work(exclusive=True)
    async def _open_book(self, book_id: int) -> None:
        self._percent = None
        content = self.query_one("#content-text", Static)
        content.set_classes("loading-text")
        content.update("Loading...")
        try:
            opened = await self.rs.library.open_reader(book_id, self.rs.host)
        except OpenError as e:
            log.error("Could not open book %s: %s", book_id, e)
            self._show_error("Could not open this book")
            return
        except (SyncError, LookupError) as e:
            log.error("Could not load book %s: %s", book_id, e)
            self._show_error("Could not load this book (offline?)")
            return
        if opened:
            self._update_header()

    def _show_error(self, message: str) -> None:
        content = self.query_one("#content-text", Static)
        content.set_classes("error-text")
        content.update(message)

    # ── RenderSurface ──────────────────────────────

    def show(self, view: PageView) -> None:
        content = self.query_one("#content-text", Static)
        content.set_classes("")
        content.update(describe_view(view))
        self.query_one("#page-caption", Static).update(view.caption)

    def clear(self) -> None:
        self.query_one("#content-text", Static).update("")
        self.query_one("#page-caption", Static).update("")

    # ── Progress & keys ────────────────────────────

    def _on_progress(self, progress: ReadingProgress) -> None:
        self._percent = progress.progress_percent
        self._update_header()

    def _update_header(self) -> None:
        book = self.rs.host.book
        title = book.title if book else ""
        parts = [f" {title}"]
        if self._percent is not None:
            parts.append(f"{self._percent}%")
        if not self.rs.library.online:
            parts.append("OFFLINE")
        self.query_one("#reader-header", Static).update("  │  ".join(parts))

    def on_key(self, event: Key) -> None:
        # Escape is never claimed by a session; the go_back binding handles it.
        if self.key_listeners.dispatch(event.key):
            event.stop()
            event.prevent_default()

    def action_noop(self) -> None:
        pass

    def action_go_back(self) -> None:
        # Also abandons an open that is still in flight.
        self.rs.host.close()
        self.app.pop_screen()

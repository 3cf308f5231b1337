"""Owns the active reading session and routes UI commands to it."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from readshelf.adapters.base import AdapterSettings, RenderSurface
from readshelf.errors import OpenCancelled, OpenError
from readshelf.library.models import Book, Direction, ReadingProgress

from .progress import ProgressReporter
from .session import ReadingSession, SessionState

log = logging.getLogger(__name__)

KeyListener = Callable[[str], bool]


class KeyDispatcher:
    """Key listeners installed by whoever currently wants keyboard input.

    The UI forwards every key press to ``dispatch``; a listener returns
    True when it handled the key.
    """

    def __init__(self) -> None:
        self._listeners: list[KeyListener] = []

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def add(self, listener: KeyListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove(self, listener: KeyListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def dispatch(self, key: str) -> bool:
        for listener in list(self._listeners):
            if listener(key):
                return True
        return False


class SessionHost:
    KEYMAP = {
        "left": "previous",
        "right": "next",
        "space": "next",
    }

    def __init__(
        self,
        surface: RenderSurface,
        reporter: Optional[ProgressReporter] = None,
        keys: Optional[KeyDispatcher] = None,
        settings: Optional[AdapterSettings] = None,
    ) -> None:
        self._surface = surface
        self.progress = reporter or ProgressReporter()
        self.keys = keys or KeyDispatcher()
        self._settings = settings
        self._session: Optional[ReadingSession] = None

    @property
    def session(self) -> Optional[ReadingSession]:
        return self._session

    @property
    def book(self) -> Optional[Book]:
        return self._session.book if self._session else None

    @property
    def is_open(self) -> bool:
        return self._session is not None and self._session.state is SessionState.OPEN

    async def open_book(
        self, book: Book, data: bytes, prior: Optional[ReadingProgress] = None
    ) -> bool:
        """Replace the active session with one for ``book``.

        Returns False when this attempt was superseded by a later
        ``open_book`` or ``close`` before it finished; its result is dropped.
        """
        self.close()
        session = ReadingSession(self.progress, self._settings)
        self._session = session
        try:
            await session.open(book, data, self._surface, prior)
        except OpenCancelled:
            log.debug("Discarded superseded open of book %s", book.id)
            return False
        except OpenError:
            if self._session is not session:
                log.debug("Discarded failed open of superseded book %s", book.id)
                return False
            self._session = None
            raise

        if self._session is not session:
            session.close()
            return False
        self.keys.add(self._on_key)
        return True

    def previous(self) -> None:
        if self._session is not None:
            self._session.navigate(Direction.BACKWARD)

    def next(self) -> None:
        if self._session is not None:
            self._session.navigate(Direction.FORWARD)

    def close(self) -> None:
        self.keys.remove(self._on_key)
        session, self._session = self._session, None
        if session is not None:
            session.close()

    def _on_key(self, key: str) -> bool:
        command = self.KEYMAP.get(key)
        if command is None:
            return False
        getattr(self, command)()
        return True

"""Tests for the session host: open/close ordering and key routing."""

from __future__ import annotations

import asyncio

import pytest
from conftest import make_book

from readshelf.adapters.comic_adapter import ComicAdapter
from readshelf.errors import CorruptContainer
from readshelf.library.models import ReadingProgress
from readshelf.reader.host import KeyDispatcher, SessionHost


class TestKeyDispatcher:
    def test_first_handler_wins(self):
        keys = KeyDispatcher()
        calls: list[str] = []
        keys.add(lambda k: calls.append("a") or True)
        keys.add(lambda k: calls.append("b") or True)
        assert keys.dispatch("x") is True
        assert calls == ["a"]

    def test_add_is_idempotent(self):
        keys = KeyDispatcher()

        def listener(key: str) -> bool:
            return False

        keys.add(listener)
        keys.add(listener)
        assert keys.listener_count == 1
        keys.remove(listener)
        keys.remove(listener)
        assert keys.listener_count == 0


class TestSessionHost:
    @pytest.mark.asyncio
    async def test_open_installs_one_key_listener(self, cbz_factory, surface):
        host = SessionHost(surface)
        for book_id in (1, 2, 3):
            assert await host.open_book(make_book(book_id, "cbz"), cbz_factory(2)) is True
        assert host.keys.listener_count == 1
        assert host.book.id == 3
        host.close()
        assert host.keys.listener_count == 0
        assert not host.is_open

    @pytest.mark.asyncio
    async def test_keys_navigate(self, cbz_factory, surface):
        host = SessionHost(surface)
        seen: list[ReadingProgress] = []
        host.progress.subscribe(seen.append)
        await host.open_book(make_book(1, "cbz"), cbz_factory(3))

        assert host.keys.dispatch("right") is True
        assert host.keys.dispatch("space") is True
        assert host.keys.dispatch("left") is True
        assert host.keys.dispatch("q") is False
        assert [p.current_page for p in seen] == [1, 2, 3, 2]

    @pytest.mark.asyncio
    async def test_escape_is_left_to_the_screen(self, cbz_factory, surface):
        host = SessionHost(surface)
        await host.open_book(make_book(1, "cbz"), cbz_factory(3))
        adapter = host.session.adapter
        assert host.keys.dispatch("escape") is False
        assert host.is_open
        host.close()
        assert adapter.outstanding_handles == 0
        assert host.keys.dispatch("right") is False

    def test_commands_without_session_are_noops(self, surface):
        host = SessionHost(surface)
        host.next()
        host.previous()
        host.close()
        assert host.progress.latest is None
        assert surface.views == []

    @pytest.mark.asyncio
    async def test_previous_book_released_before_next_opens(self, cbz_factory, surface):
        host = SessionHost(surface)
        await host.open_book(make_book(1, "cbz"), cbz_factory(4))
        first = host.session.adapter
        await host.open_book(make_book(2, "cbz"), cbz_factory(2))
        assert first.closed
        assert first.outstanding_handles == 0
        assert host.session.adapter.outstanding_handles == 2

    @pytest.mark.asyncio
    async def test_superseded_open_is_discarded(self, cbz_factory, surface):
        host = SessionHost(surface)
        seen: list[ReadingProgress] = []
        host.progress.subscribe(seen.append)

        slow = asyncio.create_task(host.open_book(make_book(1, "cbz"), cbz_factory(5)))
        await asyncio.sleep(0)
        opened = await host.open_book(make_book(2, "cbz"), cbz_factory(2))

        assert opened is True
        assert await slow is False
        assert host.book.id == 2
        assert {p.book_id for p in seen} == {2}
        assert host.keys.listener_count == 1

    @pytest.mark.asyncio
    async def test_close_during_open(self, cbz_factory, surface):
        host = SessionHost(surface)
        pending = asyncio.create_task(host.open_book(make_book(1, "cbz"), cbz_factory(3)))
        await asyncio.sleep(0)
        host.close()
        assert await pending is False
        assert host.session is None
        assert host.keys.listener_count == 0

    @pytest.mark.asyncio
    async def test_failed_open_propagates(self, surface):
        host = SessionHost(surface)
        with pytest.raises(CorruptContainer):
            await host.open_book(make_book(1, "cbz"), b"broken")
        assert host.session is None
        assert host.keys.listener_count == 0

    @pytest.mark.asyncio
    async def test_valid_book_opens_after_failed_open(self, cbz_factory, surface):
        host = SessionHost(surface)
        with pytest.raises(CorruptContainer):
            await host.open_book(make_book(1, "cbz"), b"broken")

        assert await host.open_book(make_book(2, "cbz"), cbz_factory(3)) is True
        assert host.is_open
        assert host.book.id == 2
        assert host.keys.listener_count == 1
        assert surface.last.caption == "Page 1 of 3"
        assert host.keys.dispatch("right") is True
        assert surface.last.caption == "Page 2 of 3"

    @pytest.mark.asyncio
    async def test_close_runs_before_next_open_starts(
        self, cbz_factory, surface, monkeypatch
    ):
        calls: list[tuple[str, ComicAdapter]] = []
        real_open = ComicAdapter.open
        real_close = ComicAdapter.close

        async def spy_open(self, *args, **kwargs):
            calls.append(("open", self))
            return await real_open(self, *args, **kwargs)

        def spy_close(self):
            calls.append(("close", self))
            real_close(self)

        monkeypatch.setattr(ComicAdapter, "open", spy_open)
        monkeypatch.setattr(ComicAdapter, "close", spy_close)

        host = SessionHost(surface)
        await host.open_book(make_book(1, "cbz"), cbz_factory(4))
        first = host.session.adapter
        await host.open_book(make_book(2, "cbz"), cbz_factory(2))
        second = host.session.adapter

        assert first is not second
        assert calls == [("open", first), ("close", first), ("open", second)]

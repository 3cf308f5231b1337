"""Tests for the library server client."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import httpx
import pytest

from readshelf.api.client import LibraryClient
from readshelf.config import AppConfig
from readshelf.errors import ApiError, NetworkError, ServerRejected
from readshelf.library.models import BookFormat, ReadingProgress


def _ok(data) -> httpx.Response:
    return httpx.Response(200, json={"success": True, "data": data})


def _client(config: AppConfig, handler) -> LibraryClient:
    return LibraryClient(config, transport=httpx.MockTransport(handler))


class TestProgress:
    @pytest.mark.asyncio
    async def test_get_progress(self, config: AppConfig):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return _ok(
                {
                    "book_id": 4,
                    "progress": {
                        "progress_percent": 38,
                        "current_page": 45,
                        "total_pages": 120,
                        "updated_at": "2024-05-01T10:00:00Z",
                    },
                }
            )

        client = _client(config, handler)
        progress = await client.get_progress(4)
        await client.close()

        assert progress.book_id == 4
        assert progress.progress_percent == 38
        assert progress.current_page == 45
        assert progress.updated_at == datetime(2024, 5, 1, 10, tzinfo=timezone.utc)
        assert requests[0].url.path == "/api/books/4/progress"
        assert requests[0].headers["X-Session-Token"] == "tok-123"

    @pytest.mark.asyncio
    async def test_missing_progress(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(404, json={"success": False, "error": "not found"}))
        assert await client.get_progress(4) is None

    @pytest.mark.asyncio
    async def test_null_progress(self, config: AppConfig):
        client = _client(config, lambda r: _ok({"book_id": 4, "progress": None}))
        assert await client.get_progress(4) is None

    @pytest.mark.asyncio
    async def test_put_progress(self, config: AppConfig):
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _ok(
                {
                    "book_id": 4,
                    "progress": {**bodies[-1], "updated_at": "2024-05-01T10:00:05Z"},
                    "message": "Progress updated",
                }
            )

        client = _client(config, handler)
        sent = ReadingProgress(book_id=4, progress_percent=50, current_location="epubcfi(/6/2!/4/2)")
        server_ts = await client.put_progress(sent)

        assert bodies[0]["current_location"] == "epubcfi(/6/2!/4/2)"
        assert "total_pages" not in bodies[0]
        assert server_ts == datetime(2024, 5, 1, 10, 0, 5, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_put_progress_no_content(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(204))
        sent = ReadingProgress(book_id=4, progress_percent=50, current_page=1, total_pages=2)
        assert await client.put_progress(sent) == sent.updated_at

    @pytest.mark.asyncio
    async def test_put_progress_empty_ok(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(200))
        sent = ReadingProgress(book_id=4, progress_percent=50, current_page=1, total_pages=2)
        assert await client.put_progress(sent) == sent.updated_at

    @pytest.mark.asyncio
    async def test_put_progress_ok_without_envelope(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(200, json={"saved": True}))
        sent = ReadingProgress(book_id=4, progress_percent=50, current_page=1, total_pages=2)
        assert await client.put_progress(sent) == sent.updated_at

    @pytest.mark.asyncio
    async def test_put_progress_rejected(self, config: AppConfig):
        client = _client(
            config, lambda r: httpx.Response(409, json={"success": False, "error": "stale"})
        )
        sent = ReadingProgress(book_id=4, progress_percent=50, current_page=1, total_pages=2)
        with pytest.raises(ServerRejected):
            await client.put_progress(sent)

    @pytest.mark.asyncio
    async def test_out_of_range_percent_is_rejected(self, config: AppConfig):
        client = _client(
            config, lambda r: _ok({"book_id": 4, "progress": {"progress_percent": 140}})
        )
        with pytest.raises(ApiError):
            await client.get_progress(4)


class TestErrors:
    @pytest.mark.asyncio
    async def test_server_error(self, config: AppConfig):
        client = _client(
            config, lambda r: httpx.Response(500, json={"success": False, "error": "db down"})
        )
        with pytest.raises(ServerRejected) as exc:
            await client.list_books()
        assert exc.value.status_code == 500
        assert "db down" in str(exc.value)

    @pytest.mark.asyncio
    async def test_unsuccessful_envelope(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(200, json={"success": False, "error": "nope"}))
        with pytest.raises(ServerRejected, match="nope"):
            await client.list_books()

    @pytest.mark.asyncio
    async def test_malformed_body(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(200, text="<html>proxy</html>"))
        with pytest.raises(ApiError):
            await client.list_books()

    @pytest.mark.asyncio
    async def test_network_failure(self, config: AppConfig):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(config, handler)
        with pytest.raises(NetworkError):
            await client.get_progress(1)


class TestBooks:
    @pytest.mark.asyncio
    async def test_list_books(self, config: AppConfig):
        client = _client(
            config,
            lambda r: _ok(
                [
                    {
                        "id": 1,
                        "title": "Dune",
                        "author": "Frank Herbert",
                        "file_type": "epub",
                        "file_size": 2048,
                        "uploaded_at": "2024-01-01T00:00:00Z",
                        "thumbnail_path": None,
                        "progress": None,
                        "last_accessed_at": None,
                    },
                    {"id": 2, "title": "Scans", "file_type": "djvu"},
                ]
            ),
        )
        books = await client.list_books()
        assert [b.id for b in books] == [1, 2]
        assert books[0].format is BookFormat.EPUB
        assert books[0].upload_date == datetime(2024, 1, 1, tzinfo=timezone.utc)
        assert books[1].format_tag == "djvu"
        assert books[1].author == "Unknown"

    @pytest.mark.asyncio
    async def test_download_file(self, config: AppConfig):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/api/books/9/file"
            return httpx.Response(200, content=b"PK\x03\x04data")

        client = _client(config, handler)
        assert await client.download_file(9) == b"PK\x03\x04data"

    @pytest.mark.asyncio
    async def test_download_missing(self, config: AppConfig):
        client = _client(config, lambda r: httpx.Response(404, text="missing"))
        with pytest.raises(ServerRejected):
            await client.download_file(9)

    @pytest.mark.asyncio
    async def test_upload(self, config: AppConfig, tmp_path: Path):
        f = tmp_path / "comic.cbz"
        f.write_bytes(b"PK\x03\x04")

        def handler(request: httpx.Request) -> httpx.Response:
            assert request.method == "POST"
            assert b"comic.cbz" in request.content
            return _ok(
                {
                    "book_id": 12,
                    "title": "comic",
                    "author": None,
                    "file_type": "cbz",
                    "file_size": 4,
                }
            )

        client = _client(config, handler)
        book = await client.upload_book(f)
        assert book.id == 12
        assert book.format is BookFormat.CBZ

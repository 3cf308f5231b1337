"""Async HTTP client for the library server."""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from readshelf.config import AppConfig
from readshelf.errors import ApiError, NetworkError, ServerRejected
from readshelf.library.models import Book, ReadingProgress, parse_timestamp

from .schemas import BookPayload, Envelope, ProgressResponse, UploadResponse

log = logging.getLogger(__name__)

_BOOK_LIST = TypeAdapter(list[BookPayload])


class LibraryClient:
    def __init__(
        self,
        config: AppConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._config.session_token:
            headers["X-Session-Token"] = self._config.session_token
        return headers

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_base,
                timeout=self._config.request_timeout,
                headers=self._headers(),
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http().request(method, path, **kwargs)
        except httpx.RequestError as e:
            raise NetworkError(f"{type(e).__name__} ({method} {path}): {e}") from e

    @staticmethod
    def _reject(resp: httpx.Response) -> ServerRejected:
        message = ""
        try:
            message = Envelope.model_validate_json(resp.content).error or ""
        except ValidationError:
            message = resp.text[:200]
        return ServerRejected(resp.status_code, message)

    def _data(self, resp: httpx.Response, model: Any) -> Any:
        """Validate the envelope and its payload against ``model``."""
        if not resp.is_success:
            raise self._reject(resp)
        try:
            envelope = Envelope.model_validate_json(resp.content)
        except ValidationError as e:
            raise ApiError(f"Malformed response from {resp.request.url}: {e}") from e
        if not envelope.success:
            raise ServerRejected(resp.status_code, envelope.error or "")
        try:
            if isinstance(model, TypeAdapter):
                return model.validate_python(envelope.data)
            return model.model_validate(envelope.data)
        except ValidationError as e:
            raise ApiError(f"Unexpected payload from {resp.request.url}: {e}") from e

    # ── Progress ──────────────────────────────────────────

    async def get_progress(self, book_id: int) -> Optional[ReadingProgress]:
        resp = await self._request("GET", f"/books/{book_id}/progress")
        if resp.status_code == 404:
            return None
        body: ProgressResponse = self._data(resp, ProgressResponse)
        if body.progress is None:
            return None
        return body.progress.to_progress(book_id)

    async def put_progress(self, progress: ReadingProgress) -> datetime:
        """Send progress; returns the timestamp the server recorded.

        Any 2xx is an acknowledgment. The body is only consulted for an
        echoed ``updated_at``; without one the local timestamp stands.
        """
        payload = progress.to_dict()
        resp = await self._request(
            "PUT", f"/books/{progress.book_id}/progress", json=payload
        )
        if not resp.is_success:
            raise self._reject(resp)
        if not resp.content:
            return progress.updated_at
        try:
            body: ProgressResponse = self._data(resp, ProgressResponse)
        except ApiError as e:
            log.debug(
                "PUT progress for book %s acknowledged without echo: %s",
                progress.book_id,
                e,
            )
            return progress.updated_at
        if body.progress is not None and body.progress.updated_at:
            try:
                return parse_timestamp(body.progress.updated_at)
            except ValueError:
                log.debug(
                    "Unparseable updated_at %r from server", body.progress.updated_at
                )
        return progress.updated_at

    # ── Books ─────────────────────────────────────────────

    async def list_books(self) -> list[Book]:
        resp = await self._request("GET", "/books")
        payloads: list[BookPayload] = self._data(resp, _BOOK_LIST)
        return [p.to_book() for p in payloads]

    async def download_file(self, book_id: int) -> bytes:
        resp = await self._request("GET", f"/books/{book_id}/file")
        if not resp.is_success:
            raise self._reject(resp)
        return resp.content

    async def upload_book(self, file_path: Path) -> Book:
        with file_path.open("rb") as fh:
            resp = await self._request(
                "POST",
                "/books/upload",
                files={"file": (file_path.name, fh.read())},
            )
        body: UploadResponse = self._data(resp, UploadResponse)
        return body.to_book()

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

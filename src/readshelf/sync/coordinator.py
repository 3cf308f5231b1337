"""Reconciles locally recorded progress with the server, tolerating offline use."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from readshelf.api.client import LibraryClient
from readshelf.errors import SyncError
from readshelf.library.database import Database
from readshelf.library.models import ReadingProgress, SyncRecord, utcnow

log = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(self, db: Database, client: LibraryClient) -> None:
        self._db = db
        self._client = client
        self._flushing = False

    def record(self, book_id: int, progress: ReadingProgress) -> SyncRecord:
        """Queue ``progress`` for ``book_id``, replacing any pending record."""
        stamped = replace(progress, book_id=book_id, updated_at=utcnow())
        record = SyncRecord(book_id=book_id, progress=stamped, needs_sync=True)
        self._db.upsert_sync_record(record)
        return record

    def pending(self) -> list[SyncRecord]:
        return self._db.list_pending_sync()

    def local_progress(self, book_id: int) -> Optional[ReadingProgress]:
        record = self._db.get_sync_record(book_id)
        return record.progress if record else None

    async def flush(self) -> int:
        """Send every pending record. Returns how many the server confirmed.

        Failures leave records queued and are only logged; a call made while
        another flush is running returns 0 at once.
        """
        if self._flushing:
            return 0
        self._flushing = True
        confirmed = 0
        try:
            for record in self._db.list_pending_sync():
                try:
                    server_ts = await self._client.put_progress(record.progress)
                except SyncError as e:
                    log.warning(
                        "Progress sync for book %s failed, keeping it queued: %s",
                        record.book_id,
                        e,
                    )
                    continue
                if self._db.mark_synced(record, server_ts):
                    confirmed += 1
                    log.debug("Synced progress for book %s", record.book_id)
                else:
                    log.debug(
                        "Progress for book %s changed during sync, left queued",
                        record.book_id,
                    )
        finally:
            self._flushing = False
        return confirmed

    async def resolve_prior(self, book_id: int) -> Optional[ReadingProgress]:
        """Pick the progress to resume from: the newer of local and server."""
        local = self.local_progress(book_id)
        try:
            remote = await self._client.get_progress(book_id)
        except SyncError as e:
            log.warning("Could not fetch progress for book %s: %s", book_id, e)
            return local
        if remote is None:
            return local
        if local is None or remote.updated_at > local.updated_at:
            return remote
        return local

"""SQLite store for the book catalog cache, offline copies and the sync queue."""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from .models import Book, OfflineBook, ReadingProgress, SyncRecord, parse_timestamp

_SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    id INTEGER PRIMARY KEY,
    title TEXT NOT NULL,
    author TEXT DEFAULT 'Unknown',
    format TEXT NOT NULL,
    file_size INTEGER DEFAULT 0,
    file_path TEXT DEFAULT '',
    upload_date TEXT,
    last_read TEXT
);

CREATE TABLE IF NOT EXISTS offline_books (
    book_id INTEGER PRIMARY KEY REFERENCES books(id) ON DELETE CASCADE,
    data BLOB NOT NULL,
    metadata TEXT NOT NULL,
    downloaded_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS sync_queue (
    book_id INTEGER PRIMARY KEY REFERENCES books(id) ON DELETE CASCADE,
    progress TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    needs_sync INTEGER NOT NULL DEFAULT 1,
    synced_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_sync_queue_needs_sync ON sync_queue(needs_sync);
"""


class Database:
    def __init__(self, db_path: Path) -> None:
        self._db_path = db_path
        self._conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.execute("PRAGMA foreign_keys=ON")
        self._init_schema()

    def _init_schema(self) -> None:
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    # ── Books ──────────────────────────────────────────────

    def add_book(self, book: Book) -> None:
        # Upsert without REPLACE so dependent rows are not cascaded away.
        self._conn.execute(
            """INSERT INTO books
               (id, title, author, format, file_size, file_path, upload_date, last_read)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   title = excluded.title,
                   author = excluded.author,
                   file_size = excluded.file_size,
                   file_path = excluded.file_path,
                   upload_date = excluded.upload_date,
                   last_read = excluded.last_read""",
            (
                book.id,
                book.title,
                book.author,
                book.format_tag,
                book.file_size,
                book.file_path,
                book.upload_date.isoformat() if book.upload_date else None,
                book.last_read.isoformat() if book.last_read else None,
            ),
        )
        self._conn.commit()

    def remove_book(self, book_id: int) -> None:
        self._conn.execute("DELETE FROM books WHERE id = ?", (book_id,))
        self._conn.commit()

    def get_book(self, book_id: int) -> Optional[Book]:
        row = self._conn.execute(
            "SELECT * FROM books WHERE id = ?", (book_id,)
        ).fetchone()
        return self._row_to_book(row) if row else None

    def list_books(self) -> list[Book]:
        rows = self._conn.execute(
            "SELECT * FROM books ORDER BY last_read DESC NULLS LAST, title ASC"
        ).fetchall()
        return [self._row_to_book(r) for r in rows]

    @staticmethod
    def _row_to_book(row: sqlite3.Row) -> Book:
        return Book.from_dict(dict(row))

    # ── Offline Books ──────────────────────────────────────

    def save_offline_book(self, offline: OfflineBook) -> None:
        self.add_book(offline.metadata)
        self._conn.execute(
            """INSERT OR REPLACE INTO offline_books
               (book_id, data, metadata, downloaded_at)
               VALUES (?, ?, ?, ?)""",
            (
                offline.book_id,
                offline.data,
                json.dumps(offline.metadata.to_dict()),
                offline.downloaded_at.isoformat(),
            ),
        )
        self._conn.commit()

    def get_offline_book(self, book_id: int) -> Optional[OfflineBook]:
        row = self._conn.execute(
            "SELECT * FROM offline_books WHERE book_id = ?", (book_id,)
        ).fetchone()
        return self._row_to_offline(row) if row else None

    def list_offline_books(self) -> list[OfflineBook]:
        rows = self._conn.execute(
            "SELECT * FROM offline_books ORDER BY downloaded_at DESC"
        ).fetchall()
        return [self._row_to_offline(r) for r in rows]

    def remove_offline_book(self, book_id: int) -> None:
        self._conn.execute("DELETE FROM offline_books WHERE book_id = ?", (book_id,))
        self._conn.commit()

    @staticmethod
    def _row_to_offline(row: sqlite3.Row) -> OfflineBook:
        return OfflineBook(
            book_id=row["book_id"],
            data=bytes(row["data"]),
            metadata=Book.from_dict(json.loads(row["metadata"])),
            downloaded_at=parse_timestamp(row["downloaded_at"]),
        )

    # ── Sync Queue ─────────────────────────────────────────

    def upsert_sync_record(self, record: SyncRecord) -> None:
        """Write the single queued record for a book, replacing any pending one."""
        self._conn.execute(
            """INSERT INTO sync_queue (book_id, progress, updated_at, needs_sync, synced_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(book_id) DO UPDATE SET
                   progress = excluded.progress,
                   updated_at = excluded.updated_at,
                   needs_sync = excluded.needs_sync,
                   synced_at = excluded.synced_at""",
            (
                record.book_id,
                json.dumps(record.progress.to_dict()),
                record.progress.updated_at.isoformat(),
                int(record.needs_sync),
                record.synced_at.isoformat() if record.synced_at else None,
            ),
        )
        self._conn.commit()

    def get_sync_record(self, book_id: int) -> Optional[SyncRecord]:
        row = self._conn.execute(
            "SELECT * FROM sync_queue WHERE book_id = ?", (book_id,)
        ).fetchone()
        return self._row_to_sync(row) if row else None

    def list_pending_sync(self) -> list[SyncRecord]:
        rows = self._conn.execute(
            "SELECT * FROM sync_queue WHERE needs_sync = 1 ORDER BY updated_at"
        ).fetchall()
        return [self._row_to_sync(r) for r in rows]

    def count_sync_records(self, book_id: int) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) AS n FROM sync_queue WHERE book_id = ?", (book_id,)
        ).fetchone()
        return row["n"]

    def mark_synced(self, record: SyncRecord, synced_at: datetime) -> bool:
        """Clear ``needs_sync`` if the queued record is still the one that was sent."""
        cur = self._conn.execute(
            """UPDATE sync_queue SET needs_sync = 0, synced_at = ?
               WHERE book_id = ? AND updated_at = ? AND progress = ?""",
            (
                synced_at.isoformat(),
                record.book_id,
                record.progress.updated_at.isoformat(),
                json.dumps(record.progress.to_dict()),
            ),
        )
        self._conn.commit()
        return cur.rowcount == 1

    @staticmethod
    def _row_to_sync(row: sqlite3.Row) -> SyncRecord:
        return SyncRecord(
            book_id=row["book_id"],
            progress=ReadingProgress.from_dict(json.loads(row["progress"])),
            needs_sync=bool(row["needs_sync"]),
            synced_at=parse_timestamp(row["synced_at"]) if row["synced_at"] else None,
        )

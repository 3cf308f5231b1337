"""Handles for decoded page resources owned by a single adapter."""

from __future__ import annotations

import itertools
from typing import Optional


class ResourceHandle:
    """Decoded bytes (a page image or a rendered pixmap) owned by a pool."""

    __slots__ = ("id", "mime_type", "_data")

    def __init__(self, handle_id: int, data: bytes, mime_type: str) -> None:
        self.id = handle_id
        self.mime_type = mime_type
        self._data: Optional[bytes] = data

    @property
    def revoked(self) -> bool:
        return self._data is None

    @property
    def data(self) -> Optional[bytes]:
        """The decoded bytes, or ``None`` once revoked."""
        return self._data

    def __len__(self) -> int:
        return len(self._data) if self._data is not None else 0

    def __repr__(self) -> str:
        state = "revoked" if self.revoked else f"{len(self)} bytes"
        return f"<ResourceHandle #{self.id} {self.mime_type} {state}>"


class HandlePool:
    def __init__(self) -> None:
        self._live: dict[int, ResourceHandle] = {}
        self._ids = itertools.count(1)

    @property
    def outstanding(self) -> int:
        return len(self._live)

    def allocate(self, data: bytes, mime_type: str) -> ResourceHandle:
        handle = ResourceHandle(next(self._ids), data, mime_type)
        self._live[handle.id] = handle
        return handle

    def revoke(self, handle: Optional[ResourceHandle]) -> None:
        # Revoking twice, or revoking None, is a no-op.
        if handle is None:
            return
        self._live.pop(handle.id, None)
        handle._data = None

    def revoke_all(self) -> None:
        for handle in list(self._live.values()):
            self.revoke(handle)

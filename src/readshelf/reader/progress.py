"""Single-slot channel carrying normalized progress from a session to subscribers."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from readshelf.library.models import ReadingProgress

log = logging.getLogger(__name__)

ProgressCallback = Callable[[ReadingProgress], None]


def round_half_up(numerator: int, denominator: int) -> int:
    """round(numerator / denominator * 100), halves rounded up, exact."""
    return (numerator * 200 + denominator) // (2 * denominator)


class Subscription:
    def __init__(self, reporter: ProgressReporter, callback: ProgressCallback) -> None:
        self._reporter = reporter
        self.callback = callback

    def cancel(self) -> None:
        self._reporter._unsubscribe(self)


class ProgressReporter:
    """Push channel with one slot.

    ``publish`` stores the value and delivers it synchronously to every
    subscriber. A value published while a delivery is running (from inside
    a subscriber) replaces whatever is still waiting in the slot, and only
    that latest value is delivered once the running delivery returns.
    Subscribers must not block.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscription] = []
        self._slot: Optional[ReadingProgress] = None
        self._latest: Optional[ReadingProgress] = None
        self._delivering = False

    @property
    def latest(self) -> Optional[ReadingProgress]:
        return self._latest

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: ProgressCallback) -> Subscription:
        sub = Subscription(self, callback)
        self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        if sub in self._subscribers:
            self._subscribers.remove(sub)

    def publish(self, progress: ReadingProgress) -> None:
        self._slot = progress
        if self._delivering:
            return
        self._delivering = True
        try:
            while self._slot is not None:
                value, self._slot = self._slot, None
                self._latest = value
                for sub in list(self._subscribers):
                    try:
                        sub.callback(value)
                    except Exception:
                        log.exception("Progress subscriber %r failed", sub.callback)
        finally:
            self._delivering = False

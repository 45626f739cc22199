"""Cooperative cancellation for long-running refreshes."""

import threading

from .exceptions import RefreshCancelledError


class CancellationToken:
    """
    Thread-safe flag checked between units of work.

    The engine never blocks on I/O, so cancellation only takes effect at
    iteration boundaries (e.g. between activities during curve building).
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, stage: str) -> None:
        if self._event.is_set():
            raise RefreshCancelledError(stage)

"""Background removal of expired temporary grants.

ExpirySweeper calls :meth:`GrantStore.sweep_expired` on a daemon thread at
a fixed interval.  The sweep only keeps the store small; correctness never
depends on it, because every read filters expired grants itself.

Example
-------
>>> from regionguard.grants.store import InMemoryGrantStore
>>> sweeper = ExpirySweeper(InMemoryGrantStore(), interval_seconds=30)
>>> sweeper.run_once()
0
"""
from __future__ import annotations

import logging
import threading
from datetime import datetime

from regionguard.errors import GrantStoreUnavailable
from regionguard.grants.store import GrantStore

logger = logging.getLogger(__name__)


class ExpirySweeper:
    """Periodically sweeps expired grants from a :class:`GrantStore`.

    Parameters
    ----------
    store:
        The store to sweep.
    interval_seconds:
        Delay between sweeps.  Must be positive.
    """

    def __init__(self, store: GrantStore, interval_seconds: float = 30.0) -> None:
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive; got {interval_seconds!r}.")
        self._store = store
        self._interval = interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._total_removed = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run_once(self, now: datetime | None = None) -> int:
        """Run a single sweep and return the number of grants removed."""
        try:
            removed = self._store.sweep_expired(now)
        except GrantStoreUnavailable as exc:
            logger.error("Expiry sweep failed: %s", exc)
            return 0
        self._total_removed += removed
        return removed

    def start(self) -> None:
        """Start sweeping on a daemon thread.  No-op if already running."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="regionguard-expiry-sweeper",
        )
        self._thread.start()
        logger.info("Expiry sweeper started (interval %.0fs)", self._interval)

    def stop(self, timeout: float = 5.0) -> None:
        """Signal the sweeper to stop and wait for the thread to exit."""
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None
            logger.info("Expiry sweeper stopped (%d grants removed)", self._total_removed)

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def total_removed(self) -> int:
        return self._total_removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _loop(self) -> None:
        while not self._stop_event.wait(self._interval):
            self.run_once()


__all__ = ["ExpirySweeper"]

"""Per-subject usage counting for quota conditions.

QuotaTracker records each allowed use of a permission and reports how many
uses fall in the current day and month (UTC).  Its :meth:`QuotaTracker.context`
output is meant to be merged into the ``context`` passed to the resolver so
that :class:`~regionguard.permissions.conditions.QuotaCondition` can see it.

Example
-------
>>> tracker = QuotaTracker()
>>> tracker.record("u-1", "data.export")
>>> tracker.context("u-1", "data.export")["daily_count"]
1
"""
from __future__ import annotations

import threading
from datetime import datetime, timezone


class QuotaTracker:
    """Thread-safe in-memory usage counter keyed by (subject, permission)."""

    def __init__(self) -> None:
        self._uses: dict[tuple[str, str], list[datetime]] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def record(self, subject_id: str, permission_id: str, timestamp: datetime | None = None) -> None:
        """Record one use.  Uses from previous months are discarded."""
        when = (timestamp or datetime.now(tz=timezone.utc)).astimezone(timezone.utc)
        month_start = when.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        key = (subject_id, permission_id)
        with self._lock:
            kept = [t for t in self._uses.get(key, []) if t >= month_start]
            kept.append(when)
            self._uses[key] = kept

    def reset(self, subject_id: str | None = None) -> None:
        with self._lock:
            if subject_id is None:
                self._uses.clear()
            else:
                self._uses = {k: v for k, v in self._uses.items() if k[0] != subject_id}

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def counts(self, subject_id: str, permission_id: str, now: datetime | None = None) -> tuple[int, int]:
        """Return ``(daily_count, monthly_count)`` as of *now*."""
        current = (now or datetime.now(tz=timezone.utc)).astimezone(timezone.utc)
        day_start = current.replace(hour=0, minute=0, second=0, microsecond=0)
        month_start = day_start.replace(day=1)
        with self._lock:
            uses = list(self._uses.get((subject_id, permission_id), ()))
        daily = sum(1 for t in uses if day_start <= t <= current)
        monthly = sum(1 for t in uses if month_start <= t <= current)
        return daily, monthly

    def context(self, subject_id: str, permission_id: str, now: datetime | None = None) -> dict[str, object]:
        daily, monthly = self.counts(subject_id, permission_id, now)
        return {"daily_count": daily, "monthly_count": monthly}


__all__ = ["QuotaTracker"]

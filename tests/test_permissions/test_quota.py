"""Tests for QuotaTracker usage counting."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

from regionguard.permissions.quota import QuotaTracker

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestQuotaTracker:
    def test_empty_counts(self) -> None:
        assert QuotaTracker().counts("u-1", "data.export", NOW) == (0, 0)

    def test_daily_and_monthly(self) -> None:
        tracker = QuotaTracker()
        tracker.record("u-1", "data.export", NOW - timedelta(days=2))
        tracker.record("u-1", "data.export", NOW - timedelta(hours=1))
        tracker.record("u-1", "data.export", NOW)
        assert tracker.counts("u-1", "data.export", NOW) == (2, 3)

    def test_previous_month_not_counted(self) -> None:
        tracker = QuotaTracker()
        tracker.record("u-1", "data.export", datetime(2026, 2, 28, 23, 0, tzinfo=timezone.utc))
        assert tracker.counts("u-1", "data.export", NOW) == (0, 0)

    def test_keys_are_separate(self) -> None:
        tracker = QuotaTracker()
        tracker.record("u-1", "data.export", NOW)
        assert tracker.counts("u-2", "data.export", NOW) == (0, 0)
        assert tracker.counts("u-1", "data.view.own", NOW) == (0, 0)

    def test_context(self) -> None:
        tracker = QuotaTracker()
        tracker.record("u-1", "data.export", NOW)
        assert tracker.context("u-1", "data.export", NOW) == {"daily_count": 1, "monthly_count": 1}

    def test_reset_subject(self) -> None:
        tracker = QuotaTracker()
        tracker.record("u-1", "data.export", NOW)
        tracker.record("u-2", "data.export", NOW)
        tracker.reset("u-1")
        assert tracker.counts("u-1", "data.export", NOW) == (0, 0)
        assert tracker.counts("u-2", "data.export", NOW) == (1, 1)

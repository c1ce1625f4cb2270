"""Tests for AccessGrant validation, EffectiveRegions and time_remaining."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from regionguard.grants.models import (
    ALL_REGIONS,
    AccessGrant,
    EffectiveRegions,
    GrantSource,
    time_remaining,
)
from regionguard.regions.names import SynonymTable

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# AccessGrant
# ---------------------------------------------------------------------------


class TestAccessGrantValidation:
    def test_permanent_has_no_expiry(self) -> None:
        grant = AccessGrant.permanent("u-1", "Maharashtra", granted_by="admin")
        assert grant.source == GrantSource.PERMANENT
        assert grant.expires_at is None
        assert grant.is_active(NOW) is True

    def test_temporary_requires_expiry(self) -> None:
        with pytest.raises(ValueError, match="expires_at"):
            AccessGrant(subject="u-1", region="Delhi", source=GrantSource.TEMPORARY)

    def test_temporary_requires_aware_expiry(self) -> None:
        with pytest.raises(ValueError, match="timezone-aware"):
            AccessGrant.temporary("u-1", "Delhi", datetime(2026, 1, 1, 12, 5))

    def test_permanent_rejects_expiry(self) -> None:
        with pytest.raises(ValueError):
            AccessGrant(subject="u-1", region="Delhi", source=GrantSource.PERMANENT, expires_at=NOW)

    def test_zone_derived_requires_zone(self) -> None:
        with pytest.raises(ValueError, match="zone"):
            AccessGrant(subject="u-1", region="Goa", source=GrantSource.ZONE_DERIVED)

    def test_zone_derived_reason(self) -> None:
        grant = AccessGrant.zone_derived("u-1", "Goa", "West")
        assert grant.reason == "Zone assignment: West"

    def test_admin_bypass_covers_all_regions(self) -> None:
        assert AccessGrant.admin_bypass("u-1").region == ALL_REGIONS
        with pytest.raises(ValueError):
            AccessGrant(subject="u-1", region="Goa", source=GrantSource.ADMIN_BYPASS)

    def test_empty_subject_rejected(self) -> None:
        with pytest.raises(ValueError):
            AccessGrant.permanent("", "Goa")

    def test_source_string_coerced(self) -> None:
        grant = AccessGrant(subject="u-1", region="Goa", source="permanent")  # type: ignore[arg-type]
        assert grant.source is GrantSource.PERMANENT


class TestAccessGrantExpiry:
    def test_active_before_expiry(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(minutes=5))
        assert grant.is_active(NOW) is True

    def test_expired_exactly_at_expiry(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW)
        assert grant.is_expired(NOW) is True

    def test_with_expiry_on_temporary(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(minutes=5))
        extended = grant.with_expiry(NOW + timedelta(hours=1))
        assert extended.grant_id == grant.grant_id
        assert extended.expires_at == NOW + timedelta(hours=1)

    def test_with_expiry_on_permanent_rejected(self) -> None:
        with pytest.raises(ValueError, match="temporary"):
            AccessGrant.permanent("u-1", "Goa").with_expiry(NOW)


class TestAccessGrantSerialization:
    def test_dict_preserves_fields(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(minutes=5), granted_by="admin", reason="audit")
        restored = AccessGrant.from_dict(grant.to_dict())
        assert restored == grant

    def test_zone_preserved(self) -> None:
        grant = AccessGrant.zone_derived("u-1", "Goa", "West")
        assert AccessGrant.from_dict(grant.to_dict()).zone == "West"


# ---------------------------------------------------------------------------
# EffectiveRegions
# ---------------------------------------------------------------------------


class TestEffectiveRegions:
    def test_empty_is_falsy(self) -> None:
        assert not EffectiveRegions(subject="u-1")

    def test_is_all_is_truthy(self) -> None:
        assert EffectiveRegions(subject="u-1", is_all=True)

    def test_matching_uses_synonyms(self) -> None:
        effective = EffectiveRegions(
            subject="u-1",
            sources={"NCT of Delhi": frozenset({GrantSource.TEMPORARY}), "Goa": frozenset({GrantSource.PERMANENT})},
        )
        matched = effective.matching("Delhi", SynonymTable())
        assert list(matched) == ["NCT of Delhi"]

    def test_regions_and_len(self) -> None:
        effective = EffectiveRegions(subject="u-1", sources={"Goa": frozenset({GrantSource.PERMANENT})})
        assert effective.regions == ["Goa"]
        assert len(effective) == 1


# ---------------------------------------------------------------------------
# time_remaining
# ---------------------------------------------------------------------------


class TestTimeRemaining:
    def test_permanent_returns_none(self) -> None:
        assert time_remaining(AccessGrant.permanent("u-1", "Goa"), NOW) is None

    def test_days_hide_seconds(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(days=1, hours=2, minutes=3, seconds=4))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.display == "1d 2h 3m"
        assert (remaining.days, remaining.hours, remaining.minutes, remaining.seconds) == (1, 2, 3, 4)

    def test_seconds_shown_under_a_day(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(hours=2, seconds=5))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.display == "2h 5s"

    def test_seconds_only(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(seconds=45))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.display == "45s"
        assert remaining.total_seconds == 45

    def test_whole_day_display(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(days=1))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.display == "1d"

    def test_one_second_left(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW + timedelta(seconds=1))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.expired is False
        assert remaining.display == "1s"

    def test_expired(self) -> None:
        grant = AccessGrant.temporary("u-1", "Delhi", NOW - timedelta(minutes=1))
        remaining = time_remaining(grant, NOW)
        assert remaining is not None
        assert remaining.expired is True
        assert remaining.display == "Expired"

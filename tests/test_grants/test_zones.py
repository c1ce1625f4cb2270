"""Tests for ZoneCatalog definitions and zone assignment."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from regionguard.errors import GrantStoreUnavailable
from regionguard.grants.models import GrantSource
from regionguard.grants.store import InMemoryGrantStore, Snapshot
from regionguard.grants.zones import DEFAULT_ZONES, ZoneCatalog

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class _CountingStore(InMemoryGrantStore):
    """Records the zone-derived region count of every persisted snapshot."""

    def __init__(self, fail_after: int | None = None) -> None:
        super().__init__()
        self.writes: list[int] = []
        self._fail_after = fail_after

    def _persist(self, snapshot: Snapshot) -> None:
        if self._fail_after is not None and len(self.writes) >= self._fail_after:
            raise GrantStoreUnavailable("backend offline")
        self.writes.append(
            sum(1 for grants in snapshot.values() for g in grants if g.source == GrantSource.ZONE_DERIVED)
        )


@pytest.fixture()
def catalog() -> ZoneCatalog:
    return ZoneCatalog()


class TestZoneCatalog:
    def test_default_zones(self, catalog: ZoneCatalog) -> None:
        assert catalog.names() == list(DEFAULT_ZONES)
        assert "Maharashtra" in catalog.regions("West")

    def test_without_defaults(self) -> None:
        assert len(ZoneCatalog(include_defaults=False)) == 0

    def test_custom_zone_overrides_default(self) -> None:
        catalog = ZoneCatalog({"West": ["Goa"]})
        assert catalog.regions("West") == ("Goa",)

    def test_custom_zone_added(self, catalog: ZoneCatalog) -> None:
        catalog.define("Coast", ["Goa", "Kerala"])
        assert "Coast" in catalog
        assert catalog.regions("Coast") == ("Goa", "Kerala")

    def test_empty_zone_rejected(self, catalog: ZoneCatalog) -> None:
        with pytest.raises(ValueError):
            catalog.define("Empty", [])

    def test_unknown_zone(self, catalog: ZoneCatalog) -> None:
        with pytest.raises(KeyError, match="Known zones"):
            catalog.regions("Atlantis")


class TestZoneAssignment:
    def test_assign_materializes_grants(self, catalog: ZoneCatalog) -> None:
        store = InMemoryGrantStore()
        grants = catalog.assign(store, "u-1", "Central", granted_by="admin")
        assert [g.region for g in grants] == list(DEFAULT_ZONES["Central"])
        assert all(g.source == GrantSource.ZONE_DERIVED and g.zone == "Central" for g in grants)
        assert sorted(store.effective_regions("u-1", NOW).regions) == sorted(DEFAULT_ZONES["Central"])

    def test_reassign_does_not_duplicate(self, catalog: ZoneCatalog) -> None:
        store = InMemoryGrantStore()
        catalog.assign(store, "u-1", "Central")
        catalog.assign(store, "u-1", "Central")
        assert len(store.grants_for("u-1")) == len(DEFAULT_ZONES["Central"])

    def test_unassign_keeps_direct_grants(self, catalog: ZoneCatalog) -> None:
        store = InMemoryGrantStore()
        store.grant_permanent("u-1", "Goa")
        catalog.assign(store, "u-1", "West")
        removed = catalog.unassign(store, "u-1", "West")
        assert len(removed) == len(DEFAULT_ZONES["West"])
        assert store.effective_regions("u-1", NOW).regions == ["Goa"]

    def test_assign_unknown_zone(self, catalog: ZoneCatalog) -> None:
        with pytest.raises(KeyError):
            catalog.assign(InMemoryGrantStore(), "u-1", "Atlantis")

    def test_reassign_is_one_write(self, catalog: ZoneCatalog) -> None:
        store = _CountingStore()
        catalog.assign(store, "u-1", "West")
        catalog.assign(store, "u-1", "West")
        size = len(DEFAULT_ZONES["West"])
        assert store.writes == [size, size]

    def test_failed_reassign_keeps_previous_grants(self, catalog: ZoneCatalog) -> None:
        store = _CountingStore(fail_after=1)
        catalog.assign(store, "u-1", "West")
        with pytest.raises(GrantStoreUnavailable):
            catalog.assign(store, "u-1", "West", granted_by="admin")
        assert sorted(store.effective_regions("u-1", NOW).regions) == sorted(DEFAULT_ZONES["West"])

    def test_reassign_leaves_other_zones(self, catalog: ZoneCatalog) -> None:
        store = InMemoryGrantStore()
        catalog.assign(store, "u-1", "West")
        catalog.assign(store, "u-1", "East")
        catalog.assign(store, "u-1", "West")
        zones = {g.zone for g in store.grants_for("u-1")}
        assert zones == {"West", "East"}

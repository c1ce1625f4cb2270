"""Grant storage: who may access which regions, and until when.

GrantStore keeps every grant in an immutable snapshot (a dict of per-subject
tuples).  Administrative writes are serialized by a lock and build a new
snapshot which replaces the old one in a single assignment; readers take
whatever snapshot is current and never lock.

Expiry is enforced twice: every read filters out temporary grants whose
``expires_at`` is at or before *now*, and :meth:`GrantStore.sweep_expired`
physically removes them (see :class:`~regionguard.grants.sweeper.ExpirySweeper`).

Two implementations are provided:

- :class:`InMemoryGrantStore` for tests and single-process hosts,
- :class:`JsonFileGrantStore`, which writes the full snapshot to a JSON
  file atomically after every change and picks up changes made by other
  processes.

Example
-------
>>> store = InMemoryGrantStore()
>>> _ = store.grant_permanent("u-1", "Maharashtra", granted_by="admin")
>>> store.effective_regions("u-1").regions
['Maharashtra']
"""
from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from collections import Counter
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta
from pathlib import Path

from regionguard.errors import GrantStoreUnavailable
from regionguard.grants.models import (
    AccessGrant,
    EffectiveRegions,
    GrantSource,
    GrantStats,
    utc_now,
)
from regionguard.regions.names import SynonymTable

logger = logging.getLogger(__name__)

Snapshot = dict[str, tuple[AccessGrant, ...]]


class GrantStore(ABC):
    """Abstract grant store with copy-on-write snapshots.

    Subclasses decide how a new snapshot is persisted (:meth:`_persist`) and
    may refresh the snapshot before reads (:meth:`_current`).

    Parameters
    ----------
    synonyms:
        Synonym table used for region comparisons.
    """

    def __init__(self, synonyms: SynonymTable | None = None) -> None:
        self._synonyms = synonyms or SynonymTable()
        self._write_lock = threading.Lock()
        self._snapshot: Snapshot = {}

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _persist(self, snapshot: Snapshot) -> None:
        """Make *snapshot* durable.  Raise GrantStoreUnavailable on failure."""

    def _current(self) -> Snapshot:
        return self._snapshot

    def _mutate(self, change: Callable[[Snapshot], Snapshot]) -> None:
        with self._write_lock:
            updated = change(dict(self._current()))
            self._persist(updated)
            self._snapshot = updated

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def effective_regions(self, subject: str, now: datetime | None = None) -> EffectiveRegions:
        """Return the union of regions *subject* may access at *now*.

        Raises
        ------
        GrantStoreUnavailable
            If the backend cannot be read.
        """
        effective_now = now or utc_now()
        sources: dict[str, set[GrantSource]] = {}
        keys: dict[str, str] = {}

        for grant in self._current().get(subject, ()):
            if grant.is_expired(effective_now):
                continue
            if grant.source == GrantSource.ADMIN_BYPASS:
                return EffectiveRegions(subject=subject, is_all=True)
            key = self._synonyms.normalize(grant.region)
            name = keys.setdefault(key, grant.region)
            sources.setdefault(name, set()).add(grant.source)

        return EffectiveRegions(
            subject=subject,
            sources={name: frozenset(srcs) for name, srcs in sources.items()},
        )

    def has_temporary_access(self, subject: str, region: str, now: datetime | None = None) -> bool:
        """True if *subject* holds an unexpired temporary grant matching *region*."""
        effective_now = now or utc_now()
        return any(
            grant.source == GrantSource.TEMPORARY
            and grant.is_active(effective_now)
            and self._synonyms.matches(grant.region, region)
            for grant in self._current().get(subject, ())
        )

    def has_admin_bypass(self, subject: str) -> bool:
        return any(g.source == GrantSource.ADMIN_BYPASS for g in self._current().get(subject, ()))

    def grants_for(self, subject: str, include_expired: bool = True, now: datetime | None = None) -> list[AccessGrant]:
        grants = list(self._current().get(subject, ()))
        if not include_expired:
            effective_now = now or utc_now()
            grants = [g for g in grants if g.is_active(effective_now)]
        return grants

    def all_grants(self) -> list[AccessGrant]:
        return [grant for grants in self._current().values() for grant in grants]

    def get(self, grant_id: str) -> AccessGrant:
        """Return the grant with *grant_id*.

        Raises
        ------
        KeyError
            If no such grant exists.
        """
        for grant in self.all_grants():
            if grant.grant_id == grant_id:
                return grant
        raise KeyError(f"Grant {grant_id!r} not found.")

    def expiring_within(self, window: timedelta, now: datetime | None = None) -> list[AccessGrant]:
        """Active temporary grants that expire within *window* of *now*."""
        effective_now = now or utc_now()
        horizon = effective_now + window
        expiring = [
            g
            for g in self.all_grants()
            if g.source == GrantSource.TEMPORARY
            and g.is_active(effective_now)
            and g.expires_at is not None
            and g.expires_at <= horizon
        ]
        return sorted(expiring, key=lambda g: g.expires_at)  # type: ignore[arg-type, return-value]

    def stats(self, now: datetime | None = None) -> GrantStats:
        effective_now = now or utc_now()
        grants = self.all_grants()
        temporary = [g for g in grants if g.source == GrantSource.TEMPORARY]
        expired = sum(1 for g in temporary if g.is_expired(effective_now))
        return GrantStats(
            total=len(grants),
            active_temporary=len(temporary) - expired,
            expired_temporary=expired,
            by_region=dict(Counter(g.region for g in grants)),
            by_source=dict(Counter(g.source.value for g in grants)),
        )

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def add(self, grants: Iterable[AccessGrant]) -> list[AccessGrant]:
        """Store pre-built grants and return them."""
        new_grants = list(grants)

        def change(snapshot: Snapshot) -> Snapshot:
            for grant in new_grants:
                snapshot[grant.subject] = snapshot.get(grant.subject, ()) + (grant,)
            return snapshot

        self._mutate(change)
        return new_grants

    def grant_permanent(self, subject: str, region: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        grant = AccessGrant.permanent(subject, region, granted_by=granted_by, reason=reason)
        self.add([grant])
        logger.info("Permanent grant %s: %s -> %s", grant.grant_id, subject, region)
        return grant

    def grant_temporary(
        self,
        subject: str,
        region: str,
        expires_at: datetime | None = None,
        duration: timedelta | None = None,
        granted_by: str = "",
        reason: str = "",
        now: datetime | None = None,
    ) -> AccessGrant:
        """Create a temporary grant expiring at *expires_at* or after *duration*.

        A grant created with an expiry already in the past is stored but never
        counted by any read.
        """
        if (expires_at is None) == (duration is None):
            raise ValueError("Provide exactly one of expires_at or duration.")
        if expires_at is None:
            expires_at = (now or utc_now()) + duration  # type: ignore[operator]
        grant = AccessGrant.temporary(subject, region, expires_at, granted_by=granted_by, reason=reason)
        self.add([grant])
        logger.info(
            "Temporary grant %s: %s -> %s until %s",
            grant.grant_id,
            subject,
            region,
            expires_at.isoformat(),
        )
        return grant

    def grant_zone(self, subject: str, zone: str, regions: Iterable[str], granted_by: str = "") -> list[AccessGrant]:
        grants = [AccessGrant.zone_derived(subject, region, zone, granted_by=granted_by) for region in regions]
        self.add(grants)
        logger.info("Zone %s assigned to %s (%d regions)", zone, subject, len(grants))
        return grants

    def replace_zone(self, subject: str, zone: str, regions: Iterable[str], granted_by: str = "") -> list[AccessGrant]:
        """Swap the zone-derived grants *subject* holds for *zone* in one write.

        Readers see either the previous materialization or the new one.
        """
        grants = [AccessGrant.zone_derived(subject, region, zone, granted_by=granted_by) for region in regions]

        def change(snapshot: Snapshot) -> Snapshot:
            kept = tuple(
                g for g in snapshot.get(subject, ()) if not (g.source == GrantSource.ZONE_DERIVED and g.zone == zone)
            )
            snapshot[subject] = kept + tuple(grants)
            return snapshot

        self._mutate(change)
        logger.info("Zone %s assigned to %s (%d regions)", zone, subject, len(grants))
        return grants

    def grant_admin_bypass(self, subject: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        """Give *subject* access to every region.  Idempotent."""
        for grant in self._current().get(subject, ()):
            if grant.source == GrantSource.ADMIN_BYPASS:
                return grant
        grant = AccessGrant.admin_bypass(subject, granted_by=granted_by, reason=reason)
        self.add([grant])
        logger.info("Admin bypass granted to %s by %s", subject, granted_by or "<unknown>")
        return grant

    def revoke(self, grant_id: str) -> AccessGrant:
        """Remove a single grant.

        Raises
        ------
        KeyError
            If no grant has *grant_id*.
        """
        removed: list[AccessGrant] = []

        def change(snapshot: Snapshot) -> Snapshot:
            for subject, grants in snapshot.items():
                kept = tuple(g for g in grants if g.grant_id != grant_id)
                if len(kept) != len(grants):
                    removed.extend(g for g in grants if g.grant_id == grant_id)
                    snapshot[subject] = kept
                    break
            else:
                raise KeyError(f"Grant {grant_id!r} not found.")
            return snapshot

        self._mutate(change)
        logger.info("Revoked grant %s", grant_id)
        return removed[0]

    def revoke_region(
        self,
        subject: str,
        region: str,
        source: GrantSource | None = None,
    ) -> list[AccessGrant]:
        """Remove every grant of *subject* whose region normalizes to *region*."""
        key = self._synonyms.normalize(region)
        return self._remove_where(
            subject,
            lambda g: self._synonyms.normalize(g.region) == key and (source is None or g.source == source),
        )

    def revoke_zone(self, subject: str, zone: str) -> list[AccessGrant]:
        return self._remove_where(
            subject, lambda g: g.source == GrantSource.ZONE_DERIVED and g.zone == zone
        )

    def extend(self, grant_id: str, new_expires_at: datetime, now: datetime | None = None) -> AccessGrant:
        """Move the expiry of an active temporary grant.

        Raises
        ------
        KeyError
            If no grant has *grant_id*.
        ValueError
            If the grant is not temporary, already expired, or the new expiry
            is not later than *now*.
        """
        effective_now = now or utc_now()
        if new_expires_at <= effective_now:
            raise ValueError("New expiry must be in the future.")
        extended: list[AccessGrant] = []

        def change(snapshot: Snapshot) -> Snapshot:
            for subject, grants in snapshot.items():
                for position, grant in enumerate(grants):
                    if grant.grant_id != grant_id:
                        continue
                    if grant.is_expired(effective_now):
                        raise ValueError(f"Grant {grant_id!r} has already expired.")
                    updated = grant.with_expiry(new_expires_at)
                    extended.append(updated)
                    snapshot[subject] = grants[:position] + (updated,) + grants[position + 1 :]
                    return snapshot
            raise KeyError(f"Grant {grant_id!r} not found.")

        self._mutate(change)
        logger.info("Extended grant %s until %s", grant_id, new_expires_at.isoformat())
        return extended[0]

    def sweep_expired(self, now: datetime | None = None) -> int:
        """Physically remove expired temporary grants and return how many."""
        effective_now = now or utc_now()
        if not any(g.is_expired(effective_now) for g in self.all_grants()):
            return 0
        removed = 0

        def change(snapshot: Snapshot) -> Snapshot:
            nonlocal removed
            for subject, grants in list(snapshot.items()):
                kept = tuple(g for g in grants if not g.is_expired(effective_now))
                removed += len(grants) - len(kept)
                if kept:
                    snapshot[subject] = kept
                else:
                    del snapshot[subject]
            return snapshot

        self._mutate(change)
        if removed:
            logger.info("Swept %d expired temporary grants", removed)
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _remove_where(self, subject: str, predicate: Callable[[AccessGrant], bool]) -> list[AccessGrant]:
        removed: list[AccessGrant] = []

        def change(snapshot: Snapshot) -> Snapshot:
            grants = snapshot.get(subject, ())
            removed.extend(g for g in grants if predicate(g))
            if removed:
                snapshot[subject] = tuple(g for g in grants if not predicate(g))
            return snapshot

        self._mutate(change)
        for grant in removed:
            logger.info("Revoked grant %s (%s -> %s)", grant.grant_id, subject, grant.region)
        return removed

    @property
    def synonyms(self) -> SynonymTable:
        return self._synonyms


# ---------------------------------------------------------------------------
# Implementations
# ---------------------------------------------------------------------------


class InMemoryGrantStore(GrantStore):
    """Grant store that keeps its snapshot in process memory only."""

    def _persist(self, snapshot: Snapshot) -> None:
        return None


class JsonFileGrantStore(GrantStore):
    """Grant store persisted as a single JSON document.

    Every write serializes the whole snapshot to a temporary file in the
    same directory and moves it over *path* with :func:`os.replace`, so the
    file on disk is always either the old or the new state.  Reads reload
    the file when its modification time changes.

    Parameters
    ----------
    path:
        Location of the JSON file.  Created on first write.
    synonyms:
        Synonym table used for region comparisons.

    Raises
    ------
    GrantStoreUnavailable
        If an existing file cannot be read or parsed.
    """

    def __init__(self, path: str | Path, synonyms: SynonymTable | None = None) -> None:
        super().__init__(synonyms)
        self._path = Path(path)
        self._loaded_mtime: int | None = None
        self._refresh()

    @property
    def path(self) -> Path:
        return self._path

    def _current(self) -> Snapshot:
        self._refresh()
        return self._snapshot

    def _refresh(self) -> None:
        try:
            mtime = self._path.stat().st_mtime_ns
        except FileNotFoundError:
            return
        except OSError as exc:
            raise GrantStoreUnavailable(f"Cannot stat grant store {self._path}: {exc}") from exc
        if mtime == self._loaded_mtime:
            return
        try:
            with self._path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh)
            grants = [AccessGrant.from_dict(item) for item in raw.get("grants", [])]
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as exc:
            raise GrantStoreUnavailable(f"Cannot read grant store {self._path}: {exc}") from exc

        snapshot: Snapshot = {}
        for grant in grants:
            snapshot[grant.subject] = snapshot.get(grant.subject, ()) + (grant,)
        self._snapshot = snapshot
        self._loaded_mtime = mtime
        logger.debug("Loaded %d grants from %s", len(grants), self._path)

    def _persist(self, snapshot: Snapshot) -> None:
        document = {
            "version": "1",
            "grants": [grant.to_dict() for grants in snapshot.values() for grant in grants],
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".grants-", suffix=".tmp", dir=self._path.parent)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
            self._loaded_mtime = self._path.stat().st_mtime_ns
        except OSError as exc:
            logger.error("Failed to write grant store %s: %s", self._path, exc)
            raise GrantStoreUnavailable(f"Cannot write grant store {self._path}: {exc}") from exc


__all__ = [
    "GrantStore",
    "InMemoryGrantStore",
    "JsonFileGrantStore",
]

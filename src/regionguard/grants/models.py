"""Access grant records and the derived views computed from them.

An :class:`AccessGrant` says "subject S may access region R because of
source X".  Grants are immutable; extending a temporary grant replaces the
record with a copy carrying the new expiry.

Example
-------
>>> from datetime import datetime, timedelta, timezone
>>> now = datetime(2026, 1, 1, tzinfo=timezone.utc)
>>> grant = AccessGrant.temporary("u-1", "Delhi", expires_at=now + timedelta(minutes=5))
>>> grant.is_active(now)
True
>>> time_remaining(grant, now).display
'5m'
"""
from __future__ import annotations

import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum

from regionguard.regions.names import SynonymTable

ALL_REGIONS: str = "*"


class GrantSource(str, Enum):
    """Where a region grant comes from."""

    PERMANENT = "permanent"
    TEMPORARY = "temporary"
    ZONE_DERIVED = "zone_derived"
    ADMIN_BYPASS = "admin_bypass"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


# ---------------------------------------------------------------------------
# AccessGrant
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessGrant:
    """A single region grant.

    Attributes
    ----------
    grant_id:
        Unique identifier of the grant.
    subject:
        Identifier of the subject holding the grant.
    region:
        Region name as assigned (normalized on comparison), or
        :data:`ALL_REGIONS` for admin bypass grants.
    source:
        The :class:`GrantSource` that produced the grant.
    expires_at:
        Aware expiry datetime.  Mandatory for temporary grants, absent for
        every other source.
    granted_by:
        Identifier of the administrator who created the grant.
    granted_at:
        Aware creation datetime.
    reason:
        Free-text justification.
    zone:
        Name of the zone that produced a zone-derived grant.
    """

    subject: str
    region: str
    source: GrantSource
    expires_at: datetime | None = None
    granted_by: str = ""
    granted_at: datetime = field(default_factory=utc_now)
    reason: str = ""
    zone: str | None = None
    grant_id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        if not self.subject:
            raise ValueError("AccessGrant.subject must not be empty.")
        if not self.region:
            raise ValueError("AccessGrant.region must not be empty.")
        object.__setattr__(self, "source", GrantSource(self.source))
        if self.source == GrantSource.TEMPORARY:
            if self.expires_at is None:
                raise ValueError("Temporary grants require expires_at.")
            if self.expires_at.tzinfo is None:
                raise ValueError("AccessGrant.expires_at must be timezone-aware.")
        elif self.expires_at is not None:
            raise ValueError(f"{self.source.value} grants must not carry expires_at.")
        if self.source == GrantSource.ZONE_DERIVED and not self.zone:
            raise ValueError("Zone-derived grants require a zone name.")
        if self.source == GrantSource.ADMIN_BYPASS and self.region != ALL_REGIONS:
            raise ValueError("Admin bypass grants must cover ALL_REGIONS.")

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def permanent(cls, subject: str, region: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        return cls(subject=subject, region=region, source=GrantSource.PERMANENT,
                   granted_by=granted_by, reason=reason)

    @classmethod
    def temporary(
        cls,
        subject: str,
        region: str,
        expires_at: datetime,
        granted_by: str = "",
        reason: str = "",
    ) -> AccessGrant:
        return cls(subject=subject, region=region, source=GrantSource.TEMPORARY,
                   expires_at=expires_at, granted_by=granted_by, reason=reason)

    @classmethod
    def zone_derived(cls, subject: str, region: str, zone: str, granted_by: str = "") -> AccessGrant:
        return cls(subject=subject, region=region, source=GrantSource.ZONE_DERIVED,
                   zone=zone, granted_by=granted_by, reason=f"Zone assignment: {zone}")

    @classmethod
    def admin_bypass(cls, subject: str, granted_by: str = "", reason: str = "") -> AccessGrant:
        return cls(subject=subject, region=ALL_REGIONS, source=GrantSource.ADMIN_BYPASS,
                   granted_by=granted_by, reason=reason)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_expired(self, now: datetime | None = None) -> bool:
        """True for temporary grants whose ``expires_at`` is at or before *now*."""
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or utc_now())

    def is_active(self, now: datetime | None = None) -> bool:
        return not self.is_expired(now)

    def with_expiry(self, expires_at: datetime) -> AccessGrant:
        """Return a copy of this temporary grant with a new expiry."""
        if self.source != GrantSource.TEMPORARY:
            raise ValueError(f"Only temporary grants can be extended; {self.grant_id} is {self.source.value}.")
        return replace(self, expires_at=expires_at)

    def to_dict(self) -> dict[str, object]:
        return {
            "grant_id": self.grant_id,
            "subject": self.subject,
            "region": self.region,
            "source": self.source.value,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
            "granted_by": self.granted_by,
            "granted_at": self.granted_at.isoformat(),
            "reason": self.reason,
            "zone": self.zone,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> AccessGrant:
        expires_at = data.get("expires_at")
        granted_at = data.get("granted_at")
        return cls(
            grant_id=str(data["grant_id"]),
            subject=str(data["subject"]),
            region=str(data["region"]),
            source=GrantSource(str(data["source"])),
            expires_at=datetime.fromisoformat(str(expires_at)) if expires_at else None,
            granted_by=str(data.get("granted_by") or ""),
            granted_at=datetime.fromisoformat(str(granted_at)) if granted_at else utc_now(),
            reason=str(data.get("reason") or ""),
            zone=str(data["zone"]) if data.get("zone") else None,
        )


# ---------------------------------------------------------------------------
# EffectiveRegions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EffectiveRegions:
    """The regions a subject may access right now, with contributing sources.

    Attributes
    ----------
    subject:
        The subject these regions belong to.
    sources:
        Mapping of region name to the set of grant sources contributing it.
    is_all:
        ``True`` when an admin bypass grant covers every region.
    """

    subject: str
    sources: Mapping[str, frozenset[GrantSource]] = field(default_factory=dict)
    is_all: bool = False

    @property
    def regions(self) -> list[str]:
        return list(self.sources)

    def matching(self, region: str, synonyms: SynonymTable) -> dict[str, frozenset[GrantSource]]:
        """Return every assigned region that fuzzy-matches *region*."""
        return {
            name: srcs for name, srcs in self.sources.items() if synonyms.matches(name, region)
        }

    def __bool__(self) -> bool:
        return self.is_all or bool(self.sources)

    def __len__(self) -> int:
        return len(self.sources)


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TimeRemaining:
    """Breakdown of the time left on a temporary grant."""

    expired: bool
    display: str
    days: int = 0
    hours: int = 0
    minutes: int = 0
    seconds: int = 0
    total_seconds: int = 0


def time_remaining(grant: AccessGrant, now: datetime | None = None) -> TimeRemaining | None:
    """Return the remaining lifetime of *grant*, or ``None`` if it never expires.

    Seconds are only shown in the display string when less than a day is
    left.  Anything under a second counts as expired.
    """
    if grant.expires_at is None:
        return None
    total = int((grant.expires_at - (now or utc_now())).total_seconds())
    if total <= 0:
        return TimeRemaining(expired=True, display="Expired")

    days, rest = divmod(total, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    pieces: list[str] = []
    if days:
        pieces.append(f"{days}d")
    if hours:
        pieces.append(f"{hours}h")
    if minutes:
        pieces.append(f"{minutes}m")
    if seconds and not days:
        pieces.append(f"{seconds}s")

    return TimeRemaining(
        expired=False,
        display=" ".join(pieces),
        days=days,
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        total_seconds=total,
    )


@dataclass(frozen=True)
class GrantStats:
    """Counts over every grant held by a store."""

    total: int
    active_temporary: int
    expired_temporary: int
    by_region: dict[str, int] = field(default_factory=dict)
    by_source: dict[str, int] = field(default_factory=dict)


__all__ = [
    "ALL_REGIONS",
    "AccessGrant",
    "EffectiveRegions",
    "GrantSource",
    "GrantStats",
    "TimeRemaining",
    "time_remaining",
    "utc_now",
]

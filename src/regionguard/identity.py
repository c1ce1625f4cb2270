"""Authenticated identity context supplied by the host application.

regionguard never authenticates anyone.  The host resolves the caller and
hands the engine a :class:`Subject` describing who they are, whether they
hold the admin role and which groups they belong to.
"""
from __future__ import annotations

from dataclasses import dataclass, field

ADMIN_ROLE = "Admin"


@dataclass(frozen=True)
class Subject:
    """An already-authenticated caller.

    Attributes
    ----------
    subject_id:
        Stable user identifier used as the key for grants and audit events.
    is_admin:
        ``True`` when the identity layer has resolved the admin role.  Admins
        bypass every region and permission check.
    role:
        Optional role name (e.g. ``"Manager"``), used for role-default rules.
    groups:
        Identifiers of the groups the subject is a member of.  Group rules
        are inherited in this order.
    name:
        Optional display name recorded in audit context.
    """

    subject_id: str
    is_admin: bool = False
    role: str | None = None
    groups: tuple[str, ...] = field(default_factory=tuple)
    name: str = ""

    def __post_init__(self) -> None:
        if not self.subject_id:
            raise ValueError("Subject.subject_id must not be empty.")
        # Accept any iterable for groups but store an immutable tuple.
        object.__setattr__(self, "groups", tuple(self.groups))
        if self.role and self.role.casefold() == ADMIN_ROLE.casefold() and not self.is_admin:
            object.__setattr__(self, "is_admin", True)

    @classmethod
    def admin(cls, subject_id: str, name: str = "") -> Subject:
        """Build an admin subject."""
        return cls(subject_id=subject_id, is_admin=True, role=ADMIN_ROLE, name=name)


__all__ = ["ADMIN_ROLE", "Subject"]

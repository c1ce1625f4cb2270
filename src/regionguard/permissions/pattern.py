"""Dot-separated permission patterns with ``*`` wildcards.

Permission identifiers look like ``gis.distance.use`` or
``data.export.any``.  A pattern is compiled once into a token tuple:

- a literal token matches the same token only,
- a ``*`` in any position but the last matches exactly one token,
- a trailing ``*`` matches the remaining suffix of one or more tokens,
- the lone pattern ``*`` matches every permission.

Example
-------
>>> PermissionPattern.compile("gis.*").matches("gis.distance.use")
True
>>> PermissionPattern.compile("gis.*").matches("gis")
False
>>> PermissionPattern.compile("gis.*.use").matches("gis.distance.use")
True
"""
from __future__ import annotations

from dataclasses import dataclass

WILDCARD = "*"


def split_permission(permission_id: str) -> tuple[str, ...]:
    """Split a permission id into tokens, rejecting empty tokens."""
    tokens = tuple(permission_id.strip().split("."))
    if not all(tokens):
        raise ValueError(f"Invalid permission identifier {permission_id!r}: empty token.")
    return tokens


@dataclass(frozen=True)
class PermissionPattern:
    """A compiled permission pattern.

    Attributes
    ----------
    text:
        The source pattern.
    tokens:
        The pattern split on ``.``.
    """

    text: str
    tokens: tuple[str, ...]

    @classmethod
    def compile(cls, text: str) -> PermissionPattern:
        tokens = split_permission(text)
        for token in tokens:
            if WILDCARD in token and token != WILDCARD:
                raise ValueError(f"Invalid pattern {text!r}: '*' must be a whole token.")
        return cls(text=text.strip(), tokens=tokens)

    @property
    def is_universal(self) -> bool:
        return self.tokens == (WILDCARD,)

    @property
    def has_trailing_wildcard(self) -> bool:
        return self.tokens[-1] == WILDCARD

    def matches(self, permission_id: str | tuple[str, ...]) -> bool:
        """Return True if *permission_id* is covered by this pattern."""
        if self.is_universal:
            return True
        target = permission_id if isinstance(permission_id, tuple) else tuple(permission_id.split("."))

        if self.has_trailing_wildcard:
            head = self.tokens[:-1]
            if len(target) <= len(head):
                return False
        else:
            head = self.tokens
            if len(target) != len(head):
                return False

        return all(p == WILDCARD or p == t for p, t in zip(head, target))

    def __str__(self) -> str:
        return self.text


__all__ = ["PermissionPattern", "WILDCARD", "split_permission"]

"""Region name normalization and the bounded fuzzy-match policy.

Boundary datasets and administrative records rarely spell region names the
same way ("NCT of Delhi" vs "Delhi", "Andaman and Nicobar" vs "Andaman and
Nicobar Islands").  Names are compared only after normalization:

1. trim surrounding whitespace and collapse internal runs of whitespace,
2. case-fold,
3. map through a synonym table.

Two normalized names match when they are equal or when one is a substring of
the other.  The synonym table is configuration data: the defaults below are
extended (never silently replaced) by ``regions.synonyms`` in the YAML config.

Example
-------
>>> table = SynonymTable()
>>> table.normalize("  NCT of  Delhi ")
'delhi'
>>> table.matches("Andaman and Nicobar", "Andaman and Nicobar Islands")
True
"""
from __future__ import annotations

import re
from collections.abc import Mapping

_WHITESPACE = re.compile(r"\s+")

DEFAULT_SYNONYMS: dict[str, str] = {
    "nct of delhi": "delhi",
    "national capital territory of delhi": "delhi",
    "dadra and nagar haveli": "dadra and nagar haveli and daman and diu",
    "daman and diu": "dadra and nagar haveli and daman and diu",
    "andaman and nicobar": "andaman and nicobar islands",
    "orissa": "odisha",
    "pondicherry": "puducherry",
    "uttaranchal": "uttarakhand",
}


def fold(name: str) -> str:
    """Trim, collapse whitespace and case-fold *name* (no synonym mapping)."""
    return _WHITESPACE.sub(" ", name.strip()).casefold()


class SynonymTable:
    """Immutable mapping from folded variant names to canonical folded names.

    Parameters
    ----------
    extra:
        Additional ``{variant: canonical}`` pairs.  Both sides are folded
        before being stored.  Extra entries override defaults with the same
        variant.
    include_defaults:
        When ``False`` the built-in :data:`DEFAULT_SYNONYMS` are not loaded.
    """

    def __init__(
        self,
        extra: Mapping[str, str] | None = None,
        include_defaults: bool = True,
    ) -> None:
        table: dict[str, str] = {}
        if include_defaults:
            table.update({fold(k): fold(v) for k, v in DEFAULT_SYNONYMS.items()})
        for variant, canonical in (extra or {}).items():
            table[fold(variant)] = fold(canonical)
        self._table = table

    def normalize(self, name: str) -> str:
        """Return the normalized key for *name*."""
        folded = fold(name)
        return self._table.get(folded, folded)

    def matches(self, left: str, right: str) -> bool:
        """Apply the bounded fuzzy-match policy to two region names."""
        a = self.normalize(left)
        b = self.normalize(right)
        if not a or not b:
            return False
        return a == b or a in b or b in a

    def extended(self, extra: Mapping[str, str]) -> SynonymTable:
        """Return a new table with *extra* entries layered on top of this one."""
        merged = SynonymTable(include_defaults=False)
        merged._table = {**self._table, **{fold(k): fold(v) for k, v in extra.items()}}
        return merged

    def as_dict(self) -> dict[str, str]:
        return dict(self._table)

    def __len__(self) -> int:
        return len(self._table)


__all__ = ["DEFAULT_SYNONYMS", "SynonymTable", "fold"]

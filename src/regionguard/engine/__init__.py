"""Decision engine combining regions, grants, permission rules and audit."""
from __future__ import annotations

from regionguard.engine.decision import ALL_REGIONS_ADMIN, AccessKind, Decision, DecisionEngine

__all__ = ["ALL_REGIONS_ADMIN", "AccessKind", "Decision", "DecisionEngine"]

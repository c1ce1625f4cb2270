#!/usr/bin/env python3
"""Example: regionguard quickstart

Minimal working example: load two state boundaries, grant a field agent
one of them, authorize coordinates and permissions, and read the audit
trail.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install regionguard
"""
from __future__ import annotations

from datetime import timedelta

import regionguard as rg


def _box(name: str, min_lat: float, min_lng: float, max_lat: float, max_lng: float) -> dict[str, object]:
    ring = [[min_lng, min_lat], [max_lng, min_lat], [max_lng, max_lat], [min_lng, max_lat], [min_lng, min_lat]]
    return {"type": "Feature", "properties": {"ST_NM": name}, "geometry": {"type": "Polygon", "coordinates": [ring]}}


def main() -> None:
    print(f"regionguard version: {rg.__version__}")

    # Step 1: Initialise the service and load boundaries
    service = rg.AccessControlService()
    service.load_config_defaults()
    count = service.load_boundaries_from_dict(
        {
            "type": "FeatureCollection",
            "features": [
                _box("Maharashtra", 15.6, 72.6, 21.0, 80.9),
                _box("Gujarat", 21.5, 68.5, 24.5, 74.5),
            ],
        }
    )
    print(f"Region index ready: {count} regions loaded")

    # Step 2: Grant regions
    service.grant_permanent("agent-7", "Maharashtra", granted_by="admin")
    service.grant_temporary("agent-7", "Gujarat", duration=timedelta(minutes=30), granted_by="admin")

    # Step 3: Authorize coordinates
    agent = rg.Subject("agent-7", role="FieldAgent")
    points = {
        "Mumbai": (19.07, 72.87),
        "Ahmedabad": (23.02, 72.57),
        "Arabian Sea": (12.0, 62.0),
    }
    print("\nRegion access:")
    for label, point in points.items():
        decision = service.authorize_region_access(agent, point)
        icon = "ALLOW" if decision.allowed else "DENY"
        print(f"  [{icon}] {label}: {decision.reason}")

    # Step 4: Permissions
    book = rg.PermissionLoader().load_from_dict(
        {"version": "1.0", "roles": {"FieldAgent": [{"pattern": "gis.*.use", "effect": "grant"}]}}
    )
    resolver = rg.PermissionResolver(book)
    for permission_id in ("gis.distance.use", "data.export"):
        resolution = resolver.resolve(agent, permission_id)
        print(f"  {permission_id}: {'granted' if resolution.allowed else resolution.reason}")

    # Step 5: Audit trail
    assert service.audit is not None
    stats = service.audit.stats()
    print(f"\nAudit events recorded: {stats.total}")
    service.stop()


if __name__ == "__main__":
    main()

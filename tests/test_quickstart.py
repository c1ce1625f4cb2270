"""Test that the quickstart API works for regionguard."""
from __future__ import annotations


def test_quickstart_import() -> None:
    from regionguard import AccessControlService

    service = AccessControlService()
    assert service is not None


def test_quickstart_defaults_undetermined() -> None:
    from regionguard import AccessControlService, DenialKind, Subject

    service = AccessControlService()
    service.load_config_defaults()
    decision = service.authorize_region_access(Subject("u-1"), (19.07, 72.87))
    assert decision.allowed is False
    assert decision.denial == DenialKind.REGION_UNDETERMINED


def test_quickstart_admin_allowed() -> None:
    from regionguard import AccessControlService, Subject

    service = AccessControlService()
    service.load_config_defaults()
    assert service.authorize_permission(Subject.admin("root"), "gis.distance.use").allowed is True


def test_quickstart_grant_and_check() -> None:
    from regionguard import AccessControlService, Subject

    ring = [[72.6, 15.6], [80.9, 15.6], [80.9, 21.0], [72.6, 21.0], [72.6, 15.6]]
    service = AccessControlService()
    service.load_config_defaults()
    service.load_boundaries_from_dict(
        {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "properties": {"ST_NM": "Maharashtra"},
                    "geometry": {"type": "Polygon", "coordinates": [ring]},
                }
            ],
        }
    )
    service.grant_permanent("u-1", "Maharashtra", granted_by="admin")
    assert service.authorize_region_access(Subject("u-1"), (19.07, 72.87)).allowed is True

"""Tests for region name normalization and fuzzy matching."""
from __future__ import annotations

from regionguard.regions.names import DEFAULT_SYNONYMS, SynonymTable, fold


class TestFold:
    def test_trims_and_collapses_whitespace(self) -> None:
        assert fold("  Tamil   Nadu ") == "tamil nadu"

    def test_casefolds(self) -> None:
        assert fold("MAHARASHTRA") == "maharashtra"


class TestSynonymTable:
    def test_defaults_loaded(self) -> None:
        assert len(SynonymTable()) == len(DEFAULT_SYNONYMS)

    def test_normalize_maps_synonym(self) -> None:
        assert SynonymTable().normalize("NCT of Delhi") == "delhi"

    def test_normalize_unknown_name_is_folded(self) -> None:
        assert SynonymTable().normalize(" Gujarat ") == "gujarat"

    def test_without_defaults(self) -> None:
        table = SynonymTable(include_defaults=False)
        assert table.normalize("NCT of Delhi") == "nct of delhi"

    def test_extra_overrides_default(self) -> None:
        table = SynonymTable({"Orissa": "Kalinga"})
        assert table.normalize("orissa") == "kalinga"

    def test_extended_keeps_existing_entries(self) -> None:
        table = SynonymTable().extended({"Bombay State": "Maharashtra"})
        assert table.normalize("bombay state") == "maharashtra"
        assert table.normalize("pondicherry") == "puducherry"


class TestMatching:
    def test_equal_after_normalization(self) -> None:
        assert SynonymTable().matches("Delhi", "NCT of Delhi") is True

    def test_substring_match(self) -> None:
        assert SynonymTable(include_defaults=False).matches("Andaman", "Andaman and Nicobar Islands") is True

    def test_unrelated_names(self) -> None:
        assert SynonymTable().matches("Gujarat", "Maharashtra") is False

    def test_empty_name_never_matches(self) -> None:
        assert SynonymTable().matches("", "Delhi") is False
        assert SynonymTable().matches("   ", "Delhi") is False

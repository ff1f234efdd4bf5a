"""Tests for the alias registry and table-level column resolution."""

import pytest

from precincts.errors import SchemaResolutionError
from precincts.field_registry import (
    BOUNDARIES,
    PARTY_CATALOG,
    PARTY_VOTES,
    TURNOUT,
    FieldAlias,
    FieldRegistry,
)

TURNOUT_COLUMNS = ["OBEC", "OKRSEK", "VOL_SEZNAM", "ODEVZ_OBAL", "PL_HL_CELK"]


def test_default_tables(registry):
    assert set(registry.tables()) == {TURNOUT, PARTY_VOTES, PARTY_CATALOG, BOUNDARIES}
    assert registry.candidates(TURNOUT, "area_code")[0] == "OBEC"
    assert not registry.get(TURNOUT, "sub_area_code").required


def test_unknown_field_and_table(registry):
    with pytest.raises(KeyError):
        registry.get(TURNOUT, "nonexistent")
    with pytest.raises(KeyError):
        registry.fields("nonexistent")


def test_resolve_columns(registry):
    resolved = registry.resolve_columns(TURNOUT, TURNOUT_COLUMNS)
    assert resolved == {
        "area_code": "OBEC",
        "sub_area_code": None,
        "precinct_id": "OKRSEK",
        "registered": "VOL_SEZNAM",
        "issued": None,
        "returned": "ODEVZ_OBAL",
        "valid": "PL_HL_CELK",
    }


def test_resolve_drifted_names(registry):
    columns = ["Kód obce", "Číslo okrsku", "Voliči v seznamu", "Odevzdané obálky", "Platné hlasy"]
    resolved = registry.resolve_columns(TURNOUT, columns)
    assert resolved["area_code"] == "Kód obce"
    assert resolved["precinct_id"] == "Číslo okrsku"
    assert resolved["registered"] == "Voliči v seznamu"
    assert resolved["returned"] == "Odevzdané obálky"
    assert resolved["valid"] == "Platné hlasy"


def test_missing_required_raises(registry):
    columns = ["OBEC", "OKRSEK", "VOL_SEZNAM", "ODEVZ_OBAL"]
    with pytest.raises(SchemaResolutionError) as exc_info:
        registry.resolve_columns(TURNOUT, columns, label="psp2025 turnout")

    error = exc_info.value
    assert error.table == "psp2025 turnout"
    assert error.missing == ["valid"]
    assert error.available == columns
    assert "valid" in str(error)


def test_overrides_are_prepended():
    registry = FieldRegistry(overrides={TURNOUT: {"registered": ["VOL_SEZNAM_NOVY"]}})
    candidates = registry.candidates(TURNOUT, "registered")
    assert candidates[0] == "VOL_SEZNAM_NOVY"
    assert "VOL_SEZNAM" in candidates

    resolved = registry.resolve_columns(TURNOUT, TURNOUT_COLUMNS + ["VOL_SEZNAM_NOVY"])
    assert resolved["registered"] == "VOL_SEZNAM_NOVY"


def test_override_accepts_single_string():
    registry = FieldRegistry(overrides={PARTY_VOTES: {"votes": "HLASY_STRANY"}})
    assert registry.candidates(PARTY_VOTES, "votes")[0] == "HLASY_STRANY"


def test_override_unknown_field_raises():
    with pytest.raises(KeyError):
        FieldRegistry(overrides={TURNOUT: {"spoiled": ["NEPLATNE"]}})


def test_register_replaces(registry):
    registry.register(PARTY_CATALOG, FieldAlias("name", ("ZKRATKA",)))
    assert registry.candidates(PARTY_CATALOG, "name") == ("ZKRATKA",)


def test_explain_never_raises_and_never_shares_columns(registry):
    found = registry.explain(TURNOUT, ["OBEC"])
    assert found["area_code"] == "OBEC"
    assert found["precinct_id"] is None

    found = registry.explain(BOUNDARIES, ["OBEC", "MOMC", "OKRSEK", "ID_OKRSKY"])
    assert found == {
        "area_code": "OBEC",
        "sub_area_code": "MOMC",
        "local_id": "OKRSEK",
        "global_id": "ID_OKRSKY",
    }
    claimed = [c for c in found.values() if c is not None]
    assert len(claimed) == len(set(claimed))

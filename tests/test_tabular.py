"""Tests for the turnout, party-vote and catalog readers."""

import pandas as pd
import pytest

from precincts.errors import SchemaResolutionError
from precincts.models import TargetArea
from precincts.tabular import (
    distinct_ids,
    lookup_party_name,
    read_party_catalog,
    read_party_votes,
    read_turnout,
    resolved_columns,
    scope_rows,
)

from .conftest import CITY, DISTRICT, OTHER_DISTRICT, TOWN


def test_read_turnout_normalizes(turnout_rows):
    turnout = read_turnout(turnout_rows)

    assert list(turnout.columns) == [
        "area_code",
        "sub_area_code",
        "precinct_id",
        "registered",
        "issued",
        "returned",
        "valid",
    ]
    first = turnout.iloc[0]
    assert first["precinct_id"] == "8"
    assert first["registered"] == 1000
    assert first["returned"] == 650
    assert pd.isna(turnout.iloc[3]["sub_area_code"])
    assert resolved_columns(turnout)["registered"] == "VOL_SEZNAM"


def test_read_turnout_from_records():
    rows = [
        {"OBEC": "554821", "OKRSEK": "008", "VOL_SEZNAM": "1 000", "ODEVZ_OBAL": "abc", "PL_HL_CELK": "640"},
    ]
    turnout = read_turnout(rows)
    assert turnout.loc[0, "registered"] == 1000
    assert turnout.loc[0, "returned"] == 0
    assert turnout.loc[0, "issued"] == 0


def test_read_turnout_missing_required():
    rows = [{"OBEC": "554821", "OKRSEK": "1", "VOL_SEZNAM": "10"}]
    with pytest.raises(SchemaResolutionError) as exc_info:
        read_turnout(rows, label="kz2024 turnout")
    assert set(exc_info.value.missing) == {"returned", "valid"}


def test_read_turnout_empty_table():
    with pytest.raises(SchemaResolutionError):
        read_turnout(pd.DataFrame())


def test_rows_without_precinct_are_dropped():
    rows = [
        {"OBEC": "1", "OKRSEK": "", "VOL_SEZNAM": "10", "ODEVZ_OBAL": "5", "PL_HL_CELK": "5"},
        {"OBEC": "1", "OKRSEK": "2", "VOL_SEZNAM": "10", "ODEVZ_OBAL": "5", "PL_HL_CELK": "5"},
    ]
    turnout = read_turnout(rows)
    assert turnout["precinct_id"].tolist() == ["2"]


def test_read_party_votes(party_rows):
    rows = pd.concat(
        [party_rows, pd.DataFrame([[CITY, DISTRICT, "008", "", "5"]], columns=party_rows.columns)],
        ignore_index=True,
    )
    votes = read_party_votes(rows)
    assert len(votes) == len(party_rows)
    assert votes["votes"].sum() == 1436
    assert resolved_columns(votes)["party_code"] == "KSTRANA"


class TestPartyCatalog:
    def test_reads_names(self, catalog_rows):
        catalog = read_party_catalog(catalog_rows)
        assert catalog["ODS"] == "Občanská demokratická strana"
        assert len(catalog) == 3

    def test_none_and_empty(self):
        assert read_party_catalog(None) == {}
        assert read_party_catalog(pd.DataFrame()) == {}

    def test_unusable_columns_fall_back(self):
        assert read_party_catalog(pd.DataFrame({"FOO": ["1"], "BAR": ["x"]})) == {}

    def test_mapping_passthrough(self):
        assert read_party_catalog({"1": "ANO 2011", "2": None}) == {"1": "ANO 2011"}

    def test_lookup_falls_back_to_code(self):
        catalog = {"7": "ODS"}
        assert lookup_party_name(catalog, "7") == "ODS"
        assert lookup_party_name(catalog, "07") == "ODS"
        assert lookup_party_name(catalog, "99") == "99"
        assert lookup_party_name({}, "ANO") == "ANO"


class TestScopeRows:
    def test_district_target(self, turnout_rows):
        turnout = read_turnout(turnout_rows)
        scoped = scope_rows(turnout, TargetArea(CITY, DISTRICT))
        assert scoped["precinct_id"].tolist() == ["8", "9"]
        assert resolved_columns(scoped) == resolved_columns(turnout)

    def test_city_target_keeps_all_districts(self, turnout_rows):
        scoped = scope_rows(read_turnout(turnout_rows), TargetArea(CITY))
        assert len(scoped) == 3

    def test_district_coded_as_area(self):
        rows = [
            {"OBEC": DISTRICT, "OKRSEK": "8", "VOL_SEZNAM": "10", "ODEVZ_OBAL": "5", "PL_HL_CELK": "5"},
            {"OBEC": OTHER_DISTRICT, "OKRSEK": "8", "VOL_SEZNAM": "10", "ODEVZ_OBAL": "5", "PL_HL_CELK": "5"},
        ]
        scoped = scope_rows(read_turnout(rows), TargetArea(CITY, DISTRICT))
        assert len(scoped) == 1
        assert scoped.iloc[0]["area_code"] == DISTRICT

    def test_no_match(self, turnout_rows):
        scoped = scope_rows(read_turnout(turnout_rows), TargetArea("999999"))
        assert scoped.empty


def test_distinct_ids_first_seen_order(turnout_rows):
    turnout = read_turnout(turnout_rows)
    assert distinct_ids(turnout) == ["8", "9", "1"]
    assert TOWN in turnout["area_code"].tolist()

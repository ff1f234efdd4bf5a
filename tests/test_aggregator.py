"""Tests for per-precinct aggregation."""

import pytest

from precincts.aggregator import aggregate_results, turnout_percentage, vote_share
from precincts.boundaries import IdentifierHarvest, harvest_identifiers
from precincts.join_mode import select_join_mode
from precincts.models import PartyResult
from precincts.tabular import read_party_catalog, read_party_votes, read_turnout, scope_rows

from .conftest import CITY, DISTRICT, OTHER_DISTRICT


def turnout_row(precinct, registered, returned, valid, area=CITY):
    return {
        "OBEC": area,
        "OKRSEK": precinct,
        "VOL_SEZNAM": str(registered),
        "ODEVZ_OBAL": str(returned),
        "PL_HL_CELK": str(valid),
    }


def party_row(precinct, party, votes, area=CITY):
    return {"OBEC": area, "OKRSEK": precinct, "KSTRANA": party, "POC_HLASU": str(votes)}


def aggregate(turnout_rows, party_rows, harvest, **kwargs):
    turnout = read_turnout(turnout_rows)
    party_votes = read_party_votes(party_rows)
    decision = select_join_mode(turnout["precinct_id"], harvest)
    return aggregate_results(turnout, party_votes, decision, harvest, **kwargs)


def test_turnout_percentage():
    assert turnout_percentage(650, 1000) == 65.0
    assert turnout_percentage(1, 3) == 33.33
    assert turnout_percentage(5, 0) == 0.0
    assert turnout_percentage(1200, 1000) == 100.0


def test_vote_share():
    assert vote_share(320, 640) == 50.0
    assert vote_share(10, 0) == 0.0


def test_leading_zeros_and_duplicate_party_rows():
    results = aggregate(
        [turnout_row("008", 1000, 650, 640)],
        [party_row("008", "ANO", 300), party_row("008", "ANO", 20)],
        IdentifierHarvest(local_ids={"8"}),
    )
    assert list(results) == ["8"]
    precinct = results["8"]
    assert precinct.turnout_pct == 65.0
    assert precinct.parties == (PartyResult("ANO", "ANO", 320, 50.0),)


def test_empty_catalog_uses_codes():
    results = aggregate(
        [turnout_row("1", 100, 50, 50)],
        [party_row("1", "7", 30), party_row("1", "20", 20)],
        IdentifierHarvest(local_ids={"1"}),
        catalog=read_party_catalog(None),
    )
    assert [(p.code, p.name) for p in results["1"].parties] == [("7", "7"), ("20", "20")]


def test_catalog_names(turnout_rows, party_rows, catalog_rows, boundaries):
    harvest = harvest_identifiers(boundaries[boundaries["MOMC"] == DISTRICT])
    results = aggregate(
        turnout_rows[turnout_rows["MOMC"] == DISTRICT],
        party_rows[party_rows["MOMC"] == DISTRICT],
        harvest,
        catalog=read_party_catalog(catalog_rows),
    )
    names = [p.name for p in results["8"].parties]
    assert names == ["ANO 2011", "Občanská demokratická strana", "Česká pirátská strana"]
    assert results["9"].parties[0].share == 50.51
    assert results["9"].parties[1].share == 49.49


def test_parties_sorted_with_stable_ties():
    results = aggregate(
        [turnout_row("1", 100, 80, 80)],
        [party_row("1", "ODS", 20), party_row("1", "ANO", 40), party_row("1", "PIR", 20)],
        IdentifierHarvest(local_ids={"1"}),
    )
    assert [p.code for p in results["1"].parties] == ["ANO", "ODS", "PIR"]


def test_precinct_without_party_rows():
    results = aggregate(
        [turnout_row("1", 100, 0, 0)],
        [party_row("2", "ANO", 5)],
        IdentifierHarvest(local_ids={"1", "2"}),
    )
    assert results["1"].parties == ()
    assert results["1"].turnout_pct == 0.0
    assert "2" not in results


def test_precincts_outside_harvest_are_dropped():
    results = aggregate(
        [turnout_row("1", 100, 50, 50), turnout_row("2", 100, 50, 50)],
        [party_row("1", "ANO", 50), party_row("2", "ANO", 50)],
        IdentifierHarvest(local_ids={"1"}, global_ids={"29587"}),
    )
    assert list(results) == ["1"]
    assert "29587" not in results


def test_paired_mode_keys_by_local_id():
    harvest = IdentifierHarvest(
        local_ids={"8", "9"},
        global_ids={"29580", "29581"},
        pairs=[("8", "29580"), ("9", "29581")],
    )
    results = aggregate(
        [turnout_row("29580", 1000, 650, 640), turnout_row("29581", 800, 400, 396)],
        [party_row("29580", "ANO", 320), party_row("29581", "ODS", 200)],
        harvest,
    )
    assert sorted(results) == ["8", "9"]
    assert results["8"].precinct_id == "8"
    assert results["8"].parties[0].votes == 320


def test_rows_sharing_a_key_are_consolidated():
    warnings = []
    harvest = IdentifierHarvest(
        local_ids={"8"}, global_ids={"29580", "29599"}, pairs=[("8", "29580"), ("8", "29599")]
    )
    results = aggregate(
        [turnout_row("29580", 600, 300, 300), turnout_row("29599", 400, 350, 340)],
        [party_row("29580", "ANO", 100), party_row("29599", "ANO", 60)],
        harvest,
        warnings=warnings,
    )
    assert results["8"].registered == 1000
    assert results["8"].returned == 650
    assert results["8"].parties[0].votes == 160
    assert warnings == []


def test_same_id_in_two_districts_is_flagged():
    warnings = []
    results = aggregate(
        [
            turnout_row("008", 1000, 650, 640, area=DISTRICT),
            turnout_row("8", 500, 250, 250, area=OTHER_DISTRICT),
        ],
        [party_row("008", "ANO", 320, area=DISTRICT), party_row("8", "ANO", 250, area=OTHER_DISTRICT)],
        IdentifierHarvest(local_ids={"8"}),
        warnings=warnings,
    )
    assert results["8"].registered == 1500
    assert len(warnings) == 1
    assert "precinct ids 8 occur in more than one district" in warnings[0]


def test_undetermined_keeps_turnout_precincts():
    results = aggregate(
        [turnout_row("1", 100, 50, 50)],
        [party_row("1", "ANO", 50)],
        IdentifierHarvest(),
    )
    assert list(results) == ["1"]


def test_allowed_parties_filter():
    results = aggregate(
        [turnout_row("1", 100, 100, 100)],
        [party_row("1", "ANO", 60), party_row("1", "ODS", 40)],
        IdentifierHarvest(local_ids={"1"}),
        catalog={"ANO": "ANO 2011", "ODS": "ODS"},
        allowed_parties=["Ano"],
    )
    parties = results["1"].parties
    assert [p.name for p in parties] == ["ANO 2011"]
    assert parties[0].share == 60.0


def test_shares_never_exceed_100(turnout_rows, party_rows, target):
    turnout = scope_rows(read_turnout(turnout_rows), target)
    party_votes = scope_rows(read_party_votes(party_rows), target)
    harvest = IdentifierHarvest(local_ids={"8", "9"})
    decision = select_join_mode(turnout["precinct_id"], harvest)
    results = aggregate_results(turnout, party_votes, decision, harvest)

    for precinct in results.values():
        total = sum(p.share for p in precinct.parties)
        assert total == pytest.approx(100.0, abs=0.05)
        assert 0 <= precinct.turnout_pct <= 100


def test_top_n():
    results = aggregate(
        [turnout_row("1", 100, 100, 100)],
        [party_row("1", "A", 50), party_row("1", "B", 30), party_row("1", "C", 20)],
        IdentifierHarvest(local_ids={"1"}),
    )
    assert [p.code for p in results["1"].top(2)] == ["A", "B"]
    assert results["1"].top(0) == ()
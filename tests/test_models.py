"""Tests for target parsing and result serialization."""

import pytest

from precincts.models import PartyResult, PrecinctResult, ResultMeta, ResultSet, TargetArea


class TestTargetArea:
    def test_parse_with_sub_area(self):
        target = TargetArea.parse("554821:545911")
        assert target == TargetArea("554821", "545911")
        assert target.label == "554821:545911"
        assert target.suffix == "554821_545911"

    def test_parse_area_only(self):
        target = TargetArea.parse(" 0582786 ")
        assert target.area == "582786"
        assert target.sub_area is None
        assert target.suffix == "582786"

    def test_parse_many(self):
        targets = TargetArea.parse_many("554821:545911, 582786,,")
        assert [t.label for t in targets] == ["554821:545911", "582786"]

    def test_empty_area_rejected(self):
        with pytest.raises(ValueError):
            TargetArea.parse(":545911")


def test_result_set_to_dict():
    precinct = PrecinctResult(
        precinct_id="8",
        registered=1000,
        issued=660,
        returned=650,
        valid=640,
        turnout_pct=65.0,
        parties=(PartyResult("ANO", "ANO 2011", 320, 50.0),),
    )
    meta = ResultMeta(
        election_tag="psp2025",
        target=TargetArea("554821", "545911"),
        join_mode_used="direct",
        generated_at="2025-10-04T12:00:00+00:00",
        source_provenance="volby.cz",
        join_counts={"turnout_ids": 1, "match_local": 1, "match_global": 0},
    )
    data = ResultSet(meta=meta, precincts={"8": precinct}).to_dict()

    assert data["meta"]["target_area"] == {"area": "554821", "sub_area": "545911"}
    assert data["meta"]["generated_at"] == "2025-10-04T12:00:00+00:00"
    assert data["precincts"]["8"] == {
        "registered": 1000,
        "issued": 660,
        "returned": 650,
        "turnout_pct": 65.0,
        "valid": 640,
        "parties": [{"code": "ANO", "name": "ANO 2011", "votes": 320, "share": 50.0}],
    }

"""
Shared fixtures: a small split city (554821) with two districts whose local
precinct numbers overlap, plus one unrelated municipality (582786).
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from precincts.field_registry import FieldRegistry
from precincts.models import TargetArea
from precincts.pipeline import ElectionDataset

CITY = "554821"
DISTRICT = "545911"
OTHER_DISTRICT = "546003"
TOWN = "582786"


@pytest.fixture
def registry():
    return FieldRegistry()


@pytest.fixture
def target():
    return TargetArea(CITY, DISTRICT)


@pytest.fixture
def turnout_rows():
    """Turnout table as read from a CSV: every cell a string."""
    return pd.DataFrame(
        [
            [CITY, DISTRICT, "008", "1000", "660", "650", "640"],
            [CITY, DISTRICT, "009", "800", "400", "400", "396"],
            [CITY, OTHER_DISTRICT, "8", "500", "250", "250", "250"],
            [TOWN, "", "1", "300", "150", "150", "150"],
        ],
        columns=["OBEC", "MOMC", "OKRSEK", "VOL_SEZNAM", "VYD_OBALKY", "ODEVZ_OBAL", "PL_HL_CELK"],
    )


@pytest.fixture
def party_rows():
    return pd.DataFrame(
        [
            [CITY, DISTRICT, "008", "ANO", "300"],
            [CITY, DISTRICT, "008", "ANO", "20"],
            [CITY, DISTRICT, "008", "ODS", "200"],
            [CITY, DISTRICT, "008", "PIR", "120"],
            [CITY, DISTRICT, "009", "ODS", "200"],
            [CITY, DISTRICT, "009", "ANO", "196"],
            [CITY, OTHER_DISTRICT, "8", "ANO", "250"],
            [TOWN, "", "1", "ANO", "150"],
        ],
        columns=["OBEC", "MOMC", "OKRSEK", "KSTRANA", "POC_HLASU"],
    )


@pytest.fixture
def catalog_rows():
    return pd.DataFrame(
        {
            "KSTRANA": ["ANO", "ODS", "PIR"],
            "NAZEV_STRANA": ["ANO 2011", "Občanská demokratická strana", "Česká pirátská strana"],
        }
    )


@pytest.fixture
def boundaries():
    """Precinct polygons carrying both local and global identifiers."""
    return gpd.GeoDataFrame(
        {
            "OBEC": [CITY, CITY, CITY, TOWN],
            "MOMC": [DISTRICT, DISTRICT, OTHER_DISTRICT, None],
            "OKRSEK": ["8", "9", "8", "1"],
            "ID_OKRSKY": ["29580", "29581", "29590", "31000"],
        },
        geometry=[box(0, 0, 1, 1), box(1, 0, 2, 1), box(0, 1, 1, 2), box(5, 5, 6, 6)],
        crs="EPSG:4326",
    )


@pytest.fixture
def dataset(turnout_rows, party_rows, catalog_rows, boundaries):
    return ElectionDataset(
        tag="psp2025",
        turnout=turnout_rows,
        party_votes=party_rows,
        boundaries=boundaries,
        catalog=catalog_rows,
        provenance="volby.cz (CSV + ciselniky)",
    )

"""
Precinct results core

Schema resolution, precinct identifier joining and per-precinct aggregation
for election releases whose column names and identifier schemes drift
between years.
"""

__version__ = "0.1.0"

from .aggregator import aggregate_results
from .boundaries import (
    FilterResult,
    IdentifierHarvest,
    filter_features,
    harvest_identifiers,
    key_boundaries,
)
from .errors import (
    JoinModeUndetermined,
    MalformedNumericValue,
    PrecinctPipelineError,
    SchemaResolutionError,
    ZeroMatchWarning,
)
from .field_registry import FieldAlias, FieldRegistry
from .join_mode import JoinDecision, JoinMode, select_join_mode
from .models import PartyResult, PrecinctResult, ResultSet, TargetArea
from .pipeline import (
    ElectionDataset,
    UnitOutcome,
    UnitState,
    ZeroMatchPolicy,
    run_all,
    run_unit,
)
from .schema import canon, normalize_code, parse_number, resolve_field
from .tabular import read_party_catalog, read_party_votes, read_turnout

__all__ = [
    "canon",
    "resolve_field",
    "normalize_code",
    "parse_number",
    "FieldAlias",
    "FieldRegistry",
    "read_turnout",
    "read_party_votes",
    "read_party_catalog",
    "filter_features",
    "harvest_identifiers",
    "key_boundaries",
    "FilterResult",
    "IdentifierHarvest",
    "select_join_mode",
    "JoinDecision",
    "JoinMode",
    "aggregate_results",
    "TargetArea",
    "PartyResult",
    "PrecinctResult",
    "ResultSet",
    "ElectionDataset",
    "UnitOutcome",
    "UnitState",
    "ZeroMatchPolicy",
    "run_unit",
    "run_all",
    "PrecinctPipelineError",
    "SchemaResolutionError",
    "MalformedNumericValue",
    "ZeroMatchWarning",
    "JoinModeUndetermined",
]

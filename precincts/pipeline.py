#!/usr/bin/env python3
"""
pipeline.py - Per (election, target area) orchestration

Each unit runs: area scoping of the tabular rows -> administrative filter ->
identifier harvest -> join-mode selection -> aggregation, and emits one
ResultSet plus the target's boundary collection keyed by precinct id.

Units are isolated: a fatal error in one unit is logged and recorded on its
outcome, and the remaining units still run.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from .aggregator import aggregate_results
from .boundaries import (
    Features,
    FilterResult,
    as_geodataframe,
    filter_features,
    harvest_identifiers,
    key_boundaries,
)
from .errors import PrecinctPipelineError
from .field_registry import FieldRegistry
from .join_mode import select_join_mode
from .models import ResultMeta, ResultSet, TargetArea
from .tabular import (
    Rows,
    read_party_catalog,
    read_party_votes,
    read_turnout,
    resolved_columns,
    scope_rows,
)


class UnitState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


class ZeroMatchPolicy(str, Enum):
    CONTINUE = "continue"  # proceed with an empty selection, flagged in meta
    UNFILTERED = "unfiltered"  # harvest identifiers from the whole collection
    SKIP = "skip"  # fail the unit


@dataclass
class ElectionDataset:
    """Materialized inputs of one election release."""

    tag: str
    turnout: Rows
    party_votes: Rows
    boundaries: Features
    catalog: Optional[Union[Rows, Mapping[str, str]]] = None
    provenance: str = ""
    allowed_parties: Optional[List[str]] = None


@dataclass
class PreparedElection:
    """An election whose tables have been read and normalized."""

    tag: str
    turnout: pd.DataFrame
    party_votes: pd.DataFrame
    boundaries: gpd.GeoDataFrame
    catalog: Dict[str, str]
    provenance: str = ""
    allowed_parties: Optional[List[str]] = None

    def resolved_columns(self) -> Dict[str, Dict[str, Optional[str]]]:
        return {
            "turnout": resolved_columns(self.turnout),
            "party_votes": resolved_columns(self.party_votes),
        }


@dataclass
class UnitOutcome:
    """State and products of one (election, target) unit."""

    election_tag: str
    target: TargetArea
    state: UnitState = UnitState.PENDING
    result_set: Optional[ResultSet] = None
    boundaries: Optional[gpd.GeoDataFrame] = None
    error: Optional[BaseException] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return f"{self.election_tag}/{self.target.label}"

    def start(self) -> None:
        if self.state is not UnitState.PENDING:
            raise RuntimeError(f"Unit {self.label} already {self.state.value}")
        self.state = UnitState.RUNNING

    def finish(self, result_set: ResultSet, boundaries: gpd.GeoDataFrame) -> None:
        self.result_set = result_set
        self.boundaries = boundaries
        self.state = UnitState.DONE

    def fail(self, error: BaseException) -> None:
        self.error = error
        self.state = UnitState.FAILED


def prepare_election(
    dataset: ElectionDataset, registry: Optional[FieldRegistry] = None
) -> PreparedElection:
    """
    Read and normalize an election's tables.

    Raises:
        SchemaResolutionError: when the turnout or party table cannot be resolved
    """
    registry = registry or FieldRegistry()
    logger.info(f"📊 Reading tables for {dataset.tag}")
    turnout = read_turnout(dataset.turnout, registry, label=f"{dataset.tag} turnout")
    party_votes = read_party_votes(
        dataset.party_votes, registry, label=f"{dataset.tag} party votes"
    )
    catalog = read_party_catalog(dataset.catalog, registry, label=f"{dataset.tag} party catalog")
    boundaries = as_geodataframe(dataset.boundaries)
    logger.info(f"  📄 {len(boundaries):,} boundary features")

    return PreparedElection(
        tag=dataset.tag,
        turnout=turnout,
        party_votes=party_votes,
        boundaries=boundaries,
        catalog=catalog,
        provenance=dataset.provenance,
        allowed_parties=dataset.allowed_parties,
    )


def _generated_at(now: Optional[Callable[[], datetime]]) -> str:
    moment = now() if now else datetime.now(timezone.utc)
    return moment.isoformat()


def run_unit(
    election: Union[ElectionDataset, PreparedElection],
    target: TargetArea,
    registry: Optional[FieldRegistry] = None,
    zero_match_policy: Union[str, ZeroMatchPolicy] = ZeroMatchPolicy.CONTINUE,
    now: Optional[Callable[[], datetime]] = None,
) -> UnitOutcome:
    """
    Run one (election, target) unit.

    Fatal errors are caught and recorded on the returned outcome rather
    than raised, so callers can carry on with other units.
    """
    registry = registry or FieldRegistry()
    policy = ZeroMatchPolicy(zero_match_policy)
    tag = election.tag
    outcome = UnitOutcome(election_tag=tag, target=target)
    outcome.start()
    logger.info(f"🚀 Unit {outcome.label}")

    try:
        if isinstance(election, ElectionDataset):
            election = prepare_election(election, registry)

        turnout = scope_rows(election.turnout, target)
        party_votes = scope_rows(election.party_votes, target)

        selection: FilterResult = filter_features(election.boundaries, target, registry)
        features = selection.features
        if selection.warning is not None:
            outcome.warnings.append(str(selection.warning))
            if policy is ZeroMatchPolicy.SKIP:
                raise PrecinctPipelineError(str(selection.warning))
            if policy is ZeroMatchPolicy.UNFILTERED:
                logger.info("  🔄 Retrying identifier harvest on the unfiltered collection")
                features = election.boundaries

        harvest = harvest_identifiers(features, registry)
        decision = select_join_mode(turnout["precinct_id"], harvest)
        if decision.warning is not None:
            outcome.warnings.append(str(decision.warning))

        precincts = aggregate_results(
            turnout,
            party_votes,
            decision,
            harvest,
            catalog=election.catalog,
            allowed_parties=election.allowed_parties,
            warnings=outcome.warnings,
        )

        meta = ResultMeta(
            election_tag=tag,
            target=target,
            join_mode_used=decision.mode.value,
            generated_at=_generated_at(now),
            source_provenance=election.provenance,
            join_counts=decision.counts(),
            resolved_columns=election.resolved_columns(),
            warnings=tuple(outcome.warnings),
        )
        keyed = key_boundaries(features, harvest, registry)
        outcome.finish(ResultSet(meta=meta, precincts=precincts), keyed)
        logger.success(f"✅ {outcome.label}: {len(precincts):,} precincts")

    except Exception as e:
        logger.error(f"❌ Unit {outcome.label} failed: {type(e).__name__}: {e}")
        outcome.fail(e)

    return outcome


def run_all(
    datasets: Iterable[ElectionDataset],
    targets: Sequence[TargetArea],
    registry: Optional[FieldRegistry] = None,
    zero_match_policy: Union[str, ZeroMatchPolicy] = ZeroMatchPolicy.CONTINUE,
    on_outcome: Optional[Callable[[UnitOutcome], Any]] = None,
    now: Optional[Callable[[], datetime]] = None,
) -> List[UnitOutcome]:
    """
    Run every (election, target) unit.

    Tables are read once per election. When an election's tables cannot be
    read, all of its units fail with that error and other elections proceed.

    Args:
        datasets: Election inputs
        targets: Target areas
        registry: Alias tables shared read-only by all units
        zero_match_policy: What to do when a target matches no boundary feature
        on_outcome: Called with each finished outcome (e.g. to write outputs)
        now: Clock used for meta.generated_at

    Returns:
        One outcome per unit, in election then target order
    """
    registry = registry or FieldRegistry()
    outcomes: List[UnitOutcome] = []

    for dataset in datasets:
        try:
            prepared = prepare_election(dataset, registry)
        except Exception as e:
            logger.error(f"🔴 {dataset.tag}: tables unusable, skipping its targets: {e}")
            for target in targets:
                outcome = UnitOutcome(election_tag=dataset.tag, target=target)
                outcome.start()
                outcome.fail(e)
                outcomes.append(outcome)
                if on_outcome:
                    on_outcome(outcome)
            continue

        for target in targets:
            outcome = run_unit(prepared, target, registry, zero_match_policy, now=now)
            outcomes.append(outcome)
            if on_outcome:
                on_outcome(outcome)

    done = sum(1 for o in outcomes if o.state is UnitState.DONE)
    logger.info(f"📊 Units finished: {done}/{len(outcomes)} done")
    return outcomes

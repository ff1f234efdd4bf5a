#!/usr/bin/env python3
"""
aggregator.py - Canonical per-precinct results

Merges normalized turnout and party-vote rows into one PrecinctResult per
precinct. The turnout table defines which precincts exist; party rows for
precincts it does not list are dropped.
"""

from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd
from loguru import logger

from .boundaries import IdentifierHarvest
from .join_mode import JoinDecision, JoinMode
from .models import PartyResult, PrecinctResult
from .tabular import TURNOUT_COUNTS, lookup_party_name


def turnout_percentage(returned: int, registered: int) -> float:
    """round(100 * returned / registered, 2), 0 without registered voters."""
    if registered <= 0:
        return 0.0
    pct = round(100 * returned / registered, 2)
    if pct > 100:
        logger.warning(f"  ⚠️ {returned} returned envelopes exceed {registered} registered voters")
        return 100.0
    return max(pct, 0.0)


def vote_share(votes: int, valid: int) -> float:
    """round(100 * votes / valid, 2), 0 without valid votes."""
    if valid <= 0:
        return 0.0
    return max(round(100 * votes / valid, 2), 0.0)


def precinct_key_function(
    decision: JoinDecision, harvest: IdentifierHarvest
) -> Callable[[str], Optional[str]]:
    """
    Map a tabular precinct identifier to its result key.

    Returns None for identifiers outside the active join mode's scope.
    """
    if decision.mode is JoinMode.UNDETERMINED:
        # Best effort: keep every area-scoped turnout precinct as keyed
        return lambda precinct_id: precinct_id

    if decision.effective_mode is JoinMode.PAIRED:
        pair_map = harvest.pair_map()
        return pair_map.get

    local_ids = harvest.local_ids
    return lambda precinct_id: precinct_id if precinct_id in local_ids else None


def mixed_scope_keys(keyed: pd.DataFrame) -> List[str]:
    """Keys whose rows come from more than one (area, sub-area) scope."""
    scopes = keyed["area_code"].fillna("") + ":" + keyed["sub_area_code"].fillna("")
    spread = scopes.groupby(keyed["key"], sort=False).nunique()
    return [str(key) for key in spread[spread > 1].index]


def _allowed(name: str, allowed_parties: Optional[List[str]]) -> bool:
    if not allowed_parties:
        return True
    lowered = (name or "").lower()
    return any(fragment in lowered for fragment in allowed_parties)


def aggregate_results(
    turnout: pd.DataFrame,
    party_votes: pd.DataFrame,
    decision: JoinDecision,
    harvest: IdentifierHarvest,
    catalog: Optional[Mapping[str, str]] = None,
    allowed_parties: Optional[Iterable[str]] = None,
    warnings: Optional[List[str]] = None,
) -> Dict[str, PrecinctResult]:
    """
    Build canonical precinct results.

    Args:
        turnout: Normalized turnout rows (already scoped to the target area)
        party_votes: Normalized party-vote rows (already scoped)
        decision: Join decision for this unit
        harvest: Boundary identifiers
        catalog: Party code -> display name
        allowed_parties: Optional name fragments restricting the party list
        warnings: Receives a message when precincts of different districts share a key

    Returns:
        Results keyed by precinct id, in first-seen turnout order
    """
    catalog = catalog or {}
    allowed = [str(a).lower() for a in allowed_parties] if allowed_parties else None
    key_of = precinct_key_function(decision, harvest)

    turnout = turnout.assign(key=turnout["precinct_id"].map(key_of))
    out_of_scope = int(turnout["key"].isna().sum())
    if out_of_scope:
        logger.debug(f"    🧹 {out_of_scope} turnout rows outside the {decision.mode.value} join")
    turnout = turnout[turnout["key"].notna()]

    mixed = mixed_scope_keys(turnout)
    if mixed:
        message = (
            f"precinct ids {', '.join(mixed)} occur in more than one district; "
            "their rows were summed"
        )
        logger.warning(f"  ⚠️ {message}")
        if warnings is not None:
            warnings.append(message)

    # Rows collapsing onto one key are parts of the same precinct
    totals = turnout.groupby("key", sort=False)[list(TURNOUT_COUNTS)].sum()
    if len(totals) < len(turnout):
        logger.debug(f"    🔀 Consolidated {len(turnout)} turnout rows into {len(totals)} precincts")

    party_votes = party_votes.assign(key=party_votes["precinct_id"].map(key_of))
    party_votes = party_votes[party_votes["key"].isin(totals.index)]
    votes_by_party = party_votes.groupby(["key", "party_code"], sort=False)["votes"].sum()

    parties_by_key: Dict[str, List[tuple]] = {}
    for (key, code), votes in votes_by_party.items():
        parties_by_key.setdefault(key, []).append((code, int(votes)))

    results: Dict[str, PrecinctResult] = {}
    for key, row in totals.iterrows():
        registered = int(row["registered"])
        valid = int(row["valid"])
        returned = int(row["returned"])

        parties = []
        for code, votes in parties_by_key.get(key, []):
            name = lookup_party_name(catalog, code)
            if not _allowed(name, allowed):
                continue
            parties.append(PartyResult(code, name, votes, vote_share(votes, valid)))
        # sorted() is stable, so ties keep first-seen order
        parties = sorted(parties, key=lambda p: -p.votes)

        results[key] = PrecinctResult(
            precinct_id=key,
            registered=registered,
            issued=int(row["issued"]),
            returned=returned,
            valid=valid,
            turnout_pct=turnout_percentage(returned, registered),
            parties=tuple(parties),
        )

    logger.info(
        f"  🗳️ Aggregated {len(results):,} precincts ({len(parties_by_key):,} with party rows)"
    )
    return results

"""
Join-mode selection.

Turnout tables are keyed either by the local precinct number shown on the
boundary file or by the boundary file's global key. Which one applies is a
property of the (election, target) pairing, so it is decided once per unit by
counting how many turnout identifiers land in each identifier space.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional

from loguru import logger

from .boundaries import IdentifierHarvest
from .errors import JoinModeUndetermined
from .schema import normalize_code


class JoinMode(str, Enum):
    DIRECT = "direct"
    PAIRED = "paired"
    UNDETERMINED = "undetermined"


@dataclass(frozen=True)
class JoinDecision:
    mode: JoinMode
    match_local: int
    match_global: int
    total: int

    @property
    def effective_mode(self) -> JoinMode:
        """Mode used for joining; undetermined falls back to direct."""
        return JoinMode.DIRECT if self.mode is JoinMode.UNDETERMINED else self.mode

    @property
    def warning(self) -> Optional[JoinModeUndetermined]:
        if self.mode is not JoinMode.UNDETERMINED:
            return None
        return JoinModeUndetermined(self.total, self.match_local, self.match_global)

    def counts(self) -> Dict[str, int]:
        return {
            "turnout_ids": self.total,
            "match_local": self.match_local,
            "match_global": self.match_global,
        }


def select_join_mode(turnout_ids: Iterable[str], harvest: IdentifierHarvest) -> JoinDecision:
    """
    Decide which identifier space links turnout rows to boundary features.

    Args:
        turnout_ids: Precinct identifier of every turnout row
        harvest: Identifiers collected from the boundary features

    Returns:
        JoinDecision with the chosen mode and the match counts behind it
    """
    match_local = match_global = total = 0
    for raw_id in turnout_ids:
        precinct_id = normalize_code(raw_id)
        if precinct_id is None:
            continue
        total += 1
        if precinct_id in harvest.local_ids:
            match_local += 1
        if precinct_id in harvest.global_ids:
            match_global += 1

    if match_local == 0 and match_global == 0:
        mode = JoinMode.UNDETERMINED
    elif match_local >= match_global:
        mode = JoinMode.DIRECT
    else:
        mode = JoinMode.PAIRED

    decision = JoinDecision(mode, match_local, match_global, total)
    if mode is JoinMode.UNDETERMINED:
        logger.warning(f"  ⚠️ Join mode undetermined: {decision.warning}")
    else:
        logger.info(
            f"  🔗 Join mode: {mode.value} "
            f"(local {match_local}/{total}, global {match_global}/{total})"
        )
    return decision

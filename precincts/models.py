"""Data model for precinct results."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .schema import normalize_code


@dataclass(frozen=True)
class TargetArea:
    """A municipality, optionally narrowed to one municipal district."""

    area: str
    sub_area: Optional[str] = None

    def __post_init__(self):
        area = normalize_code(self.area)
        if not area:
            raise ValueError(f"Target area code is empty: {self.area!r}")
        object.__setattr__(self, "area", area)
        object.__setattr__(self, "sub_area", normalize_code(self.sub_area))

    @classmethod
    def parse(cls, text: str) -> "TargetArea":
        """Parse "AREA" or "AREA:SUBAREA"."""
        area, _, sub_area = str(text).strip().partition(":")
        return cls(area.strip(), sub_area.strip() or None)

    @classmethod
    def parse_many(cls, text: str) -> List["TargetArea"]:
        """Parse a comma separated list such as "554821:545911,554782"."""
        return [cls.parse(item) for item in str(text).split(",") if item.strip()]

    @property
    def label(self) -> str:
        return f"{self.area}:{self.sub_area}" if self.sub_area else self.area

    @property
    def suffix(self) -> str:
        return f"{self.area}_{self.sub_area}" if self.sub_area else self.area

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"area": self.area, "sub_area": self.sub_area}


@dataclass(frozen=True)
class PartyResult:
    code: str
    name: str
    votes: int
    share: float

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "name": self.name, "votes": self.votes, "share": self.share}


@dataclass(frozen=True)
class PrecinctResult:
    """Canonical result for one precinct. Parties are ordered by votes."""

    precinct_id: str
    registered: int
    issued: int
    returned: int
    valid: int
    turnout_pct: float
    parties: Tuple[PartyResult, ...] = ()

    def top(self, n: int) -> Tuple[PartyResult, ...]:
        return self.parties[: max(n, 0)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "registered": self.registered,
            "issued": self.issued,
            "returned": self.returned,
            "turnout_pct": self.turnout_pct,
            "valid": self.valid,
            "parties": [p.to_dict() for p in self.parties],
        }


@dataclass(frozen=True)
class ResultMeta:
    election_tag: str
    target: TargetArea
    join_mode_used: str
    generated_at: str
    source_provenance: str = ""
    join_counts: Mapping[str, int] = field(default_factory=dict)
    resolved_columns: Mapping[str, Mapping[str, Optional[str]]] = field(default_factory=dict)
    warnings: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "join_counts", MappingProxyType(dict(self.join_counts)))
        resolved = {
            table: MappingProxyType(dict(columns))
            for table, columns in self.resolved_columns.items()
        }
        object.__setattr__(self, "resolved_columns", MappingProxyType(resolved))
        object.__setattr__(self, "warnings", tuple(self.warnings))

    def to_dict(self, include_generated: bool = True) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            "election_tag": self.election_tag,
            "target_area": self.target.to_dict(),
            "join_mode_used": self.join_mode_used,
            "source_provenance": self.source_provenance,
            "join_counts": dict(self.join_counts),
            "resolved_columns": {k: dict(v) for k, v in self.resolved_columns.items()},
            "warnings": list(self.warnings),
        }
        if include_generated:
            meta["generated_at"] = self.generated_at
        return meta


@dataclass(frozen=True)
class ResultSet:
    """All precinct results of one (election, target) unit. Read-only."""

    meta: ResultMeta
    precincts: Mapping[str, PrecinctResult]

    def __post_init__(self):
        object.__setattr__(self, "precincts", MappingProxyType(dict(self.precincts)))

    def __len__(self) -> int:
        return len(self.precincts)

    def to_dict(self, include_generated: bool = True) -> Dict[str, Any]:
        return {
            "meta": self.meta.to_dict(include_generated=include_generated),
            "precincts": {pid: result.to_dict() for pid, result in self.precincts.items()},
        }

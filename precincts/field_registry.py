#!/usr/bin/env python3
"""
Field Registry for the Precinct Results Pipeline

This module keeps the alias tables used to recognize semantic fields in
tabular releases and boundary files. Each semantic field has an ordered
list of candidate names; earlier candidates win over later ones, so the
most specific alias goes first and generic ones last.

The registry handles schema drift by letting a configuration prepend
release-specific aliases without touching the defaults.
"""

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .errors import SchemaResolutionError
from .schema import resolve_field

TURNOUT = "turnout"
PARTY_VOTES = "party_votes"
PARTY_CATALOG = "party_catalog"
BOUNDARIES = "boundaries"


@dataclass(frozen=True)
class FieldAlias:
    """A semantic field and the raw names it is known by."""

    name: str
    candidates: Tuple[str, ...]
    required: bool = True
    description: str = ""


AREA_CODE = ("OBEC", "KOD_OBEC", "CIS_OBEC", "KOD_OBCE", "OBEC_KOD")
SUB_AREA_CODE = ("MOMC", "KOD_MOMC", "CIS_MOMC", "MOMC_KOD")
PRECINCT_ID = ("OKRSEK", "CIS_OKRSEK", "CISLO_OKRSKU")
PARTY_CODE = ("KSTRANA", "KOD_STRANY", "KOD_SUBJEKTU", "KODSTRANA", "NSTRANA")

DEFAULT_FIELDS: Dict[str, List[FieldAlias]] = {
    TURNOUT: [
        FieldAlias("area_code", AREA_CODE, description="Municipality code"),
        FieldAlias(
            "sub_area_code", SUB_AREA_CODE, required=False, description="Municipal district code"
        ),
        FieldAlias("precinct_id", PRECINCT_ID, description="Precinct identifier"),
        FieldAlias(
            "registered",
            ("VOL_SEZNAM", "ZAPSANI_VOLICI", "VOLICI_V_SEZNAMU", "VOLICI_SEZNAM"),
            description="Registered voters",
        ),
        FieldAlias(
            "issued",
            ("VYD_OBALKY", "VYDANE_OBALKY", "VYDOBALKY"),
            required=False,
            description="Issued envelopes",
        ),
        FieldAlias(
            "returned",
            ("ODEVZ_OBAL", "ODEVZDANE_OBALKY", "ODEVZ_OBALKY", "ODEVZ_OBALY"),
            description="Returned envelopes",
        ),
        FieldAlias(
            "valid",
            ("PL_HL_CELK", "PLATNE_HLASY", "PLATNE_HLASY_CELK"),
            description="Valid votes",
        ),
    ],
    PARTY_VOTES: [
        FieldAlias("area_code", AREA_CODE, description="Municipality code"),
        FieldAlias(
            "sub_area_code", SUB_AREA_CODE, required=False, description="Municipal district code"
        ),
        FieldAlias("precinct_id", PRECINCT_ID, description="Precinct identifier"),
        FieldAlias("party_code", PARTY_CODE, description="Party or coalition code"),
        FieldAlias("votes", ("POC_HLASU", "HLASY", "HLASY_CELK"), description="Vote count"),
    ],
    PARTY_CATALOG: [
        FieldAlias("party_code", PARTY_CODE + ("VSTRANA",), description="Party code"),
        FieldAlias(
            "name",
            ("NAZEV_STRANA", "NAZ_STRANA", "NAZEV_STRN", "NAZEV_SUBJEKTU", "NAZEV"),
            description="Party display name",
        ),
    ],
    BOUNDARIES: [
        FieldAlias(
            "area_code",
            AREA_CODE,
            description="Municipality code property",
        ),
        FieldAlias(
            "sub_area_code",
            SUB_AREA_CODE,
            required=False,
            description="Municipal district code property",
        ),
        FieldAlias(
            "local_id",
            ("OKRSEK", "CIS_OKRSEK", "CISLO_OKRSKU", "OKRSEK_CISLO", "CISLO_OKRSKU_TEXT"),
            required=False,
            description="Precinct number as printed on signage",
        ),
        FieldAlias(
            "global_id",
            ("ID_OKRSKY", "ID_OKRSKU", "KOD_OKRSKU", "OKRSEK_KOD", "OKRSEK_ID"),
            required=False,
            description="Internal numeric precinct key",
        ),
    ],
}


class FieldRegistry:
    """
    Registry of semantic fields per table kind.
    Resolves a table's raw column names to semantic fields in one place.
    """

    def __init__(self, overrides: Optional[Mapping[str, Mapping[str, Sequence[str]]]] = None):
        self._fields: Dict[str, Dict[str, FieldAlias]] = {}
        for table, fields in DEFAULT_FIELDS.items():
            for field_def in fields:
                self.register(table, field_def)
        if overrides:
            self.apply_overrides(overrides)

    def register(self, table: str, field_def: FieldAlias) -> None:
        """Register (or replace) a field definition for a table kind."""
        self._fields.setdefault(table, {})[field_def.name] = field_def
        logger.trace(f"Registered field: {table}.{field_def.name}")

    def apply_overrides(self, overrides: Mapping[str, Mapping[str, Sequence[str]]]) -> None:
        """
        Prepend configured aliases to the default candidates.

        Args:
            overrides: {table: {field: [alias, ...]}}
        """
        for table, fields in overrides.items():
            for name, aliases in (fields or {}).items():
                if isinstance(aliases, str):
                    aliases = [aliases]
                current = self.get(table, name)
                merged = tuple(aliases) + tuple(
                    c for c in current.candidates if c not in set(aliases)
                )
                self.register(table, replace(current, candidates=merged))
                logger.debug(f"  🔧 Alias override for {table}.{name}: {list(aliases)}")

    def tables(self) -> List[str]:
        return list(self._fields)

    def fields(self, table: str) -> List[FieldAlias]:
        if table not in self._fields:
            raise KeyError(f"Unknown table kind: {table}")
        return list(self._fields[table].values())

    def get(self, table: str, name: str) -> FieldAlias:
        try:
            return self._fields[table][name]
        except KeyError:
            raise KeyError(f"Field {table}.{name} not found in registry") from None

    def candidates(self, table: str, name: str) -> Tuple[str, ...]:
        return self.get(table, name).candidates

    def explain(self, table: str, columns: Iterable[str]) -> Dict[str, Optional[str]]:
        """Resolve every field of a table kind without failing on gaps.

        Required fields claim their columns before optional ones, and a
        claimed column is never handed to a second field.
        """
        columns = list(columns)
        fields = self.fields(table)
        found: Dict[str, Optional[str]] = {}
        claimed: List[str] = []
        for field_def in sorted(fields, key=lambda f: not f.required):
            key = resolve_field(columns, field_def.candidates, exclude=claimed)
            found[field_def.name] = key
            if key is not None:
                claimed.append(key)
        return {f.name: found[f.name] for f in fields}

    def resolve_columns(
        self, table: str, columns: Iterable[str], label: Optional[str] = None
    ) -> Dict[str, Optional[str]]:
        """
        Resolve a table's columns to semantic fields.

        Args:
            table: Table kind (turnout, party_votes, ...)
            columns: Raw column names of the table
            label: Name used in log and error messages

        Returns:
            Mapping of field name to raw column (None for absent optional fields)

        Raises:
            SchemaResolutionError: when a required field has no matching column
        """
        columns = list(columns)
        label = label or table
        resolved = self.explain(table, columns)

        missing = [
            f.name for f in self.fields(table) if f.required and resolved.get(f.name) is None
        ]
        if missing:
            logger.error(f"❌ {label}: missing required columns {missing}")
            logger.info(f"Available columns: {columns}")
            raise SchemaResolutionError(label, missing, columns)

        for name, key in resolved.items():
            if key is not None:
                logger.debug(f"  📍 {label}: {name} ← '{key}'")
        return resolved

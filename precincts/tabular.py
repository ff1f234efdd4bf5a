#!/usr/bin/env python3
"""
tabular.py - Turnout, party-vote and party-catalog readers

Every reader resolves its semantic fields once for the whole table (not per
row), then maps all rows onto a normalized frame with fixed snake_case
column names. Downstream code never sees the raw release headers.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import pandas as pd
from loguru import logger

from .errors import SchemaResolutionError
from .field_registry import PARTY_CATALOG, PARTY_VOTES, TURNOUT, FieldRegistry
from .models import TargetArea
from .schema import is_missing, normalize_code, normalize_code_series, parse_count_series

Rows = Union[pd.DataFrame, Iterable[Mapping[str, Any]]]

ID_FIELDS = ("area_code", "sub_area_code", "precinct_id")
TURNOUT_COUNTS = ("registered", "issued", "returned", "valid")
PARTY_COUNTS = ("votes",)


def as_frame(rows: Rows) -> pd.DataFrame:
    """Accept a DataFrame or any iterable of string-keyed records."""
    if isinstance(rows, pd.DataFrame):
        return rows.copy()
    return pd.DataFrame.from_records(list(rows))


def resolved_columns(frame: pd.DataFrame) -> Dict[str, Optional[str]]:
    """Field-to-raw-column mapping recorded by the reader that built ``frame``."""
    return dict(frame.attrs.get("resolved_columns", {}))


def _clean_text(value: Any) -> Optional[str]:
    return None if is_missing(value) else str(value).strip()


def _read_table(
    rows: Rows,
    table: str,
    registry: FieldRegistry,
    label: str,
    counts: Iterable[str],
) -> pd.DataFrame:
    raw = as_frame(rows)
    if raw.empty:
        required = [f.name for f in registry.fields(table) if f.required]
        logger.error(f"❌ {label}: table is empty")
        raise SchemaResolutionError(label, required, list(raw.columns))

    raw.columns = [str(col) for col in raw.columns]
    resolved = registry.resolve_columns(table, raw.columns, label=label)
    counts = set(counts)

    out = pd.DataFrame(index=raw.index)
    for field_def in registry.fields(table):
        key = resolved.get(field_def.name)
        if field_def.name in counts:
            if key is None:
                out[field_def.name] = 0
            else:
                out[field_def.name] = parse_count_series(raw[key], field_def.name)
        elif field_def.name in ID_FIELDS:
            out[field_def.name] = normalize_code_series(raw[key]) if key else None
        else:
            out[field_def.name] = raw[key].map(_clean_text) if key else None

    # Rows without a precinct identifier cannot be keyed
    unkeyed = out["precinct_id"].isna()
    if unkeyed.any():
        logger.debug(f"    🧹 {label}: dropped {int(unkeyed.sum())} rows without precinct id")
        out = out[~unkeyed]

    out = out.reset_index(drop=True)
    out.attrs["resolved_columns"] = dict(resolved)
    logger.info(f"  ✅ {label}: {len(out):,} rows read")
    return out


def read_turnout(
    rows: Rows, registry: Optional[FieldRegistry] = None, label: str = "turnout"
) -> pd.DataFrame:
    """
    Read a turnout table into normalized records.

    Returns:
        DataFrame with area_code, sub_area_code, precinct_id, registered,
        issued, returned and valid columns

    Raises:
        SchemaResolutionError: when a required column cannot be resolved
    """
    return _read_table(rows, TURNOUT, registry or FieldRegistry(), label, TURNOUT_COUNTS)


def read_party_votes(
    rows: Rows, registry: Optional[FieldRegistry] = None, label: str = "party votes"
) -> pd.DataFrame:
    """
    Read a per-party vote table into normalized records.

    Returns:
        DataFrame with area_code, sub_area_code, precinct_id, party_code and votes

    Raises:
        SchemaResolutionError: when a required column cannot be resolved
    """
    frame = _read_table(rows, PARTY_VOTES, registry or FieldRegistry(), label, PARTY_COUNTS)
    missing_code = frame["party_code"].isna()
    if missing_code.any():
        logger.debug(f"    🧹 {label}: dropped {int(missing_code.sum())} rows without party code")
        attrs = dict(frame.attrs)
        frame = frame[~missing_code].reset_index(drop=True)
        frame.attrs.update(attrs)
    return frame


def read_party_catalog(
    rows: Optional[Rows], registry: Optional[FieldRegistry] = None, label: str = "party catalog"
) -> Dict[str, str]:
    """Read a code -> display name catalog.

    The catalog is optional, so an unreadable catalog yields an empty
    mapping (names then fall back to codes) instead of an error.
    """
    if rows is None:
        return {}
    if isinstance(rows, Mapping):
        return {str(k).strip(): str(v).strip() for k, v in rows.items() if not is_missing(v)}

    raw = as_frame(rows)
    if raw.empty:
        logger.warning(f"⚠️ {label}: empty, party names fall back to codes")
        return {}

    registry = registry or FieldRegistry()
    try:
        resolved = registry.resolve_columns(PARTY_CATALOG, [str(c) for c in raw.columns], label)
    except SchemaResolutionError as e:
        logger.warning(f"⚠️ {label} unusable, party names fall back to codes: {e}")
        return {}

    raw.columns = [str(col) for col in raw.columns]
    code_col, name_col = resolved["party_code"], resolved["name"]
    catalog: Dict[str, str] = {}
    for code, name in zip(raw[code_col].tolist(), raw[name_col].tolist()):
        code, name = _clean_text(code), _clean_text(name)
        if code and name:
            catalog[code] = name

    logger.info(f"  📚 {label}: {len(catalog)} party names")
    return catalog


def lookup_party_name(catalog: Mapping[str, str], code: str) -> str:
    """Display name for a party code; the code itself when uncatalogued."""
    if code in catalog:
        return catalog[code]
    normalized = normalize_code(code)
    for key, name in catalog.items():
        if normalize_code(key) == normalized:
            return name
    return code


def scope_rows(frame: pd.DataFrame, target: TargetArea) -> pd.DataFrame:
    """
    Keep the rows of a normalized table that belong to a target area.

    Split cities record districts either in a sub-area column or directly
    as the area code, so a district target accepts both encodings.
    """
    if frame.empty:
        return frame

    area = frame["area_code"]
    sub_area = frame["sub_area_code"]
    if target.sub_area:
        if sub_area.notna().any():
            mask = (sub_area == target.sub_area) | (area == target.sub_area)
        else:
            mask = area.isin([target.area, target.sub_area])
    else:
        mask = area == target.area

    attrs = dict(frame.attrs)
    scoped = frame[mask].reset_index(drop=True)
    scoped.attrs.update(attrs)
    logger.debug(f"    🎯 {target.label}: {len(scoped):,}/{len(frame):,} rows in scope")
    return scoped


def distinct_ids(frame: pd.DataFrame) -> List[str]:
    """Precinct identifiers in first-seen order."""
    return list(dict.fromkeys(frame["precinct_id"].dropna().tolist()))

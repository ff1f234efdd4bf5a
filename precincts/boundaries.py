#!/usr/bin/env python3
"""
boundaries.py - Precinct boundary handling

Administrative filtering of boundary features to a target area and harvesting
of the precinct identifiers they carry. Boundary releases differ in which
identifier forms they expose: the local precinct number printed on signage,
an internal global key, or both.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from .errors import ZeroMatchWarning
from .field_registry import BOUNDARIES, FieldRegistry
from .models import TargetArea
from .schema import is_missing, normalize_code, resolve_field

Features = Union[gpd.GeoDataFrame, Mapping[str, Any], List[Mapping[str, Any]]]


@dataclass
class FilterResult:
    """Outcome of the administrative filter."""

    features: gpd.GeoDataFrame
    total: int
    warning: Optional[ZeroMatchWarning] = None

    @property
    def matched(self) -> int:
        return len(self.features)

    @property
    def is_empty(self) -> bool:
        return self.matched == 0


@dataclass
class IdentifierHarvest:
    """Identifiers seen on a feature set, normalized."""

    local_ids: Set[str] = field(default_factory=set)
    global_ids: Set[str] = field(default_factory=set)
    pairs: List[Tuple[str, str]] = field(default_factory=list)

    def pair_map(self) -> Dict[str, str]:
        """Global -> local identifier; the first pair seen for a global id wins."""
        mapping: Dict[str, str] = {}
        for local_id, global_id in self.pairs:
            mapping.setdefault(global_id, local_id)
        return mapping


def as_geodataframe(features: Features) -> gpd.GeoDataFrame:
    """Accept a GeoDataFrame, a GeoJSON FeatureCollection or a list of features."""
    if isinstance(features, gpd.GeoDataFrame):
        return features.copy()
    if isinstance(features, Mapping):
        if features.get("type") == "Feature":
            features = [features]
        else:
            features = features.get("features") or []
    features = list(features)
    if not features:
        return gpd.GeoDataFrame(geometry=gpd.GeoSeries([], crs="EPSG:4326"))
    gdf = gpd.GeoDataFrame.from_features(features)
    if gdf.crs is None:
        gdf = gdf.set_crs("EPSG:4326")
    return gdf


def _geometry_name(gdf: gpd.GeoDataFrame) -> str:
    try:
        return gdf.geometry.name
    except AttributeError:
        return "geometry"


def feature_properties(row: pd.Series, geometry_col: str = "geometry") -> Dict[str, Any]:
    """Non-empty properties of one feature."""
    return {
        key: value
        for key, value in row.items()
        if key != geometry_col and not is_missing(value)
    }


class _PropertyResolver:
    """Per-feature property resolution, memoized on the feature's key set."""

    def __init__(self, registry: FieldRegistry):
        self.registry = registry
        self._cache: Dict[Tuple[Any, ...], Dict[str, Optional[str]]] = {}

    def resolve(self, props: Mapping[str, Any]) -> Dict[str, Optional[str]]:
        keys = tuple(props)
        if keys not in self._cache:
            self._cache[keys] = self._resolve(keys)
        return self._cache[keys]

    def _resolve(self, keys: Tuple[Any, ...]) -> Dict[str, Optional[str]]:
        cand = self.registry.candidates
        area = resolve_field(keys, cand(BOUNDARIES, "area_code"))
        sub_area = resolve_field(keys, cand(BOUNDARIES, "sub_area_code"), exclude=[area])

        # Exact aliases for either identifier form win over fuzzy ones
        taken = [k for k in (area, sub_area) if k is not None]
        local = resolve_field(keys, cand(BOUNDARIES, "local_id"), exclude=taken, substring=False)
        global_ = resolve_field(
            keys, cand(BOUNDARIES, "global_id"), exclude=taken + [local], substring=False
        )
        if local is None:
            local = resolve_field(keys, cand(BOUNDARIES, "local_id"), exclude=taken + [global_])
        if global_ is None:
            global_ = resolve_field(keys, cand(BOUNDARIES, "global_id"), exclude=taken + [local])

        return {"area_code": area, "sub_area_code": sub_area, "local_id": local, "global_id": global_}


def _value(props: Mapping[str, Any], key: Optional[str]) -> Optional[str]:
    return normalize_code(props[key]) if key is not None else None


def filter_features(
    features: Features, target: TargetArea, registry: Optional[FieldRegistry] = None
) -> FilterResult:
    """
    Restrict boundary features to a target area.

    Args:
        features: Boundary collection
        target: Area (and optional sub-area) to keep
        registry: Alias tables

    Returns:
        FilterResult; an empty selection carries a ZeroMatchWarning
    """
    gdf = as_geodataframe(features)
    resolver = _PropertyResolver(registry or FieldRegistry())
    geometry_col = _geometry_name(gdf)
    logger.info(f"🗺️ Filtering {len(gdf):,} boundary features to {target.label}")

    keep = []
    for _, row in gdf.iterrows():
        props = feature_properties(row, geometry_col)
        keys = resolver.resolve(props)
        if _value(props, keys["area_code"]) != target.area:
            keep.append(False)
            continue
        if target.sub_area:
            keep.append(_value(props, keys["sub_area_code"]) == target.sub_area)
        else:
            keep.append(True)

    mask = pd.Series(keep, index=gdf.index, dtype=bool)
    filtered = gdf[mask].copy()

    warning = None
    if filtered.empty:
        warning = ZeroMatchWarning(target.label, len(gdf))
        logger.warning(f"  ⚠️ {warning}")
    else:
        logger.info(f"  ✅ {len(filtered):,} features kept")
    return FilterResult(features=filtered, total=len(gdf), warning=warning)


def harvest_identifiers(
    features: Features, registry: Optional[FieldRegistry] = None
) -> IdentifierHarvest:
    """
    Collect local and global precinct identifiers from boundary features.

    A feature contributes to each identifier set independently; features
    carrying both forms also add a (local, global) pair.
    """
    gdf = as_geodataframe(features)
    resolver = _PropertyResolver(registry or FieldRegistry())
    geometry_col = _geometry_name(gdf)
    harvest = IdentifierHarvest()

    for _, row in gdf.iterrows():
        props = feature_properties(row, geometry_col)
        keys = resolver.resolve(props)
        local_id = _value(props, keys["local_id"])
        global_id = _value(props, keys["global_id"])
        if local_id:
            harvest.local_ids.add(local_id)
        if global_id:
            harvest.global_ids.add(global_id)
        if local_id and global_id:
            harvest.pairs.append((local_id, global_id))

    logger.info(
        f"  🔑 Harvested {len(harvest.local_ids)} local ids, "
        f"{len(harvest.global_ids)} global ids, {len(harvest.pairs)} pairs"
    )
    return harvest


def key_boundaries(
    features: Features, harvest: IdentifierHarvest, registry: Optional[FieldRegistry] = None
) -> gpd.GeoDataFrame:
    """
    Add a ``precinct_id`` property matching the result keys.

    Geometry is left untouched. Features exposing only a global id get the
    local id of the pair sharing that global id, when there is one.
    """
    gdf = as_geodataframe(features)
    resolver = _PropertyResolver(registry or FieldRegistry())
    geometry_col = _geometry_name(gdf)
    pair_map = harvest.pair_map()

    precinct_ids = []
    for _, row in gdf.iterrows():
        props = feature_properties(row, geometry_col)
        keys = resolver.resolve(props)
        local_id = _value(props, keys["local_id"])
        if local_id is None:
            local_id = pair_map.get(_value(props, keys["global_id"]) or "")
        precinct_ids.append(local_id)

    gdf["precinct_id"] = pd.Series(precinct_ids, index=gdf.index, dtype=object)
    return gdf

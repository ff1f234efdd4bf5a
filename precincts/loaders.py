#!/usr/bin/env python3
"""
loaders.py - Reading source files and writing pipeline outputs

Statistical-office CSV releases differ in delimiter (";", "," or tab) and
encoding (UTF-8 with or without BOM, or Windows-1250), so CSVs are sniffed
rather than read with fixed options. Every cell is read as a string; typing
happens in the tabular readers.
"""

import io
import json
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence, Union

import geopandas as gpd
import pandas as pd
from loguru import logger

from .field_registry import FieldRegistry
from .models import ResultSet, TargetArea
from .pipeline import ElectionDataset
from .tabular import read_party_catalog

PathLike = Union[str, Path]

CSV_DELIMITERS = (";", ",", "\t")
CSV_ENCODINGS = ("utf-8-sig", "cp1250")


def _decode(raw: bytes, path: Path) -> str:
    for encoding in CSV_ENCODINGS:
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ValueError(f"Cannot decode {path} as any of {CSV_ENCODINGS}")


def read_csv_smart(path: PathLike) -> pd.DataFrame:
    """
    Load a CSV whose delimiter and encoding are not known in advance.

    Args:
        path: CSV file

    Returns:
        DataFrame with all cells as strings

    Raises:
        FileNotFoundError: when the file does not exist
        ValueError: when no delimiter yields a multi-column table
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    text = _decode(path.read_bytes(), path)
    for delimiter in CSV_DELIMITERS:
        try:
            df = pd.read_csv(
                io.StringIO(text),
                sep=delimiter,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                on_bad_lines="skip",
            )
        except (pd.errors.ParserError, pd.errors.EmptyDataError):
            continue
        if len(df.columns) > 1:
            df.columns = [str(col).strip() for col in df.columns]
            logger.info(f"  📄 {path.name}: {len(df):,} rows (delimiter {delimiter!r})")
            return df

    raise ValueError(f"Cannot parse {path} with any of the delimiters {CSV_DELIMITERS}")


def load_boundaries(path: PathLike) -> gpd.GeoDataFrame:
    """Load a boundary collection (GeoJSON or any format geopandas reads)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    logger.info(f"🗺️ Loading {path}")
    gdf = gpd.read_file(path)
    logger.info(f"  ✅ Loaded {len(gdf):,} features")
    return gdf


def load_party_catalog(
    paths: Union[PathLike, Sequence[PathLike], None], registry: Optional[FieldRegistry] = None
) -> dict:
    """
    Load the first usable party catalog among ``paths``.

    Code lists ship as several CSVs of which only one maps party codes to
    names; files without resolvable code and name columns are skipped.
    """
    if not paths:
        return {}
    if isinstance(paths, (str, Path)):
        paths = [paths]

    for path in paths:
        try:
            rows = read_csv_smart(path)
        except (FileNotFoundError, ValueError) as e:
            logger.warning(f"⚠️ Skipping party catalog {path}: {e}")
            continue
        catalog = read_party_catalog(rows, registry, label=f"party catalog {Path(path).name}")
        if catalog:
            return catalog

    logger.warning("⚠️ No usable party catalog, party names fall back to codes")
    return {}


def load_allowed_parties(path: Optional[PathLike]) -> Optional[List[str]]:
    """
    Load a list of party-name fragments to keep in results.

    The file is a JSON list of strings, or of objects with a "name" key.
    A missing file means no restriction.
    """
    if not path:
        return None
    path = Path(path)
    if not path.exists():
        logger.debug(f"No allowed-parties list at {path}")
        return None

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    names: List[str] = []
    for item in data if isinstance(data, list) else []:
        name = item.get("name") if isinstance(item, dict) else item
        if name:
            names.append(str(name))
    logger.info(f"  📋 {len(names)} allowed parties from {path.name}")
    return names or None


def load_election(
    entry: dict, base_dir: PathLike = ".", registry: Optional[FieldRegistry] = None
) -> ElectionDataset:
    """
    Materialize an election's inputs from a configuration entry.

    Args:
        entry: {tag, turnout_csv, party_csv, boundaries, catalog_csv?, provenance?,
                allowed_parties?}
        base_dir: Directory relative paths are resolved against
        registry: Alias tables for the catalog reader
    """
    base_dir = Path(base_dir)
    tag = entry["tag"]

    def resolve(key: str) -> Optional[Path]:
        value = entry.get(key)
        if not value:
            return None
        path = Path(value)
        return path if path.is_absolute() else base_dir / path

    missing = [key for key in ("turnout_csv", "party_csv", "boundaries") if not entry.get(key)]
    if missing:
        raise ValueError(f"Election '{tag}' is missing input files: {missing}")

    catalog_entry = entry.get("catalog_csv")
    catalog_paths: List[Path] = []
    if catalog_entry:
        items = catalog_entry if isinstance(catalog_entry, list) else [catalog_entry]
        catalog_paths = [Path(p) if Path(p).is_absolute() else base_dir / p for p in items]

    logger.info(f"🗳️ Loading inputs for {tag}")
    return ElectionDataset(
        tag=tag,
        turnout=read_csv_smart(resolve("turnout_csv")),
        party_votes=read_csv_smart(resolve("party_csv")),
        boundaries=load_boundaries(resolve("boundaries")),
        catalog=load_party_catalog(catalog_paths, registry),
        provenance=entry.get("provenance", ""),
        allowed_parties=load_allowed_parties(resolve("allowed_parties")),
    )


def results_filename(tag: str, target: TargetArea) -> str:
    return f"results_{tag}_{target.suffix}.json"


def boundaries_filename(tag: str, target: TargetArea) -> str:
    return f"precincts_{tag}_{target.suffix}.geojson"


def write_result_set(result_set: ResultSet, output_dir: PathLike) -> Path:
    """Write a ResultSet as JSON and return the file path."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    meta = result_set.meta
    output_path = output_dir / results_filename(meta.election_tag, meta.target)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(result_set.to_dict(), f, ensure_ascii=False)

    logger.success(f"💾 Saved {output_path.name} ({len(result_set):,} precincts)")
    return output_path


def write_boundaries(
    gdf: gpd.GeoDataFrame, tag: str, target: TargetArea, output_dir: PathLike
) -> Optional[Path]:
    """Write the keyed boundary collection as GeoJSON. Empty collections are skipped."""
    if gdf is None or gdf.empty:
        logger.warning(f"⚠️ No boundary features to write for {tag}/{target.label}")
        return None

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_path = output_dir / boundaries_filename(tag, target)
    gdf.to_file(output_path, driver="GeoJSON")
    logger.success(f"💾 Saved {output_path.name} ({len(gdf):,} features)")
    return output_path


def inspect_columns(path: PathLike) -> Iterable[Any]:
    """Column or property names of a CSV or boundary file."""
    path = Path(path)
    if path.suffix.lower() in (".csv", ".txt"):
        return list(read_csv_smart(path).columns)
    gdf = load_boundaries(path)
    return [col for col in gdf.columns if col != gdf.geometry.name]

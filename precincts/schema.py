#!/usr/bin/env python3
"""
schema.py - Tolerant field-name and identifier handling

Releases of the same election data rename their columns between years
("OBEC", "KOD_OBEC", "Kód obce"...) and re-encode identifiers ("008" vs "8").
Everything that compares names or identifiers across datasets goes through
the helpers in this module so that matching behaves the same everywhere.
"""

import math
import re
import unicodedata
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

import pandas as pd
from loguru import logger

from .errors import MalformedNumericValue

_CANON_STRIP = re.compile(r"[\s._\-]+")
_NUMERIC_NOISE = re.compile(r"[\s']+")


def canon(name: Any) -> str:
    """Normalize a field name for tolerant comparison.

    Lowercases, strips diacritics and removes whitespace, dots, underscores
    and hyphens, so "Kód obce", "KOD_OBCE" and "kod-obce" all become "kodobce".
    """
    text = unicodedata.normalize("NFKD", str(name).lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _CANON_STRIP.sub("", text)


def resolve_field(
    record: Union[Mapping[str, Any], Iterable[str]],
    candidates: Sequence[str],
    exclude: Optional[Iterable[str]] = None,
    substring: bool = True,
) -> Optional[str]:
    """Find the raw key in ``record`` that corresponds to a semantic field.

    Args:
        record: Mapping (or plain iterable of keys, e.g. DataFrame columns)
        candidates: Aliases in precedence order, most specific first
        exclude: Keys already claimed by another field
        substring: Fall back to substring matching when no alias matches exactly

    Returns:
        The raw key, or None when nothing matches
    """
    excluded = set(exclude or ())
    keys = [key for key in record if key not in excluded]
    canon_keys = [(canon(key), key) for key in keys]
    canon_candidates = [canon(c) for c in candidates]

    # Exact phase: candidate order decides precedence
    for cand in canon_candidates:
        if not cand:
            continue
        for ck, key in canon_keys:
            if ck == cand:
                return key

    if not substring:
        return None

    # Substring phase: either side may contain the other
    for cand in canon_candidates:
        if not cand:
            continue
        for ck, key in canon_keys:
            if ck and (cand in ck or ck in cand):
                return key

    return None


def is_missing(value: Any) -> bool:
    """True for None, NaN and blank strings."""
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    try:
        if pd.isna(value):
            return True
    except (TypeError, ValueError):
        pass
    return isinstance(value, str) and not value.strip()


def normalize_code(value: Any) -> Optional[str]:
    """Canonical identifier string: trimmed, no leading zeros.

    "008" -> "8", 8.0 -> "8", "0" -> "0", blank/None -> None.
    """
    if is_missing(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if re.fullmatch(r"\d+\.0+", text):
        text = text.split(".", 1)[0]
    stripped = text.lstrip("0")
    if not stripped:
        return "0"
    return stripped


def parse_number(value: Any, strict: bool = False) -> float:
    """Parse a count or amount written with either decimal separator.

    Whitespace and apostrophe thousands separators are removed. When both
    "," and "." occur, the last one is the decimal separator and the other
    is a thousands separator; a lone "," is a decimal comma.

    Raises:
        MalformedNumericValue: only when ``strict`` is True
    """
    if is_missing(value):
        if strict:
            raise MalformedNumericValue(f"empty numeric value: {value!r}")
        return 0.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        text = str(float(value))
    else:
        text = _NUMERIC_NOISE.sub("", str(value))

    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif text.count(",") == 1:
        text = text.replace(",", ".")
    elif text.count(",") > 1:
        text = text.replace(",", "")
    elif text.count(".") > 1:
        text = text.replace(".", "")

    try:
        number = float(text)
    except ValueError:
        if strict:
            raise MalformedNumericValue(f"not a number: {value!r}")
        return 0.0
    if math.isnan(number) or math.isinf(number):
        if strict:
            raise MalformedNumericValue(f"not a finite number: {value!r}")
        return 0.0
    return number


def parse_count_series(series: pd.Series, field: str = "value") -> pd.Series:
    """Parse a column of counts into non-negative integers.

    Unparseable cells become 0; the number of such cells is logged.
    """
    malformed = 0
    values = []
    for raw in series.tolist():
        try:
            number = parse_number(raw, strict=True)
        except MalformedNumericValue:
            if not is_missing(raw):
                malformed += 1
            number = 0.0
        values.append(max(0, int(round(number))))

    if malformed:
        logger.debug(f"    ⚠️ {malformed} malformed '{field}' values treated as 0")
    return pd.Series(values, index=series.index, dtype="int64")


def normalize_code_series(series: pd.Series) -> pd.Series:
    """Apply normalize_code to every cell of a column."""
    return series.map(normalize_code).astype(object)

# ========================
# src/tracks_etl/parsers.py
# ========================

"""
Field Parsers

Pure functions that turn raw CSV string fields into derived values.
None of them raise on malformed input: bad values degrade to blanks.
"""

import re
import json
import math
import logging
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

# Anything outside printable ASCII (BOMs, zero-width spaces, stray bytes)
_NON_PRINTABLE_RE = re.compile(r'[^\x20-\x7E]+')

_ISO_DATE_RE = re.compile(r'\d{4}-\d{2}-\d{2}')
_SLASH_DATE_RE = re.compile(r'\d{1,2}/\d{1,2}/\d{4}')
_YEAR_RE = re.compile(r'\d{4}')

LOW = "Low"
MEDIUM = "Medium"
HIGH = "High"


def parse_release_date(raw: Optional[str]) -> Dict[str, str]:
    """
    Split a release date into year, month and day strings.

    Supported formats are ``YYYY-MM-DD``, ``D/M/YYYY`` (day first) and a bare
    ``YYYY``. Anything else yields three empty strings.

    Args:
        raw (str): Raw release_date value, may be None

    Returns:
        dict: {'year': str, 'month': str, 'day': str}
    """
    cleaned = _NON_PRINTABLE_RE.sub('', raw or '').strip()

    if _ISO_DATE_RE.fullmatch(cleaned):
        year, month, day = cleaned.split('-')
        return {'year': year, 'month': month, 'day': day}

    if _SLASH_DATE_RE.fullmatch(cleaned):
        day, month, year = cleaned.split('/')
        return {'year': year, 'month': month, 'day': day}

    if _YEAR_RE.fullmatch(cleaned):
        return {'year': cleaned, 'month': '', 'day': ''}

    return {'year': '', 'month': '', 'day': ''}


def transform_danceability(raw: Optional[str]) -> str:
    """
    Bucket a danceability score into Low / Medium / High.

    [0, 0.5) is Low, [0.5, 0.6] is Medium and (0.6, 1] is High. Missing,
    non-numeric and out-of-range scores map to an empty string.
    """
    if raw is None or not str(raw).strip():
        return ''

    try:
        value = float(raw)
    except (TypeError, ValueError):
        return ''

    if math.isnan(value) or value < 0:
        return ''
    if value < 0.5:
        return LOW
    if value <= 0.6:
        return MEDIUM
    if value <= 1:
        return HIGH
    return ''


def parse_artist_id_list(raw: Optional[str]) -> List[str]:
    """
    Parse an ``id_artists`` literal such as ``['id1','id2']``.

    Single quotes are swapped for double quotes and the result decoded as a
    JSON array. If that fails the whole raw value is treated as one id, so a
    malformed list never costs the row.

    Args:
        raw (str): Raw id_artists value

    Returns:
        list[str]: Trimmed, non-empty artist ids in source order
    """
    if not raw:
        return []

    try:
        decoded = json.loads(raw.replace("'", '"'))
        if not isinstance(decoded, list):
            raise ValueError(f"expected a list, got {type(decoded).__name__}")
        candidates = [str(item) for item in decoded if item is not None]
    except (ValueError, RecursionError) as e:
        logger.warning(f"Could not parse id_artists {raw!r}: {e}; using raw value as a single id")
        candidates = [raw]

    ids = []
    for candidate in candidates:
        trimmed = candidate.strip()
        if trimmed:
            ids.append(trimmed)
    return ids

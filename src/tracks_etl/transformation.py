# ========================
# src/tracks_etl/transformation.py
# ========================

"""
Filter-Transform Stages

Streaming stages that receive one decoded CSV record at a time and either
drop it or pass it on, possibly enriched:

- TrackFilterTransform drops invalid tracks, derives release date parts and a
  danceability bucket, and collects the artist ids of every surviving track.
- ArtistFilterTransform keeps only artists referenced by surviving tracks.
"""

import math
import logging
from collections import Counter
from typing import Dict, Any, FrozenSet, Iterable, NamedTuple, Optional, Set

from .parsers import parse_release_date, transform_danceability, parse_artist_id_list

logger = logging.getLogger(__name__)

DEFAULT_MIN_DURATION_MS = 60000

# Drop reasons
EMPTY_NAME = "empty_name"
INVALID_DURATION = "invalid_duration"
SHORT_DURATION = "short_duration"
UNREFERENCED_ARTIST = "unreferenced_artist"
PROCESSING_ERROR = "error"


class RowResult(NamedTuple):
    """Outcome of one record passing through a stage."""
    record: Optional[Dict[str, Any]]
    dropped_reason: Optional[str] = None

    @property
    def kept(self) -> bool:
        return self.record is not None

    @classmethod
    def keep(cls, record: Dict[str, Any]) -> 'RowResult':
        return cls(record, None)

    @classmethod
    def drop(cls, reason: str) -> 'RowResult':
        return cls(None, reason)


class _FilterStage:
    """Shared bookkeeping for the filter stages."""

    name = "stage"

    def __init__(self):
        self.records_processed = 0
        self.records_dropped = 0
        self.drop_reasons = Counter()

    def _record_outcome(self, result: RowResult) -> RowResult:
        self.records_processed += 1
        if not result.kept:
            self.records_dropped += 1
            self.drop_reasons[result.dropped_reason] += 1
        return result

    def get_statistics(self) -> Dict[str, Any]:
        """Get filtering statistics."""
        kept = self.records_processed - self.records_dropped
        return {
            'records_processed': self.records_processed,
            'records_kept': kept,
            'records_dropped': self.records_dropped,
            'drop_reasons': dict(self.drop_reasons),
            'keep_rate': kept / self.records_processed * 100 if self.records_processed > 0 else 0
        }


class TrackFilterTransform(_FilterStage):
    """
    Filters and enriches track records.

    A track survives when its trimmed name is non-empty and its duration_ms is
    a number no smaller than ``min_duration``. Surviving tracks gain
    release_year, release_month, release_day and danceability_level, and their
    artist ids are added to ``unique_artist_ids``.

    The id set is only complete once the whole track stream has been
    consumed; read it after the pipeline for this stage has finished.
    """

    name = "tracks"

    def __init__(self, min_duration: int = DEFAULT_MIN_DURATION_MS):
        """
        Initialize the track stage.

        Args:
            min_duration (int): Minimum track duration in milliseconds
        """
        super().__init__()
        self.min_duration = min_duration
        self.unique_artist_ids: Set[str] = set()
        logger.info(f"TrackFilterTransform initialized with min_duration={min_duration}")

    def transform(self, record: Dict[str, Any]) -> RowResult:
        """
        Run one track record through the filter.

        Args:
            record (dict): Raw track row keyed by column name

        Returns:
            RowResult: The enriched record, or the reason it was dropped
        """
        try:
            result = self._transform(record)
        except Exception as e:
            logger.error(f"Error transforming track: {e}, Record: {record}")
            result = RowResult.drop(PROCESSING_ERROR)
        return self._record_outcome(result)

    def _transform(self, record: Dict[str, Any]) -> RowResult:
        name = (record.get('name') or '').strip()
        if not name:
            return RowResult.drop(EMPTY_NAME)

        duration = self._parse_duration(record.get('duration_ms'))
        if duration is None:
            return RowResult.drop(INVALID_DURATION)
        if duration < self.min_duration:
            return RowResult.drop(SHORT_DURATION)

        for artist_id in parse_artist_id_list(record.get('id_artists')):
            self.unique_artist_ids.add(artist_id)

        enriched = dict(record)

        release = parse_release_date(record.get('release_date'))
        enriched['release_year'] = release['year']
        enriched['release_month'] = release['month']
        enriched['release_day'] = release['day']

        enriched['danceability_level'] = transform_danceability(record.get('danceability'))

        return RowResult.keep(enriched)

    @staticmethod
    def _parse_duration(value: Any) -> Optional[float]:
        """Parse duration_ms; None when it is not a finite number."""
        text = str(value).strip() if value is not None else ''
        # float() also takes digit-group underscores, which are not plain numbers
        if not text or '_' in text:
            return None
        try:
            duration = float(text)
        except ValueError:
            return None
        return duration if math.isfinite(duration) else None

    def get_statistics(self) -> Dict[str, Any]:
        stats = super().get_statistics()
        stats['unique_artist_ids'] = len(self.unique_artist_ids)
        return stats


class ArtistFilterTransform(_FilterStage):
    """Passes through only artists whose id is in ``allowed_ids``."""

    name = "artists"

    def __init__(self, allowed_ids: Iterable[str]):
        super().__init__()
        self.allowed_ids: FrozenSet[str] = frozenset(allowed_ids)
        logger.info(f"ArtistFilterTransform initialized with {len(self.allowed_ids):,} allowed artist ids")

    def transform(self, record: Dict[str, Any]) -> RowResult:
        try:
            if record.get('id') in self.allowed_ids:
                result = RowResult.keep(record)
            else:
                result = RowResult.drop(UNREFERENCED_ARTIST)
        except Exception as e:
            logger.error(f"Error filtering artist: {e}, Record: {record}")
            result = RowResult.drop(PROCESSING_ERROR)
        return self._record_outcome(result)

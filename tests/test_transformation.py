# ========================
# tests/test_transformation.py
# ========================

import unittest
import os
import sys
from unittest import mock

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tracks_etl.transformation import (
    TrackFilterTransform, ArtistFilterTransform, RowResult,
    EMPTY_NAME, INVALID_DURATION, SHORT_DURATION, UNREFERENCED_ARTIST, PROCESSING_ERROR
)


def track(name="Song", duration_ms="120000", id_artists="['a1']", **extra):
    record = {'id': 't1', 'name': name, 'duration_ms': duration_ms, 'id_artists': id_artists}
    record.update(extra)
    return record


class TestTrackFilterTransform(unittest.TestCase):

    def setUp(self):
        self.stage = TrackFilterTransform()

    def test_empty_or_whitespace_name_is_dropped(self):
        self.assertEqual(self.stage.transform(track(name="", duration_ms="300000")), RowResult.drop(EMPTY_NAME))
        self.assertEqual(self.stage.transform(track(name="   ")).dropped_reason, EMPTY_NAME)
        self.assertEqual(self.stage.unique_artist_ids, set())

    def test_duration_threshold(self):
        self.assertEqual(self.stage.transform(track(name="Short", duration_ms="59999")).dropped_reason, SHORT_DURATION)
        self.assertTrue(self.stage.transform(track(name="Exact", duration_ms="60000")).kept)

    def test_unparseable_duration_is_dropped(self):
        for raw in ("", "abc", "nan", "inf", "-Infinity", "1e999", "60_000"):
            with self.subTest(raw=raw):
                self.assertEqual(self.stage.transform(track(duration_ms=raw)).dropped_reason, INVALID_DURATION)

    def test_custom_min_duration(self):
        stage = TrackFilterTransform(min_duration=1000)
        self.assertTrue(stage.transform(track(duration_ms="1000")).kept)
        self.assertFalse(stage.transform(track(duration_ms="999")).kept)

    def test_kept_track_is_enriched(self):
        raw = track(release_date="1929-01-12", danceability="0.82")
        result = self.stage.transform(raw)

        self.assertTrue(result.kept)
        self.assertEqual(result.record['release_year'], '1929')
        self.assertEqual(result.record['release_month'], '01')
        self.assertEqual(result.record['release_day'], '12')
        self.assertEqual(result.record['danceability_level'], 'High')
        # Original columns first, derived columns appended
        self.assertEqual(list(result.record.keys())[:len(raw)], list(raw.keys()))

    def test_missing_optional_fields_become_blank(self):
        result = self.stage.transform(track())
        self.assertEqual(result.record['release_year'], '')
        self.assertEqual(result.record['danceability_level'], '')

    def test_artist_ids_collected_only_from_kept_tracks(self):
        self.stage.transform(track(id_artists="['a1','a2']"))
        self.stage.transform(track(id_artists="['a2','a3']"))
        self.stage.transform(track(duration_ms="100", id_artists="['dropped']"))
        self.stage.transform(track(name="", id_artists="['also_dropped']"))

        self.assertEqual(self.stage.unique_artist_ids, {'a1', 'a2', 'a3'})

    def test_deeply_nested_id_artists_keeps_track(self):
        raw = "[" * 100000 + "]" * 100000
        result = self.stage.transform(track(id_artists=raw))

        self.assertTrue(result.kept)
        self.assertEqual(self.stage.unique_artist_ids, {raw})

    def test_unexpected_error_drops_row_without_raising(self):
        with mock.patch('src.tracks_etl.transformation.parse_release_date', side_effect=RuntimeError("boom")):
            result = self.stage.transform(track())
        self.assertEqual(result.dropped_reason, PROCESSING_ERROR)
        self.assertTrue(self.stage.transform(track()).kept)

    def test_statistics(self):
        self.stage.transform(track())
        self.stage.transform(track(name=""))
        self.stage.transform(track(duration_ms="10"))
        self.stage.transform(track(duration_ms="10"))

        stats = self.stage.get_statistics()
        self.assertEqual(stats['records_processed'], 4)
        self.assertEqual(stats['records_kept'], 1)
        self.assertEqual(stats['records_dropped'], 3)
        self.assertEqual(stats['drop_reasons'], {EMPTY_NAME: 1, SHORT_DURATION: 2})
        self.assertEqual(stats['unique_artist_ids'], 1)
        self.assertEqual(stats['keep_rate'], 25.0)


class TestArtistFilterTransform(unittest.TestCase):

    def test_only_allowed_ids_pass_unchanged(self):
        stage = ArtistFilterTransform({'x1'})
        artist = {'id': 'x1', 'name': 'Artist', 'followers': '10'}

        self.assertEqual(stage.transform(artist), RowResult.keep(artist))
        self.assertEqual(stage.transform({'id': 'x3', 'name': 'Other'}).dropped_reason, UNREFERENCED_ARTIST)

    def test_allowed_ids_are_frozen(self):
        ids = {'x1'}
        stage = ArtistFilterTransform(ids)
        ids.add('x2')

        self.assertIsInstance(stage.allowed_ids, frozenset)
        self.assertFalse(stage.transform({'id': 'x2', 'name': 'Late'}).kept)

    def test_missing_id_is_dropped(self):
        stage = ArtistFilterTransform({'x1'})
        self.assertFalse(stage.transform({'name': 'No id'}).kept)
        self.assertEqual(stage.get_statistics()['records_dropped'], 1)


if __name__ == '__main__':
    unittest.main()

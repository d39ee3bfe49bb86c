# ========================
# tests/test_pipeline.py
# ========================

import unittest
import tempfile
import shutil
import sys
import os
import csv

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tracks_etl.orchestrator import CSVPipeline, TransformationPipeline, PipelineError
from src.tracks_etl.transformation import TrackFilterTransform, EMPTY_NAME, SHORT_DURATION, UNREFERENCED_ARTIST
from src.utils.config import Config

TRACK_HEADER = ['id', 'name', 'popularity', 'duration_ms', 'explicit', 'artists', 'id_artists',
                'release_date', 'danceability', 'energy']
ARTIST_HEADER = ['id', 'followers', 'genres', 'name', 'popularity']


class TestDataPipeline(unittest.TestCase):

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config = Config({'show_progress': False, 'progress_log_interval': 1000}, env_file=None)

    def tearDown(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _path(self, *parts):
        return os.path.join(self.temp_dir, *parts)

    def _write(self, name, header, rows):
        path = self._path(name)
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(header)
            writer.writerows(rows)
        return path

    def _read(self, path):
        with open(path, newline='', encoding='utf-8') as f:
            return list(csv.DictReader(f))

    def _pipeline(self, tracks_rows, artists_rows, prefix=''):
        return TransformationPipeline(
            config=self.config,
            tracks_input=self._write(f'{prefix}tracks.csv', TRACK_HEADER, tracks_rows),
            artists_input=self._write(f'{prefix}artists.csv', ARTIST_HEADER, artists_rows),
            tracks_output=self._path(f'{prefix}out/transformedTracks.csv'),
            artists_output=self._path(f'{prefix}out/transformedArtists.csv')
        )

    def test_end_to_end_scenario(self):
        """One invalid name, one too short, one valid track with two artists."""
        pipeline = self._pipeline(
            [
                ['t1', '', '10', '200000', '0', "['Nobody']", "['a3']", '2001', '0.4', '0.1'],
                ['t2', 'Short', '20', '59999', '0', "['B']", "['a2']", '2002-02-02', '0.5', '0.2'],
                ['t3', 'Valid', '30', '200000', '1', "['A', 'B']", "['a1', 'a2']", '22/02/1929', '0.82', '0.9'],
            ],
            [
                ['a1', '100', "['pop']", 'Artist One', '50'],
                ['a2', '0', '[]', 'Artist Two', '10'],
                ['a3', '5', '[]', 'Artist Three', '1'],
            ]
        )

        results = pipeline.run()

        tracks = self._read(pipeline.tracks_output)
        self.assertEqual(len(tracks), 1)
        self.assertEqual(tracks[0]['id'], 't3')
        self.assertEqual(tracks[0]['danceability_level'], 'High')
        self.assertEqual(
            (tracks[0]['release_year'], tracks[0]['release_month'], tracks[0]['release_day']),
            ('1929', '02', '22')
        )
        self.assertEqual(list(tracks[0].keys()), TRACK_HEADER + ['release_year', 'release_month', 'release_day', 'danceability_level'])

        artists = self._read(pipeline.artists_output)
        self.assertEqual([a['id'] for a in artists], ['a1', 'a2'])
        self.assertEqual(artists[0], {'id': 'a1', 'followers': '100', 'genres': "['pop']", 'name': 'Artist One', 'popularity': '50'})

        self.assertEqual(results['pipeline_status'], 'completed')
        self.assertEqual(results['tracks']['rows_read'], 3)
        self.assertEqual(results['tracks']['records_kept'], 1)
        self.assertEqual(results['tracks']['drop_reasons'], {EMPTY_NAME: 1, SHORT_DURATION: 1})
        self.assertEqual(results['artists']['records_dropped'], 1)
        self.assertEqual(results['artists']['drop_reasons'], {UNREFERENCED_ARTIST: 1})
        self.assertEqual(results['unique_artist_ids'], 2)
        self.assertEqual(results['tracks']['bytes_read'], os.path.getsize(pipeline.tracks_input))

    def test_referential_integrity(self):
        pipeline = self._pipeline(
            [['t1', 'A', '1', '70000', '0', "['X']", "['x1','x2']", '', '', '']],
            [['x1', '1', '[]', 'X1', '1'], ['x3', '1', '[]', 'X3', '1']]
        )
        pipeline.run()

        self.assertEqual([a['id'] for a in self._read(pipeline.artists_output)], ['x1'])

    def test_output_preserves_input_order(self):
        rows = [[f't{i}', f'Song {i}', '1', str(60000 + i), '0', '[]', f"['a{i % 3}']", '2000', '0.7', '0.5']
                for i in range(50)]
        artists = [[f'a{i}', '1', '[]', f'A{i}', '1'] for i in (2, 0, 1)]
        pipeline = self._pipeline(rows, artists)
        pipeline.run()

        self.assertEqual([t['id'] for t in self._read(pipeline.tracks_output)], [f't{i}' for i in range(50)])
        self.assertEqual([a['id'] for a in self._read(pipeline.artists_output)], ['a2', 'a0', 'a1'])

    def test_rerun_is_byte_identical(self):
        pipeline = self._pipeline(
            [['t1', 'A', '1', '70000', '0', "['X']", "['x1']", '1999-12-31', '0.55', '0.3'],
             ['t2', 'B', '1', '80000', '0', "['Y']", "['x2']", 'bad', '', '0.4']],
            [['x1', '1', '[]', 'X1', '1'], ['x2', '2', '[]', 'X2', '2'], ['x9', '3', '[]', 'X9', '3']]
        )

        pipeline.run()
        with open(pipeline.tracks_output, 'rb') as f:
            first_tracks = f.read()
        with open(pipeline.artists_output, 'rb') as f:
            first_artists = f.read()

        pipeline.run()
        with open(pipeline.tracks_output, 'rb') as f:
            self.assertEqual(f.read(), first_tracks)
        with open(pipeline.artists_output, 'rb') as f:
            self.assertEqual(f.read(), first_artists)

    def test_artist_ids_do_not_leak_between_runs(self):
        first = self._pipeline(
            [['t1', 'A', '1', '70000', '0', "['X']", "['x1']", '', '', '']],
            [['x1', '1', '[]', 'X1', '1'], ['y1', '1', '[]', 'Y1', '1']],
            prefix='first_'
        )
        second = self._pipeline(
            [['t2', 'B', '1', '70000', '0', "['Y']", "['y1']", '', '', '']],
            [['x1', '1', '[]', 'X1', '1'], ['y1', '1', '[]', 'Y1', '1']],
            prefix='second_'
        )

        first.run()
        second.run()

        self.assertEqual([a['id'] for a in self._read(second.artists_output)], ['y1'])
        self.assertEqual(second.artist_stage.allowed_ids, frozenset({'y1'}))

        # Re-running the same pipeline object starts from a fresh id set as well
        second.tracks_input = self._write('second_tracks.csv', TRACK_HEADER,
                                          [['t3', 'C', '1', '70000', '0', "['X']", "['x1']", '', '', '']])
        second.run()
        self.assertEqual([a['id'] for a in self._read(second.artists_output)], ['x1'])

    def test_tracks_failure_skips_artists(self):
        pipeline = TransformationPipeline(
            config=self.config,
            tracks_input=self._path('missing_tracks.csv'),
            artists_input=self._write('artists.csv', ARTIST_HEADER, [['a1', '1', '[]', 'A', '1']]),
            tracks_output=self._path('out/transformedTracks.csv'),
            artists_output=self._path('out/transformedArtists.csv')
        )

        with self.assertRaises(PipelineError) as ctx:
            pipeline.run()

        self.assertEqual(ctx.exception.stage, 'tracks')
        self.assertIsNone(pipeline.artist_stage)
        self.assertFalse(os.path.exists(pipeline.artists_output))

    def test_unwritable_tracks_output_stops_before_artists(self):
        blocker = self._path('not_a_dir')
        with open(blocker, 'w') as f:
            f.write("occupied")

        pipeline = TransformationPipeline(
            config=self.config,
            tracks_input=self._write('tracks.csv', TRACK_HEADER,
                                     [['t1', 'A', '1', '70000', '0', "['X']", "['x1']", '', '', '']]),
            artists_input=self._write('artists.csv', ARTIST_HEADER, [['x1', '1', '[]', 'X1', '1']]),
            tracks_output=os.path.join(blocker, 'transformedTracks.csv'),
            artists_output=self._path('out', 'transformedArtists.csv')
        )

        with self.assertRaises(PipelineError) as ctx:
            pipeline.run()

        self.assertEqual(ctx.exception.stage, 'tracks')
        self.assertIsNone(pipeline.artist_stage)
        self.assertFalse(os.path.exists(pipeline.artists_output))

    def test_unwritable_artists_output(self):
        blocker = self._path('not_a_dir')
        with open(blocker, 'w') as f:
            f.write("occupied")

        pipeline = TransformationPipeline(
            config=self.config,
            tracks_input=self._write('tracks.csv', TRACK_HEADER,
                                     [['t1', 'A', '1', '70000', '0', "['X']", "['x1']", '', '', '']]),
            artists_input=self._write('artists.csv', ARTIST_HEADER, [['x1', '1', '[]', 'X1', '1']]),
            tracks_output=self._path('out', 'transformedTracks.csv'),
            artists_output=os.path.join(blocker, 'transformedArtists.csv')
        )

        with self.assertRaises(PipelineError) as ctx:
            pipeline.run()

        self.assertEqual(ctx.exception.stage, 'artists')
        self.assertTrue(os.path.exists(pipeline.tracks_output))

    def test_empty_tracks_file_drops_every_artist(self):
        pipeline = self._pipeline([], [['a1', '1', '[]', 'A', '1']])
        results = pipeline.run()

        self.assertEqual(results['tracks']['rows_read'], 0)
        self.assertEqual(results['artists']['records_kept'], 0)
        self.assertEqual(os.path.getsize(pipeline.artists_output), 0)

    def test_min_duration_override(self):
        pipeline = self._pipeline(
            [['t1', 'A', '1', '30000', '0', "['X']", "['x1']", '', '', '']],
            [['x1', '1', '[]', 'X1', '1']]
        )
        pipeline.min_duration = 30000
        pipeline.run()

        self.assertEqual(len(self._read(pipeline.tracks_output)), 1)

    def test_csv_pipeline_validate_input(self):
        stage = TrackFilterTransform()
        missing = CSVPipeline(self._path('nope.csv'), self._path('out.csv'), stage, self.config)
        self.assertFalse(missing.validate_input())

        present = CSVPipeline(self._write('t.csv', TRACK_HEADER, []), self._path('out.csv'), stage, self.config)
        self.assertTrue(present.validate_input())


if __name__ == '__main__':
    unittest.main()

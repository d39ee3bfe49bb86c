# ========================
# tests/test_views.py
# ========================

import unittest
import sys
import os
from unittest import mock

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tracks_etl.views import render_views, create_views


class TestViews(unittest.TestCase):

    def test_all_views_rendered(self):
        statements = render_views()

        self.assertEqual(list(statements), ['track_summary', 'artist_track_summary', 'most_energising_track_per_year'])
        for name, statement in statements.items():
            self.assertTrue(statement.startswith(f"CREATE OR REPLACE VIEW {name} AS"))

    def test_table_names_are_quoted(self):
        statements = render_views('my_tracks', 'weird"name')

        self.assertIn('FROM "my_tracks" t', statements['track_summary'])
        self.assertIn('JOIN "weird""name" a', statements['artist_track_summary'])
        self.assertNotIn('{', statements['most_energising_track_per_year'])

    def test_view_semantics(self):
        statements = render_views()

        self.assertIn('COALESCE(SUM(a.followers::numeric), 0)', statements['track_summary'])
        self.assertIn('COALESCE(a.followers, 0) > 0', statements['artist_track_summary'])
        self.assertIn('ORDER BY energy DESC', statements['most_energising_track_per_year'])
        self.assertIn('WHERE rn = 1', statements['most_energising_track_per_year'])

    def test_create_views_uses_loader(self):
        loader = mock.Mock()
        create_views(loader, 'tracks', 'artists')

        statements = list(loader.execute_script.call_args[0][0])
        self.assertEqual(statements, list(render_views().values()))


if __name__ == '__main__':
    unittest.main()

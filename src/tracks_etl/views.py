# ========================
# src/tracks_etl/views.py
# ========================

"""
Analytical Views

SQL for the reporting views built on top of the loaded ``tracks`` and
``artists`` tables. ``id_artists`` is a TEXT[] column and ``followers`` an
INTEGER column, as inferred by the loader.
"""

import logging
from typing import Dict

logger = logging.getLogger(__name__)

# One row per track with the summed followers of its artists
TRACK_SUMMARY_VIEW = """
CREATE OR REPLACE VIEW track_summary AS
SELECT
  t.id AS track_id,
  t.name,
  t.popularity,
  t.energy,
  t.danceability_level AS danceability,
  COALESCE(SUM(a.followers::numeric), 0) AS artist_followers
FROM {tracks} t
LEFT JOIN LATERAL unnest(t.id_artists) AS u(artist_id) ON true
LEFT JOIN {artists} a ON a.id = TRIM(u.artist_id)
GROUP BY t.id, t.name, t.popularity, t.energy, t.danceability_level;
"""

# Artist/track pairs for artists that have followers
ARTIST_TRACK_SUMMARY_VIEW = """
CREATE OR REPLACE VIEW artist_track_summary AS
SELECT
  a.id AS artist_id,
  a.name AS artist_name,
  t.id AS track_id,
  t.name AS track_name
FROM {tracks} t
JOIN LATERAL unnest(t.id_artists) AS u(artist_id) ON true
JOIN {artists} a ON a.id = TRIM(u.artist_id)
WHERE COALESCE(a.followers, 0) > 0;
"""

# Highest-energy track of each release year
MOST_ENERGISING_TRACK_PER_YEAR_VIEW = """
CREATE OR REPLACE VIEW most_energising_track_per_year AS
WITH ranked_tracks AS (
  SELECT
    release_year,
    id AS track_id,
    name,
    energy,
    ROW_NUMBER() OVER (PARTITION BY release_year ORDER BY energy DESC NULLS LAST) AS rn
  FROM {tracks}
)
SELECT
  release_year,
  track_id,
  name,
  energy
FROM ranked_tracks
WHERE rn = 1;
"""

VIEWS = {
    'track_summary': TRACK_SUMMARY_VIEW,
    'artist_track_summary': ARTIST_TRACK_SUMMARY_VIEW,
    'most_energising_track_per_year': MOST_ENERGISING_TRACK_PER_YEAR_VIEW,
}


def _quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def render_views(tracks_table: str = "tracks", artists_table: str = "artists") -> Dict[str, str]:
    """Return view name -> CREATE VIEW statement for the given table names."""
    tables = {'tracks': _quote_identifier(tracks_table), 'artists': _quote_identifier(artists_table)}
    return {name: template.format(**tables).strip() for name, template in VIEWS.items()}


def create_views(loader, tracks_table: str = "tracks", artists_table: str = "artists") -> None:
    """
    Create or replace all analytical views.

    Args:
        loader (PostgresLoader): Loader connected to the target database
        tracks_table (str): Name of the tracks table
        artists_table (str): Name of the artists table
    """
    statements = render_views(tracks_table, artists_table)
    loader.execute_script(statements.values())
    logger.info(f"Created views: {', '.join(statements)}")

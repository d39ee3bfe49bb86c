# ========================
# src/utils/data_generator.py
# ========================

"""
Data Generation Utilities

Generates synthetic tracks and artists datasets shaped like the Spotify
exports the pipeline consumes, with controlled defect injection.
"""

import csv
import random
import string
import logging
from typing import List, Dict, Any, Optional
from pathlib import Path

logger = logging.getLogger(__name__)

TRACK_COLUMNS = [
    'id', 'name', 'popularity', 'duration_ms', 'explicit', 'artists', 'id_artists',
    'release_date', 'danceability', 'energy', 'key', 'loudness', 'mode', 'speechiness',
    'acousticness', 'instrumentalness', 'liveness', 'valence', 'tempo', 'time_signature'
]

ARTIST_COLUMNS = ['id', 'followers', 'genres', 'name', 'popularity']


class DataGenerator:
    """
    Data generator for creating realistic tracks/artists test datasets.
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Initialize data generator.

        Args:
            seed (int): Random seed for reproducible data generation
        """
        self.rng = random.Random(seed)
        self._initialize_data_patterns()
        logger.info(f"DataGenerator initialized with seed: {seed}")

    def _initialize_data_patterns(self) -> None:
        """Initialize vocabularies used to build names and genres."""
        self.words = [
            "Love", "Night", "Blue", "River", "Fire", "Dream", "Summer", "Heart",
            "Road", "Light", "Rain", "Gold", "Wild", "Moon", "City", "Song"
        ]
        self.genres = [
            "pop", "rock", "jazz", "dance pop", "hip hop", "classical",
            "indie rock", "latin", "r&b", "country", "tango", "bolero"
        ]
        # Defects the track stage has to cope with
        self.track_defects = [
            'empty_name', 'whitespace_name', 'short_duration', 'bad_duration',
            'malformed_id_artists', 'odd_release_date', 'bad_danceability'
        ]

    def _spotify_id(self) -> str:
        return ''.join(self.rng.choices(string.ascii_letters + string.digits, k=22))

    def _title(self, words: int = 2) -> str:
        return ' '.join(self.rng.choice(self.words) for _ in range(words))

    def _release_date(self) -> str:
        year = self.rng.randint(1920, 2021)
        style = self.rng.random()
        if style < 0.6:
            return f"{year}-{self.rng.randint(1, 12):02d}-{self.rng.randint(1, 28):02d}"
        if style < 0.8:
            return f"{self.rng.randint(1, 28)}/{self.rng.randint(1, 12)}/{year}"
        return str(year)

    def generate_artists(self, num_artists: int) -> List[Dict[str, Any]]:
        """Build an in-memory pool of artist rows."""
        artists = []
        for _ in range(num_artists):
            genres = self.rng.sample(self.genres, k=self.rng.randint(0, 3))
            artists.append({
                'id': self._spotify_id(),
                'followers': self.rng.choice(['', '0', str(self.rng.randint(1, 5_000_000))]),
                'genres': '[' + ', '.join(f"'{g}'" for g in genres) + ']',
                'name': self._title(self.rng.randint(1, 3)),
                'popularity': str(self.rng.randint(0, 100)),
            })
        return artists

    def _generate_track(self, artists: List[Dict[str, Any]], error_rate: float, stats: Dict[str, Any]) -> Dict[str, Any]:
        """Generate a single track row with a possible defect."""
        credited = self.rng.sample(artists, k=min(len(artists), self.rng.randint(1, 3)))
        track = {
            'id': self._spotify_id(),
            'name': self._title(self.rng.randint(1, 4)),
            'popularity': str(self.rng.randint(0, 100)),
            'duration_ms': str(self.rng.randint(60000, 420000)),
            'explicit': self.rng.choice(['0', '1']),
            'artists': '[' + ', '.join(f"'{a['name']}'" for a in credited) + ']',
            'id_artists': '[' + ', '.join(f"'{a['id']}'" for a in credited) + ']',
            'release_date': self._release_date(),
            'danceability': f"{self.rng.random():.3f}",
            'energy': f"{self.rng.random():.3f}",
            'key': str(self.rng.randint(0, 11)),
            'loudness': f"{self.rng.uniform(-40, 0):.3f}",
            'mode': self.rng.choice(['0', '1']),
            'speechiness': f"{self.rng.random():.4f}",
            'acousticness': f"{self.rng.random():.4f}",
            'instrumentalness': f"{self.rng.random():.6f}",
            'liveness': f"{self.rng.random():.4f}",
            'valence': f"{self.rng.random():.4f}",
            'tempo': f"{self.rng.uniform(50, 200):.3f}",
            'time_signature': str(self.rng.choice([3, 4, 5])),
        }

        if self.rng.random() < error_rate:
            stats['records_with_errors'] += 1
            self._inject_defect(track, stats)

        return track

    def _inject_defect(self, track: Dict[str, Any], stats: Dict[str, Any]) -> None:
        """Inject one defect into the track row."""
        defect = self.rng.choice(self.track_defects)

        if defect == 'empty_name':
            track['name'] = ''
        elif defect == 'whitespace_name':
            track['name'] = '   '
        elif defect == 'short_duration':
            track['duration_ms'] = str(self.rng.randint(1000, 59999))
        elif defect == 'bad_duration':
            track['duration_ms'] = self.rng.choice(['', 'n/a', '3:45'])
        elif defect == 'malformed_id_artists':
            track['id_artists'] = track['id_artists'].strip('[]')
        elif defect == 'odd_release_date':
            track['release_date'] = self.rng.choice(['\ufeff' + track['release_date'], 'unknown', '0000-00'])
        elif defect == 'bad_danceability':
            track['danceability'] = self.rng.choice(['', 'high', '1.7', '-0.2'])

        stats['error_types'][defect] = stats['error_types'].get(defect, 0) + 1

    def generate_dataset(self,
                         tracks_path: str,
                         artists_path: str,
                         num_tracks: int,
                         num_artists: int,
                         error_rate: float = 0.15) -> Dict[str, Any]:
        """
        Generate a tracks file and an artists file with controlled defects.

        Args:
            tracks_path (str): Output tracks CSV path
            artists_path (str): Output artists CSV path
            num_tracks (int): Number of track rows
            num_artists (int): Number of artist rows
            error_rate (float): Fraction of tracks with an injected defect

        Returns:
            dict: Generation statistics
        """
        logger.info(f"Generating {num_tracks:,} tracks and {num_artists:,} artists with {error_rate:.1%} error rate...")

        stats = {
            'total_tracks': num_tracks,
            'total_artists': num_artists,
            'error_rate': error_rate,
            'records_with_errors': 0,
            'error_types': {}
        }

        artists = self.generate_artists(max(1, num_artists))

        Path(artists_path).parent.mkdir(parents=True, exist_ok=True)
        with open(artists_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=ARTIST_COLUMNS)
            writer.writeheader()
            writer.writerows(artists)

        # Only part of the pool is credited on tracks, so some artists get filtered out
        credited_pool = artists[:max(1, int(len(artists) * 0.8))]

        Path(tracks_path).parent.mkdir(parents=True, exist_ok=True)
        with open(tracks_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=TRACK_COLUMNS)
            writer.writeheader()
            for i in range(num_tracks):
                writer.writerow(self._generate_track(credited_pool, error_rate, stats))
                if (i + 1) % 100000 == 0:
                    logger.info(f"Generated {i + 1:,}/{num_tracks:,} tracks")

        stats['error_rate_actual'] = stats['records_with_errors'] / num_tracks if num_tracks else 0

        logger.info(f"Datasets generated: {tracks_path}, {artists_path}")
        logger.info(f"Actual error rate: {stats['error_rate_actual']:.1%}")
        logger.info(f"Error breakdown: {stats['error_types']}")

        return stats

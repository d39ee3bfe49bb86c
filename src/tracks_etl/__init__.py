# ========================
# src/tracks_etl/__init__.py
# ========================

"""
Tracks ETL Package

This package contains the components of the tracks/artists ETL pipeline:
- parsers: Pure field parsers (release dates, danceability, artist id lists)
- ingestion: Streaming CSV reading
- transformation: Track and artist filter-transform stages
- storage: CSV output, object stores and uploads
- orchestrator: Pipeline coordination
- loader: PostgreSQL loading
- views: Analytical view definitions
"""

from .parsers import parse_release_date, transform_danceability, parse_artist_id_list
from .ingestion import CSVReader, decode_records
from .transformation import RowResult, TrackFilterTransform, ArtistFilterTransform
from .storage import (
    CSVWriter, LocalObjectStore, S3ObjectStore, FileUploader,
    StorageError, ObjectNotFoundError, create_object_store
)
from .orchestrator import CSVPipeline, TransformationPipeline, PipelineError

__all__ = [
    'parse_release_date',
    'transform_danceability',
    'parse_artist_id_list',
    'CSVReader',
    'decode_records',
    'RowResult',
    'TrackFilterTransform',
    'ArtistFilterTransform',
    'CSVWriter',
    'LocalObjectStore',
    'S3ObjectStore',
    'FileUploader',
    'StorageError',
    'ObjectNotFoundError',
    'create_object_store',
    'CSVPipeline',
    'TransformationPipeline',
    'PipelineError'
]

__version__ = "1.0.0"

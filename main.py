#!/usr/bin/env python3
# ========================
# main.py
# ========================

"""
Main Entry Point for the Tracks ETL Pipeline

Command line interface for the transform, upload and load steps:

    python main.py transform
    python main.py upload --retries 5
    python main.py load --create-views
    python main.py views
    python main.py generate --tracks 100000 --artists 20000
"""

import sys
import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

# Add src to Python path
sys.path.insert(0, str(Path(__file__).parent / 'src'))

from src.tracks_etl.orchestrator import TransformationPipeline, PipelineError
from src.tracks_etl.storage import FileUploader, StorageError, create_object_store
from src.tracks_etl.loader import PostgresLoader, LoadError
from src.tracks_etl.views import create_views
from src.utils import Config, ConfigurationError, setup_logging, default_log_file, DataGenerator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _parse_pairs(pairs: Optional[List[str]], option: str) -> Dict[str, str]:
    """Turn ['a=b', ...] into {'a': 'b', ...}."""
    parsed = {}
    for pair in pairs or []:
        left, sep, right = pair.partition('=')
        if not sep or not left or not right:
            raise ConfigurationError(f"{option} expects LEFT=RIGHT, got {pair!r}")
        parsed[left] = right
    return parsed


def run_transform(args, config: Config) -> int:
    pipeline = TransformationPipeline(
        config=config,
        tracks_input=args.tracks_input,
        artists_input=args.artists_input,
        tracks_output=args.tracks_output,
        artists_output=args.artists_output,
        min_duration=args.min_duration
    )
    try:
        pipeline.run()
    except PipelineError as e:
        logger.error(f"Transformation failed: {e}")
        return EXIT_FAILURE
    return EXIT_OK


def run_upload(args, config: Config) -> int:
    files = _parse_pairs(args.file, '--file') or {
        config.TRACKS_OUTPUT: config.TRACKS_KEY,
        config.ARTISTS_OUTPUT: config.ARTISTS_KEY
    }
    if args.retries is not None and args.retries < 1:
        raise ConfigurationError(f"--retries must be at least 1, got {args.retries}")
    store = create_object_store(config)
    uploader = FileUploader(
        store,
        retry_attempts=config.UPLOAD_RETRY_ATTEMPTS if args.retries is None else args.retries,
        retry_delay=config.UPLOAD_RETRY_DELAY
    )
    results = uploader.upload_files(files)
    if any(location is None for location in results.values()):
        return EXIT_FAILURE
    return EXIT_OK


def run_load(args, config: Config) -> int:
    tables = _parse_pairs(args.table, '--table') or {
        config.TRACKS_KEY: config.TRACKS_TABLE,
        config.ARTISTS_KEY: config.ARTISTS_TABLE
    }
    store = create_object_store(config)
    loader = PostgresLoader(config)
    try:
        for key, table in tables.items():
            stats = loader.load_key(store, key, table)
            logger.info(f"Load summary for '{table}': {stats}")
        if args.create_views:
            create_views(loader, config.TRACKS_TABLE, config.ARTISTS_TABLE)
    except (LoadError, StorageError) as e:
        logger.error(f"Load failed: {e}")
        return EXIT_FAILURE
    return EXIT_OK


def run_views(args, config: Config) -> int:
    loader = PostgresLoader(config)
    try:
        create_views(loader, config.TRACKS_TABLE, config.ARTISTS_TABLE)
    except LoadError as e:
        logger.error(f"Creating views failed: {e}")
        return EXIT_FAILURE
    return EXIT_OK


def run_generate(args, config: Config) -> int:
    generator = DataGenerator(seed=args.seed)
    try:
        stats = generator.generate_dataset(
            tracks_path=args.tracks_output or config.TRACKS_INPUT,
            artists_path=args.artists_output or config.ARTISTS_INPUT,
            num_tracks=args.tracks,
            num_artists=args.artists,
            error_rate=args.error_rate
        )
    except OSError as e:
        logger.error(f"Data generation failed: {e}")
        return EXIT_FAILURE
    logger.info(f"Sample data generated: {stats}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Tracks/artists ETL pipeline")
    parser.add_argument('--env-file', default='.env', help="Path of the .env file to load")
    parser.add_argument('--log-level', help="Override LOG_LEVEL")
    subparsers = parser.add_subparsers(dest='command', required=True)

    transform = subparsers.add_parser('transform', help="Filter and enrich tracks, then artists")
    transform.add_argument('--tracks-input')
    transform.add_argument('--artists-input')
    transform.add_argument('--tracks-output')
    transform.add_argument('--artists-output')
    transform.add_argument('--min-duration', type=int, help="Minimum track duration in ms")
    transform.set_defaults(handler=run_transform)

    upload = subparsers.add_parser('upload', help="Upload transformed files to object storage")
    upload.add_argument('--file', action='append', metavar='PATH=KEY',
                        help="File to upload and its destination key (repeatable)")
    upload.add_argument('--retries', type=int, help="Attempts per file")
    upload.set_defaults(handler=run_upload)

    load = subparsers.add_parser('load', help="Load stored files into PostgreSQL")
    load.add_argument('--table', action='append', metavar='KEY=TABLE',
                      help="Stored key and its destination table (repeatable)")
    load.add_argument('--create-views', action='store_true', help="Create the analytical views afterwards")
    load.set_defaults(handler=run_load)

    views = subparsers.add_parser('views', help="(Re)create the analytical views")
    views.set_defaults(handler=run_views)

    generate = subparsers.add_parser('generate', help="Generate sample tracks and artists files")
    generate.add_argument('--tracks', type=int, default=10000)
    generate.add_argument('--artists', type=int, default=2000)
    generate.add_argument('--error-rate', type=float, default=0.15)
    generate.add_argument('--seed', type=int, default=42)
    generate.add_argument('--tracks-output', help="Defaults to TRACKS_INPUT")
    generate.add_argument('--artists-output', help="Defaults to ARTISTS_INPUT")
    generate.set_defaults(handler=run_generate)

    return parser


def _check_requirements(command: str, config: Config) -> None:
    """Fail before any work if the command's settings are missing or invalid."""
    config.check()
    if command in ('upload', 'load'):
        config.require_storage()
    if command in ('load', 'views'):
        config.require_database()


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution function."""
    args = build_parser().parse_args(argv)

    try:
        config = Config(env_file=args.env_file)
        if args.log_level:
            config.LOG_LEVEL = args.log_level
    except ConfigurationError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG

    setup_logging(
        log_level=config.LOG_LEVEL,
        log_file=default_log_file(),
        log_dir=config.LOG_DIR
    )

    logger.info("=" * 60)
    logger.info(f"TRACKS ETL PIPELINE - {args.command.upper()}")
    logger.info("=" * 60)

    try:
        _check_requirements(args.command, config)
        config.ensure_directories()
        return args.handler(args, config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_CONFIG
    except KeyboardInterrupt:
        logger.info("Pipeline interrupted by user")
        return EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())

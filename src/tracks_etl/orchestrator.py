# ========================
# src/tracks_etl/orchestrator.py
# ========================

"""
Pipeline Orchestrator Module

Drives the transform step:
- CSVPipeline streams one CSV file through a filter stage into an output CSV.
- TransformationPipeline runs the tracks file, then the artists file, handing
  the completed artist-id set from the first stage to the second.
"""

import csv
import time
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from tqdm import tqdm

from .ingestion import CSVReader
from .storage import CSVWriter, StorageError
from .transformation import TrackFilterTransform, ArtistFilterTransform
from ..utils.config import Config
from ..utils.performance_monitor import monitor_performance

logger = logging.getLogger(__name__)


class PipelineError(Exception):
    """Raised when a file pipeline cannot read its source or write its sink."""

    def __init__(self, stage: str, cause: str):
        super().__init__(f"{stage} pipeline failed: {cause}")
        self.stage = stage
        self.cause = cause


class CSVPipeline:
    """
    Streams a single CSV file through a filter stage.
    Rows are decoded, transformed and written one at a time, in input order.
    """

    def __init__(self,
                 input_file: str,
                 output_file: str,
                 stage,
                 config: Optional[Config] = None):
        """
        Initialize the file pipeline.

        Args:
            input_file (str): Path to the input CSV
            output_file (str): Path of the CSV to write
            stage: Filter stage exposing ``name``, ``transform`` and ``get_statistics``
            config (Config): Configuration object
        """
        self.input_file = input_file
        self.output_file = output_file
        self.stage = stage
        self.config = config or Config()

        self.reader = CSVReader(self.input_file)
        self.writer = CSVWriter(self.output_file)

        logger.info(f"CSVPipeline '{stage.name}' initialized:")
        logger.info(f"  Input: {self.input_file}")
        logger.info(f"  Output: {self.output_file}")

    def validate_input(self) -> bool:
        """
        Validate input file exists and is readable.

        Returns:
            bool: True if input is valid
        """
        input_path = Path(self.input_file)
        if not input_path.exists():
            logger.error(f"Input file does not exist: {self.input_file}")
            return False

        if not input_path.is_file():
            logger.error(f"Input path is not a file: {self.input_file}")
            return False

        try:
            self.reader.read_header()
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Cannot read input file: {e}")
            return False

        logger.info(f"Input validation passed: {self.input_file}")
        return True

    def run(self) -> Dict[str, Any]:
        """
        Run the file through the stage.

        Returns:
            dict: Row counts, drop reasons, bytes read and timing

        Raises:
            PipelineError: if the input cannot be read or the output written
        """
        name = self.stage.name
        logger.info(f"Starting {name} pipeline for '{self.input_file}'...")
        started = time.time()

        if not self.validate_input():
            raise PipelineError(name, f"invalid input file '{self.input_file}'")

        try:
            total_bytes = self.reader.total_bytes
        except OSError as e:
            logger.error(f"{name} pipeline cannot open '{self.input_file}': {e}")
            raise PipelineError(name, str(e)) from e

        progress = tqdm(
            total=total_bytes,
            unit='B',
            unit_scale=True,
            desc=f"Transforming {name}",
            disable=None if self.config.SHOW_PROGRESS else True
        )

        with monitor_performance(f"{name} pipeline", total_bytes, self.config.PROGRESS_LOG_INTERVAL) as monitor:
            try:
                self._stream(progress, monitor)
            except (OSError, UnicodeDecodeError, csv.Error, ValueError, StorageError) as e:
                logger.error(f"{name} pipeline failed on '{self.input_file}' -> '{self.output_file}': {e}")
                raise PipelineError(name, str(e)) from e
            finally:
                progress.close()

        stats = self.stage.get_statistics()
        results = {
            'stage': name,
            'input_file': self.input_file,
            'output_file': self.output_file,
            'rows_read': self.reader.rows_read,
            'rows_written': self.writer.records_written,
            'bytes_read': self.reader.bytes_read,
            'elapsed_seconds': time.time() - started,
            **stats
        }

        logger.info(
            f"{name} pipeline finished: {results['rows_read']:,} read, "
            f"{results['records_kept']:,} kept, {results['records_dropped']:,} dropped"
        )
        return results

    def _stream(self, progress, monitor) -> None:
        """Decode -> transform -> encode, one row at a time."""
        last_bytes = 0
        with self.writer:
            for record in self.reader.read_records():
                result = self.stage.transform(record)
                if result.kept:
                    self.writer.write_record(result.record)
                else:
                    logger.debug(f"{self.stage.name}: dropped row {self.reader.rows_read} ({result.dropped_reason})")

                consumed = self.reader.bytes_read
                progress.update(consumed - last_bytes)
                last_bytes = consumed
                monitor.update_progress(1, consumed)


class TransformationPipeline:
    """
    Orchestrates the two-file transform.

    The tracks file is processed first. Only once it has been fully drained is
    the collected artist-id set frozen and handed to the artist stage, so the
    artists file is always filtered against a complete set.
    """

    def __init__(self,
                 config: Optional[Config] = None,
                 tracks_input: Optional[str] = None,
                 artists_input: Optional[str] = None,
                 tracks_output: Optional[str] = None,
                 artists_output: Optional[str] = None,
                 min_duration: Optional[int] = None):
        self.config = config or Config()
        self.tracks_input = tracks_input or self.config.TRACKS_INPUT
        self.artists_input = artists_input or self.config.ARTISTS_INPUT
        self.tracks_output = tracks_output or self.config.TRACKS_OUTPUT
        self.artists_output = artists_output or self.config.ARTISTS_OUTPUT
        self.min_duration = self.config.MIN_DURATION_MS if min_duration is None else min_duration

        self.track_stage: Optional[TrackFilterTransform] = None
        self.artist_stage: Optional[ArtistFilterTransform] = None

    def run(self) -> Dict[str, Any]:
        """
        Execute the tracks pipeline, then the artists pipeline.

        Returns:
            dict: Per-file results and the size of the artist-id set

        Raises:
            PipelineError: if either file pipeline fails; a tracks failure
                means the artists file is never processed
        """
        # Fresh stages per run, so ids never leak between runs
        self.track_stage = TrackFilterTransform(min_duration=self.min_duration)
        self.artist_stage = None

        tracks_results = CSVPipeline(self.tracks_input, self.tracks_output, self.track_stage, self.config).run()
        logger.info(f"Transformed tracks saved to: {self.tracks_output}")

        allowed_ids = frozenset(self.track_stage.unique_artist_ids)
        self.artist_stage = ArtistFilterTransform(allowed_ids)

        artists_results = CSVPipeline(self.artists_input, self.artists_output, self.artist_stage, self.config).run()
        logger.info(f"Transformed artists saved to: {self.artists_output}")

        results = {
            'pipeline_status': 'completed',
            'tracks': tracks_results,
            'artists': artists_results,
            'unique_artist_ids': len(allowed_ids),
            'saved_files': {
                'tracks': self.tracks_output,
                'artists': self.artists_output
            }
        }

        self._log_final_summary(results)
        return results

    def _log_final_summary(self, results: Dict[str, Any]) -> None:
        """Log final pipeline summary."""
        logger.info("=" * 60)
        logger.info("TRANSFORMATION SUMMARY")
        logger.info("=" * 60)

        for key in ('tracks', 'artists'):
            stats = results[key]
            logger.info(
                f"{key}: total={stats['rows_read']:,} kept={stats['records_kept']:,} "
                f"dropped={stats['records_dropped']:,} reasons={stats['drop_reasons']}"
            )
        logger.info(f"Unique artist ids referenced by kept tracks: {results['unique_artist_ids']:,}")
        logger.info("=" * 60)

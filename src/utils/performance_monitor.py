# ========================
# src/utils/performance_monitor.py
# ========================

"""
Performance Monitoring Utilities

Tracks rows, bytes, throughput and memory for a pipeline run.
"""

import os
import time
import logging
from contextlib import contextmanager
from typing import Dict, Any, Optional

import psutil

logger = logging.getLogger(__name__)


class PerformanceMonitor:
    """
    Performance monitoring utility for the ETL pipeline.
    Tracks processing time, bytes consumed, row throughput and peak memory.
    """

    def __init__(self, name: str = "Pipeline", total_bytes: int = 0, log_interval: int = 50000):
        """
        Initialize performance monitor.

        Args:
            name (str): Name for this monitoring session
            total_bytes (int): Size of the input, used for percentage progress
            log_interval (int): Log progress every this many records
        """
        self.name = name
        self.total_bytes = total_bytes
        self.log_interval = max(1, log_interval)
        self.start_time = None
        self.end_time = None
        self.peak_memory_mb = 0.0
        self.records_processed = 0
        self.bytes_processed = 0
        self.checkpoints = []
        self._process = psutil.Process(os.getpid())

        logger.debug(f"PerformanceMonitor initialized: {name}")

    def start_monitoring(self) -> None:
        """Start performance monitoring."""
        self.start_time = time.time()
        self.peak_memory_mb = self._get_memory_usage_mb()

        logger.info(f"{self.name} - Performance monitoring started")
        logger.info(f"Initial memory usage: {self.peak_memory_mb:.2f} MB")

    def update_progress(self, records: int = 1, bytes_processed: Optional[int] = None) -> None:
        """
        Update progress tracking.

        Args:
            records (int): Records handled since the last update
            bytes_processed (int): Total bytes consumed from the source so far
        """
        previous = self.records_processed
        self.records_processed += records
        if bytes_processed is not None:
            self.bytes_processed = bytes_processed

        # Log progress periodically
        if self.records_processed // self.log_interval > previous // self.log_interval:
            current_memory = self._get_memory_usage_mb()
            self.peak_memory_mb = max(self.peak_memory_mb, current_memory)
            self._log_progress(current_memory)

    def add_checkpoint(self, name: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Add a performance checkpoint.

        Args:
            name (str): Checkpoint name
            metadata (dict): Optional metadata to store
        """
        checkpoint = {
            'name': name,
            'timestamp': time.time(),
            'memory_mb': self._get_memory_usage_mb(),
            'records_processed': self.records_processed,
            'bytes_processed': self.bytes_processed,
            'metadata': metadata or {}
        }
        self.checkpoints.append(checkpoint)
        logger.debug(f"Checkpoint '{name}': {checkpoint}")

    def percent_complete(self) -> float:
        if self.total_bytes <= 0:
            return 0.0
        return min(100.0, self.bytes_processed / self.total_bytes * 100)

    def _log_progress(self, current_memory: float) -> None:
        """Log current progress."""
        elapsed = time.time() - self.start_time if self.start_time else 0
        throughput = self.records_processed / elapsed if elapsed > 0 else 0

        logger.info(
            f"{self.name} - Progress: {self.percent_complete():.1f}% "
            f"({self.bytes_processed:,}/{self.total_bytes:,} bytes), "
            f"{self.records_processed:,} records, "
            f"{throughput:.0f} records/sec, "
            f"Memory: {current_memory:.2f} MB"
        )

    def stop_monitoring(self) -> Dict[str, Any]:
        """
        Stop monitoring and return performance summary.

        Returns:
            dict: Performance statistics
        """
        self.end_time = time.time()
        self.peak_memory_mb = max(self.peak_memory_mb, self._get_memory_usage_mb())
        total_time = self.end_time - self.start_time if self.start_time else 0
        throughput = self.records_processed / total_time if total_time > 0 else 0

        summary = {
            'name': self.name,
            'total_processing_time_seconds': total_time,
            'records_processed': self.records_processed,
            'bytes_processed': self.bytes_processed,
            'average_throughput_records_per_second': throughput,
            'peak_memory_usage_mb': self.peak_memory_mb,
            'checkpoints': self.checkpoints
        }

        logger.info(
            f"{self.name} - Finished in {total_time:.2f}s: "
            f"{self.records_processed:,} records, {self.bytes_processed:,} bytes, "
            f"{throughput:.0f} records/sec, peak memory {self.peak_memory_mb:.2f} MB"
        )
        return summary

    def _get_memory_usage_mb(self) -> float:
        """Get current resident memory usage in MB."""
        try:
            return self._process.memory_info().rss / (1024 * 1024)
        except psutil.Error as e:
            logger.debug(f"Could not get memory usage: {e}")
            return 0.0

    def get_current_stats(self) -> Dict[str, Any]:
        """Get current performance statistics."""
        elapsed = time.time() - self.start_time if self.start_time else 0
        return {
            'elapsed_seconds': elapsed,
            'records_processed': self.records_processed,
            'bytes_processed': self.bytes_processed,
            'percent_complete': self.percent_complete(),
            'current_memory_mb': self._get_memory_usage_mb(),
            'peak_memory_mb': self.peak_memory_mb,
            'current_throughput': self.records_processed / elapsed if elapsed > 0 else 0
        }


@contextmanager
def monitor_performance(name: str = "Pipeline", total_bytes: int = 0, log_interval: int = 50000):
    """
    Context manager for easy performance monitoring.

    Args:
        name (str): Name for this monitoring session
        total_bytes (int): Size of the input in bytes
        log_interval (int): Records between progress log lines

    Yields:
        PerformanceMonitor: Monitor instance
    """
    monitor = PerformanceMonitor(name, total_bytes=total_bytes, log_interval=log_interval)
    monitor.start_monitoring()
    try:
        yield monitor
    finally:
        monitor.stop_monitoring()

# ========================
# src/utils/__init__.py
# ========================

"""
Utilities Package

Common utilities and helper functions for the ETL pipeline.
"""

from .config import Config, ConfigurationError
from .performance_monitor import monitor_performance, PerformanceMonitor
from .logging_setup import setup_logging, default_log_file
from .data_generator import DataGenerator
from .job_metadata import JobMetadataManager

__all__ = [
    'Config',
    'ConfigurationError',
    'monitor_performance',
    'PerformanceMonitor',
    'setup_logging',
    'default_log_file',
    'DataGenerator',
    'JobMetadataManager'
]

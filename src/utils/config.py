# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the ETL pipeline with environment support.
Values come from the process environment, optionally seeded from a .env file.
"""

import os
from pathlib import Path
from typing import Dict, Any, Iterable, List, Optional

from dotenv import load_dotenv


class ConfigurationError(Exception):
    """Raised when required settings are missing or invalid."""


def _env_bool(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


def _env_number(name: str, default: str, cast=int):
    raw = os.getenv(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a {cast.__name__}, got {raw!r}")


class Config:
    """
    Configuration class for the ETL pipeline.
    Supports environment variables and default values.
    """

    STORAGE_SETTINGS = ['S3_BUCKET_NAME', 'AWS_REGION']
    DATABASE_SETTINGS = ['PG_HOST', 'PG_PORT', 'PG_USER', 'PG_PASSWORD', 'PG_DATABASE']
    SECRET_SETTINGS = {'AWS_SECRET_ACCESS_KEY', 'AWS_ACCESS_KEY_ID', 'PG_PASSWORD'}

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None, env_file: Optional[str] = '.env'):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
            env_file (str): .env file to load first; None to skip
        """
        if env_file and Path(env_file).exists():
            load_dotenv(env_file, override=False)

        # Transform Settings
        self.MIN_DURATION_MS = _env_number('MIN_DURATION_MS', '60000')

        # File Paths
        self.DATA_DIR = os.getenv('DATA_DIR', 'data')
        self.TRACKS_INPUT = os.getenv('TRACKS_INPUT', os.path.join(self.DATA_DIR, 'tracks.csv'))
        self.ARTISTS_INPUT = os.getenv('ARTISTS_INPUT', os.path.join(self.DATA_DIR, 'artists.csv'))
        self.TRACKS_OUTPUT = os.getenv('TRACKS_OUTPUT', os.path.join(self.DATA_DIR, 'transformedTracks.csv'))
        self.ARTISTS_OUTPUT = os.getenv('ARTISTS_OUTPUT', os.path.join(self.DATA_DIR, 'transformedArtists.csv'))

        # Object Storage
        self.LOCAL_TEST = _env_bool('LOCAL_TEST')
        self.LOCAL_STORAGE_DIR = os.getenv('LOCAL_STORAGE_DIR', os.path.join(self.DATA_DIR, 'storage'))
        self.AWS_REGION = os.getenv('AWS_REGION', '')
        self.AWS_ACCESS_KEY_ID = os.getenv('AWS_ACCESS_KEY_ID', '')
        self.AWS_SECRET_ACCESS_KEY = os.getenv('AWS_SECRET_ACCESS_KEY', '')
        self.S3_BUCKET_NAME = os.getenv('S3_BUCKET_NAME', '')
        self.TRACKS_KEY = os.getenv('TRACKS_KEY', 'transformedTracks.csv')
        self.ARTISTS_KEY = os.getenv('ARTISTS_KEY', 'transformedArtists.csv')

        # Upload Retry Settings
        self.UPLOAD_RETRY_ATTEMPTS = _env_number('UPLOAD_RETRY_ATTEMPTS', '3')
        self.UPLOAD_RETRY_DELAY = _env_number('UPLOAD_RETRY_DELAY', '1.0', float)

        # PostgreSQL Connection
        self.PG_HOST = os.getenv('PG_HOST', '')
        self.PG_PORT = _env_number('PG_PORT', '5432')
        self.PG_USER = os.getenv('PG_USER', '')
        self.PG_PASSWORD = os.getenv('PG_PASSWORD', '')
        self.PG_DATABASE = os.getenv('PG_DATABASE', '')
        self.PG_ADMIN_DATABASE = os.getenv('PG_ADMIN_DATABASE', 'postgres')
        self.TRACKS_TABLE = os.getenv('TRACKS_TABLE', 'tracks')
        self.ARTISTS_TABLE = os.getenv('ARTISTS_TABLE', 'artists')

        # Logging / Progress
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_DIR = os.getenv('LOG_DIR', 'logs')
        self.PROGRESS_LOG_INTERVAL = _env_number('PROGRESS_LOG_INTERVAL', '50000')
        self.SHOW_PROGRESS = _env_bool('SHOW_PROGRESS', 'true')

        # API Settings
        self.API_PORT = _env_number('API_PORT', '8000')
        self.JOB_METADATA_FILE = os.getenv('JOB_METADATA_FILE', os.path.join(self.DATA_DIR, 'job_metadata.json'))

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def ensure_directories(self) -> None:
        """Create the directories the pipeline writes into."""
        for path in (self.DATA_DIR, self.LOG_DIR,
                     Path(self.TRACKS_OUTPUT).parent, Path(self.ARTISTS_OUTPUT).parent):
            Path(path).mkdir(parents=True, exist_ok=True)
        if self.LOCAL_TEST:
            Path(self.LOCAL_STORAGE_DIR).mkdir(parents=True, exist_ok=True)

    def missing_settings(self, names: Iterable[str]) -> List[str]:
        """Return the names among ``names`` that have no value."""
        return [name for name in names if getattr(self, name, None) in (None, '')]

    def require(self, *names: str) -> None:
        """
        Fail fast when required settings are missing.

        Raises:
            ConfigurationError: naming every missing setting
        """
        missing = self.missing_settings(names)
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    def require_storage(self) -> None:
        """Remote object storage settings are only needed when LOCAL_TEST is off."""
        if not self.LOCAL_TEST:
            self.require(*self.STORAGE_SETTINGS)

    def require_database(self) -> None:
        self.require(*self.DATABASE_SETTINGS)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['min_duration'] = self.MIN_DURATION_MS >= 0
        validations['retry_attempts'] = self.UPLOAD_RETRY_ATTEMPTS > 0
        validations['retry_delay'] = self.UPLOAD_RETRY_DELAY >= 0
        validations['pg_port'] = 1 <= self.PG_PORT <= 65535
        validations['api_port'] = 1000 <= self.API_PORT <= 65535
        validations['progress_interval'] = self.PROGRESS_LOG_INTERVAL > 0

        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = self.LOG_LEVEL.upper() in valid_log_levels

        return validations

    def check(self) -> None:
        """Raise ConfigurationError if any value fails validation."""
        invalid = [name for name, ok in self.validate_config().items() if not ok]
        if invalid:
            raise ConfigurationError(f"Invalid configuration values: {', '.join(invalid)}")

    def connection_params(self, database: Optional[str] = None) -> Dict[str, Any]:
        """Keyword arguments for a PostgreSQL connection."""
        return {
            'host': self.PG_HOST,
            'port': self.PG_PORT,
            'user': self.PG_USER,
            'password': self.PG_PASSWORD,
            'dbname': database or self.PG_DATABASE,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary, masking secrets."""
        result = {}
        for attr in dir(self):
            if attr.startswith('_') or not attr.isupper():
                continue
            value = getattr(self, attr)
            if callable(value) or isinstance(value, (list, set)):
                continue
            if attr in self.SECRET_SETTINGS and value:
                value = '***'
            result[attr] = value
        return result

    def __str__(self) -> str:
        """String representation of configuration."""
        lines = ["Configuration Settings:"]
        for key, value in sorted(self.to_dict().items()):
            lines.append(f"  {key}: {value}")
        return "\n".join(lines)

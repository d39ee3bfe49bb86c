# ========================
# src/tracks_etl/loader.py
# ========================

"""
PostgreSQL Load Module

Loads transformed CSV files into PostgreSQL tables. Column types are inferred
from the header names, values are converted per column, and rows that cannot
be converted or inserted are skipped and counted rather than failing the load.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

import psycopg
from psycopg import sql
from tqdm import tqdm

from .ingestion import decode_records
from .parsers import parse_artist_id_list
from ..utils.config import Config

logger = logging.getLogger(__name__)

TEXT = "TEXT"
INTEGER = "INTEGER"
DOUBLE = "DOUBLE PRECISION"
BOOLEAN = "BOOLEAN"
TEXT_ARRAY = "TEXT[]"

COLUMN_TYPES = {
    'id': TEXT,
    'name': TEXT,
    'popularity': INTEGER,
    'duration_ms': INTEGER,
    'explicit': BOOLEAN,
    'artists': TEXT,
    'id_artists': TEXT_ARRAY,
    'release_date': TEXT,
    'release_year': INTEGER,
    'release_month': INTEGER,
    'release_day': INTEGER,
    'danceability': DOUBLE,
    'energy': DOUBLE,
    'key': INTEGER,
    'loudness': DOUBLE,
    'mode': INTEGER,
    'speechiness': DOUBLE,
    'acousticness': DOUBLE,
    'instrumentalness': DOUBLE,
    'liveness': DOUBLE,
    'valence': DOUBLE,
    'tempo': DOUBLE,
    'time_signature': INTEGER,
    'danceability_level': TEXT,
    'followers': INTEGER,
    'genres': TEXT_ARRAY,
}

REQUIRED_HEADERS = ['id', 'name']

# Errors that condemn a single row, not the whole load
ROW_ERRORS = (ValueError, OverflowError, psycopg.DataError, psycopg.IntegrityError)


class LoadError(Exception):
    """Raised when a load cannot proceed (connection failure, bad header)."""


def get_column_type(column: str) -> str:
    """Map a CSV header name to a PostgreSQL column type; unknown columns are TEXT."""
    return COLUMN_TYPES.get(column, TEXT)


def to_array_literal(value: str) -> str:
    """
    Convert a bracketed, quoted list such as ``['a','b']`` into a PostgreSQL
    array literal ``{"a","b"}``.
    """
    stripped = value.strip()
    if stripped in ('', '[]'):
        return '{}'
    items = parse_artist_id_list(stripped)
    escaped = [item.replace('\\', '\\\\').replace('"', '\\"') for item in items]
    return '{' + ','.join(f'"{item}"' for item in escaped) + '}'


def convert_value(value: Optional[str], column: str) -> Any:
    """
    Convert a raw CSV value for the inferred type of ``column``.

    Empty strings become NULL. Numeric and boolean values that cannot be
    converted raise ValueError so the caller can skip the row.
    """
    if value is None or value == '':
        return None

    column_type = get_column_type(column)

    if column_type == TEXT_ARRAY:
        return to_array_literal(value)
    if column_type == INTEGER:
        return int(float(value))
    if column_type == DOUBLE:
        return float(value)
    if column_type == BOOLEAN:
        lowered = value.strip().lower()
        if lowered in ('true', '1'):
            return True
        if lowered in ('false', '0'):
            return False
        raise ValueError(f"invalid boolean for column {column}: {value!r}")
    return value


class PostgresLoader:
    """
    Loads record sets into PostgreSQL.
    The target database and tables are created on demand.
    """

    def __init__(self, config: Optional[Config] = None, connect: Callable = psycopg.connect, show_progress: Optional[bool] = None):
        """
        Initialize the loader.

        Args:
            config (Config): Configuration with the PG_* connection settings
            connect: Connection factory, ``psycopg.connect`` by default
            show_progress (bool): Show a row progress bar; defaults to config
        """
        self.config = config or Config()
        self.config.require_database()
        self.connect = connect
        self.show_progress = self.config.SHOW_PROGRESS if show_progress is None else show_progress

    def _connect(self, database: str):
        try:
            return self.connect(autocommit=True, **self.config.connection_params(database))
        except psycopg.Error as e:
            logger.error(f"Could not connect to PostgreSQL database '{database}': {e}")
            raise LoadError(f"Connection to database '{database}' failed: {e}") from e

    def ensure_database_exists(self, database: Optional[str] = None) -> bool:
        """
        Create the target database if it does not exist yet.

        Returns:
            bool: True if the database was created
        """
        target = database or self.config.PG_DATABASE
        with self._connect(self.config.PG_ADMIN_DATABASE) as admin:
            try:
                cursor = admin.execute("SELECT 1 FROM pg_database WHERE datname = %s", (target,))
                if cursor.fetchone():
                    logger.info(f"Database '{target}' already exists.")
                    return False

                logger.info(f"Database '{target}' does not exist. Creating database...")
                admin.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(target)))
                logger.info(f"Database '{target}' created successfully.")
                return True
            except psycopg.Error as e:
                logger.error(f"Error ensuring database exists: {e}")
                raise LoadError(f"Could not ensure database '{target}': {e}") from e

    def ensure_table(self, conn, table_name: str, headers: List[str]) -> None:
        """Create ``table_name`` with columns typed from ``headers`` if it is missing."""
        columns = sql.SQL(', ').join(
            sql.SQL("{} {}").format(sql.Identifier(col), sql.SQL(get_column_type(col)))
            for col in headers
        )
        conn.execute(sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(sql.Identifier(table_name), columns))
        logger.info(f"Ensured table '{table_name}' exists with columns: {', '.join(headers)}")

    def load_records(self, records: Iterable[Dict[str, str]], table_name: str) -> Dict[str, Any]:
        """
        Insert records into ``table_name``.

        Args:
            records: Decoded CSV rows
            table_name (str): Destination table

        Returns:
            dict: table, total, loaded and skipped counts

        Raises:
            LoadError: on missing headers or connection failures
        """
        records = list(records)
        stats = {'table': table_name, 'total': len(records), 'loaded': 0, 'skipped': 0}

        if not records:
            logger.error(f"CSV file for {table_name} is empty.")
            return stats

        headers = list(records[0].keys())
        missing = [h for h in REQUIRED_HEADERS if h not in headers]
        if missing:
            raise LoadError(f"Missing required CSV headers for table '{table_name}': {', '.join(missing)}")

        self.ensure_database_exists()

        with self._connect(self.config.PG_DATABASE) as conn:
            logger.info(f"Connected to PostgreSQL database '{self.config.PG_DATABASE}'")
            try:
                self.ensure_table(conn, table_name, headers)
            except psycopg.Error as e:
                raise LoadError(f"Could not create table '{table_name}': {e}") from e

            insert = sql.SQL("INSERT INTO {} ({}) VALUES ({})").format(
                sql.Identifier(table_name),
                sql.SQL(', ').join(sql.Identifier(col) for col in headers),
                sql.SQL(', ').join(sql.Placeholder() for _ in headers)
            )

            with conn.cursor() as cursor:
                for record in tqdm(records, desc=f"Loading into {table_name}", unit="rows",
                                   disable=None if self.show_progress else True):
                    try:
                        values = [convert_value(record.get(col), col) for col in headers]
                        cursor.execute(insert, values)
                        stats['loaded'] += 1
                    except ROW_ERRORS as e:
                        stats['skipped'] += 1
                        logger.error(f"Skipping record for '{table_name}': {e}, Record: {record}")
                    except psycopg.OperationalError as e:
                        raise LoadError(f"Connection lost while loading '{table_name}': {e}") from e

        logger.info(
            f"Loaded {stats['loaded']:,}/{stats['total']:,} rows into table '{table_name}' "
            f"({stats['skipped']:,} skipped)"
        )
        return stats

    def load_key(self, store, key: str, table_name: str) -> Dict[str, Any]:
        """Download ``key`` from the object store and load it into ``table_name``."""
        logger.info(f"Fetching '{key}' for table '{table_name}'")
        data = store.get(key)
        return self.load_records(decode_records(data, source=key), table_name)

    def execute_script(self, statements: Iterable[str]) -> None:
        """Run DDL statements against the target database."""
        with self._connect(self.config.PG_DATABASE) as conn:
            for statement in statements:
                try:
                    conn.execute(statement)
                except psycopg.Error as e:
                    raise LoadError(f"Statement failed: {e}") from e

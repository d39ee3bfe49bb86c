# ========================
# src/tracks_etl/storage.py
# ========================

"""
Data Storage Module

Output side of the pipeline:
- CSVWriter serializes transformed records back to CSV.
- LocalObjectStore / S3ObjectStore hold the transformed files between the
  transform step and the database load.
- FileUploader pushes local files into a store with bounded retries.
"""

import csv
import time
import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when an object store operation fails."""


class ObjectNotFoundError(StorageError):
    """Raised by ``get`` when the requested key does not exist."""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key


class CSVWriter:
    """
    Writes records to a CSV file, one at a time.
    The header is taken from the keys of the first record written.
    """

    def __init__(self, file_path):
        """
        Initialize the CSV writer.

        Args:
            file_path (str): Destination CSV path
        """
        self.file_path = Path(file_path)
        self.fieldnames = None
        self.records_written = 0
        self._file = None
        self._writer = None

    def open(self) -> 'CSVWriter':
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.file_path, 'w', newline='', encoding='utf-8')
        logger.info(f"Writing CSV output to {self.file_path}")
        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.info(f"Saved {self.records_written:,} records to {self.file_path}")

    def __enter__(self) -> 'CSVWriter':
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def write_record(self, record: Dict[str, Any]) -> None:
        """Write a single record, emitting the header first if needed."""
        if self._file is None:
            raise StorageError(f"CSVWriter for {self.file_path} is not open")

        if self._writer is None:
            self.fieldnames = list(record.keys())
            self._writer = csv.DictWriter(self._file, fieldnames=self.fieldnames)
            self._writer.writeheader()

        self._writer.writerow(record)
        self.records_written += 1


class LocalObjectStore:
    """Object store backed by a local directory, used when LOCAL_TEST is on."""

    def __init__(self, base_dir: str = "data/storage"):
        self.base_dir = Path(base_dir)
        logger.info(f"LocalObjectStore initialized at {self.base_dir}")

    def _path_for(self, key: str) -> Path:
        path = (self.base_dir / key).resolve()
        if self.base_dir.resolve() not in path.parents:
            raise StorageError(f"Key escapes the storage directory: {key}")
        return path

    def get(self, key: str) -> bytes:
        path = self._path_for(key)
        try:
            return path.read_bytes()
        except FileNotFoundError:
            raise ObjectNotFoundError(key)
        except OSError as e:
            raise StorageError(f"Error reading {path}: {e}") from e

    def put(self, key: str, data: bytes) -> str:
        path = self._path_for(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Error writing {path}: {e}") from e
        return str(path)


class S3ObjectStore:
    """Object store backed by an S3 bucket."""

    NOT_FOUND_CODES = {'NoSuchKey', '404', 'NotFound'}

    def __init__(self, bucket_name: str, region: Optional[str] = None, client=None, **client_kwargs):
        """
        Initialize the S3 store.

        Args:
            bucket_name (str): Target bucket
            region (str): AWS region of the bucket
            client: Pre-built boto3 S3 client (optional)
            client_kwargs: Extra arguments for ``boto3.client('s3', ...)``
        """
        self.bucket_name = bucket_name
        self.region = region
        self.client = client or boto3.client('s3', region_name=region, **client_kwargs)
        logger.info(f"S3ObjectStore initialized for bucket {bucket_name} ({region})")

    def get(self, key: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket_name, Key=key)
            return response['Body'].read()
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') in self.NOT_FOUND_CODES:
                raise ObjectNotFoundError(key)
            raise StorageError(f"Error downloading s3://{self.bucket_name}/{key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Error downloading s3://{self.bucket_name}/{key}: {e}") from e

    def put(self, key: str, data: bytes) -> str:
        try:
            self.client.put_object(Bucket=self.bucket_name, Key=key, Body=data, ContentType='text/csv')
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Error uploading s3://{self.bucket_name}/{key}: {e}") from e

        if self.region:
            return f"https://{self.bucket_name}.s3.{self.region}.amazonaws.com/{key}"
        return f"https://{self.bucket_name}.s3.amazonaws.com/{key}"


def create_object_store(config):
    """
    Build the object store selected by the configuration.

    Args:
        config (Config): Pipeline configuration

    Returns:
        LocalObjectStore or S3ObjectStore
    """
    if config.LOCAL_TEST:
        return LocalObjectStore(config.LOCAL_STORAGE_DIR)

    config.require_storage()
    client_kwargs = {}
    if config.AWS_ACCESS_KEY_ID and config.AWS_SECRET_ACCESS_KEY:
        client_kwargs['aws_access_key_id'] = config.AWS_ACCESS_KEY_ID
        client_kwargs['aws_secret_access_key'] = config.AWS_SECRET_ACCESS_KEY
    return S3ObjectStore(config.S3_BUCKET_NAME, region=config.AWS_REGION, **client_kwargs)


class FileUploader:
    """
    Uploads local files to an object store.
    Each upload is retried up to ``retry_attempts`` times; a file that still
    fails is reported in the results instead of raising.
    """

    def __init__(self, store, retry_attempts: int = 3, retry_delay: float = 1.0, max_workers: int = 2):
        self.store = store
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.max_workers = max_workers

    def upload_file(self, file_path: str, key: str) -> Optional[str]:
        """
        Upload one file.

        Args:
            file_path (str): Local file to upload
            key (str): Destination key in the store

        Returns:
            str or None: Location of the stored object, None if the upload failed
        """
        path = Path(file_path)
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            logger.error(f"File not found: {path}")
            return None
        except OSError as e:
            logger.error(f"Error reading file '{path}': {e}")
            return None

        for attempt in range(1, self.retry_attempts + 1):
            try:
                location = self.store.put(key, data)
                logger.info(f"File '{key}' uploaded successfully: {location}")
                return location
            except StorageError as e:
                logger.error(f"Attempt {attempt} - Error uploading file '{key}': {e}")
                if attempt < self.retry_attempts and self.retry_delay > 0:
                    time.sleep(self.retry_delay)

        logger.error(f"Failed to upload '{key}' after {self.retry_attempts} attempts.")
        return None

    def upload_files(self, files: Dict[str, str]) -> Dict[str, Optional[str]]:
        """
        Upload several files independently of each other.

        Args:
            files (dict): Local path -> destination key

        Returns:
            dict: Destination key -> location (None for failed uploads)
        """
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                key: executor.submit(self.upload_file, file_path, key)
                for file_path, key in files.items()
            }
            results = {key: future.result() for key, future in futures.items()}

        failed = [key for key, location in results.items() if location is None]
        logger.info(f"Uploaded {len(results) - len(failed)}/{len(results)} files")
        if failed:
            logger.error(f"Failed uploads: {', '.join(failed)}")
        return results

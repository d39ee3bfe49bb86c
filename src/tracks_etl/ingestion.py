# ========================
# src/tracks_etl/ingestion.py
# ========================

"""
Data Ingestion Module

Streams CSV files row by row as dictionaries while keeping track of how many
bytes have been consumed, so callers can report progress on large inputs.
"""

import io
import csv
import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

BOM = '\ufeff'


def _rows_as_records(lines: Iterable[str], source: str) -> Iterator[Dict[str, str]]:
    """Decode CSV lines into ordered records keyed by the header line."""
    reader = csv.DictReader(lines, restval='')
    for row in reader:
        if None in row:
            surplus = row.pop(None)
            logger.warning(f"{source}: line {reader.line_num} has {len(surplus)} field(s) beyond the header, ignoring them")
        yield row


def decode_records(data: bytes, encoding: str = 'utf-8-sig', source: str = '<bytes>') -> Iterator[Dict[str, str]]:
    """
    Decode an in-memory CSV document (e.g. an object downloaded from storage).

    Args:
        data (bytes): Raw CSV content
        encoding (str): Text encoding, BOM-tolerant by default
        source (str): Name used in log messages

    Yields:
        dict: One record per data line
    """
    text = data.decode(encoding)
    yield from _rows_as_records(io.StringIO(text, newline=''), source)


class CSVReader:
    """
    A streaming CSV reader that yields one record at a time.
    Only the current row is held in memory, which keeps large files
    (hundreds of thousands of rows) cheap to process.
    """

    def __init__(self, file_path, encoding: str = 'utf-8'):
        """
        Initialize the CSV reader.

        Args:
            file_path (str): Path to the CSV file to read
            encoding (str): Text encoding of the file
        """
        self.file_path = Path(file_path)
        self.encoding = encoding
        self.header: List[str] = []
        self.bytes_read = 0
        self.rows_read = 0
        logger.info(f"Initialized CSVReader for file: {file_path}")

    @property
    def total_bytes(self) -> int:
        """Size of the input file in bytes."""
        return self.file_path.stat().st_size

    def _decoded_lines(self, handle) -> Iterator[str]:
        """Decode binary lines, counting the raw bytes as they are consumed."""
        first = True
        for raw_line in handle:
            self.bytes_read += len(raw_line)
            line = raw_line.decode(self.encoding)
            if first:
                line = line.lstrip(BOM)
                first = False
            yield line

    def read_records(self) -> Iterator[Dict[str, str]]:
        """
        A generator that yields each data row as a dictionary, in file order.

        Yields:
            dict: Column name -> raw string value
        """
        self.bytes_read = 0
        self.rows_read = 0

        try:
            with open(self.file_path, 'rb') as f:
                lines = self._decoded_lines(f)
                for record in _rows_as_records(lines, str(self.file_path)):
                    if not self.header:
                        self.header = list(record.keys())
                        logger.info(f"CSV header: {self.header}")
                    self.rows_read += 1
                    yield record

            logger.info(f"Total rows read from {self.file_path}: {self.rows_read:,}")

        except FileNotFoundError:
            logger.error(f"File '{self.file_path}' was not found")
            raise
        except (OSError, UnicodeDecodeError, csv.Error) as e:
            logger.error(f"Error reading CSV file {self.file_path}: {e}")
            raise

    def read_header(self) -> Optional[List[str]]:
        """Read only the header line of the file."""
        with open(self.file_path, 'r', newline='', encoding=self.encoding) as f:
            reader = csv.reader(f)
            header = next(reader, None)
        if header:
            header[0] = header[0].lstrip(BOM)
        return header

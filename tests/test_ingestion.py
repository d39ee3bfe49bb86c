# ========================
# tests/test_ingestion.py
# ========================

import unittest
import tempfile
import os
import sys
import csv

# Add the project root to Python path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tracks_etl.ingestion import CSVReader, decode_records


def _write_csv(rows, encoding='utf-8'):
    with tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False, newline='', encoding=encoding) as f:
        writer = csv.writer(f)
        writer.writerows(rows)
        return f.name


class TestDataIngestion(unittest.TestCase):
    """Test the CSV ingestion module."""

    def test_csv_reader_streams_records_in_order(self):
        """Rows come back one at a time, keyed by the header, in file order."""
        temp_file_path = _write_csv([
            ['id', 'name', 'duration_ms'],
            ['t1', 'Song A', '120000'],
            ['t2', 'Song B', '90000'],
            ['t3', 'Song C', '30000'],
        ])

        try:
            reader = CSVReader(temp_file_path)
            records = list(reader.read_records())

            self.assertEqual([r['id'] for r in records], ['t1', 't2', 't3'])
            self.assertEqual(reader.header, ['id', 'name', 'duration_ms'])
            self.assertEqual(list(records[0].keys()), ['id', 'name', 'duration_ms'])
            self.assertEqual(reader.rows_read, 3)
        finally:
            os.unlink(temp_file_path)

    def test_bytes_read_matches_file_size(self):
        temp_file_path = _write_csv([['id', 'name'], ['a1', 'Artist'], ['a2', 'Other']])

        try:
            reader = CSVReader(temp_file_path)
            list(reader.read_records())
            self.assertEqual(reader.bytes_read, os.path.getsize(temp_file_path))
            self.assertEqual(reader.total_bytes, os.path.getsize(temp_file_path))
        finally:
            os.unlink(temp_file_path)

    def test_quoted_fields_with_commas_and_newlines(self):
        temp_file_path = _write_csv([
            ['id', 'name', 'artists'],
            ['t1', 'Hello, World', "['A', 'B']"],
            ['t2', 'Two\nLines', "['C']"],
        ])

        try:
            records = list(CSVReader(temp_file_path).read_records())
            self.assertEqual(records[0]['name'], 'Hello, World')
            self.assertEqual(records[1]['name'], 'Two\nLines')
            self.assertEqual(records[1]['artists'], "['C']")
        finally:
            os.unlink(temp_file_path)

    def test_bom_is_stripped_from_first_header(self):
        temp_file_path = _write_csv([['id', 'name'], ['a1', 'Artist']], encoding='utf-8-sig')

        try:
            reader = CSVReader(temp_file_path)
            records = list(reader.read_records())
            self.assertEqual(reader.header, ['id', 'name'])
            self.assertEqual(records[0]['id'], 'a1')
            self.assertEqual(reader.read_header(), ['id', 'name'])
        finally:
            os.unlink(temp_file_path)

    def test_short_and_long_rows(self):
        """Missing fields become empty strings, surplus fields are ignored."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False, newline='', encoding='utf-8') as f:
            f.write("id,name,popularity\nt1,Song\nt2,Song,5,extra\n")
            temp_file_path = f.name

        try:
            records = list(CSVReader(temp_file_path).read_records())
            self.assertEqual(records[0], {'id': 't1', 'name': 'Song', 'popularity': ''})
            self.assertEqual(records[1], {'id': 't2', 'name': 'Song', 'popularity': '5'})
        finally:
            os.unlink(temp_file_path)

    def test_csv_reader_file_not_found(self):
        """Test CSVReader behavior with non-existent file."""
        reader = CSVReader("non_existent_file.csv")

        with self.assertRaises(FileNotFoundError):
            list(reader.read_records())

    def test_csv_reader_empty_file(self):
        """Test CSVReader behavior with empty CSV file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.csv', delete=False) as f:
            temp_file_path = f.name

        try:
            reader = CSVReader(temp_file_path)
            self.assertEqual(list(reader.read_records()), [])
            self.assertEqual(reader.rows_read, 0)
            self.assertIsNone(reader.read_header())
        finally:
            os.unlink(temp_file_path)

    def test_header_only_file(self):
        temp_file_path = _write_csv([['id', 'name']])

        try:
            reader = CSVReader(temp_file_path)
            self.assertEqual(list(reader.read_records()), [])
            self.assertEqual(reader.read_header(), ['id', 'name'])
        finally:
            os.unlink(temp_file_path)

    def test_decode_records_from_bytes(self):
        data = '\ufeffid,name\r\na1,Artist\r\na2,"Other, Name"\r\n'.encode('utf-8')
        records = list(decode_records(data, source='artists.csv'))

        self.assertEqual(records, [
            {'id': 'a1', 'name': 'Artist'},
            {'id': 'a2', 'name': 'Other, Name'},
        ])


if __name__ == '__main__':
    unittest.main()

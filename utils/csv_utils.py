# =============================================================================
# utils/csv_utils.py - CSV utilities for resource exports and summaries
# =============================================================================

import csv
from typing import List, Dict, Any, Optional, Tuple
import logging

MULTI_VALUE_SEPARATOR = '|'


class CSVHandler:
    """Utilities for reading target-system exports and writing finding summaries"""

    @staticmethod
    def read_csv(file_path: str, encoding: str = 'utf-8-sig',
                 delimiter: str = ',') -> Tuple[List[Dict[str, str]], List[str]]:
        """Read CSV file and return its rows as dictionaries plus the headers"""
        logger = logging.getLogger(__name__)

        try:
            with open(file_path, 'r', newline='', encoding=encoding) as file:
                reader = csv.DictReader(file, delimiter=delimiter)
                headers = [header.strip() for header in (reader.fieldnames or [])]
                data = [
                    {key.strip(): (value or '').strip() for key, value in row.items() if key is not None}
                    for row in reader
                ]

            logger.info(f"Read {len(data)} records with {len(headers)} columns from {file_path}")
            return data, headers

        except FileNotFoundError:
            logger.error(f"Input file {file_path} not found")
            raise
        except Exception as e:
            logger.error(f"Error reading CSV {file_path}: {e}")
            raise

    @staticmethod
    def split_values(cell: str, separator: str = MULTI_VALUE_SEPARATOR) -> List[str]:
        """Split a multi-valued cell, dropping empty values"""
        if not cell:
            return []
        return [value.strip() for value in cell.split(separator) if value.strip()]

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file; only the header is written for empty data"""
        logger = logging.getLogger(__name__)

        if fieldnames is None:
            if not data:
                logger.warning(f"No data and no fieldnames for {output_path}, nothing written")
                return
            fieldnames = list(data[0].keys())

        try:
            with open(output_path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(data)

            logger.info(f"Successfully wrote {len(data)} records to {output_path}")

        except Exception as e:
            logger.error(f"Error writing CSV {output_path}: {e}")
            raise

# =============================================================================
# utils/csv_utils.py - CSV utilities
# =============================================================================

import csv
from typing import List, Dict, Any, Optional
import logging

from core.models import ConversionResult, RunSummary

REPORT_FIELDNAMES = ['username', 'classification', 'state', 'old_group_id',
                     'admin_granted', 'hash_restored', 'message']


class CSVHandler:
    """Utilities for writing CSV files"""

    @staticmethod
    def write_csv(data: List[Dict[str, Any]], output_path: str,
                  fieldnames: Optional[List[str]] = None) -> None:
        """Write data to CSV file"""
        logger = logging.getLogger(__name__)

        if not data:
            logger.warning("No data to write")
            return

        if fieldnames is None:
            fieldnames = list(data[0].keys())

        try:
            with open(output_path, 'w', newline='', encoding='utf-8') as file:
                writer = csv.DictWriter(file, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(data)

            logger.info(f"Successfully wrote {len(data)} records to {output_path}")

        except Exception as e:
            logger.error(f"Error writing CSV: {e}")
            raise


def result_to_dict(result: ConversionResult) -> Dict[str, Any]:
    """Convert a ConversionResult to a report row"""
    return {
        'username': result.username,
        'classification': result.classification.describe() if result.classification else '',
        'state': result.state.value,
        'old_group_id': '' if result.old_group_id is None else result.old_group_id,
        'admin_granted': result.admin_granted,
        'hash_restored': result.hash_restored,
        'message': result.message
    }


def write_report(summary: RunSummary, output_path: str) -> None:
    CSVHandler.write_csv([result_to_dict(result) for result in summary.results],
                         output_path, REPORT_FIELDNAMES)

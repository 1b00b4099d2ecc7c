"""Tabular report of the measurement history."""

import csv
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, List, Union

from ..core.entities import MeasurementRecord
from ..core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["Data", "Arquivo", "Área (m²)", "Confiança", "Status A4"]


def format_row(record: MeasurementRecord) -> Dict[str, str]:
    """One report row for a record (pt-BR date, 4-decimal area)."""
    result = record.result
    date = datetime.fromtimestamp(record.timestamp / 1000).strftime("%d/%m/%Y")
    return {
        "Data": date,
        "Arquivo": record.image_name,
        "Área (m²)": f"{result.area_m2:.4f} m²",
        "Confiança": f"{result.confidence:g}%",
        "Status A4": "OK" if result.detected_reference else "Erro",
    }


def build_report_rows(records: Iterable[MeasurementRecord]) -> List[Dict[str, str]]:
    """Rows in history order (newest first)."""
    return [format_row(record) for record in records]


def export_csv(records: Iterable[MeasurementRecord], path: Union[str, Path]) -> int:
    """Write the report to ``path``.

    Returns:
        Number of data rows written

    Raises:
        PersistenceError: The file could not be written
    """
    rows = build_report_rows(records)
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # utf-8-sig so spreadsheet software detects the "²" correctly
        with open(path, "w", newline="", encoding="utf-8-sig") as f:
            writer = csv.DictWriter(f, fieldnames=REPORT_COLUMNS)
            writer.writeheader()
            writer.writerows(rows)
    except OSError as e:
        raise PersistenceError(f"Could not write report to '{path}': {e}") from e

    logger.info(f"Exported {len(rows)} records to {path}")
    return len(rows)

"""Unit tests for the history report."""
import csv
from datetime import datetime

import pytest

from hidemeter.core.entities import MeasurementRecord, MeasurementResult
from hidemeter.core.exceptions import PersistenceError
from hidemeter.services.report import REPORT_COLUMNS, build_report_rows, export_csv, format_row

TIMESTAMP = 1700000000000


@pytest.fixture
def records(auto_result):
    failed = MeasurementResult(False, True, 0.0, "A4 não encontrada", 35.5)
    return [
        MeasurementRecord.from_result(auto_result, "couro_01.jpg", timestamp=TIMESTAMP),
        MeasurementRecord.from_result(failed, "couro_02.jpg", timestamp=TIMESTAMP),
    ]


class TestFormatRow:
    def test_columns(self, records):
        row = format_row(records[0])
        assert list(row) == REPORT_COLUMNS

    def test_values(self, records):
        row = format_row(records[0])
        expected_date = datetime.fromtimestamp(TIMESTAMP / 1000).strftime("%d/%m/%Y")

        assert row == {
            "Data": expected_date,
            "Arquivo": "couro_01.jpg",
            "Área (m²)": "2.5000 m²",
            "Confiança": "87%",
            "Status A4": "OK",
        }

    def test_failed_reference(self, records):
        row = format_row(records[1])
        assert row["Status A4"] == "Erro"
        assert row["Confiança"] == "35.5%"


def test_rows_keep_history_order(records):
    assert [r["Arquivo"] for r in build_report_rows(records)] == ["couro_01.jpg", "couro_02.jpg"]


class TestExport:
    def test_write(self, records, temp_dir):
        path = temp_dir / "relatorio.csv"
        assert export_csv(records, path) == 2

        raw = path.read_bytes()
        assert raw.startswith(b"\xef\xbb\xbf")
        with open(path, newline="", encoding="utf-8-sig") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["Área (m²)"] == "2.5000 m²"
        assert rows[1]["Arquivo"] == "couro_02.jpg"

    def test_empty_history_writes_header(self, temp_dir):
        path = temp_dir / "vazio.csv"
        assert export_csv([], path) == 0
        assert path.read_text(encoding="utf-8-sig").strip() == ",".join(REPORT_COLUMNS)

    def test_write_failure(self, records, temp_dir):
        target = temp_dir / "existing_dir"
        target.mkdir()
        with pytest.raises(PersistenceError, match="Could not write report"):
            export_csv(records, target)

"""Tests for gateway_spine.sources.tabular: xlsx and csv via tmp_path."""

import pytest
from openpyxl import Workbook, load_workbook

from gateway_spine.core.errors import SourceError, SourceNotFoundError
from gateway_spine.sources.tabular import TableFormat, detect_format, read_rows, write_rows


def _workbook(path, sheets):
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    workbook.save(path)
    return path


class TestDetectFormat:
    @pytest.mark.parametrize(
        "name,expected",
        [
            ("a.xlsx", TableFormat.XLSX),
            ("A.XLSX", TableFormat.XLSX),
            ("a.xlsm", TableFormat.XLSX),
            ("a.csv", TableFormat.CSV),
        ],
    )
    def test_known(self, name, expected):
        assert detect_format(name) == expected

    def test_unknown(self):
        with pytest.raises(SourceError, match=".json"):
            detect_format("rows.json")


class TestReadXlsx:
    """Workbook reading."""

    def test_header_and_rows(self, tmp_path):
        path = _workbook(
            tmp_path / "in.xlsx",
            {"Sheet1": [["APIName", "rateLimitCeiling"], ["Weather API", 100], ["Orders", None]]},
        )
        assert read_rows(path) == [
            {"APIName": "Weather API", "rateLimitCeiling": 100},
            {"APIName": "Orders"},
        ]

    def test_blank_rows_skipped(self, tmp_path):
        path = _workbook(tmp_path / "in.xlsx", {"S": [["APIName"], [None], ["  "], ["A"]]})
        assert read_rows(path) == [{"APIName": "A"}]

    def test_sheet_by_index(self, tmp_path):
        path = _workbook(tmp_path / "in.xlsx", {"first": [["APIName"], ["A"]], "second": [["APIName"], ["B"]]})
        assert read_rows(path, sheet_index=1) == [{"APIName": "B"}]

    def test_sheet_out_of_range(self, tmp_path):
        path = _workbook(tmp_path / "in.xlsx", {"only": [["APIName"], ["A"]]})
        with pytest.raises(SourceError, match="Sheet index 3 out of range"):
            read_rows(path, sheet_index=3)

    def test_empty_sheet(self, tmp_path):
        path = _workbook(tmp_path / "in.xlsx", {"empty": []})
        assert read_rows(path) == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(SourceNotFoundError):
            read_rows(tmp_path / "missing.xlsx")

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.xlsx"
        path.write_text("not a workbook", encoding="utf-8")
        with pytest.raises(SourceError, match="Failed to read table"):
            read_rows(path)


class TestReadCsv:
    def test_rows(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_text("APIName,packageName\nWeather API,Basic\n,\nOrders,\n", encoding="utf-8")
        assert read_rows(path) == [{"APIName": "Weather API", "packageName": "Basic"}, {"APIName": "Orders"}]

    def test_bom_is_stripped(self, tmp_path):
        path = tmp_path / "in.csv"
        path.write_bytes("\ufeffAPIName\nA\n".encode("utf-8"))
        assert read_rows(path) == [{"APIName": "A"}]


class TestWriteRows:
    """Writing uses the union of keys as header."""

    def test_xlsx_round_trip(self, tmp_path):
        rows = [{"APIName": "A", "_error": "boom"}, {"APIName": "B", "extra": 1, "_error": "bang"}]
        path = write_rows(tmp_path / "out" / "failed.xlsx", rows, sheet_title="Failed APIs")
        assert path.exists()
        assert read_rows(path) == rows

        sheet = load_workbook(path).active
        assert sheet.title == "Failed APIs"
        assert [cell.value for cell in sheet[1]] == ["APIName", "_error", "extra"]

    def test_long_sheet_title_truncated(self, tmp_path):
        path = write_rows(tmp_path / "t.xlsx", [{"a": 1}], sheet_title="x" * 40)
        assert load_workbook(path).active.title == "x" * 31

    def test_csv(self, tmp_path):
        path = write_rows(tmp_path / "failed.csv", [{"APIName": "A"}, {"APIName": "B", "_error": "boom"}])
        assert path.read_text(encoding="utf-8").splitlines() == ["APIName,_error", "A,", "B,boom"]

"""
Nexus Compliance - Ingestion Service Tests

Tests for file parsing, header detection, classification and mapping.
"""

import io

import pytest
from openpyxl import Workbook

from app.services.ingestion_service import (
    IngestionService,
    apply_mappings,
    classify_document,
    detect_header_row,
    generate_alerts,
    generate_fallback_alerts,
    parse_csv,
    rows_to_records,
    suggest_mappings,
)
from app.services.nexus_engine.engine import NexusEngine


CSV_WITH_TITLE = (
    "Quarterly report,,\n"
    "State,Revenue,Date\n"
    "CA,600000,2026-01-01\n"
    "TX,1000,2026-01-02\n"
    ",,\n"
).encode("utf-8")


def _workbook_bytes() -> bytes:
    workbook = Workbook()
    summary = workbook.active
    summary.title = "Summary"
    summary.append(["Note"])
    detail = workbook.create_sheet("Detail")
    detail.append(["State", "Revenue", "Customer"])
    for index in range(20):
        detail.append(["CA", 1000 + index, f"Customer {index}"])
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class TestParsing:

    def test_parse_csv_drops_blank_lines(self):
        rows = parse_csv("a, b\n\n,\n1,2\n")
        assert rows == [["a", "b"], ["1", "2"]]

    def test_rows_to_records(self):
        rows = [["title"], ["State", "Revenue", ""], ["CA", "10", "x"], ["", "", ""], ["TX"]]
        records = rows_to_records(rows, 1)
        assert records == [{"State": "CA", "Revenue": "10"}, {"State": "TX", "Revenue": ""}]

    def test_rows_to_records_bad_index(self):
        assert rows_to_records([["a"]], 5) == []


class TestHeaderDetection:

    def test_skips_title_row(self):
        rows = parse_csv(CSV_WITH_TITLE.decode())
        detection = detect_header_row(rows)

        assert detection["headerRowIndex"] == 1
        assert detection["dataStartRow"] == 2
        assert detection["headers"] == ["State", "Revenue", "Date"]
        assert detection["status"] == "DETECTED"
        assert detection["criticalFields"] == {"hasState": True, "hasRevenue": True, "hasDate": True}

    def test_empty_rows_need_mapping(self):
        detection = detect_header_row([])
        assert detection["headerRowIndex"] == -1
        assert detection["status"] == "NEEDS_MAPPING"


class TestClassification:

    @pytest.mark.parametrize(
        "headers,expected",
        [
            (["Account", "40000 - Sales", "Total"], "PROFIT_LOSS"),
            (["Invoice #", "Ship State", "Amount"], "TRANSACTION_DETAIL"),
            (["Channel", "Revenue"], "CHANNEL_ANALYSIS"),
            (["Month", "State", "Gross_Revenue"], "MONTHLY_ADJUSTMENTS"),
            (["State", "Revenue"], "STATE_SUMMARY"),
            (["Employee ID", "Work State", "Wages"], "PAYROLL_DATA"),
            (["GL Account", "Balance"], "GL_DATA"),
            (["Foo", "Bar"], "UNKNOWN"),
        ],
    )
    def test_classify(self, headers, expected):
        assert classify_document(headers)["type"] == expected

    def test_unknown_confidence(self):
        assert classify_document([])["confidence"] == 30


class TestMappings:

    def test_suggest_mappings(self):
        mappings = suggest_mappings(["State", "Total Sales", "Customer Name"])

        assert mappings[0]["suggestedField"] == "state"
        assert mappings[0]["confidence"] == 95
        assert mappings[1]["suggestedField"] == "revenue"
        assert mappings[1]["confidence"] == 75
        assert mappings[2]["suggestedField"] == "customer"

    def test_unmapped_header(self):
        mapping = suggest_mappings(["Notes"])[0]
        assert mapping["suggestedField"] is None
        assert mapping["confidence"] == 0

    def test_apply_mappings(self):
        rows = [{"Ship To": "CA", "Net": "10"}]
        mapped = apply_mappings(rows, {"Ship To": "state", "Net": "ignore"})
        assert mapped[0]["state"] == "CA"
        assert "ignore" not in mapped[0]


class TestAlertGeneration:

    def test_generate_alerts_uses_engine(self):
        rows = [{"Location": "CA", "Sales Total": "600000"}]
        result = generate_alerts(rows, mappings={"Location": "state", "Sales Total": "revenue"})

        assert result["success"] is True
        assert any(
            a["type"] == "SALES_NEXUS" and a["subtype"] == "ECONOMIC_NEXUS" for a in result["alerts"]
        )
        assert "fallback" not in result["summary"]

    def test_invalid_posture_is_rejected(self):
        with pytest.raises(ValueError, match="Invalid risk posture"):
            generate_alerts([{"state": "CA", "revenue": 750_000}], risk_posture="Aggressive")

    def test_engine_failure_falls_back(self, monkeypatch):
        def broken(self, data, document_type=None):
            raise RuntimeError("detector crashed")

        monkeypatch.setattr(NexusEngine, "process_document", broken)
        rows = [{"state": "FL", "revenue": 150_000}, {"state": "GA", "revenue": 85_000}]
        result = generate_alerts(rows)

        assert result["summary"]["fallback"] is True
        subtypes = {a["state"]: a["subtype"] for a in result["alerts"]}
        assert subtypes == {"FL": "ECONOMIC_NEXUS", "GA": "ECONOMIC_NEXUS_APPROACHING"}

    def test_fallback_below_threshold(self):
        assert generate_fallback_alerts([{"state": "CA", "revenue": 10}]) == []


class TestIngestionService:

    def test_process_csv_upload(self):
        result = IngestionService().process_upload("report.csv", CSV_WITH_TITLE)

        assert result["success"] is True
        assert result["uploadId"].startswith("upload-")
        assert result["fileType"] == "csv"
        assert result["rowCount"] == 4
        assert result["sheets"][0]["richnessScore"] == 80
        assert result["classification"]["type"] == "STATE_SUMMARY"

    def test_empty_upload_rejected(self):
        with pytest.raises(ValueError, match="No file uploaded"):
            IngestionService().process_upload("empty.csv", b"")

    def test_oversized_upload_rejected(self):
        with pytest.raises(ValueError, match="upload limit"):
            IngestionService(max_bytes=10).process_upload("big.csv", b"x" * 11)

    def test_excel_recommends_richest_sheet(self):
        result = IngestionService().process_upload("book.xlsx", _workbook_bytes())

        assert result["fileType"] == "excel"
        assert [s["name"] for s in result["sheets"]] == ["Summary", "Detail"]
        assert result["recommendedSheet"] == "Detail"

    def test_detect_header_for_named_sheet(self):
        result = IngestionService().detect_header("book.xlsx", _workbook_bytes(), "Detail")

        assert result["headers"] == ["State", "Revenue", "Customer"]
        assert len(result["sampleRows"]) == 5

    def test_detect_sheets_for_workbook(self):
        result = IngestionService().detect_sheets("book.xlsx", _workbook_bytes())

        assert result["sheets"] == [
            {"name": "Summary", "rowCount": 1, "columnCount": 1, "richnessScore": 0},
            {"name": "Detail", "rowCount": 21, "columnCount": 3, "richnessScore": 6},
        ]

    def test_detect_sheets_for_csv_type_hint(self):
        result = IngestionService().detect_sheets("export.dat", CSV_WITH_TITLE, "csv")

        assert result["sheets"] == [
            {"name": "Sheet1", "rowCount": 2, "columnCount": 3, "richnessScore": 80},
        ]

    def test_corrupt_workbook(self):
        with pytest.raises(ValueError, match="Excel"):
            IngestionService().process_upload("book.xlsx", b"not a zip")

"""
Nexus Compliance - Data Validation Tests

Tests for the staged validation pipeline run before nexus analysis.
"""

from app.services.data_validation_service import (
    DataValidationEngine,
    detect_data_type,
    normalize_state_value,
)


SALES_FILE = {
    "allData": [
        ["State", "Amount", "Date", "Customer"],
        ["CA", "1000.00", "01/15/2026", "Acme"],
        ["Calif", "2,500", "2026-02-01", "Beta"],
        ["texas", "300", "03/01/2026", "Gamma"],
    ],
}


def _stage(result, stage_id):
    return next(s for s in result["stages"] if s["id"] == stage_id)


class TestStateNormalization:

    def test_exact_code_and_name(self):
        assert normalize_state_value("ca") == {"normalized": "CA", "confidence": 100}
        assert normalize_state_value("New York") == {"normalized": "NY", "confidence": 100}

    def test_abbreviation_variation(self):
        assert normalize_state_value("Calif") == {"normalized": "CA", "confidence": 95}

    def test_city_state(self):
        assert normalize_state_value("Austin, TX") == {"normalized": "TX", "confidence": 90}

    def test_fuzzy_misspelling(self):
        result = normalize_state_value("Californa")
        assert result["normalized"] == "CA"
        assert 70 <= result["confidence"] < 90

    def test_unresolvable(self):
        assert normalize_state_value("Atlantis")["normalized"] is None
        assert normalize_state_value("")["confidence"] == 0

    def test_detect_data_type(self):
        assert detect_data_type([1, 2, "3"]) == "number"
        assert detect_data_type(["01/01/2026", "2026-01-02"]) == "date"
        assert detect_data_type(["a", "b", 1]) == "string"
        assert detect_data_type([]) == "unknown"


class TestValidationPipeline:

    def test_column_mappings(self):
        result = DataValidationEngine().validate([SALES_FILE])

        fields = {m["sourceColumn"]: m["suggestedField"] for m in result["mappings"]}
        assert fields == {"State": "state", "Amount": "revenue", "Date": "date", "Customer": "customer"}
        assert not any(i["type"] == "duplicate_column" for i in result["issues"])

    def test_states_normalized(self):
        result = DataValidationEngine().validate([SALES_FILE])

        assert result["statesFound"] == ["CA", "TX"]
        calif = next(n for n in result["normalizations"] if n["original"] == "Calif")
        assert calif["normalized"] == "CA"
        assert calif["flagged"] is False
        assert _stage(result, "normalize")["details"]["corrected"] == 2

    def test_summary_and_module_readiness(self):
        result = DataValidationEngine().validate([SALES_FILE])
        summary = result["summary"]

        assert result["success"] is True
        assert summary["canProceed"] is True
        assert summary["totalRows"] == 3
        assert summary["totalRevenue"] == 3800
        assert summary["statesDetected"] == 2

        missing = [i["id"] for i in result["issues"] if i["type"] == "missing_field"]
        assert missing == ["required-payroll"]
        assert _stage(result, "validate")["status"] == "warning"

    def test_strict_mode_blocks_on_any_issue(self):
        result = DataValidationEngine({"strictMode": True}).validate([SALES_FILE])
        assert result["summary"]["canProceed"] is False

    def test_firm_learning(self):
        engine = DataValidationEngine()
        result = engine.validate([SALES_FILE])

        assert result["firmTaxonomy"]["customer"] == "customer"
        assert _stage(result, "learn")["details"]["learnedMappings"] == 4

    def test_learning_disabled(self):
        result = DataValidationEngine({"enableFirmLearning": False}).validate([SALES_FILE])
        assert result["firmTaxonomy"] == {}

    def test_firm_taxonomy_mapping(self):
        file = {"allData": [["Juris", "Amount"], ["CA", "10"]]}
        result = DataValidationEngine(firm_taxonomy={"juris": "state"}).validate([file])

        mapping = result["mappings"][0]
        assert mapping["suggestedField"] == "state"
        assert mapping["source"] in {"firm", "data_analysis"}

    def test_empty_file_cannot_proceed(self):
        result = DataValidationEngine().validate([{"allData": []}])

        assert _stage(result, "parse")["status"] == "error"
        assert result["success"] is False

    def test_missing_state_values(self):
        file = {
            "allData": [
                ["State", "Revenue"],
                ["CA", "10"], ["", "20"], ["", "30"], ["", "40"],
            ],
        }
        result = DataValidationEngine().validate([file])

        issue = next(i for i in result["issues"] if i["id"] == "quality-state-empty")
        assert issue["severity"] == "error"
        assert issue["affectedRows"] == 3
        assert "Fill in missing state values or exclude those rows" in result["recommendations"]

    def test_invalid_revenue_values(self):
        file = {"allData": [["State", "Revenue"], ["CA", "lots"], ["TX", "20"]]}
        result = DataValidationEngine().validate([file])

        assert any(i["id"] == "quality-revenue-invalid" for i in result["issues"])

    def test_header_detection_offsets_data(self):
        file = {
            "allData": [["Report title"], ["State", "Revenue"], ["NY", "100"]],
            "headerDetection": {"headers": ["State", "Revenue"], "dataStartRow": 2},
        }
        result = DataValidationEngine().validate([file])
        assert result["summary"]["totalRows"] == 1
        assert result["statesFound"] == ["NY"]

"""
Nexus Compliance - Nexus Engine Tests

Unit tests for the multi-state nexus detection engine.
"""

import pytest

from app.services.nexus_engine import NexusEngine, SalesNexusDetector, get_state_rule
from app.services.nexus_engine.rows import (
    extract_state,
    extract_state_from_location,
    normalize_row,
    parse_amount,
)


def _subtypes(alerts, alert_type=None):
    return {
        a["subtype"] for a in alerts
        if alert_type is None or a["type"] == alert_type
    }


def _sales_alert(alerts, subtype):
    return next(a for a in alerts if a["type"] == "SALES_NEXUS" and a["subtype"] == subtype)


class TestRowHelpers:
    """Row normalization and state resolution."""

    def test_normalize_row_keys(self):
        row = normalize_row({"Ship State": "CA", "Order-Total": "10"})
        assert row == {"ship_state": "CA", "order_total": "10"}

    def test_parse_amount_formats(self):
        assert parse_amount("$1,234.50") == 1234.50
        assert parse_amount("(100)") == -100.0
        assert parse_amount(42) == 42.0
        assert parse_amount("n/a") is None
        assert parse_amount(None) is None
        assert parse_amount(True) is None

    def test_state_from_location(self):
        assert extract_state_from_location("Austin, TX") == "TX"
        assert extract_state_from_location("California") == "CA"
        assert extract_state_from_location("ny") == "NY"
        assert extract_state_from_location("Nowhere") is None

    def test_extract_state_falls_back_to_location(self):
        assert extract_state({"ship_location": "Miami, FL"}) == "FL"
        assert extract_state({"customer": "Acme"}) is None

    def test_get_state_rule_case_insensitive(self):
        assert get_state_rule(" ca ")["name"] == "California"
        assert get_state_rule("ZZ") is None
        assert get_state_rule("") is None


class TestSalesNexus:
    """Economic, approaching and posture-adjusted sales tax nexus."""

    def test_economic_nexus_triggered(self):
        engine = NexusEngine()
        alerts = engine.process_data([{"state": "CA", "revenue": 600_000}])

        alert = _sales_alert(alerts, "ECONOMIC_NEXUS")
        assert alert["state"] == "CA"
        assert alert["stateName"] == "California"
        assert alert["facts"]["actualRevenue"] == 600_000
        assert alert["facts"]["percentageOver"] == "120.0"
        assert alert["severity"] == "HIGH"
        assert alert["requiresAction"] is True
        assert alert["id"].startswith("ECONOMIC_NEXUS_CA_")

    def test_approaching_threshold(self):
        engine = NexusEngine()
        alerts = engine.process_data([{"state": "CA", "revenue": 450_000}])

        assert "ECONOMIC_NEXUS" not in _subtypes(alerts, "SALES_NEXUS")
        alert = _sales_alert(alerts, "ECONOMIC_NEXUS_APPROACHING")
        assert alert["severity"] == "MEDIUM"
        assert alert["facts"]["percentageOfThreshold"] == "90.0"
        assert alert["facts"]["remainingHeadroom"] == 50_000

    def test_conservative_posture_lowers_threshold(self):
        engine = NexusEngine({"risk_posture": "conservative"})
        alerts = engine.process_data([{"state": "CA", "revenue": 450_000}])

        alert = _sales_alert(alerts, "ECONOMIC_NEXUS")
        assert alert["facts"]["threshold"] == pytest.approx(400_000)
        assert alert["facts"]["statutoryThreshold"] == 500_000

    def test_aggressive_posture_raises_threshold(self):
        engine = NexusEngine({"risk_posture": "aggressive"})
        alerts = engine.process_data([{"state": "CA", "revenue": 550_000}])

        assert "ECONOMIC_NEXUS" not in _subtypes(alerts, "SALES_NEXUS")

    def test_revenue_summed_across_rows(self):
        engine = NexusEngine()
        rows = [{"state": "CA", "amount": "$300,000"}, {"state": "California", "amount": "$250,000"}]
        alerts = engine.process_data(rows)

        assert _sales_alert(alerts, "ECONOMIC_NEXUS")["facts"]["actualRevenue"] == 550_000

    def test_no_state_sales_tax(self):
        engine = NexusEngine()
        alerts = engine.process_data([{"state": "AK", "revenue": 5_000_000}])

        assert not _subtypes(alerts, "SALES_NEXUS")

    def test_marketplace_revenue_excluded_from_direct(self):
        rows = [{"state": "CA", "revenue": 600_000, "channel": "Amazon"}]
        alerts = NexusEngine().process_data(rows)

        subtypes = _subtypes(alerts, "SALES_NEXUS")
        assert "MARKETPLACE_NEXUS" in subtypes
        assert "ECONOMIC_NEXUS" not in subtypes

    def test_physical_presence(self):
        rows = [{"state": "TX", "revenue": 1_000, "employee_name": "Dana", "role": "Sales"}]
        alerts = NexusEngine().process_data(rows)

        alert = _sales_alert(alerts, "PHYSICAL_PRESENCE")
        assert alert["severity"] == "HIGH"
        assert "1 employee(s)" in alert["facts"]["presenceSummary"]

    def test_calculate_severity_bands(self):
        assert SalesNexusDetector.calculate_severity(160, 100) == "CRITICAL"
        assert SalesNexusDetector.calculate_severity(125, 100) == "HIGH"
        assert SalesNexusDetector.calculate_severity(100, 100) == "MEDIUM"
        assert SalesNexusDetector.calculate_severity(90, 100) == "LOW"


class TestEngineConfiguration:
    """Risk posture and module toggles."""

    def test_invalid_posture_rejected(self):
        with pytest.raises(ValueError):
            NexusEngine({"risk_posture": "reckless"})

    def test_disabled_module_skipped(self):
        engine = NexusEngine({"enabled_modules": {"sales": False}})
        alerts = engine.process_data([{"state": "CA", "revenue": 900_000}])

        assert not _subtypes(alerts, "SALES_NEXUS")
        assert engine.get_config()["enabledModules"]["income"] is True

    def test_update_config(self):
        engine = NexusEngine()
        config = engine.update_config({"risk_posture": "aggressive", "enabled_modules": {"payroll": False}})

        assert config["riskPosture"] == "aggressive"
        assert config["enabledModules"]["payroll"] is False
        assert config["enabledModules"]["sales"] is True

        with pytest.raises(ValueError):
            engine.update_config({"risk_posture": "bogus"})

    def test_unknown_state_ignored(self):
        alerts = NexusEngine().process_data([{"state": "ZZ", "revenue": 10_000_000}])
        assert alerts == []


class TestAlertOrdering:
    """Sorting, summaries and data quality."""

    def test_sort_alerts(self):
        alerts = [
            {"id": "low", "severity": "LOW", "priority": "LOW"},
            {"id": "crit", "severity": "CRITICAL", "priority": "HIGH"},
            {"id": "high-noaction", "severity": "HIGH", "priority": "HIGH", "requiresAction": False},
            {"id": "high-action", "severity": "HIGH", "priority": "HIGH", "requiresAction": True},
            {"id": "bare"},
        ]
        ordered = [a["id"] for a in NexusEngine.sort_alerts(alerts)]
        assert ordered == ["crit", "high-action", "high-noaction", "low", "bare"]

    def test_alert_summary(self):
        alerts = [
            {"severity": "HIGH", "type": "SALES_NEXUS", "state": "CA", "requiresAction": True},
            {"severity": "MEDIUM", "type": "INCOME_NEXUS", "state": "CA", "judgmentRequired": True},
        ]
        summary = NexusEngine.get_alert_summary(alerts)

        assert summary["total"] == 2
        assert summary["bySeverity"]["HIGH"] == 1
        assert summary["byType"] == {"SALES_NEXUS": 1, "INCOME_NEXUS": 1}
        assert summary["byState"] == {"CA": 2}
        assert summary["requiresAction"] == 1
        assert summary["requiresJudgment"] == 1

    def test_missing_state_data_quality(self):
        rows = [{"revenue": 100}, {"revenue": 200}, {"state": "CA", "revenue": 300}]
        issues = NexusEngine.validate_data_quality(rows)

        missing = next(i for i in issues if i["subtype"] == "MISSING_STATE")
        assert missing["severity"] == "HIGH"
        assert missing["facts"]["rowsAffected"] == 2

    def test_data_quality_empty(self):
        assert NexusEngine.validate_data_quality([]) == []

    def test_process_document(self):
        rows = [{"state": "CA", "revenue": 600_000}, {"customer": "no state", "revenue": 5}]
        result = NexusEngine().process_document(rows, "SALES_REPORT")

        assert result["success"] is True
        assert result["documentType"] == "SALES_REPORT"
        assert result["summary"]["dataQualityIssues"] == 1
        assert result["alerts"][0]["type"] == "DATA_QUALITY"
        assert result["config"]["riskPosture"] == "standard"

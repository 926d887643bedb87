"""
Nexus Compliance - Franchise Tax Nexus Detector

Detects "doing business" status, franchise / margin tax thresholds,
foreign qualification gaps and minimum tax exposure.
"""

import logging
from typing import Any, Dict, List

from app.services.nexus_engine.rows import (
    build_alert,
    contains_any,
    extract_amount,
    first_value,
    format_number,
    has_value,
    percentage,
    rows_for_state,
)
from app.services.nexus_engine.state_rules import STATE_RULES

logger = logging.getLogger(__name__)


FRANCHISE_REVENUE_FIELDS = ["revenue", "amount", "sales", "total", "gross_receipts"]


class FranchiseNexusDetector:
    """Franchise tax nexus detection for one state at a time."""

    def detect(self, state: str, rows: List[Dict[str, Any]], config: Dict[str, Any]) -> List[Dict[str, Any]]:
        rule = STATE_RULES.get(state)
        if not rule or "franchise" not in rule:
            return []

        franchise_rule = rule["franchise"]
        if franchise_rule.get("has_franchise_tax") is False:
            return []

        indicators = self.analyze_indicators(rows_for_state(rows, state))
        if not self.is_doing_business(indicators, franchise_rule):
            return []

        tax_type = self.tax_type(franchise_rule)
        alerts = [self._doing_business_alert(state, indicators, tax_type)]

        threshold = franchise_rule.get("threshold")
        if threshold and indicators["revenueInState"] >= threshold:
            alerts.append(self._threshold_alert(state, indicators["revenueInState"], threshold, tax_type))

        if franchise_rule.get("qualification_required"):
            issues = self.qualification_issues(indicators)
            if issues:
                alerts.append(self._qualification_alert(state, issues))

        minimum_tax = franchise_rule.get("minimum_tax") or 0
        if minimum_tax > 0:
            alerts.append(self._minimum_tax_alert(state, minimum_tax, tax_type))

        return alerts

    # ===========================================
    # INDICATORS
    # ===========================================

    @staticmethod
    def analyze_indicators(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        indicators = {
            "hasOffice": False,
            "hasEmployees": False,
            "hasProperty": False,
            "hasBankAccount": False,
            "revenueInState": 0.0,
            "transactsBusiness": False,
            "hasInventory": False,
            "hasRegisteredAgent": False,
            "hasCertificateOfAuthority": False,
        }

        for row in rows:
            location_type = first_value(row, ["location_type", "property_type"])
            if contains_any(location_type, ["office", "headquarters"]):
                indicators["hasOffice"] = True
            if first_value(row, ["employee_name", "employee", "staff"]):
                indicators["hasEmployees"] = True
            if first_value(row, ["property", "real_estate", "equipment", "assets"]):
                indicators["hasProperty"] = True
            if first_value(row, ["bank_account", "bank"]):
                indicators["hasBankAccount"] = True
            if has_value(row.get("inventory")) or has_value(row.get("stock")) or has_value(row.get("warehouse")):
                indicators["hasInventory"] = True
            if first_value(row, ["registered_agent"]):
                indicators["hasRegisteredAgent"] = True
            if first_value(row, ["certificate_of_authority", "foreign_qualification"]):
                indicators["hasCertificateOfAuthority"] = True

            revenue = extract_amount(row, FRANCHISE_REVENUE_FIELDS)
            if revenue > 0:
                indicators["revenueInState"] += revenue
                indicators["transactsBusiness"] = True

        return indicators

    @staticmethod
    def is_doing_business(indicators: Dict[str, Any], franchise_rule: Dict[str, Any]) -> bool:
        threshold = franchise_rule.get("doing_business_threshold")
        if threshold == "any_presence":
            return any(indicators[key] for key in (
                "hasOffice", "hasEmployees", "hasProperty", "transactsBusiness", "hasInventory",
            ))
        if isinstance(threshold, (int, float)) and not isinstance(threshold, bool):
            return indicators["revenueInState"] >= threshold
        return indicators["hasOffice"] or indicators["hasEmployees"] or indicators["hasProperty"]

    @staticmethod
    def tax_type(franchise_rule: Dict[str, Any]) -> str:
        if franchise_rule.get("margin_tax"):
            return "Margin Tax"
        if franchise_rule.get("net_worth_tax"):
            return "Net Worth Tax"
        return "Franchise Tax"

    @staticmethod
    def qualification_issues(indicators: Dict[str, Any]) -> List[str]:
        issues = []
        if not indicators["hasRegisteredAgent"]:
            issues.append("no_registered_agent")
        if not indicators["hasCertificateOfAuthority"]:
            issues.append("no_certificate_of_authority")
        return issues

    # ===========================================
    # ALERT BUILDERS
    # ===========================================

    def _doing_business_alert(self, state: str, indicators: Dict[str, Any], tax_type: str) -> Dict[str, Any]:
        active = [key for key, value in indicators.items() if value is True]
        return build_alert(
            kind="DOING_BUSINESS",
            alert_type="FRANCHISE_NEXUS",
            subtype="DOING_BUSINESS",
            state=state,
            severity="HIGH",
            title=f"{state} Doing Business Determination",
            description=f"Activities in {state} meet the state's doing-business standard for {tax_type}",
            facts={**indicators, "activeIndicators": active, "taxType": tax_type},
            recommendation=f"Evaluate {state} {tax_type.lower()} filing requirements.",
            priority="HIGH",
            requires_action=True,
        )

    def _threshold_alert(self, state: str, revenue: float, threshold: float, tax_type: str) -> Dict[str, Any]:
        return build_alert(
            kind="FRANCHISE_THRESHOLD",
            alert_type="FRANCHISE_NEXUS",
            subtype="THRESHOLD_EXCEEDED",
            state=state,
            severity="HIGH",
            title=f"{state} {tax_type} Threshold Exceeded",
            description=(
                f"Revenue of ${format_number(revenue)} exceeds {state}'s {tax_type.lower()} "
                f"threshold of ${format_number(threshold)}"
            ),
            facts={
                "threshold": threshold,
                "revenue": revenue,
                "taxType": tax_type,
                "percentageOver": percentage(revenue, threshold),
            },
            recommendation=f"File {state} {tax_type.lower()} report and pay any tax due.",
            priority="HIGH",
            requires_action=True,
        )

    def _qualification_alert(self, state: str, issues: List[str]) -> Dict[str, Any]:
        return build_alert(
            kind="QUALIFICATION",
            alert_type="FRANCHISE_NEXUS",
            subtype="QUALIFICATION_REQUIRED",
            state=state,
            severity="HIGH",
            title=f"{state} Foreign Qualification Required",
            description=f"Entity may need to qualify to do business in {state}",
            facts={"issues": issues},
            recommendation=(
                f"Obtain a certificate of authority and appoint a registered agent in {state}."
            ),
            priority="HIGH",
            requires_action=True,
        )

    def _minimum_tax_alert(self, state: str, minimum_tax: float, tax_type: str) -> Dict[str, Any]:
        return build_alert(
            kind="MINIMUM_TAX",
            alert_type="FRANCHISE_NEXUS",
            subtype="MINIMUM_TAX",
            state=state,
            severity="INFO",
            title=f"{state} Minimum {tax_type}",
            description=f"{state} imposes a minimum {tax_type.lower()} of ${format_number(minimum_tax)}",
            facts={"minimumTax": minimum_tax, "taxType": tax_type},
            recommendation=f"Budget for the ${format_number(minimum_tax)} minimum tax in {state}.",
            priority="LOW",
            requires_action=False,
        )

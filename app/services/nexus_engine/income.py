"""
Nexus Compliance - Income Tax Nexus Detector

Detects state income tax nexus:
- Economic nexus on net income against the state threshold
- PL 86-272 protection for sellers of tangible personal property
- Texas-style franchise (margin) taxes that replace an income tax
- Alternative gross receipts taxes in states without income tax
"""

import logging
from typing import Any, Dict, List

from app.services.nexus_engine.rows import (
    build_alert,
    contains_any,
    extract_amount,
    first_value,
    format_number,
    percentage,
    rows_for_state,
)
from app.services.nexus_engine.state_rules import PL_86_272_ACTIVITIES, STATE_RULES

logger = logging.getLogger(__name__)


TANGIBLE_INDICATORS = ["product", "goods", "merchandise", "inventory", "physical", "tangible"]

# Activity -> keywords searched in role / title / activity columns
ACTIVITY_KEYWORDS: Dict[str, List[str]] = {
    "solicitation": ["sales", "solicitation", "prospecting", "lead_generation"],
    "order_taking": ["order", "booking", "reservation"],
    "installation": ["install", "setup", "implementation"],
    "training": ["training", "education", "onboarding"],
    "repair": ["repair", "fix", "maintenance", "service"],
    "technical_support": ["support", "helpdesk", "troubleshoot"],
    "consulting": ["consulting", "advisory", "professional_services"],
    "delivery": ["delivery", "shipping", "logistics"],
}

GROSS_FIELDS = ["revenue", "sales", "income", "gross_sales"]
DEDUCTION_FIELDS = ["returns", "refunds", "credits"]
COST_FIELDS = ["cogs", "cost_of_goods", "cost"]
RECEIPTS_FIELDS = ["revenue", "sales", "amount", "total"]

APPROACHING_RATIO = 0.8


class IncomeNexusDetector:
    """Income tax nexus detection for one state at a time."""

    def detect(self, state: str, rows: List[Dict[str, Any]], config: Dict[str, Any]) -> List[Dict[str, Any]]:
        rule = STATE_RULES.get(state)
        if not rule or "income" not in rule:
            return []

        income_rule = rule["income"]
        state_rows = rows_for_state(rows, state)

        if not income_rule.get("has_income_tax") and not income_rule.get("franchise_tax_applies"):
            return self.check_alternative_taxes(state)

        alerts: List[Dict[str, Any]] = []

        if income_rule.get("has_income_tax"):
            net_income = self.net_income(state_rows)
            tangible = self.analyze_product_types(state_rows)

            if tangible["hasTangibleProducts"] and income_rule.get("pl86_272_applies"):
                activities = self.analyze_activities(state_rows, income_rule)
                alert = self._pl86_272_alert(state, net_income, activities)
                if alert:
                    alerts.append(alert)
            else:
                alert = self.check_economic_nexus(state, net_income)
                if alert:
                    alerts.append(alert)

        if income_rule.get("franchise_tax_applies"):
            alert = self.check_franchise_tax(state, state_rows)
            if alert:
                alerts.append(alert)

        return alerts

    # ===========================================
    # MEASUREMENTS
    # ===========================================

    @staticmethod
    def net_income(rows: List[Dict[str, Any]]) -> float:
        total = 0.0
        for row in rows:
            gross = extract_amount(row, GROSS_FIELDS)
            deductions = extract_amount(row, DEDUCTION_FIELDS)
            costs = extract_amount(row, COST_FIELDS)
            total += gross - deductions - costs
        return total

    @staticmethod
    def analyze_product_types(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        tangible = 0
        other = 0
        for row in rows:
            product_type = first_value(row, ["product_type", "type", "category"])
            if contains_any(product_type, TANGIBLE_INDICATORS):
                tangible += 1
            else:
                other += 1
        return {
            "hasTangibleProducts": tangible > 0,
            "tangibleCount": tangible,
            "otherCount": other,
        }

    @staticmethod
    def classify_activity(activity: str, income_rule: Dict[str, Any]) -> str:
        protected = set(PL_86_272_ACTIVITIES["protected"]) | set(income_rule.get("protected_activities", []))
        unprotected = set(PL_86_272_ACTIVITIES["unprotected"]) | set(income_rule.get("unprotected_activities", []))
        if activity in unprotected:
            return "unprotected"
        if activity in protected:
            return "protected"
        return "judgment"

    def analyze_activities(self, rows: List[Dict[str, Any]], income_rule: Dict[str, Any]) -> Dict[str, List[str]]:
        found: Dict[str, List[str]] = {"protected": [], "unprotected": [], "judgment": []}
        for row in rows:
            text = " ".join(
                str(row.get(field) or "")
                for field in ("role", "title", "job_title", "activity")
            ).lower()
            if not text.strip():
                continue
            for activity, keywords in ACTIVITY_KEYWORDS.items():
                if contains_any(text, keywords):
                    bucket = found[self.classify_activity(activity, income_rule)]
                    if activity not in bucket:
                        bucket.append(activity)
        return found

    def check_economic_nexus(self, state: str, net_income: float) -> Dict[str, Any]:
        threshold = STATE_RULES[state]["income"].get("economic_nexus_threshold")
        if not threshold:
            return {}

        if net_income >= threshold:
            return build_alert(
                kind="INCOME_ECONOMIC",
                alert_type="INCOME_NEXUS",
                subtype="ECONOMIC_NEXUS",
                state=state,
                severity="HIGH",
                title=f"{state} Income Tax Economic Nexus",
                description=(
                    f"Net income of ${format_number(net_income)} exceeds {state}'s income tax "
                    f"economic nexus threshold of ${format_number(threshold)}"
                ),
                facts={
                    "threshold": threshold,
                    "netIncome": net_income,
                    "percentageOver": percentage(net_income, threshold),
                },
                recommendation=f"File {state} income tax returns. Review apportionment factors.",
                priority="HIGH",
                requires_action=True,
            )

        if net_income >= threshold * APPROACHING_RATIO:
            return build_alert(
                kind="INCOME_APPROACHING",
                alert_type="INCOME_NEXUS",
                subtype="ECONOMIC_NEXUS_APPROACHING",
                state=state,
                severity="MEDIUM",
                title=f"{state} Income Tax Threshold Approaching",
                description=(
                    f"Net income of ${format_number(net_income)} is "
                    f"{percentage(net_income, threshold)}% of {state}'s income tax threshold"
                ),
                facts={
                    "threshold": threshold,
                    "netIncome": net_income,
                    "percentageOfThreshold": percentage(net_income, threshold),
                },
                recommendation=f"Monitor income activity in {state}.",
                priority="MEDIUM",
                requires_action=False,
            )
        return {}

    def check_franchise_tax(self, state: str, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        rule = STATE_RULES[state]
        threshold = rule["income"].get("franchise_threshold")
        if not threshold:
            return {}

        revenue = sum(extract_amount(row, RECEIPTS_FIELDS) for row in rows)
        if revenue < threshold:
            return {}

        tax_type = "Margin Tax" if rule.get("franchise", {}).get("margin_tax") else "Franchise Tax"
        return build_alert(
            kind="FRANCHISE_TAX",
            alert_type="INCOME_NEXUS",
            subtype="FRANCHISE_TAX",
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
            recommendation=f"File {state} {tax_type.lower()} report.",
            priority="HIGH",
            requires_action=True,
        )

    @staticmethod
    def check_alternative_taxes(state: str) -> List[Dict[str, Any]]:
        rule = STATE_RULES[state]
        franchise_rule = rule.get("franchise", {})
        if franchise_rule.get("business_and_occupation_tax"):
            tax_type = "B&O Tax"
        elif franchise_rule.get("commerce_activity_tax"):
            tax_type = "Commerce Tax"
        else:
            return []

        return [build_alert(
            kind="ALTERNATIVE_TAX",
            alert_type="INCOME_NEXUS",
            subtype="ALTERNATIVE_TAX",
            state=state,
            severity="INFO",
            title=f"{state} {tax_type} May Apply",
            description=f"{state} has no income tax but imposes a {tax_type} on gross receipts",
            facts={"taxType": tax_type, "note": franchise_rule.get("note")},
            recommendation=f"Review {state} {tax_type} obligations based on gross receipts.",
            priority="LOW",
            requires_action=False,
        )]

    # ===========================================
    # PL 86-272
    # ===========================================

    def _pl86_272_alert(
        self,
        state: str,
        net_income: float,
        activities: Dict[str, List[str]],
    ) -> Dict[str, Any]:
        facts = {
            "netIncome": net_income,
            "protectedActivities": activities["protected"],
            "unprotectedActivities": activities["unprotected"],
            "judgmentActivities": activities["judgment"],
        }

        if activities["unprotected"]:
            return build_alert(
                kind="PL86_272_UNPROTECTED",
                alert_type="INCOME_NEXUS",
                subtype="PL86_272_UNPROTECTED",
                state=state,
                severity="HIGH",
                title=f"{state} PL 86-272 Protection Lost",
                description=(
                    f"Activities in {state} exceed solicitation: "
                    f"{', '.join(activities['unprotected'])}"
                ),
                facts=facts,
                recommendation=(
                    f"Unprotected activities create income tax nexus in {state}. "
                    "File income tax returns and review apportionment."
                ),
                priority="HIGH",
                requires_action=True,
            )

        if activities["judgment"]:
            return build_alert(
                kind="PL86_272_JUDGMENT",
                alert_type="INCOME_NEXUS",
                subtype="PL86_272_JUDGMENT_REQUIRED",
                state=state,
                severity="MEDIUM",
                title=f"{state} PL 86-272 Protection Requires Review",
                description=(
                    f"Activities in {state} may or may not be protected: "
                    f"{', '.join(activities['judgment'])}"
                ),
                facts=facts,
                recommendation=(
                    "Review activities with a tax professional to determine whether "
                    "PL 86-272 protection applies."
                ),
                priority="MEDIUM",
                requires_action=True,
                judgment_required=True,
            )

        if activities["protected"]:
            return build_alert(
                kind="PL86_272_PROTECTED",
                alert_type="INCOME_NEXUS",
                subtype="PL86_272_PROTECTED",
                state=state,
                severity="INFO",
                title=f"{state} PL 86-272 Protection Applies",
                description=(
                    f"Activities in {state} are limited to solicitation of orders for "
                    "tangible personal property"
                ),
                facts=facts,
                recommendation="Maintain activity limits and document solicitation-only presence.",
                priority="LOW",
                requires_action=False,
            )

        return self.check_economic_nexus(state, net_income)

"""
Nexus Compliance - Sales Tax Nexus Detector

Detects sales tax nexus obligations:
- Economic nexus (post-Wayfair revenue and transaction thresholds)
- Marketplace facilitator sales
- Physical presence (employees, contractors, property, inventory)
- Click-through / affiliate nexus
"""

import logging
from typing import Any, Dict, List

from app.services.nexus_engine.rows import (
    build_alert,
    contains_any,
    due_date,
    extract_revenue,
    first_value,
    format_number,
    percentage,
    rows_for_state,
)
from app.services.nexus_engine.state_rules import STATE_RULES, get_risk_multiplier

logger = logging.getLogger(__name__)


MARKETPLACE_INDICATORS = ["amazon", "shopify", "ebay", "etsy", "walmart", "marketplace"]
AFFILIATE_INDICATORS = ["affiliate", "referral", "partner", "commission"]

# Referral revenue below this is ignored for click-through nexus
AFFILIATE_REVENUE_FLOOR = 10_000

APPROACHING_RATIO = 0.8


class SalesNexusDetector:
    """Sales tax nexus detection for one state at a time."""

    def detect(self, state: str, rows: List[Dict[str, Any]], config: Dict[str, Any]) -> List[Dict[str, Any]]:
        alerts: List[Dict[str, Any]] = []
        rule = STATE_RULES.get(state)
        if not rule or "sales" not in rule:
            logger.debug(f"No sales rules for state {state}")
            return alerts

        sales_rule = rule["sales"]
        if sales_rule.get("has_state_sales_tax") is False:
            logger.debug(f"{state} has no state sales tax")
            return alerts

        state_rows = rows_for_state(rows, state)
        total_revenue = self.total_revenue(state_rows)
        marketplace_revenue = self.marketplace_revenue(state_rows)
        direct_revenue = total_revenue - marketplace_revenue
        transaction_count = len(state_rows)

        logger.debug(
            f"{state} sales analysis: total={total_revenue} marketplace={marketplace_revenue} "
            f"transactions={transaction_count}"
        )

        economic = self.check_economic_nexus(state, direct_revenue, transaction_count, config)
        if economic["triggered"]:
            alerts.append(self._economic_alert(state, economic))
        elif economic.get("warning"):
            alerts.append(self._approaching_alert(state, economic))

        if marketplace_revenue > 0:
            marketplace = self.check_marketplace_nexus(state, marketplace_revenue, config)
            if marketplace["triggered"]:
                alerts.append(self._marketplace_alert(state, marketplace))

        presence = self.detect_physical_presence(state_rows, state)
        if presence["hasPhysicalPresence"]:
            alerts.append(self._physical_presence_alert(state, presence["indicators"]))

        if sales_rule.get("affiliate_nexus"):
            affiliate = self.detect_affiliate_relationships(state_rows)
            if affiliate["hasAffiliateNexus"]:
                alerts.append(self._affiliate_alert(state, affiliate))

        return alerts

    # ===========================================
    # MEASUREMENTS
    # ===========================================

    @staticmethod
    def total_revenue(rows: List[Dict[str, Any]]) -> float:
        return sum(r for r in (extract_revenue(row) for row in rows) if r > 0)

    @staticmethod
    def marketplace_revenue(rows: List[Dict[str, Any]]) -> float:
        total = 0.0
        for row in rows:
            channel = first_value(row, ["channel", "source", "platform"])
            if contains_any(channel, MARKETPLACE_INDICATORS):
                total += extract_revenue(row)
        return total

    @staticmethod
    def check_economic_nexus(
        state: str,
        revenue: float,
        transaction_count: int,
        config: Dict[str, Any],
    ) -> Dict[str, Any]:
        sales_rule = STATE_RULES[state]["sales"]
        statutory = sales_rule.get("economic_nexus_threshold")
        if not statutory:
            return {"triggered": False}

        adjusted = statutory * get_risk_multiplier(config.get("riskPosture"))

        if revenue >= adjusted:
            return {
                "triggered": True,
                "type": "ECONOMIC_NEXUS",
                "threshold": adjusted,
                "statutoryThreshold": statutory,
                "actual": revenue,
                "percentageOver": percentage(revenue, adjusted),
            }

        count_threshold = sales_rule.get("transaction_count_threshold")
        if count_threshold and transaction_count >= count_threshold:
            return {
                "triggered": True,
                "type": "ECONOMIC_NEXUS_TRANSACTIONS",
                "threshold": count_threshold,
                "actual": transaction_count,
                "percentageOver": percentage(transaction_count, count_threshold),
            }

        if revenue >= adjusted * APPROACHING_RATIO:
            return {
                "triggered": False,
                "warning": True,
                "type": "ECONOMIC_NEXUS_APPROACHING",
                "threshold": adjusted,
                "statutoryThreshold": statutory,
                "actual": revenue,
                "percentageOfThreshold": percentage(revenue, adjusted),
            }

        return {"triggered": False}

    @staticmethod
    def check_marketplace_nexus(state: str, revenue: float, config: Dict[str, Any]) -> Dict[str, Any]:
        statutory = STATE_RULES[state]["sales"].get("marketplace_threshold")
        if not statutory:
            return {"triggered": False}

        adjusted = statutory * get_risk_multiplier(config.get("riskPosture"))
        if revenue >= adjusted:
            return {
                "triggered": True,
                "type": "MARKETPLACE_NEXUS",
                "threshold": adjusted,
                "actual": revenue,
                "percentageOver": percentage(revenue, adjusted),
            }
        return {"triggered": False}

    @staticmethod
    def detect_physical_presence(rows: List[Dict[str, Any]], state: str) -> Dict[str, Any]:
        indicators: Dict[str, list] = {
            "employees": [],
            "contractors": [],
            "property": [],
            "inventory": [],
        }

        for row in rows:
            employee = first_value(row, ["employee_name", "employee", "staff"])
            if employee:
                indicators["employees"].append({
                    "name": employee,
                    "role": first_value(row, ["role", "title", "position"]),
                })

            contractor = first_value(row, ["contractor_name", "contractor", "vendor"])
            if contractor:
                indicators["contractors"].append({
                    "name": contractor,
                    "type": row.get("contractor_type") or "unknown",
                })

            if first_value(row, ["property", "office", "warehouse", "location_type"]):
                indicators["property"].append({
                    "type": first_value(row, ["property_type", "location_type"]) or "property",
                    "address": row.get("address"),
                })

            if first_value(row, ["inventory", "stock", "warehouse_location"]):
                indicators["inventory"].append({
                    "location": row.get("warehouse_location") or state,
                    "value": row.get("inventory_value"),
                })

        return {
            "hasPhysicalPresence": any(indicators.values()),
            "indicators": indicators,
        }

    @staticmethod
    def detect_affiliate_relationships(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        affiliates = []
        for row in rows:
            channel = first_value(row, ["channel", "source"])
            if contains_any(channel, AFFILIATE_INDICATORS):
                affiliates.append({
                    "name": first_value(row, ["affiliate_name", "partner_name"]) or "Unknown",
                    "revenue": extract_revenue(row),
                })

        total = sum(a["revenue"] for a in affiliates)
        return {
            "hasAffiliateNexus": bool(affiliates) and total > AFFILIATE_REVENUE_FLOOR,
            "affiliates": affiliates,
            "totalAffiliateRevenue": total,
        }

    @staticmethod
    def calculate_severity(actual: float, threshold: float) -> str:
        pct = (actual / threshold) * 100
        if pct >= 150:
            return "CRITICAL"
        if pct >= 120:
            return "HIGH"
        if pct >= 100:
            return "MEDIUM"
        return "LOW"

    # ===========================================
    # ALERT BUILDERS
    # ===========================================

    def _economic_alert(self, state: str, analysis: Dict[str, Any]) -> Dict[str, Any]:
        rule = STATE_RULES[state]
        by_count = analysis["type"] == "ECONOMIC_NEXUS_TRANSACTIONS"
        if by_count:
            description = (
                f"{analysis['actual']} transactions meet {state}'s economic nexus "
                f"transaction threshold of {analysis['threshold']}"
            )
        else:
            description = (
                f"Revenue of ${format_number(analysis['actual'])} exceeds {state}'s economic "
                f"nexus threshold of ${format_number(analysis['threshold'])}"
            )
        return build_alert(
            kind="ECONOMIC_NEXUS",
            alert_type="SALES_NEXUS",
            subtype="ECONOMIC_NEXUS",
            state=state,
            severity=self.calculate_severity(analysis["actual"], analysis["threshold"]),
            title=f"{state} Sales Tax Economic Nexus Triggered",
            description=description,
            facts={
                "threshold": analysis["threshold"],
                "statutoryThreshold": analysis.get("statutoryThreshold"),
                "actualRevenue": None if by_count else analysis["actual"],
                "transactionCount": analysis["actual"] if by_count else None,
                "trigger": analysis["type"],
                "percentageOver": analysis["percentageOver"],
                "effectiveDate": rule["sales"].get("effective_date"),
                "period": "Current Year",
            },
            recommendation=(
                f"Register for sales tax collection in {state}. "
                "Review registration requirements and filing deadlines."
            ),
            priority="HIGH",
            requires_action=True,
            dueDate=due_date(30),
        )

    def _approaching_alert(self, state: str, analysis: Dict[str, Any]) -> Dict[str, Any]:
        return build_alert(
            kind="ECONOMIC_NEXUS_APPROACHING",
            alert_type="SALES_NEXUS",
            subtype="ECONOMIC_NEXUS_APPROACHING",
            state=state,
            severity="MEDIUM",
            title=f"{state} Sales Tax Threshold Approaching",
            description=(
                f"Revenue of ${format_number(analysis['actual'])} is "
                f"{analysis['percentageOfThreshold']}% of {state}'s economic nexus threshold"
            ),
            facts={
                "threshold": analysis["threshold"],
                "actualRevenue": analysis["actual"],
                "percentageOfThreshold": analysis["percentageOfThreshold"],
                "remainingHeadroom": analysis["threshold"] - analysis["actual"],
                "period": "Current Year",
            },
            recommendation=(
                f"Monitor sales activity in {state}. Prepare for potential registration requirement."
            ),
            priority="MEDIUM",
            requires_action=False,
        )

    def _marketplace_alert(self, state: str, analysis: Dict[str, Any]) -> Dict[str, Any]:
        return build_alert(
            kind="MARKETPLACE_NEXUS",
            alert_type="SALES_NEXUS",
            subtype="MARKETPLACE_NEXUS",
            state=state,
            severity="INFO",
            title=f"{state} Marketplace Sales Threshold Met",
            description=(
                f"Marketplace revenue of ${format_number(analysis['actual'])} exceeds threshold. "
                "Verify marketplace is remitting tax."
            ),
            facts={
                "threshold": analysis["threshold"],
                "marketplaceRevenue": analysis["actual"],
                "percentageOver": analysis["percentageOver"],
            },
            recommendation=(
                "Verify that marketplace facilitators (Amazon, Shopify, etc.) are properly "
                f"collecting and remitting sales tax for {state} sales."
            ),
            priority="LOW",
            requires_action=False,
        )

    def _physical_presence_alert(self, state: str, indicators: Dict[str, list]) -> Dict[str, Any]:
        labels = {
            "employees": "employee(s)",
            "contractors": "contractor(s)",
            "property": "property location(s)",
            "inventory": "inventory location(s)",
        }
        presence = [
            f"{len(indicators[key])} {label}"
            for key, label in labels.items()
            if indicators[key]
        ]
        return build_alert(
            kind="PHYSICAL_PRESENCE",
            alert_type="SALES_NEXUS",
            subtype="PHYSICAL_PRESENCE",
            state=state,
            severity="HIGH",
            title=f"{state} Physical Presence Nexus Detected",
            description=f"Physical presence detected in {state}: {', '.join(presence)}",
            facts={**indicators, "presenceSummary": presence},
            recommendation=(
                f"Physical presence creates sales tax nexus in {state}. "
                "Verify sales tax registration and compliance."
            ),
            priority="HIGH",
            requires_action=True,
        )

    def _affiliate_alert(self, state: str, analysis: Dict[str, Any]) -> Dict[str, Any]:
        return build_alert(
            kind="AFFILIATE_NEXUS",
            alert_type="SALES_NEXUS",
            subtype="AFFILIATE_NEXUS",
            state=state,
            severity="MEDIUM",
            title=f"{state} Click-Through/Affiliate Nexus Potential",
            description=(
                f"Affiliate relationships in {state} may create click-through nexus with "
                f"${format_number(analysis['totalAffiliateRevenue'])} in referral revenue"
            ),
            facts={
                "affiliateCount": len(analysis["affiliates"]),
                "totalAffiliateRevenue": analysis["totalAffiliateRevenue"],
                "affiliates": analysis["affiliates"],
            },
            recommendation=(
                f"Review affiliate agreements in {state}. "
                "Click-through nexus laws may require sales tax collection."
            ),
            priority="MEDIUM",
            requires_action=False,
            judgment_required=True,
        )

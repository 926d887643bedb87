"""
Nexus Compliance - Nexus Detection Engine

Coordinates the tax-type detectors over a document's rows and turns their
output into a ranked, summarized alert list.

Processing:
1. Group rows by the state they resolve to
2. Run each enabled detector (sales, income, payroll, franchise) per state
3. Re-rate severities against the firm's risk posture
4. Sort, summarize and prepend data-quality findings
"""

import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from app.services.nexus_engine.franchise import FranchiseNexusDetector
from app.services.nexus_engine.income import IncomeNexusDetector
from app.services.nexus_engine.payroll import PayrollNexusDetector
from app.services.nexus_engine.rows import (
    REVENUE_FIELDS,
    build_alert,
    extract_state,
    has_value,
    normalize_row,
    utc_now_iso,
)
from app.services.nexus_engine.sales import SalesNexusDetector
from app.services.nexus_engine.state_rules import (
    RISK_MULTIPLIERS,
    SEVERITY_THRESHOLDS,
    STATE_RULES,
)

logger = logging.getLogger(__name__)


MODULES = ("sales", "income", "payroll", "franchise")

SEVERITY_ORDER = {"CRITICAL": 0, "HIGH": 1, "MEDIUM": 2, "LOW": 3, "INFO": 4}
PRIORITY_ORDER = {"HIGH": 0, "MEDIUM": 1, "LOW": 2}

MISSING_STATE_RATIO = 0.1
MISSING_STATE_HIGH_RATIO = 0.5
MISSING_REVENUE_RATIO = 0.5


class NexusEngine:
    """
    Nexus detection engine.

    Configuration:
        firm_id: Firm the engine runs for
        risk_posture: conservative, standard or aggressive
        enabled_modules: module name -> bool; modules default to enabled
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        config = config or {}
        self.firm_id = config.get("firm_id", "default")
        self.risk_posture = self._validate_posture(config.get("risk_posture", "standard"))
        self.enabled_modules = self._merge_modules(config.get("enabled_modules"))

        self.detectors = {
            "sales": SalesNexusDetector(),
            "income": IncomeNexusDetector(),
            "payroll": PayrollNexusDetector(),
            "franchise": FranchiseNexusDetector(),
        }

    @staticmethod
    def _validate_posture(posture: str) -> str:
        if posture not in RISK_MULTIPLIERS:
            raise ValueError(
                f"Invalid risk posture '{posture}'. Must be one of: {', '.join(RISK_MULTIPLIERS)}"
            )
        return posture

    @staticmethod
    def _merge_modules(modules: Optional[Dict[str, bool]], base: Optional[Dict[str, bool]] = None) -> Dict[str, bool]:
        merged = dict(base) if base else {name: True for name in MODULES}
        for name, enabled in (modules or {}).items():
            if name in MODULES:
                merged[name] = enabled is not False
        return merged

    # ===========================================
    # CONFIGURATION
    # ===========================================

    def get_config(self) -> Dict[str, Any]:
        return {
            "firmId": self.firm_id,
            "riskPosture": self.risk_posture,
            "enabledModules": dict(self.enabled_modules),
        }

    def update_config(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Update posture or modules in place."""
        if "firm_id" in config:
            self.firm_id = config["firm_id"]
        if "risk_posture" in config:
            self.risk_posture = self._validate_posture(config["risk_posture"])
        if "enabled_modules" in config:
            self.enabled_modules = self._merge_modules(config["enabled_modules"], self.enabled_modules)
        logger.info(f"Nexus engine config updated: {self.get_config()}")
        return self.get_config()

    def _detector_config(self) -> Dict[str, Any]:
        return {"firmId": self.firm_id, "riskPosture": self.risk_posture}

    # ===========================================
    # PROCESSING
    # ===========================================

    def process_data(
        self,
        data: List[Dict[str, Any]],
        document_type: str = "UNKNOWN",
    ) -> List[Dict[str, Any]]:
        """Run every enabled detector over the rows, state by state."""
        rows = [normalize_row(row) for row in data]
        by_state: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
        for row in rows:
            state = extract_state(row)
            if state:
                by_state[state].append(row)

        logger.info(
            f"Processing {len(rows)} rows of {document_type} across {len(by_state)} state(s)"
        )

        config = self._detector_config()
        alerts: List[Dict[str, Any]] = []

        for state, state_rows in by_state.items():
            if state not in STATE_RULES:
                continue
            try:
                for name, detector in self.detectors.items():
                    if self.enabled_modules.get(name):
                        alerts.extend(detector.detect(state, state_rows, config))
            except Exception as e:
                logger.warning(f"Nexus detection failed for state {state}: {e}", exc_info=True)

        return self.sort_alerts(self.apply_severity_levels(alerts))

    def apply_severity_levels(self, alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Re-rate alerts that carry facts.percentageOver against the posture thresholds."""
        thresholds = SEVERITY_THRESHOLDS[self.risk_posture]
        for alert in alerts:
            raw = (alert.get("facts") or {}).get("percentageOver")
            if raw is None:
                continue
            try:
                pct = float(raw)
            except (TypeError, ValueError):
                continue

            if pct >= thresholds["high"] * 1.5:
                alert["severity"] = "CRITICAL"
            elif pct >= thresholds["high"]:
                alert["severity"] = "HIGH"
            elif pct >= thresholds["medium"]:
                alert["severity"] = "MEDIUM"
            elif pct >= thresholds["low"]:
                alert["severity"] = "LOW"
        return alerts

    @staticmethod
    def sort_alerts(alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Severity, then priority, then action-required first."""
        return sorted(
            alerts,
            key=lambda a: (
                SEVERITY_ORDER.get(a.get("severity"), 4),
                PRIORITY_ORDER.get(a.get("priority"), 2),
                0 if a.get("requiresAction") else 1,
            ),
        )

    @staticmethod
    def get_alert_summary(alerts: List[Dict[str, Any]]) -> Dict[str, Any]:
        summary: Dict[str, Any] = {
            "total": len(alerts),
            "bySeverity": {level: 0 for level in SEVERITY_ORDER},
            "byType": {},
            "byState": {},
            "requiresAction": 0,
            "requiresJudgment": 0,
        }
        for alert in alerts:
            severity = alert.get("severity")
            if severity in summary["bySeverity"]:
                summary["bySeverity"][severity] += 1
            alert_type = alert.get("type", "UNKNOWN")
            summary["byType"][alert_type] = summary["byType"].get(alert_type, 0) + 1
            state = alert.get("state")
            if state:
                summary["byState"][state] = summary["byState"].get(state, 0) + 1
            if alert.get("requiresAction"):
                summary["requiresAction"] += 1
            if alert.get("judgmentRequired"):
                summary["requiresJudgment"] += 1
        return summary

    # ===========================================
    # DATA QUALITY
    # ===========================================

    @staticmethod
    def validate_data_quality(data: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Alerts for rows the detectors cannot use."""
        rows = [normalize_row(row) for row in data]
        if not rows:
            return []

        total = len(rows)
        issues: List[Dict[str, Any]] = []

        missing_state = sum(1 for row in rows if not extract_state(row))
        if missing_state / total > MISSING_STATE_RATIO:
            issues.append(build_alert(
                kind="DATA_QUALITY",
                alert_type="DATA_QUALITY",
                subtype="MISSING_STATE",
                state="N/A",
                severity="HIGH" if missing_state / total > MISSING_STATE_HIGH_RATIO else "MEDIUM",
                title="Missing State Information",
                description=f"{missing_state} of {total} rows have no identifiable state",
                facts={
                    "rowsAffected": missing_state,
                    "totalRows": total,
                    "percentage": f"{missing_state / total * 100:.1f}",
                },
                recommendation="Add a state column or location data so rows can be attributed.",
                priority="MEDIUM",
                requires_action=True,
            ))

        missing_revenue = sum(
            1 for row in rows
            if not any(has_value(row.get(field)) for field in REVENUE_FIELDS[:4])
        )
        if missing_revenue / total > MISSING_REVENUE_RATIO:
            issues.append(build_alert(
                kind="DATA_QUALITY",
                alert_type="DATA_QUALITY",
                subtype="MISSING_REVENUE",
                state="N/A",
                severity="MEDIUM",
                title="Missing Revenue Information",
                description=f"{missing_revenue} of {total} rows have no revenue amount",
                facts={
                    "rowsAffected": missing_revenue,
                    "totalRows": total,
                    "percentage": f"{missing_revenue / total * 100:.1f}",
                },
                recommendation="Map a revenue, amount, sales or total column.",
                priority="LOW",
                requires_action=False,
            ))

        return issues

    def process_document(
        self,
        file_data: List[Dict[str, Any]],
        document_type: str = "UNKNOWN",
    ) -> Dict[str, Any]:
        """Full pass over an uploaded document: alerts, summary and data quality."""
        alerts = self.process_data(file_data, document_type)
        quality = self.validate_data_quality(file_data)
        summary = self.get_alert_summary(alerts)
        summary["dataQualityIssues"] = len(quality)

        return {
            "success": True,
            "documentType": document_type,
            "alerts": quality + alerts,
            "summary": summary,
            "processedAt": utc_now_iso(),
            "config": {
                "riskPosture": self.risk_posture,
                "enabledModules": dict(self.enabled_modules),
            },
        }

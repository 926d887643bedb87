"""
Nexus Compliance - Payroll Nexus Detector

Detects payroll-driven obligations: withholding registration, state
insurance programs, contractor misclassification risk and remote workers.
"""

import logging
from typing import Any, Dict, List

from app.services.nexus_engine.rows import (
    build_alert,
    contains_any,
    extract_amount,
    first_value,
    format_number,
    parse_amount,
    rows_for_state,
)
from app.services.nexus_engine.state_rules import STATE_RULES

logger = logging.getLogger(__name__)


EMPLOYEE_FIELDS = ["employee_name", "employee", "staff", "worker"]
CONTRACTOR_FIELDS = ["contractor_name", "contractor", "vendor", "consultant"]
COMPENSATION_FIELDS = ["compensation", "salary", "wages", "pay", "annual_salary", "hourly_rate"]
REMOTE_INDICATORS = ["remote", "wfh", "work from home", "telecommute", "virtual"]

FULL_TIME_HOURS = 30


class PayrollNexusDetector:
    """Payroll nexus detection for one state at a time."""

    def detect(self, state: str, rows: List[Dict[str, Any]], config: Dict[str, Any]) -> List[Dict[str, Any]]:
        rule = STATE_RULES.get(state)
        if not rule or "payroll" not in rule:
            return []

        payroll_rule = rule["payroll"]
        workforce = self.analyze_workforce(rows_for_state(rows, state))
        alerts: List[Dict[str, Any]] = []

        employees = workforce["employees"]
        if employees and len(employees) >= payroll_rule.get("employee_threshold", 1):
            alerts.extend(self._employee_alerts(state, workforce, payroll_rule))

        contractors = workforce["contractors"]
        if contractors and len(contractors) >= payroll_rule.get("contractor_threshold", 1):
            alerts.append(self._contractor_alert(state, contractors))
            risky = [c for c in contractors if c["misclassificationRisk"] in ("HIGH", "MEDIUM")]
            if risky:
                alerts.append(self._misclassification_alert(state, risky))

        if workforce["remoteWorkers"]:
            alerts.append(self._remote_worker_alert(state, workforce["remoteWorkers"]))

        return alerts

    # ===========================================
    # WORKFORCE ANALYSIS
    # ===========================================

    def analyze_workforce(self, rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        employees = []
        contractors = []
        remote = []
        total_compensation = 0.0

        for row in rows:
            compensation = extract_amount(row, COMPENSATION_FIELDS)
            role = first_value(row, ["role", "title", "job_title"])
            full_time = self.is_full_time(row)

            employee = first_value(row, EMPLOYEE_FIELDS)
            if employee:
                employees.append({
                    "name": employee,
                    "role": role,
                    "compensation": compensation,
                    "fullTime": full_time,
                })
                total_compensation += compensation

            contractor = first_value(row, CONTRACTOR_FIELDS)
            if contractor:
                worker = {
                    "name": contractor,
                    "role": role,
                    "compensation": compensation,
                    "fullTime": full_time,
                }
                worker["misclassificationRisk"] = self.assess_misclassification_risk(worker)
                contractors.append(worker)

            location = first_value(row, ["work_location", "location_type"])
            if contains_any(location, REMOTE_INDICATORS):
                remote.append({
                    "name": employee or contractor or "Unknown",
                    "location": location,
                })

        return {
            "employees": employees,
            "contractors": contractors,
            "remoteWorkers": remote,
            "totalCompensation": total_compensation,
        }

    @staticmethod
    def is_full_time(row: Dict[str, Any]) -> bool:
        hours = parse_amount(first_value(row, ["hours_per_week", "weekly_hours"]))
        if hours is not None and hours >= FULL_TIME_HOURS:
            return True
        role = str(first_value(row, ["role", "title"]) or "").lower()
        return "full" in role or "ft" in role

    @staticmethod
    def assess_misclassification_risk(worker: Dict[str, Any]) -> str:
        """Score a contractor on common employee indicators."""
        score = 0
        role = str(worker.get("role") or "").lower()
        if worker.get("fullTime"):
            score += 3
        if worker.get("compensation", 0) > 100_000:
            score += 2
        if contains_any(role, ["supervisor", "manager", "director"]):
            score += 3
        if contains_any(role, ["core", "essential", "key"]):
            score += 2

        if score >= 5:
            return "HIGH"
        if score >= 3:
            return "MEDIUM"
        return "LOW"

    # ===========================================
    # ALERT BUILDERS
    # ===========================================

    def _employee_alerts(
        self,
        state: str,
        workforce: Dict[str, Any],
        payroll_rule: Dict[str, Any],
    ) -> List[Dict[str, Any]]:
        employees = workforce["employees"]
        count = len(employees)
        facts = {
            "employeeCount": count,
            "totalCompensation": workforce["totalCompensation"],
            "employees": employees,
        }

        alerts = [build_alert(
            kind="EMPLOYEE_PRESENCE",
            alert_type="PAYROLL_NEXUS",
            subtype="EMPLOYEE_PRESENCE",
            state=state,
            severity="HIGH",
            title=f"{state} Employee Presence Detected",
            description=(
                f"{count} employee(s) in {state} with ${format_number(workforce['totalCompensation'])} "
                "in compensation"
            ),
            facts=facts,
            recommendation=(
                f"Employees create payroll and income tax nexus in {state}. "
                "Verify employer registration."
            ),
            priority="HIGH",
            requires_action=True,
        )]

        if payroll_rule.get("withholding_required"):
            alerts.append(build_alert(
                kind="WITHHOLDING",
                alert_type="PAYROLL_NEXUS",
                subtype="WITHHOLDING_REQUIRED",
                state=state,
                severity="HIGH",
                title=f"{state} Income Tax Withholding Required",
                description=f"State income tax must be withheld for {count} employee(s) in {state}",
                facts={"employeeCount": count},
                recommendation=f"Register for {state} withholding account and file periodic returns.",
                priority="HIGH",
                requires_action=True,
            ))

        programs = [
            ("unemployment_insurance", "UNEMPLOYMENT_INSURANCE", "Unemployment Insurance"),
            ("disability_insurance", "DISABILITY_INSURANCE", "Disability Insurance"),
            ("paid_family_leave", "PAID_FAMILY_LEAVE", "Paid Family Leave"),
        ]
        for key, subtype, label in programs:
            if payroll_rule.get(key):
                alerts.append(build_alert(
                    kind=subtype,
                    alert_type="PAYROLL_NEXUS",
                    subtype=subtype,
                    state=state,
                    severity="MEDIUM",
                    title=f"{state} {label} Registration",
                    description=f"{state} requires {label.lower()} coverage for employees working in the state",
                    facts={"employeeCount": count, "program": label},
                    recommendation=f"Register for {state} {label.lower()} and remit contributions.",
                    priority="MEDIUM",
                    requires_action=True,
                ))

        return alerts

    def _contractor_alert(self, state: str, contractors: List[Dict[str, Any]]) -> Dict[str, Any]:
        return build_alert(
            kind="CONTRACTOR_PRESENCE",
            alert_type="PAYROLL_NEXUS",
            subtype="CONTRACTOR_PRESENCE",
            state=state,
            severity="INFO",
            title=f"{state} Contractor Presence",
            description=f"{len(contractors)} contractor(s) performing services in {state}",
            facts={"contractorCount": len(contractors), "contractors": contractors},
            recommendation=f"Track 1099 reporting and any {state} contractor withholding rules.",
            priority="LOW",
            requires_action=False,
        )

    def _misclassification_alert(self, state: str, risky: List[Dict[str, Any]]) -> Dict[str, Any]:
        return build_alert(
            kind="MISCLASSIFICATION",
            alert_type="PAYROLL_NEXUS",
            subtype="MISCLASSIFICATION_RISK",
            state=state,
            severity="HIGH",
            title=f"{state} Worker Misclassification Risk",
            description=(
                f"{len(risky)} contractor(s) in {state} show characteristics of employees"
            ),
            facts={"atRiskCount": len(risky), "contractors": risky},
            recommendation=(
                "Review contractor relationships against state employee tests. "
                "Reclassification may create payroll obligations."
            ),
            priority="HIGH",
            requires_action=True,
            judgment_required=True,
        )

    def _remote_worker_alert(self, state: str, remote: List[Dict[str, Any]]) -> Dict[str, Any]:
        return build_alert(
            kind="REMOTE_WORKER",
            alert_type="PAYROLL_NEXUS",
            subtype="REMOTE_WORKER",
            state=state,
            severity="MEDIUM",
            title=f"{state} Remote Worker Nexus",
            description=f"{len(remote)} remote worker(s) located in {state}",
            facts={"remoteWorkerCount": len(remote), "remoteWorkers": remote},
            recommendation=(
                f"Remote workers may create nexus in {state}. "
                "Review convenience-of-employer rules and withholding."
            ),
            priority="MEDIUM",
            requires_action=False,
            judgment_required=True,
        )

"""
Nexus Compliance - Map Status Service

Aggregates client states and alerts into one status per US state for the
compliance map, and prepares alert lists for display.

Status ladder (mildest to most severe):
compliant < transit < pending < warning < critical
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from app.services.nexus_engine.state_rules import STATE_NAMES
from app.utils.number_format import format_decimal

logger = logging.getLogger(__name__)


DEFAULT_THRESHOLD = 500_000

STATUS_RANK: Dict[str, int] = {
    "compliant": 0,
    "monitoring": 0,
    "transit": 1,
    "pending": 2,
    "warning": 3,
    "critical": 4,
}

STATUS_COLORS: Dict[str, str] = {
    "critical": "#dc2626",
    "warning": "#d97706",
    "pending": "#2563eb",
    "transit": "#7c3aed",
    "compliant": "#059669",
}

ALERT_STATUS_MAP: Dict[str, str] = {
    "open": "new",
    "acknowledged": "in-progress",
    "resolved": "resolved",
}

PRIORITY_RANK = {"critical": 0, "high": 1, "medium": 2, "low": 3}


# ===========================================
# STATUS DERIVATION
# ===========================================

def status_from_ratio(ratio: float) -> str:
    """Map revenue / threshold onto a map status."""
    if ratio >= 1.0:
        return "critical"
    if ratio >= 0.8:
        return "warning"
    if ratio >= 0.5:
        return "pending"
    if ratio >= 0.2:
        return "transit"
    return "compliant"


def escalate(current: str, candidate: str) -> str:
    """The more severe of two statuses."""
    if STATUS_RANK.get(candidate, 0) > STATUS_RANK.get(current, 0):
        return candidate
    return current


def _normalize_status(status: Optional[str]) -> str:
    status = (status or "compliant").lower()
    if status == "monitoring" or status not in STATUS_RANK:
        return "compliant"
    return status


def aggregate_state_map(
    client_states: Iterable[Dict[str, Any]],
    alerts: Iterable[Dict[str, Any]] = (),
    default_threshold: float = DEFAULT_THRESHOLD,
) -> Dict[str, Dict[str, Any]]:
    """
    Merge per-client state rows into one entry per state code.

    Revenue is summed across clients and the first non-empty threshold is
    kept. Alerts can only escalate a state's status.
    """
    states: Dict[str, Dict[str, Any]] = {}

    for row in client_states:
        code = (row.get("stateCode") or "").upper()
        if not code:
            continue

        revenue = format_decimal(row.get("currentAmount")) or 0.0
        threshold = format_decimal(row.get("thresholdAmount"))

        entry = states.get(code)
        if entry is None:
            entry = states[code] = {
                "stateCode": code,
                "stateName": row.get("stateName") or STATE_NAMES.get(code, code),
                "status": "compliant",
                "revenue": 0.0,
                "threshold": None,
                "thresholdProgress": 0,
                "clientCount": 0,
                "clientIds": [],
                "alertCount": 0,
                "alerts": [],
            }

        entry["revenue"] += revenue
        if entry["threshold"] is None and threshold:
            entry["threshold"] = threshold
        entry["status"] = escalate(entry["status"], _normalize_status(row.get("status")))

        client_id = row.get("clientId")
        if client_id not in entry["clientIds"]:
            entry["clientIds"].append(client_id)
            entry["clientCount"] += 1

    for entry in states.values():
        threshold = entry["threshold"] or default_threshold
        entry["threshold"] = threshold
        entry["thresholdProgress"] = min(100, round(entry["revenue"] / threshold * 100))
        entry["status"] = escalate(entry["status"], status_from_ratio(entry["revenue"] / threshold))

    for alert in alerts:
        code = (alert.get("stateCode") or "").upper()
        entry = states.get(code)
        if entry is None:
            continue
        entry["alerts"].append(alert)
        entry["alertCount"] += 1

        priority = (alert.get("priority") or "").lower()
        progress = entry["thresholdProgress"]
        if priority == "high" or progress >= 95:
            entry["status"] = escalate(entry["status"], "critical")
        elif priority == "medium" or progress >= 70:
            entry["status"] = escalate(entry["status"], "warning")
        elif priority == "low" and progress < 50 and entry["status"] == "compliant":
            entry["status"] = "pending"

    for entry in states.values():
        severities = {
            (a.get("severity") or a.get("priority") or "").lower() for a in entry["alerts"]
        }
        if severities & {"high", "critical"}:
            entry["status"] = "critical"
        elif entry["alertCount"] >= 3:
            entry["status"] = escalate(entry["status"], "warning")
        entry["color"] = STATUS_COLORS.get(entry["status"], STATUS_COLORS["compliant"])

    return states


def summarize_state_map(states: Dict[str, Dict[str, Any]]) -> Dict[str, int]:
    counts = {status: 0 for status in STATUS_COLORS}
    for entry in states.values():
        counts[entry["status"]] = counts.get(entry["status"], 0) + 1
    return counts


# ===========================================
# ALERT PRESENTATION
# ===========================================

def map_alert_status(status: Optional[str]) -> str:
    return ALERT_STATUS_MAP.get((status or "").lower(), status or "new")


def penalty_range(current_amount: Any, threshold_amount: Any) -> Optional[str]:
    """'$xK - $yK' at 10-20% of the amount over threshold."""
    current = format_decimal(current_amount)
    threshold = format_decimal(threshold_amount)
    if current is None or not threshold or current <= threshold:
        return None
    excess = current - threshold
    return f"${round(excess * 0.10 / 1000)}K - ${round(excess * 0.20 / 1000)}K"


def present_alert(alert: Dict[str, Any], client_name: Optional[str] = None) -> Dict[str, Any]:
    """Display shape of a formatted nexus alert."""
    presented = dict(alert)
    presented["displayStatus"] = map_alert_status(alert.get("status"))
    presented["penaltyRange"] = penalty_range(alert.get("currentAmount"), alert.get("thresholdAmount"))
    presented["stateName"] = STATE_NAMES.get(alert.get("stateCode") or "", alert.get("stateCode"))
    if client_name is not None:
        presented["clientName"] = client_name
    return presented


def filter_alerts(
    alerts: Iterable[Dict[str, Any]],
    priority: Optional[str] = None,
    status: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Dict[str, Any]]:
    result = []
    needle = (search or "").strip().lower()
    for alert in alerts:
        if priority and priority != "all" and (alert.get("priority") or "").lower() != priority.lower():
            continue
        if status and status != "all":
            if status.lower() not in {(alert.get("status") or "").lower(), alert.get("displayStatus")}:
                continue
        if needle:
            haystack = " ".join(
                str(alert.get(field) or "")
                for field in ("title", "description", "clientName", "stateCode", "stateName")
            ).lower()
            if needle not in haystack:
                continue
        result.append(alert)
    return result


def _deadline_key(alert: Dict[str, Any]) -> float:
    deadline = alert.get("deadline")
    if isinstance(deadline, str):
        try:
            deadline = datetime.fromisoformat(deadline.replace("Z", "+00:00"))
        except ValueError:
            deadline = None
    if isinstance(deadline, datetime):
        return deadline.timestamp()
    return float("inf")


def sort_alerts(alerts: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Priority first, then the nearest deadline. Missing deadlines sort last."""
    return sorted(
        alerts,
        key=lambda a: (PRIORITY_RANK.get((a.get("priority") or "").lower(), 4), _deadline_key(a)),
    )

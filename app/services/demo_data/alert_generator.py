"""
Nexus Compliance - Demo Alert Generator

Turns a client's generated states into NexusAlert rows following the
per-client high / medium / low allocation.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from app.models.base import utcnow
from app.services.demo_data.constants import ALERT_DEADLINE_DAYS, CRITICAL, WARNING


class AlertGenerator:
    """Generates nexus alerts for demo clients."""

    def generate_alerts_for_client(
        self,
        client: Dict[str, Any],
        states: List[Dict[str, Any]],
        allocation: Dict[str, int],
    ) -> List[Dict[str, Any]]:
        """
        High alerts come from critical states, then from promoted warning
        states. Medium alerts use the remaining warning states. Low alerts
        are routine monitoring checks. Compliant states never get alerts.
        """
        high = allocation.get("high", 0)
        medium = allocation.get("medium", 0)
        low = allocation.get("low", 0)

        critical_states = [s for s in states if s["status"] == CRITICAL]
        warning_states = [s for s in states if s["status"] == WARNING]
        alerts: List[Dict[str, Any]] = []

        for state in critical_states[:high]:
            alerts.append(self.create_alert(
                client, state, "high", "threshold_breach",
                f"Critical: {state['state_name']} nexus threshold exceeded",
                f"Revenue in {state['state_name']} has exceeded the nexus threshold by "
                f"${state['excess_amount']:,}. Immediate registration required.",
            ))

        shortfall = high - len(critical_states)
        if shortfall > 0:
            for state in warning_states[:shortfall]:
                alerts.append(self.create_alert(
                    client, state, "high", "threshold_approaching",
                    f"Urgent: {state['state_name']} approaching threshold",
                    f"Revenue in {state['state_name']} is at {self._ratio(state)}% of nexus "
                    "threshold. Action required soon.",
                ))

        used = {a["state_code"] for a in alerts}
        remaining = [s for s in warning_states if s["state_code"] not in used]
        for state in remaining[:medium]:
            alerts.append(self.create_alert(
                client, state, "medium", "threshold_approaching",
                f"{state['state_name']} approaching nexus threshold",
                f"Revenue in {state['state_name']} is at {self._ratio(state)}% of nexus "
                "threshold. Monitor closely.",
            ))

        for _ in range(low):
            alerts.append(self.create_monitoring_alert(client))

        return alerts[:high + medium + low]

    @staticmethod
    def _ratio(state: Dict[str, Any]) -> int:
        return round(state["current_amount"] / state["threshold_amount"] * 100)

    @staticmethod
    def create_alert(
        client: Dict[str, Any],
        state: Dict[str, Any],
        priority: str,
        alert_type: str,
        title: str,
        description: str,
    ) -> Dict[str, Any]:
        return {
            "organization_id": client["organization_id"],
            "client_id": client["id"],
            "state_code": state["state_code"],
            "alert_type": alert_type,
            "priority": priority,
            "status": "open",
            "title": title,
            "description": description,
            "threshold_amount": state.get("threshold_amount"),
            "current_amount": state.get("current_amount") or 0,
            "penalty_risk": state.get("penalty_risk"),
            "deadline": utcnow() + timedelta(days=ALERT_DEADLINE_DAYS[priority]),
        }

    @staticmethod
    def create_monitoring_alert(client: Dict[str, Any], priority: str = "low") -> Dict[str, Any]:
        return {
            "organization_id": client["organization_id"],
            "client_id": client["id"],
            "state_code": None,
            "alert_type": "nexus_monitoring",
            "priority": priority,
            "status": "open",
            "title": "Routine nexus monitoring check",
            "description": (
                f"Quarterly nexus compliance review scheduled for {client['name']}. "
                "Review all state activities and revenue trends."
            ),
            "threshold_amount": None,
            "current_amount": None,
            "penalty_risk": 0,
            "deadline": utcnow() + timedelta(days=ALERT_DEADLINE_DAYS["low"]),
        }

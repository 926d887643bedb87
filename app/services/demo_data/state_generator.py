"""
Nexus Compliance - Demo State Generator

Builds per-client ClientState rows with a status mix set by the client's
risk level, plus one NexusActivity per state.
"""

import logging
import math
import random
import uuid
from typing import Any, Dict, List, Optional

from app.models.base import utcnow
from app.services.demo_data.constants import (
    COMPLIANT,
    CRITICAL,
    LARGE_STATES,
    MEDIUM_STATES,
    QUALIFICATION_STRATEGIES,
    STATE_DISTRIBUTION,
    STATE_THRESHOLDS,
    WARNING,
)
from app.services.demo_data.status import calculate_revenue_for_status, determine_status
from app.services.nexus_engine.state_rules import STATE_NAMES

logger = logging.getLogger(__name__)


STATUS_RANK = {COMPLIANT: 0, WARNING: 1, CRITICAL: 2}

ACTIVITY_TITLES = {
    "monitoring": "Nexus Monitoring - {name}",
    "threshold_approaching": "Threshold Alert - {name}",
    "threshold_breach": "Threshold Breach - {name}",
}

ACTIVITY_FOR_STATUS = {
    COMPLIANT: "monitoring",
    WARNING: "threshold_approaching",
    CRITICAL: "threshold_breach",
}

NOTES_MAX_LENGTH = 255


class StateGenerator:
    """Generates client states for demo portfolios."""

    def __init__(self, strategy: str = "standard", rng: Optional[random.Random] = None):
        self.strategy = strategy if strategy in QUALIFICATION_STRATEGIES else "standard"
        self.rng = rng or random.Random()
        self.compliant_state_reserved: Optional[str] = None
        self.compliant_state_assigned = False

    def determine_threshold_amount(self, state_code: str) -> int:
        if state_code in LARGE_STATES:
            band = STATE_THRESHOLDS["large"]
        elif state_code in MEDIUM_STATES:
            band = STATE_THRESHOLDS["medium"]
        else:
            band = STATE_THRESHOLDS["small"]
        return band["min"] + math.floor(self.rng.random() * (band["max"] - band["min"]))

    def select_states(self, risk_level: str, priority_states: List[str]) -> List[str]:
        count = STATE_DISTRIBUTION[risk_level]["total"]
        shuffled = list(dict.fromkeys(priority_states))
        self.rng.shuffle(shuffled)
        return shuffled[:count]

    def generate_states_for_client(
        self,
        client_id: uuid.UUID,
        organization_id: uuid.UUID,
        risk_level: str,
        priority_states: List[str],
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        States and activities for one client.

        The first priority state of the portfolio is reserved as compliant
        for the first client that gets a compliant slot.
        """
        distribution = STATE_DISTRIBUTION[risk_level]
        selected = self.select_states(risk_level, priority_states)

        if self.compliant_state_reserved is None and priority_states:
            self.compliant_state_reserved = priority_states[0]

        plan: List[tuple] = []
        queue = list(selected)
        for desired, count in ((COMPLIANT, distribution["compliant"]),
                               (WARNING, distribution["warning"]),
                               (CRITICAL, distribution["critical"])):
            for _ in range(count):
                if (
                    desired == COMPLIANT
                    and not self.compliant_state_assigned
                    and self.compliant_state_reserved
                ):
                    code = self.compliant_state_reserved
                    if code in queue:
                        queue.remove(code)
                    self.compliant_state_assigned = True
                elif queue:
                    code = queue.pop(0)
                else:
                    continue
                if any(existing == code for existing, _ in plan):
                    logger.debug(f"Skipping duplicate state {code} for client {client_id}")
                    continue
                plan.append((code, desired))

        states = []
        activities = []
        for code, desired in plan:
            state = self.create_state(client_id, organization_id, code, desired)
            states.append(state)
            activities.append(self.create_activity(state, ACTIVITY_FOR_STATUS[state["status"]]))

        return {"states": states, "activities": activities}

    def create_state(
        self,
        client_id: uuid.UUID,
        organization_id: uuid.UUID,
        state_code: str,
        desired_status: str,
    ) -> Dict[str, Any]:
        threshold = self.determine_threshold_amount(state_code)
        current = calculate_revenue_for_status(desired_status, threshold, "standard", self.rng)

        # Never report a milder status than the revenue supports
        actual = determine_status(current, threshold, self.strategy)
        status = actual if STATUS_RANK[actual] > STATUS_RANK[desired_status] else desired_status
        if status != desired_status:
            logger.debug(f"State {state_code}: upgraded from {desired_status} to {status}")

        if status == CRITICAL and current < threshold:
            current = math.floor(threshold * (QUALIFICATION_STRATEGIES["standard"]["critical"] + 0.01))

        excess = max(0, current - threshold)
        penalty = math.floor(excess * 0.10) if status == CRITICAL else 0

        return {
            "client_id": client_id,
            "organization_id": organization_id,
            "state_code": state_code,
            "state_name": STATE_NAMES.get(state_code, state_code),
            "status": status,
            "threshold_amount": threshold,
            "current_amount": current,
            "registration_required": status == CRITICAL,
            "excess_amount": excess,
            "penalty_risk": penalty,
            "last_updated": utcnow(),
            "notes": self.state_notes(status, state_code, current, threshold),
        }

    @staticmethod
    def create_activity(state: Dict[str, Any], activity_type: str) -> Dict[str, Any]:
        name = state["state_name"]
        ratio = state["current_amount"] / state["threshold_amount"] * 100
        descriptions = {
            "monitoring": f"Routine nexus monitoring for {name} - Revenue at {ratio:.1f}% of threshold",
            "threshold_approaching": f"Revenue approaching threshold in {name} - currently at {ratio:.1f}%",
            "threshold_breach": f"Nexus threshold exceeded in {name} by ${state['excess_amount']:,}",
        }
        return {
            "client_id": state["client_id"],
            "organization_id": state["organization_id"],
            "state_code": state["state_code"],
            "activity_type": activity_type,
            "title": ACTIVITY_TITLES.get(activity_type, "Nexus Activity - {name}").format(name=name),
            "description": descriptions.get(activity_type, f"Activity for {name}"),
            "amount": state["current_amount"],
            "threshold_amount": state["threshold_amount"],
            "status": "completed",
        }

    @staticmethod
    def state_notes(status: str, state_code: str, current: float, threshold: float) -> str:
        ratio = current / threshold * 100
        name = STATE_NAMES.get(state_code, state_code)
        if status == COMPLIANT:
            note = f"Fully compliant - Revenue at {ratio:.1f}% of threshold in {name}"
        elif status == WARNING:
            note = f"Approaching threshold - Revenue at {ratio:.1f}% of threshold in {name}. Monitor closely."
        elif status == CRITICAL:
            note = (
                f"Threshold exceeded - Revenue at {ratio:.1f}% of threshold in {name}. "
                "Immediate action required."
            )
        else:
            note = f"Nexus monitoring for {name}"

        if len(note) > NOTES_MAX_LENGTH:
            return note[:NOTES_MAX_LENGTH - 3] + "..."
        return note

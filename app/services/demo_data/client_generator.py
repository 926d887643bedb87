"""
Nexus Compliance - Demo Client Generator

Seeds an organization with a demo portfolio: clients across the risk
distribution, their states, nexus alerts, activities, general alerts and
tasks.
"""

import logging
import random
import uuid
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.alert import Alert, Task
from app.models.client import Client, ClientState
from app.models.nexus import NexusActivity, NexusAlert
from app.services.demo_data.alert_generator import AlertGenerator
from app.services.demo_data.constants import (
    ALERT_ALLOCATION,
    COMPANY_NAMES,
    DEFAULT_PRIORITY_STATES,
    INDUSTRIES,
    PENALTY_EXPOSURE_RANGES,
    QUALITY_SCORE_RANGES,
    REVENUE_RANGE,
    RISK_DISTRIBUTION,
    TOTAL_CLIENTS,
)
from app.services.demo_data.state_generator import StateGenerator
from app.services.nexus_engine.state_rules import STATE_RULES

logger = logging.getLogger(__name__)


class ClientGenerator:
    """Creates a full demo portfolio for one organization."""

    def __init__(
        self,
        db: AsyncSession,
        strategy: str = "standard",
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.rng = rng or random.Random()
        self.state_generator = StateGenerator(strategy, self.rng)
        self.alert_generator = AlertGenerator()

    @staticmethod
    def clean_priority_states(priority_states: Optional[List[str]]) -> List[str]:
        states = []
        for code in priority_states or []:
            code = str(code).strip().upper()
            if code in STATE_RULES and code not in states:
                states.append(code)
        return states or list(DEFAULT_PRIORITY_STATES)

    def build_client(self, organization_id: uuid.UUID, index: int, risk_level: str) -> Dict[str, Any]:
        name = COMPANY_NAMES[index % len(COMPANY_NAMES)]
        penalty_low, penalty_high = PENALTY_EXPOSURE_RANGES[risk_level]
        quality_low, quality_high = QUALITY_SCORE_RANGES[risk_level]
        return {
            "id": uuid.uuid4(),
            "organization_id": organization_id,
            "name": name,
            "legal_name": f"{name} Inc.",
            "industry": INDUSTRIES[index % len(INDUSTRIES)],
            "annual_revenue": self.rng.randint(REVENUE_RANGE["min"], REVENUE_RANGE["max"]),
            "risk_level": risk_level,
            "penalty_exposure": self.rng.randint(penalty_low, penalty_high),
            "quality_score": self.rng.randint(quality_low, quality_high),
            "status": "active",
            "tags": ["multi-state", "nexus-risk", f"{risk_level}-risk"],
            "notes": f"Demo client with {risk_level} nexus risk",
        }

    @staticmethod
    def build_tasks(client: Dict[str, Any], alerts: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        tasks = []
        for alert in alerts:
            if alert["priority"] == "low":
                continue
            tasks.append({
                "organization_id": client["organization_id"],
                "client_id": client["id"],
                "title": f"Review {alert['state_code']} nexus position for {client['name']}",
                "description": alert["description"],
                "category": "nexus",
                "priority": alert["priority"],
                "status": "pending",
                "due_date": alert["deadline"] - timedelta(days=7),
            })
        return tasks

    @staticmethod
    def build_general_alert(client: Dict[str, Any], nexus_alert: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "organization_id": client["organization_id"],
            "client_id": client["id"],
            "title": nexus_alert["title"],
            "description": nexus_alert["description"],
            "issue": nexus_alert["alert_type"],
            "type": "nexus",
            "priority": nexus_alert["priority"],
            "status": "new",
            "state_code": nexus_alert["state_code"],
            "current_amount": nexus_alert["current_amount"],
            "threshold_amount": nexus_alert["threshold_amount"],
            "penalty_risk": nexus_alert["penalty_risk"],
            "deadline": nexus_alert["deadline"],
        }

    def plan_portfolio(
        self,
        organization_id: uuid.UUID,
        priority_states: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Build the in-memory portfolio without touching the database."""
        states_pool = self.clean_priority_states(priority_states)
        slot_by_level: Dict[str, int] = {}
        portfolio = []

        for index in range(TOTAL_CLIENTS):
            risk_level = RISK_DISTRIBUTION[index]
            slot = slot_by_level.get(risk_level, 0)
            slot_by_level[risk_level] = slot + 1

            client = self.build_client(organization_id, index, risk_level)
            generated = self.state_generator.generate_states_for_client(
                client["id"], organization_id, risk_level, states_pool,
            )
            allocation = ALERT_ALLOCATION[risk_level][slot]
            nexus_alerts = self.alert_generator.generate_alerts_for_client(
                client, generated["states"], allocation,
            )
            general_alerts = []
            if risk_level in ("high", "critical"):
                general_alerts = [
                    self.build_general_alert(client, a) for a in nexus_alerts if a["priority"] == "high"
                ]

            portfolio.append({
                "client": client,
                "states": generated["states"],
                "activities": generated["activities"],
                "nexus_alerts": nexus_alerts,
                "alerts": general_alerts,
                "tasks": self.build_tasks(client, nexus_alerts),
            })

        return portfolio

    async def persist(self, portfolio: List[Dict[str, Any]]) -> Dict[str, List[Any]]:
        """Write a planned portfolio and return the created rows by kind."""
        created: Dict[str, List[Any]] = {
            "clients": [],
            "clientStates": [],
            "nexusAlerts": [],
            "nexusActivities": [],
            "alerts": [],
            "tasks": [],
        }

        for entry in portfolio:
            client = Client(**entry["client"])
            self.db.add(client)
            created["clients"].append(client)
        await self.db.flush()

        for entry in portfolio:
            for state in entry["states"]:
                row = ClientState(**{k: v for k, v in state.items() if k != "excess_amount"})
                created["clientStates"].append(row)
            created["nexusActivities"].extend(NexusActivity(**a) for a in entry["activities"])
            created["nexusAlerts"].extend(NexusAlert(**a) for a in entry["nexus_alerts"])
            created["alerts"].extend(Alert(**a) for a in entry["alerts"])
            created["tasks"].extend(Task(**t) for t in entry["tasks"])

        for kind, rows in created.items():
            if kind != "clients":
                self.db.add_all(rows)
        await self.db.flush()
        return created

    async def generate(
        self,
        organization_id: uuid.UUID,
        priority_states: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Persist a demo portfolio and return counts."""
        portfolio = self.plan_portfolio(organization_id, priority_states)
        created = await self.persist(portfolio)

        counts = {kind: len(rows) for kind, rows in created.items()}
        logger.info(f"Seeded demo portfolio for organization {organization_id}: {counts}")
        return counts

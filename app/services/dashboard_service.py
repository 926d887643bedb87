"""
Nexus Compliance - Dashboard Service

Generates personalized dashboards from the intake form:
1. Fan out to the LLM for the narrative sections
2. Create a dedicated demo organization
3. Seed it with a demo client portfolio
4. Persist a GeneratedDashboard addressed by a unique URL

Also serves stored dashboards and their per-section personalized views.
"""

import logging
import random
import re
import string
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import delete, desc, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.alert import Alert, Task
from app.models.client import Client, ClientState
from app.models.dashboard import GeneratedDashboard
from app.models.nexus import NexusActivity, NexusAlert
from app.models.organization import Organization
from app.services.dashboard_generation_service import DashboardGenerationService
from app.services.demo_data import ClientGenerator
from app.utils.number_format import (
    format_alert,
    format_array,
    format_client,
    format_client_state,
    format_decimal,
    format_nexus_activity,
    format_nexus_alert,
    format_task,
)

logger = logging.getLogger(__name__)


REVENUE_MIN = 50_000
REVENUE_MAX = 600_000
PENALTY_MIN = 0
PENALTY_MAX = 200_000

RISK_SCORE_WEIGHTS = {"critical": 25, "high": 15, "medium": 5}

# personalized view -> (stored column, personalized_data key, default)
PERSONALIZED_SECTIONS: Dict[str, tuple] = {
    "clients": ("generated_clients", "clients", list),
    "alerts": ("generated_alerts", "alerts", list),
    "tasks": ("generated_tasks", "tasks", list),
    "analytics": ("generated_analytics", "analytics", dict),
    "system-health": ("generated_system_health", "systemHealth", dict),
    "nexus-alerts": ("generated_nexus_alerts", "nexusAlerts", list),
    "nexus-activities": ("generated_nexus_activities", "nexusActivities", list),
    "client-states": ("generated_client_states", "clientStates", list),
}


# ===========================================
# HELPERS
# ===========================================

_FIRST_INT = re.compile(r"\d+")


def _clamp(value: float, low: int, high: int) -> int:
    return int(round(min(max(value, low), high)))


def _clean_number(value: Any, low: int, high: int, default: int) -> int:
    if isinstance(value, str):
        match = _FIRST_INT.search(value)
        if not match:
            return default
        return _clamp(int(match.group(0)), low, high)
    number = format_decimal(value)
    if number is None:
        return default
    return _clamp(number, low, high)


def clean_revenue_value(revenue: Any) -> int:
    """First integer in the value, clamped to 50k-600k."""
    return _clean_number(revenue, REVENUE_MIN, REVENUE_MAX, REVENUE_MIN)


def clean_penalty_exposure(penalty_exposure: Any) -> int:
    """First integer in the value, clamped to 0-200k."""
    return _clean_number(penalty_exposure, PENALTY_MIN, PENALTY_MAX, PENALTY_MIN)


def calculate_risk_distribution(clients: Iterable[Dict[str, Any]]) -> Dict[str, int]:
    distribution = {"low": 0, "medium": 0, "high": 0, "critical": 0}
    for client in clients:
        level = client.get("riskLevel")
        if level in distribution:
            distribution[level] += 1
    return distribution


def calculate_risk_score(distribution: Dict[str, int]) -> int:
    return sum(distribution.get(level, 0) * weight for level, weight in RISK_SCORE_WEIGHTS.items())


def slugify(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", name.lower())


def _random_suffix(length: int = 6) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


def generate_unique_url(client_name: str) -> str:
    """'{slug}-{ms}-{rand6}'"""
    return f"{slugify(client_name)}-{int(time.time() * 1000)}-{_random_suffix()}"


def frontend_base_url() -> str:
    return settings.frontend_url.rstrip("/")


def generate_dashboard_urls(unique_url: str) -> Dict[str, str]:
    base = frontend_base_url()
    return {
        "main": f"{base}/dashboard/view/{unique_url}",
        "managingPartner": f"{base}/dashboard/managing-partner",
        "taxManager": f"{base}/dashboard/tax-manager",
        "systemAdmin": f"{base}/dashboard/system-admin",
    }


def serialize_dashboard(dashboard: GeneratedDashboard, include_sections: bool = False) -> Dict[str, Any]:
    data = {
        "id": str(dashboard.id),
        "organizationId": str(dashboard.organization_id),
        "requestedByOrganizationId": (
            str(dashboard.requested_by_organization_id) if dashboard.requested_by_organization_id else None
        ),
        "clientName": dashboard.client_name,
        "uniqueUrl": dashboard.unique_url,
        "dashboardUrl": generate_dashboard_urls(dashboard.unique_url)["main"],
        "isActive": dashboard.is_active,
        "clientInfo": dashboard.client_info,
        "keyMetrics": dashboard.key_metrics,
        "statesMonitored": dashboard.states_monitored or [],
        "personalizedData": dashboard.personalized_data,
        "lastUpdated": dashboard.last_updated.isoformat() if dashboard.last_updated else None,
        "createdAt": dashboard.created_at.isoformat() if dashboard.created_at else None,
    }
    if include_sections:
        for view, (column, _, _) in PERSONALIZED_SECTIONS.items():
            data[column] = getattr(dashboard, column)
    return data


class DashboardService:
    """Service for generated dashboards."""

    def __init__(
        self,
        db: AsyncSession,
        generator: Optional[DashboardGenerationService] = None,
        rng: Optional[random.Random] = None,
    ):
        self.db = db
        self.generator = generator or DashboardGenerationService()
        self.rng = rng

    # ===========================================
    # GENERATION
    # ===========================================

    async def _create_organization(self, client_name: str) -> Organization:
        organization = Organization(
            name=f"{client_name} Dashboard Organization",
            slug=f"org-{int(time.time() * 1000)}-{_random_suffix()}",
            settings={"generatedDashboard": True},
        )
        self.db.add(organization)
        await self.db.flush()
        return organization

    async def generate(self, form_data: Dict[str, Any], organization_id: Any) -> Dict[str, Any]:
        """
        Generate and store a personalized dashboard.

        Raises:
            ValueError: If formData or organizationId is missing, or the
                requesting organization does not exist
        """
        if not form_data:
            raise ValueError("Missing required fields: formData is required")
        if not organization_id:
            raise ValueError("Missing required fields: organizationId is required")
        if not form_data.get("clientName"):
            raise ValueError("formData.clientName is required")

        try:
            requester_id = uuid.UUID(str(organization_id))
        except ValueError:
            raise ValueError("organizationId must be a valid UUID")
        if await self.db.get(Organization, requester_id) is None:
            raise ValueError("Organization not found")

        client_name = str(form_data["clientName"]).strip()
        sections = await self.generator.generate_dashboard_data(form_data)

        organization = await self._create_organization(client_name)
        seeder = ClientGenerator(self.db, rng=self.rng)
        priority_states = seeder.clean_priority_states(form_data.get("priorityStates"))
        created = await seeder.persist(seeder.plan_portfolio(organization.id, priority_states))

        clients = format_array(created["clients"], format_client)
        client_states = format_array(created["clientStates"], format_client_state)
        nexus_alerts = format_array(created["nexusAlerts"], format_nexus_alert)
        nexus_activities = format_array(created["nexusActivities"], format_nexus_activity)
        alerts = format_array(created["alerts"], format_alert)
        tasks = format_array(created["tasks"], format_task)

        if not clients:
            raise ValueError("Failed to generate client data")

        distribution = calculate_risk_distribution(clients)
        total_penalty = sum(clean_penalty_exposure(c["penaltyExposure"]) for c in clients)
        total_revenue = sum(clean_revenue_value(c["annualRevenue"]) for c in clients)
        quality_scores = [c["qualityScore"] or 0 for c in clients]
        compliance_score = round(sum(quality_scores) / len(quality_scores))
        total_records = sum(len(rows) for rows in created.values())

        dashboard = GeneratedDashboard(
            organization_id=organization.id,
            requested_by_organization_id=requester_id,
            client_name=client_name,
            unique_url=generate_unique_url(client_name),
            client_info={
                "name": client_name,
                "industry": form_data.get("industry") or form_data.get("primaryIndustry") or "Technology",
                "totalClients": len(clients),
                "riskDistribution": distribution,
                "totalPenaltyExposure": total_penalty,
                "profile": sections.get("clientInfo"),
            },
            key_metrics={
                "totalRevenue": total_revenue,
                "complianceScore": compliance_score,
                "riskScore": calculate_risk_score(distribution),
                "statesMonitored": len(priority_states),
                "alertsActive": len(nexus_alerts) + len(alerts),
                "tasksCompleted": sum(1 for t in tasks if t["status"] == "completed"),
                "generated": sections.get("keyMetrics"),
            },
            states_monitored=priority_states,
            personalized_data={
                "clientCount": len(clients),
                "clientIds": [c["id"] for c in clients],
                "riskDistribution": distribution,
                "totalPenaltyExposure": total_penalty,
                "requestedByOrganizationId": str(requester_id),
                "formData": form_data,
                "reports": sections.get("reports"),
                "communications": sections.get("communications"),
                "generatedSections": {
                    "clientStates": sections.get("clientStates"),
                    "nexusAlerts": sections.get("nexusAlerts"),
                    "nexusActivities": sections.get("nexusActivities"),
                    "alerts": sections.get("alerts"),
                    "tasks": sections.get("tasks"),
                },
                "generatedAt": sections.get("generatedAt"),
            },
            generated_clients=clients,
            generated_client_states=client_states,
            generated_nexus_alerts=nexus_alerts,
            generated_nexus_activities=nexus_activities,
            generated_alerts=alerts,
            generated_tasks=tasks,
            generated_analytics={
                "riskDistribution": distribution,
                "totalPenaltyExposure": total_penalty,
                "totalRevenue": total_revenue,
                "averageQualityScore": compliance_score,
                "insights": sections.get("analytics"),
            },
            generated_system_health={
                "totalRecords": total_records,
                "dataCompleteness": "100%",
                "lastGenerated": sections.get("generatedAt"),
                "details": sections.get("systemHealth"),
            },
        )
        self.db.add(dashboard)
        await self.db.commit()
        await self.db.refresh(dashboard)

        logger.info(
            f"Generated dashboard {dashboard.unique_url} for {client_name} "
            f"({len(clients)} clients, {total_records} records)"
        )

        urls = generate_dashboard_urls(dashboard.unique_url)
        return {
            **serialize_dashboard(dashboard),
            "dashboardUrl": urls["main"],
            "dashboardUrls": urls,
            "organizationId": str(organization.id),
        }

    # ===========================================
    # LOOKUP
    # ===========================================

    async def get_by_url(self, unique_url: str, active_only: bool = True) -> Optional[GeneratedDashboard]:
        query = select(GeneratedDashboard).where(GeneratedDashboard.unique_url == unique_url)
        if active_only:
            query = query.where(GeneratedDashboard.is_active.is_(True))
        return (await self.db.execute(query)).scalar_one_or_none()

    async def get_by_id(self, dashboard_id: uuid.UUID) -> Optional[GeneratedDashboard]:
        return await self.db.get(GeneratedDashboard, dashboard_id)

    async def list_for_organization(self, organization_id: uuid.UUID) -> List[GeneratedDashboard]:
        result = await self.db.execute(
            select(GeneratedDashboard)
            .where(
                or_(
                    GeneratedDashboard.organization_id == organization_id,
                    GeneratedDashboard.requested_by_organization_id == organization_id,
                )
            )
            .order_by(desc(GeneratedDashboard.created_at))
        )
        return list(result.scalars().all())

    async def list_all(self) -> List[GeneratedDashboard]:
        result = await self.db.execute(
            select(GeneratedDashboard).order_by(desc(GeneratedDashboard.created_at))
        )
        return list(result.scalars().all())

    async def get_personalized_section(self, unique_url: str, view: str) -> Any:
        """
        Section data for a personalized view.

        Raises:
            ValueError: If the view name is unknown
        Returns None when the dashboard does not exist.
        """
        if view not in PERSONALIZED_SECTIONS:
            raise ValueError(f"Unknown dashboard section: {view}")

        dashboard = await self.get_by_url(unique_url, active_only=False)
        if dashboard is None:
            return None

        column, key, default = PERSONALIZED_SECTIONS[view]
        stored = getattr(dashboard, column)
        if stored:
            return stored
        personalized = dashboard.personalized_data or {}
        if personalized.get(key):
            return personalized[key]
        return default()

    # ===========================================
    # DELETION
    # ===========================================

    async def delete_dashboard(self, dashboard: GeneratedDashboard) -> Dict[str, int]:
        """Delete a dashboard and the demo client data seeded for it."""
        client_ids = [
            uuid.UUID(str(cid)) for cid in (dashboard.personalized_data or {}).get("clientIds", [])
        ]
        results = {
            "generatedDashboard": 0,
            "clients": 0,
            "clientStates": 0,
            "nexusAlerts": 0,
            "nexusActivities": 0,
            "alerts": 0,
            "tasks": 0,
        }

        if client_ids:
            for key, model in (
                ("clientStates", ClientState),
                ("nexusAlerts", NexusAlert),
                ("nexusActivities", NexusActivity),
                ("alerts", Alert),
                ("tasks", Task),
            ):
                result = await self.db.execute(delete(model).where(model.client_id.in_(client_ids)))
                results[key] = result.rowcount or 0
            result = await self.db.execute(delete(Client).where(Client.id.in_(client_ids)))
            results["clients"] = result.rowcount or 0

        result = await self.db.execute(
            delete(GeneratedDashboard).where(GeneratedDashboard.id == dashboard.id)
        )
        results["generatedDashboard"] = result.rowcount or 0
        await self.db.commit()

        logger.info(f"Deleted dashboard {dashboard.unique_url}: {results}")
        return results

"""
Nexus Compliance - Risk Portfolio Service

Portfolio-wide risk metrics for an organization's clients and the data
behind the three role dashboards:
- Managing Partner: exposure and risk distribution
- Tax Manager: alert and task work queues with the state map
- System Admin: platform counts, audit activity and health
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.client import Client
from app.models.dashboard import GeneratedDashboard
from app.models.nexus import NexusAlertStatus
from app.models.organization import Organization
from app.models.user import User
from app.services.audit_service import AuditService, serialize_audit_entry
from app.services.dashboard_service import calculate_risk_distribution, calculate_risk_score
from app.services.map_status_service import present_alert, sort_alerts
from app.services.nexus_service import NexusService
from app.utils.number_format import (
    format_array,
    format_client,
    format_client_state,
    format_decimal,
    format_nexus_activity,
    format_nexus_alert,
    format_task,
)

logger = logging.getLogger(__name__)


TOP_EXPOSURE_COUNT = 5
RECENT_ACTIVITY_COUNT = 10
RISK_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}
CLOSED_ALERT_STATUSES = ("resolved",)
CLOSED_TASK_STATUSES = ("completed",)


def open_nexus_alerts(client: Client) -> List[Any]:
    return [a for a in client.nexus_alerts if a.status == NexusAlertStatus.OPEN.value]


def active_alerts(client: Client) -> List[Any]:
    return [a for a in client.alerts if a.status not in CLOSED_ALERT_STATUSES]


def pending_tasks(client: Client) -> List[Any]:
    return [t for t in client.tasks if t.status not in CLOSED_TASK_STATUSES]


def summarize_client(client: Client) -> Dict[str, Any]:
    return {
        "id": str(client.id),
        "name": client.name,
        "industry": client.industry,
        "annualRevenue": format_decimal(client.annual_revenue) or 0,
        "riskLevel": client.risk_level,
        "penaltyExposure": format_decimal(client.penalty_exposure) or 0,
        "qualityScore": client.quality_score or 0,
        "statesMonitored": len(client.client_states),
        "activeAlerts": len(active_alerts(client)),
        "nexusAlerts": len(open_nexus_alerts(client)),
        "pendingTasks": len(pending_tasks(client)),
        "lastUpdated": client.updated_at.isoformat() if client.updated_at else None,
    }


def build_portfolio(clients: List[Client]) -> Dict[str, Any]:
    """Portfolio metrics over loaded clients."""
    summaries = [summarize_client(c) for c in clients]
    distribution = calculate_risk_distribution(summaries)
    total = len(summaries)
    return {
        "totalClients": total,
        "riskDistribution": distribution,
        "riskScore": calculate_risk_score(distribution),
        "totalPenaltyExposure": sum(s["penaltyExposure"] for s in summaries),
        "totalRevenue": sum(s["annualRevenue"] for s in summaries),
        "averageQualityScore": round(sum(s["qualityScore"] for s in summaries) / total) if total else 0,
        "activeAlerts": sum(s["activeAlerts"] for s in summaries),
        "openNexusAlerts": sum(s["nexusAlerts"] for s in summaries),
        "pendingTasks": sum(s["pendingTasks"] for s in summaries),
    }


class PortfolioService:
    """Service for risk portfolio and role dashboard data."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def load_clients(
        self,
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
    ) -> List[Client]:
        """Active clients with their states, alerts, activities and tasks, riskiest first."""
        query = (
            select(Client)
            .options(
                selectinload(Client.client_states),
                selectinload(Client.nexus_alerts),
                selectinload(Client.nexus_activities),
                selectinload(Client.alerts),
                selectinload(Client.tasks),
            )
            .where(Client.organization_id == organization_id, Client.status == "active")
        )
        if client_id:
            query = query.where(Client.id == client_id)

        clients = list((await self.db.execute(query)).scalars().all())
        return sorted(clients, key=lambda c: (RISK_ORDER.get(c.risk_level, 4), c.name))

    async def get_risk_portfolio(self, organization_id: uuid.UUID) -> Dict[str, Any]:
        clients = await self.load_clients(organization_id)
        high_risk = [c for c in clients if c.risk_level in ("high", "critical")]
        with_alerts = [c for c in clients if open_nexus_alerts(c)]

        logger.info(f"Built risk portfolio for organization {organization_id}: {len(clients)} clients")
        return {
            "portfolio": build_portfolio(clients),
            "clients": [summarize_client(c) for c in clients],
            "highRiskClients": [
                {
                    "id": str(c.id),
                    "name": c.name,
                    "riskLevel": c.risk_level,
                    "penaltyExposure": format_decimal(c.penalty_exposure) or 0,
                    "nexusAlerts": len(open_nexus_alerts(c)),
                    "statesMonitored": len(c.client_states),
                }
                for c in high_risk
            ],
            "clientsWithAlerts": [
                {
                    "id": str(c.id),
                    "name": c.name,
                    "nexusAlerts": [
                        {
                            "id": str(a.id),
                            "stateCode": a.state_code,
                            "title": a.title,
                            "priority": a.priority,
                            "penaltyRisk": format_decimal(a.penalty_risk) or 0,
                        }
                        for a in open_nexus_alerts(c)
                    ],
                }
                for c in with_alerts
            ],
        }

    async def get_client_risk_profile(
        self,
        organization_id: uuid.UUID,
        client_id: uuid.UUID,
    ) -> Optional[Dict[str, Any]]:
        """Detailed risk profile for one client, or None when not found."""
        clients = await self.load_clients(organization_id, client_id)
        if not clients:
            return None
        client = clients[0]

        states = sorted(client.client_states, key=lambda s: s.last_updated, reverse=True)
        alerts = open_nexus_alerts(client)
        activities = sorted(client.nexus_activities, key=lambda a: a.created_at, reverse=True)
        statuses = [s.status for s in states]

        return {
            "client": format_client(client),
            "riskProfile": {
                "riskLevel": client.risk_level,
                "totalPenaltyRisk": sum(format_decimal(s.penalty_risk) or 0 for s in states),
                "nexusAlertRisk": sum(format_decimal(a.penalty_risk) or 0 for a in alerts),
                "criticalStates": statuses.count("critical"),
                "warningStates": statuses.count("warning"),
                "monitoringStates": statuses.count("monitoring"),
                "activeAlerts": len(active_alerts(client)),
                "nexusAlerts": len(alerts),
                "pendingTasks": len(pending_tasks(client)),
            },
            "stateMonitoring": format_array(states, format_client_state),
            "nexusAlerts": format_array(alerts, format_nexus_alert),
            "recentActivities": format_array(activities[:RECENT_ACTIVITY_COUNT], format_nexus_activity),
        }

    # ===========================================
    # ROLE DASHBOARDS
    # ===========================================

    async def managing_partner_dashboard(self, organization_id: uuid.UUID) -> Dict[str, Any]:
        clients = await self.load_clients(organization_id)
        portfolio = build_portfolio(clients)
        by_exposure = sorted(clients, key=lambda c: format_decimal(c.penalty_exposure) or 0, reverse=True)

        return {
            "role": "managing-partner",
            "portfolio": portfolio,
            "riskDistribution": portfolio["riskDistribution"],
            "topExposure": [summarize_client(c) for c in by_exposure[:TOP_EXPOSURE_COUNT]],
            "highRiskClients": [summarize_client(c) for c in clients if c.risk_level in ("high", "critical")],
        }

    async def tax_manager_dashboard(self, organization_id: uuid.UUID) -> Dict[str, Any]:
        clients = await self.load_clients(organization_id)

        alert_queue = []
        task_queue = []
        for client in clients:
            for alert in client.nexus_alerts:
                if alert.status != NexusAlertStatus.RESOLVED.value:
                    alert_queue.append(present_alert(format_nexus_alert(alert), client.name))
            for task in pending_tasks(client):
                task_queue.append({**format_task(task), "clientName": client.name})

        state_map = await NexusService(self.db).state_map(organization_id)
        return {
            "role": "tax-manager",
            "alertQueue": sort_alerts(alert_queue),
            "taskQueue": sort_alerts(
                [{**task, "deadline": task["dueDate"]} for task in task_queue]
            ),
            "stateMap": state_map["states"],
            "stateSummary": state_map["summary"],
        }

    async def system_health(self) -> Dict[str, Any]:
        try:
            await self.db.execute(text("SELECT 1"))
            database = "healthy"
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            database = "unhealthy"

        return {
            "status": "healthy" if database == "healthy" else "degraded",
            "database": database,
            "openaiConfigured": settings.openai_configured,
            "environment": settings.app_env,
            "version": settings.app_version,
        }

    async def system_admin_dashboard(self) -> Dict[str, Any]:
        async def count(column: Any) -> int:
            return (await self.db.execute(select(func.count(column)))).scalar() or 0

        audit = AuditService(self.db)
        recent = await audit.recent_activity(limit=RECENT_ACTIVITY_COUNT)
        return {
            "role": "system-admin",
            "counts": {
                "users": await count(User.id),
                "organizations": await count(Organization.id),
                "dashboards": await count(GeneratedDashboard.id),
                "clients": await count(Client.id),
                "auditEntries": await audit.count_entries(),
            },
            "auditActivity": [serialize_audit_entry(e) for e in recent],
            "systemHealth": await self.system_health(),
        }

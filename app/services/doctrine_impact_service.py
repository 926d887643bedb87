"""
Nexus Compliance - Doctrine Impact Service

What a doctrine rule touches: dry-run impact over the firm's clients,
blast radius of a saved rule, the impact dashboard, and applying active
rules to freshly generated nexus alerts.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.base import utcnow
from app.models.client import Client, ClientState, StateStatus
from app.models.doctrine import DoctrineDecision, DoctrineRule, DoctrineScope, DoctrineStatus
from app.services.doctrine_service import DoctrineService, serialize_metrics
from app.utils.number_format import format_decimal

logger = logging.getLogger(__name__)


PREVIEW_SIZE = 10
SUPPRESSING_DECISIONS = (DoctrineDecision.NO_REGISTRATION.value, DoctrineDecision.NO_ACTION.value)
ACTION_DECISIONS = (DoctrineDecision.REGISTER.value, DoctrineDecision.IMMEDIATE_ACTION.value)
SCOPE_SPECIFICITY = {
    DoctrineScope.CLIENT.value: 3,
    DoctrineScope.OFFICE.value: 2,
    DoctrineScope.FIRM.value: 1,
}
# MONITOR rules lower an alert by one severity step
SEVERITY_STEP_DOWN = {"CRITICAL": "HIGH", "HIGH": "MEDIUM"}


def _state_revenue(states: Iterable[ClientState]) -> float:
    return sum(format_decimal(s.current_amount) or 0 for s in states)


def matches_client_pattern(states: List[ClientState], pattern: Optional[Dict[str, Any]]) -> bool:
    """revenue_threshold is a floor; revenue_range is "min-max" inclusive."""
    if not pattern:
        return True
    revenue = _state_revenue(states)
    threshold = pattern.get("revenue_threshold")
    if threshold and revenue < float(threshold):
        return False
    revenue_range = pattern.get("revenue_range")
    if revenue_range:
        low, _, high = str(revenue_range).partition("-")
        try:
            bounds = float(low), float(high)
        except ValueError:
            raise ValueError(f"Invalid revenue_range: {revenue_range}") from None
        if revenue < bounds[0] or revenue > bounds[1]:
            return False
    return True


def client_status(states: List[ClientState], state_code: Optional[str]) -> str:
    match = next((s for s in states if s.state_code == state_code), None)
    if match is None:
        return "NO_DATA"
    if match.status == StateStatus.CRITICAL.value:
        return "THRESHOLD_EXCEEDED"
    if match.status == StateStatus.WARNING.value:
        return "THRESHOLD_APPROACHING"
    return "COMPLIANT"


def predict_status(decision: Optional[str]) -> str:
    if decision in SUPPRESSING_DECISIONS:
        return "NO_ACTION_NEEDED"
    if decision in ACTION_DECISIONS:
        return "ACTION_REQUIRED"
    return "MONITOR"


def calculate_risk_level(client_count: int, total_revenue: float) -> str:
    if client_count > 50 or total_revenue > 10_000_000:
        return "HIGH"
    if client_count > 20 or total_revenue > 5_000_000:
        return "MEDIUM"
    return "LOW"


def _number(value: float) -> str:
    value = round(float(value), 2)
    return str(int(value)) if value.is_integer() else str(value)


def alert_activity(alert: Dict[str, Any]) -> Dict[str, Any]:
    """Activity pattern an alert presents to rule matching."""
    facts = alert.get("facts") or {}
    amount = facts.get("actualRevenue")
    return {
        "subtype": alert.get("subtype"),
        "revenue_threshold": facts.get("threshold"),
        "revenue_range": f"{_number(max(0, amount * 0.9))}-{_number(amount * 1.1)}" if amount else None,
    }


def apply_rule_to_alert(alert: Dict[str, Any], rule: DoctrineRule) -> Dict[str, Any]:
    """Copy of the alert with the rule's decision applied."""
    if rule is None or rule.status != DoctrineStatus.ACTIVE.value:
        return alert

    applied = {
        **alert,
        "appliedDoctrineRuleId": str(rule.id),
        "doctrineRuleVersion": rule.version,
    }
    description = alert.get("description") or ""
    if rule.decision in SUPPRESSING_DECISIONS:
        applied["judgmentRequired"] = False
        applied["suppressedByDoctrine"] = True
        applied["description"] = f"{description} (Doctrine Rule Applied: {rule.name})"
    elif rule.decision in ACTION_DECISIONS:
        applied["judgmentRequired"] = False
        applied["description"] = f"{description} (Doctrine Rule Applied: {rule.name} - Action Required)"
    elif rule.decision == DoctrineDecision.MONITOR.value:
        applied["severity"] = SEVERITY_STEP_DOWN.get(alert.get("severity"), alert.get("severity"))
        applied["judgmentRequired"] = False
        applied["description"] = f"{description} (Doctrine Rule Applied: {rule.name} - Monitor)"
    else:
        applied["description"] = f"{description} (Doctrine Rule Applied: {rule.name})"
    return applied


class DoctrineImpactService:
    """Service for doctrine rule impact and blast radius."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def calculate_impact(
        self,
        organization_id: uuid.UUID,
        scope: str,
        state: Optional[str] = None,
        activity_pattern: Optional[Dict[str, Any]] = None,
        decision: Optional[str] = None,
        client_id: Optional[uuid.UUID] = None,
    ) -> Dict[str, Any]:
        """
        Clients a rule would apply to, without saving it.

        Only the firm's active clients count. A client rule narrows to its
        client; office rules cover the whole firm until offices exist.
        """
        state = state.upper() if state else None
        query = (
            select(Client)
            .where(Client.organization_id == organization_id, Client.status == "active")
            .options(selectinload(Client.client_states))
            .order_by(Client.name)
        )
        if scope == DoctrineScope.CLIENT.value and client_id:
            query = query.where(Client.id == client_id)
        clients = list((await self.db.execute(query)).scalars().all())

        affected = []
        for client in clients:
            states = [s for s in client.client_states if not state or s.state_code == state]
            if matches_client_pattern(states, activity_pattern):
                affected.append((client, states))

        total_revenue = sum(_state_revenue(states) for _, states in affected)
        return {
            "clientsAffected": len(affected),
            "clientIds": [str(client.id) for client, _ in affected],
            "totalRevenue": total_revenue,
            "estimatedMemos": len(affected),
            "riskLevel": calculate_risk_level(len(affected), total_revenue),
            "preview": [
                {
                    "clientId": str(client.id),
                    "clientName": client.name,
                    "currentStatus": client_status(states, state),
                    "wouldBecome": predict_status(decision),
                    "revenue": _state_revenue(states),
                }
                for client, states in affected[:PREVIEW_SIZE]
            ],
        }

    async def get_blast_radius(self, rule_id: uuid.UUID) -> Dict[str, Any]:
        rule = await DoctrineService(self.db).get_rule_model(rule_id)
        impact = await self.calculate_impact(
            rule.organization_id,
            rule.scope,
            state=rule.state,
            activity_pattern=rule.activity_pattern,
            decision=rule.decision,
            client_id=rule.client_id,
        )
        return {
            "ruleId": str(rule.id),
            "ruleName": rule.name,
            "scope": rule.scope,
            "affectedClients": impact["clientsAffected"],
            "clients": impact["preview"],
        }

    async def get_impact_dashboard(
        self,
        organization_id: uuid.UUID,
        scope: Optional[str] = None,
        tax_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        query = select(DoctrineRule).where(
            DoctrineRule.organization_id == organization_id,
            DoctrineRule.status == DoctrineStatus.ACTIVE.value,
        )
        if scope:
            query = query.where(DoctrineRule.scope == scope)
        if tax_type:
            query = query.where(DoctrineRule.tax_type == tax_type)
        rules = list((await self.db.execute(query.order_by(desc(DoctrineRule.created_at)))).scalars().all())

        metrics = await DoctrineService(self.db).metrics_for([r.id for r in rules])
        rows = []
        for rule in rules:
            m = serialize_metrics(metrics.get(rule.id)) or {}
            rows.append({
                "ruleId": str(rule.id),
                "name": rule.name,
                "scope": rule.scope,
                "state": rule.state,
                "taxType": rule.tax_type,
                "clientsAffected": m.get("totalClientsAffected", 0),
                "memosGenerated": m.get("totalMemosGenerated", 0),
                "revenueCovered": m.get("totalRevenueCovered", 0.0),
                "lastAppliedAt": m.get("lastAppliedAt"),
            })

        return {
            "metrics": {
                "totalActiveRules": len(rules),
                "totalClientsAffected": sum(r["clientsAffected"] for r in rows),
                "totalMemosGenerated": sum(r["memosGenerated"] for r in rows),
                "totalRevenueCovered": sum(r["revenueCovered"] for r in rows),
            },
            "rules": rows,
        }


class DoctrineAlertMatcher:
    """Applies a firm's active doctrine rules to generated alerts."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.rules = DoctrineService(db)

    async def find_matching_rule(
        self,
        alert: Dict[str, Any],
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
    ) -> Optional[DoctrineRule]:
        """The most specific matching rule: client over office over firm."""
        matches = await self.rules.match_rules(
            organization_id,
            client_id=client_id,
            state=alert.get("state"),
            tax_type=alert.get("type"),
            activity_pattern=alert_activity(alert),
        )
        if not matches:
            return None
        return max(matches, key=lambda r: SCOPE_SPECIFICITY.get(r.scope, 0))

    async def process_alerts(
        self,
        alerts: List[Dict[str, Any]],
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
    ) -> List[Dict[str, Any]]:
        """
        Apply matching rules and count each application in the rule's
        impact metrics. The caller commits.
        """
        processed = []
        for alert in alerts:
            rule = await self.find_matching_rule(alert, organization_id, client_id)
            if rule is None:
                processed.append(alert)
                continue
            processed.append(apply_rule_to_alert(alert, rule))
            revenue = (alert.get("facts") or {}).get("actualRevenue") or 0
            await self.rules.update_impact_metrics(
                rule.id,
                clients_affected=1,
                revenue_covered=Decimal(str(revenue)),
                applied_at=utcnow(),
            )
            logger.info(f"Doctrine rule {rule.id} applied to alert {alert.get('id')}")
        return processed

    async def should_suppress(
        self,
        alert: Dict[str, Any],
        organization_id: uuid.UUID,
        client_id: Optional[uuid.UUID] = None,
    ) -> bool:
        rule = await self.find_matching_rule(alert, organization_id, client_id)
        return rule is not None and rule.decision in SUPPRESSING_DECISIONS

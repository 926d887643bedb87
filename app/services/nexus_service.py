"""
Nexus Compliance - Nexus Resource Service

Listing and maintenance of nexus alerts, activities and client states, plus
the nexus dashboard summary and the aggregated state map.
"""

import logging
import uuid
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.base import utcnow
from app.models.client import Client, ClientState, StateStatus
from app.models.nexus import AlertPriority, NexusActivity, NexusAlert, NexusAlertStatus
from app.services.map_status_service import aggregate_state_map, summarize_state_map
from app.services.nexus_engine.state_rules import STATE_NAMES, STATE_RULES
from app.utils.error_handling import ConflictException, InvalidStateCodeException
from app.utils.number_format import (
    format_array,
    format_client_state,
    format_nexus_activity,
    format_nexus_alert,
)

logger = logging.getLogger(__name__)


DEFAULT_LIMIT = 10
RECENT_ACTIVITY_COUNT = 5
THRESHOLD_ALERT_TYPE = "threshold_exceeded"


def to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValueError(f"Invalid amount: {value}")


def normalize_state_code(code: Optional[str]) -> str:
    code = (code or "").strip().upper()
    if code not in STATE_RULES:
        raise InvalidStateCodeException(code)
    return code


def with_client(formatted: Dict[str, Any], name: Optional[str], industry: Optional[str]) -> Dict[str, Any]:
    formatted["clientName"] = name
    formatted["clientIndustry"] = industry
    return formatted


def state_tax_info(state_code: Optional[str] = None) -> List[Dict[str, Any]]:
    """State rule reference data ordered by state name."""
    codes = [normalize_state_code(state_code)] if state_code else list(STATE_RULES)
    info = [{"stateCode": code, "stateName": STATE_NAMES.get(code, code), **STATE_RULES[code]} for code in codes]
    return sorted(info, key=lambda s: s["stateName"])


class NexusService:
    """Service for nexus alerts, activities and client states."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # LISTINGS
    # ===========================================

    async def _page(
        self,
        model: Type[Any],
        filters: List[Any],
        order_by: Any,
        limit: int,
        offset: int,
    ) -> Tuple[List[Tuple[Any, Optional[str], Optional[str]]], int]:
        query = (
            select(model, Client.name, Client.industry)
            .outerjoin(Client, model.client_id == Client.id)
            .where(*filters)
            .order_by(order_by)
            .limit(limit)
            .offset(offset)
        )
        rows = (await self.db.execute(query)).all()
        total = (await self.db.execute(select(func.count(model.id)).where(*filters))).scalar() or 0
        return [tuple(row) for row in rows], total

    async def list_alerts(
        self,
        organization_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        priority: Optional[str] = None,
        state_code: Optional[str] = None,
        client_id: Optional[uuid.UUID] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Dict[str, Any]:
        filters = []
        if organization_id:
            filters.append(NexusAlert.organization_id == organization_id)
        if status:
            filters.append(NexusAlert.status == status)
        if priority:
            filters.append(NexusAlert.priority == priority)
        if state_code:
            filters.append(NexusAlert.state_code == state_code.upper())
        if client_id:
            filters.append(NexusAlert.client_id == client_id)

        rows, total = await self._page(NexusAlert, filters, desc(NexusAlert.created_at), limit, offset)
        return {
            "items": [with_client(format_nexus_alert(a), name, industry) for a, name, industry in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def list_activities(
        self,
        organization_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        state_code: Optional[str] = None,
        activity_type: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Dict[str, Any]:
        filters = []
        if organization_id:
            filters.append(NexusActivity.organization_id == organization_id)
        if client_id:
            filters.append(NexusActivity.client_id == client_id)
        if state_code:
            filters.append(NexusActivity.state_code == state_code.upper())
        if activity_type:
            filters.append(NexusActivity.activity_type == activity_type)

        rows, total = await self._page(NexusActivity, filters, desc(NexusActivity.created_at), limit, offset)
        return {
            "items": [with_client(format_nexus_activity(a), name, industry) for a, name, industry in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    async def list_client_states(
        self,
        organization_id: Optional[uuid.UUID] = None,
        client_id: Optional[uuid.UUID] = None,
        state_code: Optional[str] = None,
        status: Optional[str] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> Dict[str, Any]:
        filters = []
        if organization_id:
            filters.append(ClientState.organization_id == organization_id)
        if client_id:
            filters.append(ClientState.client_id == client_id)
        if state_code:
            filters.append(ClientState.state_code == state_code.upper())
        if status:
            filters.append(ClientState.status == status)

        rows, total = await self._page(ClientState, filters, desc(ClientState.last_updated), limit, offset)
        return {
            "items": [with_client(format_client_state(s), name, industry) for s, name, industry in rows],
            "total": total,
            "limit": limit,
            "offset": offset,
        }

    # ===========================================
    # ALERTS
    # ===========================================

    async def get_alert(self, alert_id: uuid.UUID) -> Optional[NexusAlert]:
        result = await self.db.execute(select(NexusAlert).where(NexusAlert.id == alert_id))
        return result.scalar_one_or_none()

    async def create_alert(self, data: Dict[str, Any]) -> NexusAlert:
        """
        Create a nexus alert.

        Raises:
            ValueError: If client, organization, alert type or title is missing
        """
        for field in ("client_id", "organization_id", "alert_type", "title"):
            if not data.get(field):
                raise ValueError(f"{field} is required")

        alert = NexusAlert(
            client_id=data["client_id"],
            organization_id=data["organization_id"],
            state_code=normalize_state_code(data["state_code"]) if data.get("state_code") else None,
            alert_type=data["alert_type"],
            priority=data.get("priority") or AlertPriority.MEDIUM.value,
            status=NexusAlertStatus.OPEN.value,
            title=data["title"],
            description=data.get("description"),
            threshold_amount=to_decimal(data.get("threshold_amount")),
            current_amount=to_decimal(data.get("current_amount")) or Decimal("0"),
            penalty_risk=to_decimal(data.get("penalty_risk")),
            deadline=data.get("deadline"),
        )
        self.db.add(alert)
        await self.db.commit()
        await self.db.refresh(alert)

        logger.info(f"Created nexus alert {alert.id} ({alert.alert_type}) for client {alert.client_id}")
        return alert

    async def update_alert(self, alert_id: uuid.UUID, updates: Dict[str, Any]) -> Optional[NexusAlert]:
        """Update an alert. Moving to resolved stamps resolved_at."""
        alert = await self.get_alert(alert_id)
        if not alert:
            return None

        status = updates.get("status")
        if status:
            if status not in {s.value for s in NexusAlertStatus}:
                raise ValueError(f"Invalid alert status: {status}")
            if status == NexusAlertStatus.RESOLVED.value and alert.status != status:
                alert.resolved_at = utcnow()
            alert.status = status
        for field in ("priority", "title", "description", "deadline"):
            if updates.get(field) is not None:
                setattr(alert, field, updates[field])
        for field in ("threshold_amount", "current_amount", "penalty_risk"):
            if updates.get(field) is not None:
                setattr(alert, field, to_decimal(updates[field]))

        await self.db.commit()
        await self.db.refresh(alert)
        return alert

    async def delete_alert(self, alert_id: uuid.UUID) -> bool:
        alert = await self.get_alert(alert_id)
        if not alert:
            return False
        await self.db.delete(alert)
        await self.db.commit()
        return True

    # ===========================================
    # ACTIVITIES
    # ===========================================

    async def create_activity(self, data: Dict[str, Any]) -> NexusActivity:
        """
        Record a nexus activity.

        Raises:
            ValueError: If client, organization, activity type or title is missing
        """
        for field in ("client_id", "organization_id", "activity_type", "title"):
            if not data.get(field):
                raise ValueError(f"{field} is required")

        activity = NexusActivity(
            client_id=data["client_id"],
            organization_id=data["organization_id"],
            state_code=normalize_state_code(data["state_code"]) if data.get("state_code") else None,
            activity_type=data["activity_type"],
            title=data["title"],
            description=data.get("description"),
            amount=to_decimal(data.get("amount")),
            threshold_amount=to_decimal(data.get("threshold_amount")),
            status=data.get("status") or "completed",
        )
        self.db.add(activity)
        await self.db.commit()
        await self.db.refresh(activity)
        return activity

    # ===========================================
    # CLIENT STATES
    # ===========================================

    async def get_client_state(self, state_id: uuid.UUID) -> Optional[ClientState]:
        result = await self.db.execute(select(ClientState).where(ClientState.id == state_id))
        return result.scalar_one_or_none()

    async def create_client_state(self, data: Dict[str, Any]) -> ClientState:
        """
        Start monitoring a client in a state.

        Raises:
            ValueError: If a required field is missing
            ConflictException: If the client already has a row for the state
        """
        for field in ("client_id", "organization_id", "state_code"):
            if not data.get(field):
                raise ValueError(f"{field} is required")

        code = normalize_state_code(data["state_code"])
        existing = await self.db.execute(
            select(ClientState.id).where(
                ClientState.client_id == data["client_id"],
                ClientState.organization_id == data["organization_id"],
                ClientState.state_code == code,
            )
        )
        if existing.scalar_one_or_none():
            raise ConflictException(
                "Client state already exists for this state",
                resource_type="ClientState",
                details={"state_code": code},
            )

        state_name = data.get("state_name") or STATE_NAMES[code]
        client_state = ClientState(
            client_id=data["client_id"],
            organization_id=data["organization_id"],
            state_code=code,
            state_name=state_name,
            status=data.get("status") or StateStatus.MONITORING.value,
            threshold_amount=to_decimal(data.get("threshold_amount")),
            current_amount=to_decimal(data.get("current_amount")) or Decimal("0"),
            registration_required=bool(data.get("registration_required", False)),
            penalty_risk=to_decimal(data.get("penalty_risk")),
            notes=(data.get("notes") or f"Nexus monitoring setup for {state_name}")[:255],
            last_updated=data.get("last_updated") or utcnow(),
        )
        self.db.add(client_state)
        await self.db.commit()
        await self.db.refresh(client_state)

        logger.info(f"Created client state {code} for client {client_state.client_id}")
        return client_state

    async def update_client_state(self, state_id: uuid.UUID, updates: Dict[str, Any]) -> Optional[ClientState]:
        client_state = await self.get_client_state(state_id)
        if not client_state:
            return None

        if updates.get("status"):
            if updates["status"] not in {s.value for s in StateStatus}:
                raise ValueError(f"Invalid state status: {updates['status']}")
            client_state.status = updates["status"]
        for field in ("threshold_amount", "current_amount", "penalty_risk"):
            if updates.get(field) is not None:
                setattr(client_state, field, to_decimal(updates[field]))
        if updates.get("notes"):
            client_state.notes = updates["notes"][:255]
        if updates.get("registration_required") is not None:
            client_state.registration_required = bool(updates["registration_required"])
        client_state.last_updated = updates.get("last_updated") or utcnow()

        await self.db.commit()
        await self.db.refresh(client_state)
        return client_state

    async def delete_client_state(self, state_id: uuid.UUID) -> bool:
        client_state = await self.get_client_state(state_id)
        if not client_state:
            return False
        await self.db.delete(client_state)
        await self.db.commit()
        return True

    # ===========================================
    # SUMMARIES
    # ===========================================

    async def _group_counts(self, column: Any, organization_id: uuid.UUID) -> Dict[str, int]:
        result = await self.db.execute(
            select(column, func.count(NexusAlert.id))
            .where(NexusAlert.organization_id == organization_id)
            .group_by(column)
        )
        return {key or "unknown": count for key, count in result.all()}

    async def dashboard_summary(self, organization_id: uuid.UUID) -> Dict[str, Any]:
        """Alert counts, recent activity and open threshold alerts for an organization."""
        recent = await self.db.execute(
            select(NexusActivity, Client.name)
            .outerjoin(Client, NexusActivity.client_id == Client.id)
            .where(NexusActivity.organization_id == organization_id)
            .order_by(desc(NexusActivity.created_at))
            .limit(RECENT_ACTIVITY_COUNT)
        )
        threshold = await self.db.execute(
            select(NexusAlert, Client.name)
            .outerjoin(Client, NexusAlert.client_id == Client.id)
            .where(
                NexusAlert.organization_id == organization_id,
                NexusAlert.alert_type == THRESHOLD_ALERT_TYPE,
                NexusAlert.status == NexusAlertStatus.OPEN.value,
            )
            .order_by(desc(NexusAlert.created_at))
        )

        return {
            "alertCounts": await self._group_counts(NexusAlert.status, organization_id),
            "priorityCounts": await self._group_counts(NexusAlert.priority, organization_id),
            "stateCounts": await self._group_counts(NexusAlert.state_code, organization_id),
            "recentActivities": [
                {**format_nexus_activity(activity), "clientName": name} for activity, name in recent.all()
            ],
            "thresholdAlerts": [
                {**format_nexus_alert(alert), "clientName": name} for alert, name in threshold.all()
            ],
        }

    async def state_map(self, organization_id: uuid.UUID) -> Dict[str, Any]:
        """Per-state map status over the organization's client states and open alerts."""
        states = await self.db.execute(
            select(ClientState).where(ClientState.organization_id == organization_id)
        )
        alerts = await self.db.execute(
            select(NexusAlert).where(
                NexusAlert.organization_id == organization_id,
                NexusAlert.status != NexusAlertStatus.RESOLVED.value,
            )
        )
        state_map = aggregate_state_map(
            format_array(states.scalars().all(), format_client_state),
            format_array(alerts.scalars().all(), format_nexus_alert),
        )
        return {
            "states": state_map,
            "summary": summarize_state_map(state_map),
        }

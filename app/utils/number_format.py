"""
Nexus Compliance - Number Formatting

Converts ORM rows into JSON-ready dicts. Numeric(15, 2) columns come back
as Decimal, which would otherwise serialize as strings.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional


def format_decimal(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, str):
        try:
            return float(Decimal(value.strip()))
        except (InvalidOperation, ValueError):
            return None
    return None


def format_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        return int(round(value))
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _iso(value: Optional[Any]) -> Optional[str]:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _id(value: Any) -> Optional[str]:
    return str(value) if value is not None else None


def format_client(client: Any) -> Optional[Dict[str, Any]]:
    if client is None:
        return None
    return {
        "id": _id(client.id),
        "organizationId": _id(client.organization_id),
        "name": client.name,
        "legalName": client.legal_name,
        "industry": client.industry,
        "annualRevenue": format_decimal(client.annual_revenue),
        "riskLevel": client.risk_level,
        "penaltyExposure": format_decimal(client.penalty_exposure),
        "qualityScore": format_int(client.quality_score),
        "status": client.status,
        "tags": client.tags or [],
        "notes": client.notes,
        "contactName": client.contact_name,
        "contactEmail": client.contact_email,
        "contactPhone": client.contact_phone,
        "createdAt": _iso(client.created_at),
        "updatedAt": _iso(client.updated_at),
    }


def format_client_state(state: Any) -> Optional[Dict[str, Any]]:
    if state is None:
        return None
    return {
        "id": _id(state.id),
        "clientId": _id(state.client_id),
        "organizationId": _id(state.organization_id),
        "stateCode": state.state_code,
        "stateName": state.state_name,
        "status": state.status,
        "thresholdAmount": format_decimal(state.threshold_amount),
        "currentAmount": format_decimal(state.current_amount),
        "registrationRequired": state.registration_required,
        "penaltyRisk": format_decimal(state.penalty_risk),
        "notes": state.notes,
        "lastUpdated": _iso(state.last_updated),
    }


def format_nexus_alert(alert: Any) -> Optional[Dict[str, Any]]:
    if alert is None:
        return None
    return {
        "id": _id(alert.id),
        "clientId": _id(alert.client_id),
        "organizationId": _id(alert.organization_id),
        "stateCode": alert.state_code,
        "alertType": alert.alert_type,
        "priority": alert.priority,
        "status": alert.status,
        "title": alert.title,
        "description": alert.description,
        "thresholdAmount": format_decimal(alert.threshold_amount),
        "currentAmount": format_decimal(alert.current_amount),
        "penaltyRisk": format_decimal(alert.penalty_risk),
        "deadline": _iso(alert.deadline),
        "resolvedAt": _iso(alert.resolved_at),
        "createdAt": _iso(alert.created_at),
    }


def format_nexus_activity(activity: Any) -> Optional[Dict[str, Any]]:
    if activity is None:
        return None
    return {
        "id": _id(activity.id),
        "clientId": _id(activity.client_id),
        "organizationId": _id(activity.organization_id),
        "stateCode": activity.state_code,
        "activityType": activity.activity_type,
        "title": activity.title,
        "description": activity.description,
        "amount": format_decimal(activity.amount),
        "thresholdAmount": format_decimal(activity.threshold_amount),
        "status": activity.status,
        "createdAt": _iso(activity.created_at),
    }


def format_alert(alert: Any) -> Optional[Dict[str, Any]]:
    if alert is None:
        return None
    return {
        "id": _id(alert.id),
        "clientId": _id(alert.client_id),
        "organizationId": _id(alert.organization_id),
        "title": alert.title,
        "description": alert.description,
        "issue": alert.issue,
        "type": alert.type,
        "priority": alert.priority,
        "status": alert.status,
        "stateCode": alert.state_code,
        "currentAmount": format_decimal(alert.current_amount),
        "thresholdAmount": format_decimal(alert.threshold_amount),
        "penaltyRisk": format_decimal(alert.penalty_risk),
        "deadline": _iso(alert.deadline),
        "createdAt": _iso(alert.created_at),
    }


def format_task(task: Any) -> Optional[Dict[str, Any]]:
    if task is None:
        return None
    return {
        "id": _id(task.id),
        "clientId": _id(task.client_id),
        "organizationId": _id(task.organization_id),
        "title": task.title,
        "description": task.description,
        "category": task.category,
        "priority": task.priority,
        "status": task.status,
        "dueDate": _iso(task.due_date),
        "createdAt": _iso(task.created_at),
    }


def format_array(items: Optional[Iterable[Any]], formatter: Callable[[Any], Any]) -> List[Any]:
    """Apply a formatter to every item, dropping Nones."""
    if not items:
        return []
    return [formatted for formatted in (formatter(item) for item in items) if formatted is not None]

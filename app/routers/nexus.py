"""
Nexus Compliance - Nexus Router

Endpoints for nexus alerts, activities, client state monitoring and the
per-organization nexus summaries.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.schemas.nexus import (
    ClientStateCreate,
    ClientStateUpdate,
    NexusActivityCreate,
    NexusAlertCreate,
    NexusAlertUpdate,
)
from app.services.nexus_service import DEFAULT_LIMIT, NexusService, state_tax_info
from app.utils.number_format import format_client_state, format_nexus_activity, format_nexus_alert

router = APIRouter()


def _require_organization(organization_id: Optional[uuid.UUID]) -> uuid.UUID:
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organizationId is required",
        )
    return organization_id


# ===========================================
# ALERTS
# ===========================================

@router.get("/alerts", summary="List nexus alerts")
async def list_alerts(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    alert_status: Optional[str] = Query(None, alias="status"),
    priority: Optional[str] = Query(None),
    state_code: Optional[str] = Query(None, alias="stateCode"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    return await NexusService(db).list_alerts(
        organization_id=organization_id,
        status=alert_status,
        priority=priority,
        state_code=state_code,
        client_id=client_id,
        limit=limit,
        offset=offset,
    )


@router.post("/alerts", status_code=status.HTTP_201_CREATED, summary="Create a nexus alert")
async def create_alert(
    request: NexusAlertCreate,
    db: AsyncSession = Depends(get_async_session),
):
    alert = await NexusService(db).create_alert(request.model_dump())
    return format_nexus_alert(alert)


@router.patch("/alerts/{alert_id}", summary="Update a nexus alert")
async def update_alert(
    alert_id: uuid.UUID,
    request: NexusAlertUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    alert = await NexusService(db).update_alert(alert_id, request.model_dump(exclude_unset=True))
    if not alert:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nexus alert not found")
    return format_nexus_alert(alert)


@router.delete("/alerts/{alert_id}", summary="Delete a nexus alert")
async def delete_alert(
    alert_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
):
    if not await NexusService(db).delete_alert(alert_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nexus alert not found")
    return {"success": True, "message": "Nexus alert deleted"}


# ===========================================
# ACTIVITIES
# ===========================================

@router.get("/activities", summary="List nexus activities")
async def list_activities(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    state_code: Optional[str] = Query(None, alias="stateCode"),
    activity_type: Optional[str] = Query(None, alias="activityType"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    return await NexusService(db).list_activities(
        organization_id=organization_id,
        client_id=client_id,
        state_code=state_code,
        activity_type=activity_type,
        limit=limit,
        offset=offset,
    )


@router.post("/activities", status_code=status.HTTP_201_CREATED, summary="Record a nexus activity")
async def create_activity(
    request: NexusActivityCreate,
    db: AsyncSession = Depends(get_async_session),
):
    activity = await NexusService(db).create_activity(request.model_dump())
    return format_nexus_activity(activity)


# ===========================================
# CLIENT STATES
# ===========================================

@router.get("/client-states", summary="List client state monitoring rows")
async def list_client_states(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    state_code: Optional[str] = Query(None, alias="stateCode"),
    state_status: Optional[str] = Query(None, alias="status"),
    limit: int = Query(DEFAULT_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
):
    return await NexusService(db).list_client_states(
        organization_id=organization_id,
        client_id=client_id,
        state_code=state_code,
        status=state_status,
        limit=limit,
        offset=offset,
    )


@router.post("/client-states", status_code=status.HTTP_201_CREATED, summary="Start monitoring a client in a state")
async def create_client_state(
    request: ClientStateCreate,
    db: AsyncSession = Depends(get_async_session),
):
    client_state = await NexusService(db).create_client_state(request.model_dump())
    return format_client_state(client_state)


@router.patch("/client-states/{state_id}", summary="Update a client state")
async def update_client_state(
    state_id: uuid.UUID,
    request: ClientStateUpdate,
    db: AsyncSession = Depends(get_async_session),
):
    client_state = await NexusService(db).update_client_state(state_id, request.model_dump(exclude_unset=True))
    if not client_state:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client state not found")
    return format_client_state(client_state)


@router.delete("/client-states/{state_id}", summary="Stop monitoring a client in a state")
async def delete_client_state(
    state_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
):
    if not await NexusService(db).delete_client_state(state_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client state not found")
    return {"success": True, "message": "Client state deleted"}


# ===========================================
# SUMMARIES
# ===========================================

@router.get("/dashboard-summary", summary="Nexus summary for an organization")
async def dashboard_summary(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_async_session),
):
    return await NexusService(db).dashboard_summary(_require_organization(organization_id))


@router.get("/state-map", summary="Aggregated US map status")
async def state_map(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_async_session),
):
    return await NexusService(db).state_map(_require_organization(organization_id))


@router.get("/state-tax-info", summary="Economic nexus rules by state")
async def get_state_tax_info(
    state_code: Optional[str] = Query(None, alias="stateCode"),
):
    states = state_tax_info(state_code)
    return {"states": states, "total": len(states)}

"""
Nexus Compliance - Statute Overrides Router

Firm-entered statute changes. Staff enter them, partners validate or reject.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_active_user, require_managing_partner, resolve_organization_id
from app.models.statute import StatuteOverride
from app.models.user import User
from app.schemas.statute import StatuteOverrideCreate, StatuteOverrideReject
from app.services.statute_service import StatuteService, serialize_override

router = APIRouter()


async def _override_for_user(db: AsyncSession, override_id: uuid.UUID, user: User) -> StatuteOverride:
    override = await StatuteService(db).get_override(override_id)
    resolve_organization_id(user, override.organization_id)
    return override


@router.post("/overrides", status_code=status.HTTP_201_CREATED, summary="Enter a statute override")
async def create_override(
    request: StatuteOverrideCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.state_code or not request.tax_type or not request.change_type or not request.effective_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="stateCode, taxType, changeType and effectiveDate are required",
        )
    organization_id = resolve_organization_id(current_user, request.organization_id)

    override = await StatuteService(db).create_override(
        organization_id,
        request.state_code,
        request.tax_type,
        request.change_type,
        request.effective_date,
        entered_by=current_user.id,
        previous_value=request.previous_value,
        new_value=request.new_value,
        source=request.source,
        citation=request.citation,
        notes=request.notes,
    )
    return {"success": True, "override": serialize_override(override)}


@router.get("/overrides", summary="List statute overrides")
async def list_overrides(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    state_code: Optional[str] = Query(None, alias="stateCode"),
    tax_type: Optional[str] = Query(None, alias="taxType"),
    validation_status: Optional[str] = Query(None, alias="validationStatus"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    overrides = await StatuteService(db).list_overrides(
        resolve_organization_id(current_user, organization_id),
        state_code=state_code,
        tax_type=tax_type,
        validation_status=validation_status,
    )
    return {"success": True, "overrides": [serialize_override(o) for o in overrides]}


@router.post("/overrides/{override_id}/validate", summary="Validate a statute override")
async def validate_override(
    override_id: uuid.UUID,
    current_user: User = Depends(require_managing_partner()),
    db: AsyncSession = Depends(get_async_session),
):
    await _override_for_user(db, override_id, current_user)
    override = await StatuteService(db).validate_override(override_id, current_user.id)
    return {"success": True, "override": serialize_override(override)}


@router.get("/overrides/{override_id}/affected-clients", summary="Clients whose memos cite the state")
async def affected_clients(
    override_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _override_for_user(db, override_id, current_user)
    result = await StatuteService(db).get_affected_clients(override_id)
    return {"success": True, **result}


@router.delete("/overrides/{override_id}", summary="Reject a statute override")
async def reject_override(
    override_id: uuid.UUID,
    request: Optional[StatuteOverrideReject] = Body(None),
    current_user: User = Depends(require_managing_partner()),
    db: AsyncSession = Depends(get_async_session),
):
    await _override_for_user(db, override_id, current_user)
    override = await StatuteService(db).reject_override(
        override_id,
        current_user.id,
        reason=request.reason if request else None,
    )
    return {"success": True, "override": serialize_override(override)}

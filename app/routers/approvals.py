"""
Nexus Compliance - Approvals Router

Approval requirements and the sign-offs recorded against them.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_active_user, require_tax_manager, resolve_organization_id
from app.models.approval import ApprovalRequirement
from app.models.user import User
from app.schemas.approval import ApprovalRequirementCreate, ApprovalSubmit
from app.services.approval_service import ApprovalService, serialize_approval, serialize_requirement
from app.utils.error_handling import NotFoundException

router = APIRouter()


@router.post("/requirements", status_code=status.HTTP_201_CREATED, summary="Create an approval requirement")
async def create_requirement(
    request: ApprovalRequirementCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.approval_type or not request.required_role:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="approval_type and required_role are required",
        )
    organization_id = resolve_organization_id(current_user, request.organization_id)

    requirement = await ApprovalService(db).create_requirement(
        organization_id,
        request.approval_type,
        request.required_role,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
        client_id=request.client_id,
        user_id=current_user.id,
    )
    return {"success": True, "requirement": serialize_requirement(requirement)}


@router.post("", status_code=status.HTTP_201_CREATED, summary="Submit an approval")
async def submit_approval(
    request: ApprovalSubmit,
    current_user: User = Depends(require_tax_manager()),
    db: AsyncSession = Depends(get_async_session),
):
    if request.approval_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="approvalId is required")

    requirement = await db.get(ApprovalRequirement, request.approval_id)
    if requirement is None:
        raise NotFoundException(
            "Approval requirement", request.approval_id, message="Approval requirement not found"
        )
    resolve_organization_id(current_user, requirement.organization_id)

    approval = await ApprovalService(db).submit_approval(
        request.approval_id,
        current_user.id,
        notes=request.notes,
        entity_type=request.entity_type,
        entity_id=request.entity_id,
    )
    return {"success": True, "approval": serialize_approval(approval)}


@router.get("/status/{entity_type}/{entity_id}", summary="Approval status of an entity")
async def approval_status(
    entity_type: str,
    entity_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    return await ApprovalService(db).approval_status(
        entity_type,
        entity_id,
        organization_id=resolve_organization_id(current_user, None),
    )


@router.get("/pending", summary="Requirements still waiting for sign-off")
async def list_pending(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    requirements = await ApprovalService(db).list_pending(resolve_organization_id(current_user, organization_id))
    return {"success": True, "requirements": [serialize_requirement(r) for r in requirements]}

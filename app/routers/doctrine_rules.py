"""
Nexus Compliance - Doctrine Rules Router

Firm doctrine: reusable nexus decisions scoped to a client, an office or the
whole firm, with partner approval, versioning, rollback and impact preview.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_active_user, require_tax_manager, resolve_organization_id
from app.models.doctrine import DoctrineRule
from app.models.user import User
from app.schemas.doctrine import (
    DoctrineDisableRequest,
    DoctrineDryRunRequest,
    DoctrineReviewRequest,
    DoctrineRollbackRequest,
    DoctrineRuleCreate,
    DoctrineRuleUpdate,
)
from app.services.doctrine_impact_service import DoctrineImpactService
from app.services.doctrine_service import (
    DEFAULT_PAGE_SIZE,
    DoctrineService,
    serialize_rule,
    serialize_version_event,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _rule_for_user(db: AsyncSession, rule_id: uuid.UUID, user: User) -> DoctrineRule:
    rule = await DoctrineService(db).get_rule_model(rule_id)
    resolve_organization_id(user, rule.organization_id)
    return rule


def _role(user: User) -> str:
    return getattr(user.role, "value", user.role)


@router.post("", summary="Create a doctrine rule")
async def create_rule(
    request: DoctrineRuleCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.name or not request.scope:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: name, scope",
        )
    organization_id = resolve_organization_id(current_user, request.organization_id)

    try:
        rule = await DoctrineService(db).create_rule(
            organization_id,
            request.name,
            request.scope,
            state=request.state,
            tax_type=request.tax_type,
            activity_pattern=request.activity_pattern,
            posture=request.posture,
            decision=request.decision,
            client_id=request.client_id,
            office_id=request.office_id,
            rationale_internal=request.rationale_internal,
            review_due_at=request.review_due_at,
            created_by=current_user.id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "rule": serialize_rule(rule)}


@router.get("", summary="List doctrine rules")
async def list_rules(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    scope: Optional[str] = None,
    rule_status: Optional[str] = Query(None, alias="status"),
    state: Optional[str] = None,
    tax_type: Optional[str] = Query(None, alias="taxType"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    result = await DoctrineService(db).list_rules(
        organization_id=resolve_organization_id(current_user, organization_id),
        client_id=client_id,
        scope=scope,
        status=rule_status,
        state=state,
        tax_type=tax_type,
        page=page,
        limit=limit,
    )
    return {"success": True, **result}


@router.get("/pending", summary="Rules waiting for partner approval")
async def list_pending(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    scope: Optional[str] = None,
    state: Optional[str] = None,
    tax_type: Optional[str] = Query(None, alias="taxType"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    result = await DoctrineService(db).get_pending_approvals(
        organization_id=resolve_organization_id(current_user, organization_id),
        scope=scope,
        tax_type=tax_type,
        state=state,
        page=page,
        limit=limit,
    )
    return {"success": True, **result}


@router.get("/impact", summary="Doctrine impact dashboard")
async def impact_dashboard(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    scope: Optional[str] = None,
    tax_type: Optional[str] = Query(None, alias="taxType"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    result = await DoctrineImpactService(db).get_impact_dashboard(
        resolve_organization_id(current_user, organization_id),
        scope=scope,
        tax_type=tax_type,
    )
    return {"success": True, **result}


@router.post("/dry-run", summary="Preview which clients a rule would touch")
async def dry_run(
    request: DoctrineDryRunRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.scope:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing required fields: scope")
    organization_id = resolve_organization_id(current_user, request.organization_id)

    try:
        impact = await DoctrineImpactService(db).calculate_impact(
            organization_id,
            request.scope,
            state=request.state,
            activity_pattern=request.activity_pattern,
            decision=request.decision,
            client_id=request.client_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "impact": impact}


@router.get("/{rule_id}", summary="Get a doctrine rule")
async def get_rule(
    rule_id: uuid.UUID,
    version: Optional[int] = Query(None, ge=1),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    rule = await DoctrineService(db).get_rule(rule_id, version)
    return {"success": True, "rule": rule}


@router.put("/{rule_id}", summary="Edit a doctrine rule as a new version")
async def update_rule(
    rule_id: uuid.UUID,
    request: DoctrineRuleUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    changes = request.model_dump(exclude_unset=True, exclude={"reason"})
    rule = await DoctrineService(db).update_rule(rule_id, changes, current_user.id, request.reason)
    return {"success": True, "rule": serialize_rule(rule)}


@router.post("/{rule_id}/submit", summary="Send a draft rule for approval")
async def submit_rule(
    rule_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    rule = await DoctrineService(db).submit_for_approval(rule_id)
    return {"success": True, "rule": serialize_rule(rule)}


@router.post("/{rule_id}/approve", summary="Approve a pending rule")
async def approve_rule(
    rule_id: uuid.UUID,
    request: DoctrineReviewRequest,
    current_user: User = Depends(require_tax_manager()),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    result = await DoctrineService(db).approve_rule(
        rule_id,
        current_user.id,
        approver_role=_role(current_user),
        comment=request.comment,
    )
    return {"success": True, **result}


@router.post("/{rule_id}/reject", summary="Reject a pending rule")
async def reject_rule(
    rule_id: uuid.UUID,
    request: DoctrineReviewRequest,
    current_user: User = Depends(require_tax_manager()),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    rule = await DoctrineService(db).reject_rule(
        rule_id,
        current_user.id,
        approver_role=_role(current_user),
        comment=request.comment,
    )
    return {"success": True, "rule": serialize_rule(rule)}


@router.post("/{rule_id}/rollback", summary="Restore an earlier version")
async def rollback_rule(
    rule_id: uuid.UUID,
    request: DoctrineRollbackRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if request.target_version is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="targetVersion is required")
    await _rule_for_user(db, rule_id, current_user)

    try:
        rule = await DoctrineService(db).rollback_rule(
            rule_id,
            request.target_version,
            actor_id=current_user.id,
            reason=request.reason,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, "rule": serialize_rule(rule)}


@router.post("/{rule_id}/disable", summary="Disable a rule")
async def disable_rule(
    rule_id: uuid.UUID,
    request: DoctrineDisableRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    rule = await DoctrineService(db).disable_rule(rule_id, actor_id=current_user.id, reason=request.reason)
    return {"success": True, "rule": serialize_rule(rule)}


@router.get("/{rule_id}/versions", summary="Version history of a rule")
async def get_versions(
    rule_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    events = await DoctrineService(db).get_version_history(rule_id)
    return {"success": True, "versions": [serialize_version_event(e) for e in events]}


@router.get("/{rule_id}/blast-radius", summary="Clients a saved rule applies to")
async def get_blast_radius(
    rule_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    await _rule_for_user(db, rule_id, current_user)
    try:
        blast_radius = await DoctrineImpactService(db).get_blast_radius(rule_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return {"success": True, "blastRadius": blast_radius}

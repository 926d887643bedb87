"""
Nexus Compliance - Audit Trail Router

Endpoints for writing, reading and verifying the hash-chained audit trail.
"""

from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_active_user, resolve_organization_id
from app.models.user import User
from app.schemas.audit import AuditLogRequest, VerifyChainRequest
from app.services.audit_service import AUDIT_ACTIONS, AuditService, serialize_audit_entry

router = APIRouter()


def _resolve_entity(request: AuditLogRequest) -> Tuple[str, str]:
    """Explicit entity first, then memo, upload and client ids."""
    if request.entity_type and request.entity_id:
        return request.entity_type, request.entity_id
    for entity_type, entity_id in (
        ("nexus_memo", request.memo_id),
        ("upload", request.upload_id),
        ("client", request.client_id),
    ):
        if entity_id:
            return entity_type, entity_id
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="An entity id (entityId, memoId, uploadId or clientId) is required",
    )


@router.post("/log", status_code=status.HTTP_201_CREATED, summary="Append an audit entry")
async def log_action(
    request: AuditLogRequest,
    fastapi_request: Request,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.action:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="action is required")

    entity_type, entity_id = _resolve_entity(request)
    organization_id = resolve_organization_id(current_user, request.organization_id)

    details: Dict[str, Any] = dict(request.details or {})
    details["severity"] = request.severity
    for key, value in (
        ("client_id", request.client_id),
        ("upload_id", request.upload_id),
        ("memo_id", request.memo_id),
    ):
        if value:
            details[key] = value

    entry = await AuditService(db).log_action(
        request.action,
        entity_type,
        entity_id,
        user_id=current_user.id,
        organization_id=organization_id,
        details=details,
        ip_address=fastapi_request.client.host if fastapi_request.client else None,
        user_agent=fastapi_request.headers.get("user-agent"),
    )
    await db.commit()

    return {"success": True, "entry": serialize_audit_entry(entry)}


@router.get("/trail/{entity_type}/{entity_id}", summary="Audit trail for an entity")
async def get_audit_trail(
    entity_type: str,
    entity_id: str,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    entries = await AuditService(db).get_audit_trail(entity_type, entity_id, limit, offset, order)
    return {
        "success": True,
        "entries": [serialize_audit_entry(e) for e in entries],
        "total": len(entries),
    }


@router.post("/verify-chain", summary="Verify an entity's audit chain")
async def verify_chain(
    request: VerifyChainRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    result = await AuditService(db).verify_audit_chain(request.entity_type, request.entity_id)
    return {"success": True, **result}


@router.get("/actions", summary="Audit action catalogue")
async def list_actions(
    category: Optional[str] = Query(None, description="Filter by action prefix, e.g. MEMO"),
):
    actions = {
        action: description
        for action, description in AUDIT_ACTIONS.items()
        if not category or action.startswith(category.upper())
    }
    return {"success": True, "actions": actions}

"""
Nexus Compliance - Nexus Memos Router

Endpoints for drafting, sealing and verifying nexus memos. Sealed memos
are immutable; edits go through supplemental memos.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_active_user, resolve_organization_id
from app.models.memo import NexusMemo
from app.models.user import User
from app.schemas.memo import MemoCreate, MemoFromAlertsRequest, MemoUpdate, SupplementalMemoCreate
from app.services.memo_service import (
    MemoService,
    generate_verification_certificate,
    serialize_memo,
    serialize_verification,
)

router = APIRouter()


async def _get_accessible_memo(service: MemoService, memo_id: uuid.UUID, user: User) -> NexusMemo:
    memo = await service.get_memo(memo_id)
    if not memo:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Memo not found")
    resolve_organization_id(user, memo.organization_id)
    return memo


async def _read_pdf(pdf: Optional[UploadFile]) -> Optional[bytes]:
    if pdf is None:
        return None
    content = await pdf.read()
    return content or None


@router.post("", status_code=status.HTTP_201_CREATED, summary="Create a draft memo")
async def create_memo(
    request: MemoCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.organization_id or not request.client_id or not request.title or not request.sections:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organizationId, clientId, title and sections are required",
        )
    resolve_organization_id(current_user, request.organization_id)

    service = MemoService(db)
    memo = await service.create_memo(
        organization_id=request.organization_id,
        client_id=request.client_id,
        title=request.title,
        sections=request.sections,
        memo_type=request.memo_type,
        conclusion=request.conclusion,
        recommendations=request.recommendations,
        attestation=request.attestation,
        statute_versions=request.statute_versions,
        is_supplemental=request.is_supplemental,
        supersedes_memo_id=request.supersedes_memo_id,
        created_by=current_user.id,
    )
    return {"success": True, "memo": serialize_memo(memo)}


@router.get("", summary="List an organization's memos")
async def list_memos(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    client_id: Optional[uuid.UUID] = Query(None, alias="clientId"),
    memo_status: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organizationId is required",
        )
    resolve_organization_id(current_user, organization_id)

    rows = await MemoService(db).list_memos(organization_id, client_id=client_id, status=memo_status)
    memos = [serialize_memo(memo, name or "", legal_name) for memo, name, legal_name in rows]
    return {"success": True, "memos": memos, "total": len(memos)}


@router.post("/from-alerts", status_code=status.HTTP_201_CREATED, summary="Draft a memo from nexus alerts")
async def create_memo_from_alerts(
    request: MemoFromAlertsRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    resolve_organization_id(current_user, request.organization_id)
    memo = await MemoService(db).create_from_alerts(
        organization_id=request.organization_id,
        client_id=request.client_id,
        alerts=request.alerts,
        summary=request.summary,
        created_by=current_user.id,
    )
    return {"success": True, "memo": serialize_memo(memo)}


@router.get("/{memo_id}", summary="Get a memo")
async def get_memo(
    memo_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    memo = await _get_accessible_memo(service, memo_id, current_user)
    client_name = await service.get_client_name(memo.client_id)
    return {"success": True, "memo": serialize_memo(memo, client_name or "")}


@router.put("/{memo_id}", summary="Update a draft memo")
async def update_memo(
    memo_id: uuid.UUID,
    request: MemoUpdate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    memo = await service.update_memo(memo_id, request.model_dump(exclude_unset=True))
    return {"success": True, "memo": serialize_memo(memo)}


@router.post("/{memo_id}/seal", summary="Seal a memo")
async def seal_memo(
    memo_id: uuid.UUID,
    pdf: Optional[UploadFile] = File(None, description="Final PDF to seal; rendered when omitted"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    result = await service.seal_memo(memo_id, current_user.id, await _read_pdf(pdf))
    return {
        "success": True,
        "sealed": result["sealed"],
        "hash": result["hash"],
        "sealedAt": result["sealedAt"].isoformat(),
        "sealedBy": str(result["sealedBy"]),
        "memo": serialize_memo(result["memo"]),
    }


@router.post("/{memo_id}/verify", summary="Verify a sealed memo's integrity")
async def verify_memo(
    memo_id: uuid.UUID,
    pdf: Optional[UploadFile] = File(None, description="PDF copy to check against the seal"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    verification = await service.verify_memo_integrity(memo_id, await _read_pdf(pdf), current_user.id)
    return {
        "success": True,
        "verification": verification,
        "certificate": generate_verification_certificate(verification),
    }


@router.get("/{memo_id}/verification-history", summary="Integrity check history")
async def get_verification_history(
    memo_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    history = await service.get_verification_history(memo_id)
    return {"success": True, "history": [serialize_verification(v) for v in history]}


@router.get("/{memo_id}/versions", summary="Memo version chain")
async def get_versions(
    memo_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    versions = await service.get_versions(memo_id)
    return {"success": True, "versions": [serialize_memo(m) for m in versions]}


@router.post(
    "/{memo_id}/create-supplemental",
    status_code=status.HTTP_201_CREATED,
    summary="Create a supplemental memo",
)
async def create_supplemental(
    memo_id: uuid.UUID,
    request: SupplementalMemoCreate,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.title or not request.sections:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="title and sections are required",
        )

    service = MemoService(db)
    original = await _get_accessible_memo(service, memo_id, current_user)
    memo = await service.create_supplemental(
        memo_id,
        organization_id=original.organization_id,
        title=request.title,
        sections=request.sections,
        conclusion=request.conclusion,
        recommendations=request.recommendations,
        created_by=current_user.id,
    )
    return {"success": True, "memo": serialize_memo(memo)}


@router.get("/{memo_id}/pdf", summary="Download the memo PDF")
async def download_pdf(
    memo_id: uuid.UUID,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_async_session),
):
    service = MemoService(db)
    await _get_accessible_memo(service, memo_id, current_user)
    pdf_bytes = await service.get_pdf(memo_id, current_user.id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename=nexus_memo_{memo_id}.pdf"
        },
    )

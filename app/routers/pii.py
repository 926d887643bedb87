"""
Nexus Compliance - PII Router

Endpoints for scanning uploads for personal data and recording what the
user chose to do about it.
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_optional_user
from app.models.pii import PIIAction
from app.models.user import User
from app.schemas.pii import PIIDetectRequest, PIILogWarningRequest
from app.services.audit_service import AuditService
from app.services.pii_service import (
    PIIService,
    auto_exclude_pii_columns,
    detect_pii,
    generate_pii_warning,
    get_field_recommendations,
    serialize_pii_detection,
)

router = APIRouter()

# PII decision -> audit action
AUDIT_ACTION_FOR = {
    PIIAction.SHOWN.value: "PII_WARNING_SHOWN",
    PIIAction.OVERRIDE.value: "PII_OVERRIDE",
    PIIAction.AUTO_EXCLUDED.value: "PII_DETECTED",
}


@router.post("/detect", summary="Scan data for PII")
async def detect(request: PIIDetectRequest):
    if request.file_data is None or request.headers is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="fileData and headers arrays are required",
        )

    detection = detect_pii(request.file_data, request.headers)
    return {
        "success": True,
        "detection": detection,
        "warning": generate_pii_warning(detection),
        "safeHeaders": auto_exclude_pii_columns(request.headers, detection),
        "recommendations": get_field_recommendations(),
    }


@router.post("/log-warning", status_code=status.HTTP_201_CREATED, summary="Record a PII warning decision")
async def log_warning(
    request: PIILogWarningRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.upload_id or not request.pii_detection or not request.action:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="uploadId, piiDetection and action are required",
        )

    user_id = current_user.id if current_user else None
    organization_id = request.organization_id or (current_user.organization_id if current_user else None)

    try:
        record = await PIIService(db).log_warning(
            request.upload_id,
            request.pii_detection,
            request.action,
            user_id=user_id,
            organization_id=organization_id,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await AuditService(db).log_action(
        AUDIT_ACTION_FOR[request.action],
        "upload",
        request.upload_id,
        user_id=user_id,
        organization_id=organization_id,
        details={"severity": record.severity, "pii_types": record.pii_types, "action": record.action},
    )
    await db.commit()

    return {"success": True, "record": serialize_pii_detection(record)}


@router.get("/history/{upload_id}", summary="PII decisions for an upload")
async def get_history(
    upload_id: str,
    db: AsyncSession = Depends(get_async_session),
):
    records = await PIIService(db).get_history(upload_id)
    return {"success": True, "history": [serialize_pii_detection(r) for r in records]}

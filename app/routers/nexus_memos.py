"""
Nexus Compliance - Nexus Memo Workflow Router

Document ingestion endpoints: upload, header detection, column mapping,
alert generation and data validation.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import get_async_session
from app.dependencies import get_optional_user
from app.models.user import User
from app.schemas.ingestion import GenerateAlertsRequest, SuggestMappingsRequest, ValidateDataRequest
from app.services.audit_service import AuditService
from app.services.data_validation_service import DataValidationEngine
from app.services.doctrine_impact_service import DoctrineAlertMatcher
from app.services.ingestion_service import (
    IngestionService,
    generate_alerts,
    rows_to_records,
    suggest_mappings,
)
from app.services.pii_service import detect_pii, generate_pii_warning

logger = logging.getLogger(__name__)

router = APIRouter()

UPLOAD_ENTITY = "upload"


def _user_ids(user: Optional[User]):
    if user is None:
        return None, None
    return user.id, user.organization_id


@router.post("/upload", summary="Upload a financial document")
async def upload_document(
    file: UploadFile = File(..., description="CSV or Excel workbook"),
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
):
    content = await file.read()
    try:
        service = IngestionService(settings.max_upload_size_bytes)
        result = service.process_upload(file.filename or "upload.csv", content)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    header_row = max(result["headerDetection"]["headerRowIndex"], 0)
    pii = detect_pii(result["allData"][header_row:], result["headerDetection"]["headers"])
    result["piiDetection"] = pii
    result["piiWarning"] = generate_pii_warning(pii)

    user_id, organization_id = _user_ids(current_user)
    audit = AuditService(db)
    await audit.log_action(
        "UPLOAD_COMPLETED",
        UPLOAD_ENTITY,
        result["uploadId"],
        user_id=user_id,
        organization_id=organization_id,
        details={
            "file_name": result["fileName"],
            "file_size": result["fileSize"],
            "document_type": result["classification"]["type"],
            "row_count": result["rowCount"],
        },
    )
    if pii["hasPII"]:
        logger.warning(f"PII detected in upload {result['uploadId']}: severity {pii['severity']}")
        await audit.log_action(
            "PII_DETECTED",
            UPLOAD_ENTITY,
            result["uploadId"],
            user_id=user_id,
            organization_id=organization_id,
            details={"severity": pii["severity"], "total_issues": pii["totalIssues"]},
        )
    await db.commit()

    return result


@router.post("/detect-sheets", summary="List the sheets of a workbook")
async def detect_sheets(
    file: Optional[UploadFile] = File(None),
    file_type: Optional[str] = Form(None, alias="fileType"),
):
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No file uploaded")
    content = await file.read()
    try:
        service = IngestionService(settings.max_upload_size_bytes)
        return service.detect_sheets(file.filename or "upload.xlsx", content, file_type)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/detect-header", summary="Detect the header row of a document")
async def detect_header(
    file: UploadFile = File(...),
    sheet_name: Optional[str] = Form(None, alias="sheetName"),
):
    content = await file.read()
    try:
        service = IngestionService(settings.max_upload_size_bytes)
        return service.detect_header(file.filename or "upload.csv", content, sheet_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.post("/suggest-mappings", summary="Suggest column mappings")
async def suggest_column_mappings(
    request: SuggestMappingsRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.headers:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="headers are required")

    mappings = suggest_mappings(request.headers)
    if request.upload_id:
        user_id, organization_id = _user_ids(current_user)
        await AuditService(db).log_action(
            "MAPPING_SUGGESTED",
            UPLOAD_ENTITY,
            request.upload_id,
            user_id=user_id,
            organization_id=organization_id,
            details={"columns": len(mappings)},
        )
        await db.commit()

    return {"success": True, "uploadId": request.upload_id, "mappings": mappings}


@router.post("/generate-alerts", summary="Run nexus analysis over mapped rows")
async def generate_nexus_alerts(
    request: GenerateAlertsRequest,
    current_user: Optional[User] = Depends(get_optional_user),
    db: AsyncSession = Depends(get_async_session),
):
    if not request.rows:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="rows are required")

    rows = request.rows
    if not isinstance(rows[0], dict):
        rows = rows_to_records(rows, request.header_row_index)

    result = generate_alerts(
        rows,
        mappings=request.mappings,
        risk_posture=request.risk_posture,
        enabled_modules=request.enabled_modules,
        firm_id=request.firm_id,
        document_type=request.document_type,
    )

    user_id, organization_id = _user_ids(current_user)
    if organization_id:
        result["alerts"] = await DoctrineAlertMatcher(db).process_alerts(
            result["alerts"],
            organization_id,
            client_id=request.client_id,
        )
        await db.commit()

    if request.upload_id:
        await AuditService(db).log_action(
            "ANALYSIS_RUN",
            UPLOAD_ENTITY,
            request.upload_id,
            user_id=user_id,
            organization_id=organization_id,
            details={"alerts": len(result["alerts"]), "risk_posture": request.risk_posture},
        )
        await db.commit()

    return result


@router.post("/validate", summary="Validate parsed data before analysis")
async def validate_data(request: ValidateDataRequest):
    if not request.files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="files are required")

    engine = DataValidationEngine(request.options, request.firm_taxonomy)
    return engine.validate(request.files)

"""
Nexus Compliance - Dashboards Router

Endpoints for generating, listing and deleting personalized dashboards.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.schemas.dashboard import DashboardGenerateRequest
from app.services.dashboard_generation_service import DashboardGenerationService
from app.services.dashboard_service import DashboardService, serialize_dashboard

logger = logging.getLogger(__name__)

router = APIRouter()


def get_dashboard_generator() -> DashboardGenerationService:
    """LLM fan-out used for generation. Overridden in tests."""
    return DashboardGenerationService()


@router.post(
    "/generate",
    status_code=status.HTTP_201_CREATED,
    summary="Generate a personalized dashboard",
)
async def generate_dashboard(
    request: DashboardGenerateRequest,
    db: AsyncSession = Depends(get_async_session),
    generator: DashboardGenerationService = Depends(get_dashboard_generator),
):
    if not request.form_data or not request.organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing required fields: formData and organizationId are required",
        )

    service = DashboardService(db, generator=generator)
    try:
        result = await service.generate(request.form_data, request.organization_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return {"success": True, **result}


@router.get("/all", summary="List every dashboard")
async def list_all_dashboards(
    db: AsyncSession = Depends(get_async_session),
):
    dashboards = await DashboardService(db).list_all()
    return {
        "success": True,
        "dashboards": [serialize_dashboard(d) for d in dashboards],
        "total": len(dashboards),
    }


@router.get("/test-openai", summary="Check the OpenAI connection")
async def test_openai(
    generator: DashboardGenerationService = Depends(get_dashboard_generator),
):
    return await generator.test_connection()


@router.get("/", summary="List an organization's dashboards")
async def list_dashboards(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_async_session),
):
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organizationId is required",
        )

    dashboards = await DashboardService(db).list_for_organization(organization_id)
    return {
        "success": True,
        "dashboards": [serialize_dashboard(d) for d in dashboards],
        "total": len(dashboards),
    }


@router.get("/{unique_url}", summary="Get a dashboard by its URL")
async def get_dashboard(
    unique_url: str,
    db: AsyncSession = Depends(get_async_session),
):
    dashboard = await DashboardService(db).get_by_url(unique_url)
    if not dashboard:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dashboard not found",
        )
    return {"success": True, "dashboard": serialize_dashboard(dashboard, include_sections=True)}


@router.delete("/url/{unique_url}", summary="Delete a dashboard by its URL")
async def delete_dashboard_by_url(
    unique_url: str,
    db: AsyncSession = Depends(get_async_session),
):
    service = DashboardService(db)
    dashboard = await service.get_by_url(unique_url, active_only=False)
    if not dashboard:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dashboard not found",
        )

    deleted = await service.delete_dashboard(dashboard)
    return {"success": True, "message": "Dashboard deleted", "deleted": deleted}


@router.delete("/{dashboard_id}", summary="Delete a dashboard")
async def delete_dashboard(
    dashboard_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
):
    service = DashboardService(db)
    dashboard = await service.get_by_id(dashboard_id)
    if not dashboard:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dashboard not found",
        )

    deleted = await service.delete_dashboard(dashboard)
    return {"success": True, "message": "Dashboard deleted", "deleted": deleted}

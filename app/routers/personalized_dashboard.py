"""
Nexus Compliance - Personalized Dashboard Router

Per-section views of a generated dashboard, addressed by its unique URL.
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.services.dashboard_service import PERSONALIZED_SECTIONS, DashboardService

router = APIRouter()


@router.get("/{unique_url}/{view}", summary="Get one section of a personalized dashboard")
async def get_personalized_section(
    unique_url: str,
    view: str,
    db: AsyncSession = Depends(get_async_session),
):
    if view not in PERSONALIZED_SECTIONS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown dashboard view: {view}",
        )

    data = await DashboardService(db).get_personalized_section(unique_url, view)
    if data is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Dashboard not found",
        )
    return data

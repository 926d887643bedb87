"""
Nexus Compliance - Risk Portfolio Router

Portfolio-wide and per-client risk views for an organization.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.services.portfolio_service import PortfolioService

router = APIRouter()


def _require_organization(organization_id: Optional[uuid.UUID]) -> uuid.UUID:
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="organizationId is required",
        )
    return organization_id


@router.get("", summary="Risk portfolio for an organization")
async def get_risk_portfolio(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_async_session),
):
    return await PortfolioService(db).get_risk_portfolio(_require_organization(organization_id))


@router.get("/{client_id}", summary="Risk profile for one client")
async def get_client_risk_profile(
    client_id: uuid.UUID,
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    db: AsyncSession = Depends(get_async_session),
):
    profile = await PortfolioService(db).get_client_risk_profile(
        _require_organization(organization_id), client_id
    )
    if profile is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Client not found")
    return profile

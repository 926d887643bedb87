"""
Nexus Compliance - Role Dashboards Router

Dashboards for the three firm roles. Each requires the matching role;
system admins can open all of them.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import (
    require_managing_partner,
    require_system_admin,
    require_tax_manager,
    resolve_organization_id,
)
from app.models.user import User
from app.services.portfolio_service import PortfolioService

router = APIRouter()


@router.get("/managing-partner", summary="Managing partner dashboard")
async def managing_partner_dashboard(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    current_user: User = Depends(require_managing_partner()),
    db: AsyncSession = Depends(get_async_session),
):
    org_id = resolve_organization_id(current_user, organization_id)
    return await PortfolioService(db).managing_partner_dashboard(org_id)


@router.get("/tax-manager", summary="Tax manager dashboard")
async def tax_manager_dashboard(
    organization_id: Optional[uuid.UUID] = Query(None, alias="organizationId"),
    current_user: User = Depends(require_tax_manager()),
    db: AsyncSession = Depends(get_async_session),
):
    org_id = resolve_organization_id(current_user, organization_id)
    return await PortfolioService(db).tax_manager_dashboard(org_id)


@router.get("/system-admin", summary="System admin dashboard")
async def system_admin_dashboard(
    current_user: User = Depends(require_system_admin()),
    db: AsyncSession = Depends(get_async_session),
):
    return await PortfolioService(db).system_admin_dashboard()

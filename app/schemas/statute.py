"""
Nexus Compliance - Statute Override Schemas
"""

from datetime import date
from typing import Optional
from uuid import UUID

from app.schemas.common import CamelModel


class StatuteOverrideCreate(CamelModel):
    """Required fields are checked by the router so that gaps return 400."""
    state_code: Optional[str] = None
    tax_type: Optional[str] = None
    change_type: Optional[str] = None
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    effective_date: Optional[date] = None
    source: Optional[str] = None
    citation: Optional[str] = None
    notes: Optional[str] = None
    organization_id: Optional[UUID] = None


class StatuteOverrideReject(CamelModel):
    reason: Optional[str] = None

"""
Nexus Compliance - Approval Schemas

Field names follow the snake_case body the approval screens send; the
camelCase aliases are accepted as well.
"""

from typing import Optional
from uuid import UUID

from app.schemas.common import CamelModel


class ApprovalRequirementCreate(CamelModel):
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    approval_type: Optional[str] = None
    required_role: Optional[str] = None
    organization_id: Optional[UUID] = None
    client_id: Optional[UUID] = None


class ApprovalSubmit(CamelModel):
    approval_id: Optional[UUID] = None
    notes: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

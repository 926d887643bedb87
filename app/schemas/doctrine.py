"""
Nexus Compliance - Doctrine Rule Schemas

Pydantic schemas for creating, reviewing and simulating doctrine rules.
"""

from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class DoctrineRuleCreate(CamelModel):
    """Required fields are checked by the router so that gaps return 400."""
    name: Optional[str] = None
    state: Optional[str] = None
    tax_type: Optional[str] = None
    activity_pattern: Optional[Dict[str, Any]] = None
    posture: Optional[str] = None
    decision: Optional[str] = None
    scope: Optional[str] = None
    client_id: Optional[UUID] = None
    office_id: Optional[str] = None
    organization_id: Optional[UUID] = None
    rationale_internal: Optional[str] = None
    review_due_at: Optional[datetime] = None


class DoctrineRuleUpdate(CamelModel):
    name: Optional[str] = None
    state: Optional[str] = None
    tax_type: Optional[str] = None
    activity_pattern: Optional[Dict[str, Any]] = None
    posture: Optional[str] = None
    decision: Optional[str] = None
    rationale_internal: Optional[str] = None
    review_due_at: Optional[datetime] = None
    reason: Optional[str] = None


class DoctrineDryRunRequest(CamelModel):
    organization_id: Optional[UUID] = None
    state: Optional[str] = None
    tax_type: Optional[str] = None
    activity_pattern: Optional[Dict[str, Any]] = None
    posture: Optional[str] = None
    decision: Optional[str] = None
    scope: Optional[str] = None
    client_id: Optional[UUID] = None
    office_id: Optional[str] = None


class DoctrineReviewRequest(CamelModel):
    comment: Optional[str] = None


class DoctrineRollbackRequest(CamelModel):
    target_version: Optional[int] = None
    reason: Optional[str] = None


class DoctrineDisableRequest(CamelModel):
    reason: Optional[str] = None

"""
Nexus Compliance - Audit Schemas

Pydantic schemas for the audit trail API.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel


class AuditLogRequest(CamelModel):
    """Entries are keyed by entity; related ids are folded into details."""
    action: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    client_id: Optional[str] = None
    upload_id: Optional[str] = None
    memo_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    severity: str = "INFO"
    organization_id: Optional[UUID] = None


class VerifyChainRequest(CamelModel):
    entity_type: str = Field(..., min_length=1)
    entity_id: str = Field(..., min_length=1)

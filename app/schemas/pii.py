"""
Nexus Compliance - PII Schemas

Pydantic schemas for PII detection and warning logging.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class PIIDetectRequest(CamelModel):
    file_data: Optional[List[List[Any]]] = None
    headers: Optional[List[Any]] = None


class PIILogWarningRequest(CamelModel):
    upload_id: Optional[str] = None
    pii_detection: Optional[Dict[str, Any]] = None
    action: Optional[str] = None
    organization_id: Optional[UUID] = None

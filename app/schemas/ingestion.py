"""
Nexus Compliance - Document Ingestion Schemas

Pydantic schemas for the nexus memo upload workflow.
"""

from typing import Any, Dict, List, Literal, Optional
from uuid import UUID

from app.schemas.common import CamelModel


RiskPosture = Literal["conservative", "standard", "aggressive"]


class SuggestMappingsRequest(CamelModel):
    upload_id: Optional[str] = None
    headers: Optional[List[Any]] = None
    document_type: Optional[str] = None


class GenerateAlertsRequest(CamelModel):
    """Rows are dicts keyed by header, or raw rows with header_row_index."""
    upload_id: Optional[str] = None
    rows: Optional[List[Any]] = None
    header_row_index: int = 0
    mappings: Optional[Dict[str, str]] = None
    risk_posture: RiskPosture = "standard"
    enabled_modules: Optional[Dict[str, bool]] = None
    firm_id: str = "default"
    document_type: Optional[str] = None
    client_id: Optional[UUID] = None


class ValidateDataRequest(CamelModel):
    files: Optional[List[Dict[str, Any]]] = None
    options: Optional[Dict[str, Any]] = None
    firm_taxonomy: Optional[Dict[str, Any]] = None

"""
Nexus Compliance - Nexus Memo Schemas

Pydantic schemas for memo drafting, editing and supplemental memos.
"""

from typing import Any, Dict, List, Optional
from uuid import UUID

from app.schemas.common import CamelModel


class MemoCreate(CamelModel):
    """Required fields are checked by the router so that gaps return 400."""
    organization_id: Optional[UUID] = None
    client_id: Optional[UUID] = None
    title: Optional[str] = None
    memo_type: Optional[str] = None
    sections: Optional[List[Dict[str, Any]]] = None
    conclusion: Optional[str] = None
    recommendations: Optional[List[str]] = None
    attestation: Optional[Dict[str, Any]] = None
    statute_versions: Optional[Dict[str, Any]] = None
    is_supplemental: bool = False
    supersedes_memo_id: Optional[UUID] = None


class MemoUpdate(CamelModel):
    title: Optional[str] = None
    sections: Optional[List[Dict[str, Any]]] = None
    conclusion: Optional[str] = None
    recommendations: Optional[List[str]] = None
    attestation: Optional[Dict[str, Any]] = None
    statute_versions: Optional[Dict[str, Any]] = None


class SupplementalMemoCreate(CamelModel):
    title: Optional[str] = None
    sections: Optional[List[Dict[str, Any]]] = None
    conclusion: Optional[str] = None
    recommendations: Optional[List[str]] = None


class MemoFromAlertsRequest(CamelModel):
    organization_id: UUID
    client_id: UUID
    alerts: List[Dict[str, Any]]
    summary: Optional[Dict[str, Any]] = None

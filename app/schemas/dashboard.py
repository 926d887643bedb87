"""
Nexus Compliance - Dashboard Schemas

Pydantic schemas for generated dashboard requests.
"""

from typing import Any, Dict, Optional

from app.schemas.common import CamelModel


class DashboardGenerateRequest(CamelModel):
    """
    Body of POST /api/dashboards/generate.

    Both fields are optional here so the router can answer a missing value
    with 400 rather than a validation error.
    """
    form_data: Optional[Dict[str, Any]] = None
    organization_id: Optional[str] = None

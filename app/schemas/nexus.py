"""
Nexus Compliance - Nexus Resource Schemas

Pydantic schemas for nexus alerts, activities and client states.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import Field

from app.schemas.common import CamelModel

Priority = Literal["high", "medium", "low"]
AlertStatus = Literal["open", "acknowledged", "resolved"]
StateStatus = Literal["compliant", "warning", "critical", "transit", "pending", "monitoring"]


class NexusAlertCreate(CamelModel):
    client_id: UUID
    organization_id: UUID
    state_code: Optional[str] = Field(None, min_length=2, max_length=2)
    alert_type: str = Field(..., min_length=1, max_length=50)
    priority: Priority = "medium"
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    threshold_amount: Optional[Decimal] = None
    current_amount: Optional[Decimal] = None
    penalty_risk: Optional[Decimal] = None
    deadline: Optional[datetime] = None


class NexusAlertUpdate(CamelModel):
    status: Optional[AlertStatus] = None
    priority: Optional[Priority] = None
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    threshold_amount: Optional[Decimal] = None
    current_amount: Optional[Decimal] = None
    penalty_risk: Optional[Decimal] = None
    deadline: Optional[datetime] = None


class NexusActivityCreate(CamelModel):
    client_id: UUID
    organization_id: UUID
    state_code: Optional[str] = Field(None, min_length=2, max_length=2)
    activity_type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    amount: Optional[Decimal] = None
    threshold_amount: Optional[Decimal] = None
    status: str = "completed"


class ClientStateCreate(CamelModel):
    client_id: UUID
    organization_id: UUID
    state_code: str = Field(..., min_length=2, max_length=2)
    state_name: Optional[str] = None
    status: StateStatus = "monitoring"
    threshold_amount: Optional[Decimal] = None
    current_amount: Optional[Decimal] = None
    registration_required: bool = False
    penalty_risk: Optional[Decimal] = None
    notes: Optional[str] = None
    last_updated: Optional[datetime] = None


class ClientStateUpdate(CamelModel):
    status: Optional[StateStatus] = None
    threshold_amount: Optional[Decimal] = None
    current_amount: Optional[Decimal] = None
    registration_required: Optional[bool] = None
    penalty_risk: Optional[Decimal] = None
    notes: Optional[str] = None
    last_updated: Optional[datetime] = None
